"""
Template Layout Registry.

Bubble-grid geometry of the three printed sheet sizes. Positions are
normalized to the marker frame (0 = top-left marker center, 1 = right/bottom
marker center) so a layout works at any photo resolution.

Every constant is derived from the printed sheet in millimetres and divided
by the marker frame size. Do not round or re-estimate them.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Iterator, Optional, Tuple

SUPPORTED_TEMPLATES = (20, 50, 100)
ID_COLUMNS = 9
ID_ROWS = 10

# ID bubbles are printed slightly smaller than answer bubbles
ID_BUBBLE_SCALE = 3.5 / 3.8


@dataclass(frozen=True)
class AnswerBlock:
    start_q: int
    end_q: int
    first_bubble_nx: float
    first_bubble_ny: float
    bubble_spacing_nx: float
    row_spacing_ny: float

    def contains(self, question: int) -> bool:
        return self.start_q <= question <= self.end_q


@dataclass(frozen=True)
class IdGrid:
    first_col_nx: float
    first_row_ny: float
    col_spacing_nx: float
    row_spacing_ny: float
    columns: int = ID_COLUMNS
    rows: int = ID_ROWS


@dataclass(frozen=True)
class TemplateLayout:
    template_type: int
    id_grid: IdGrid
    answer_blocks: Tuple[AnswerBlock, ...]
    bubble_diameter_nx: float
    bubble_diameter_ny: float
    # Physical print geometry (mm)
    page_size_mm: Tuple[float, float]
    marker_origin_mm: Tuple[float, float]
    frame_size_mm: Tuple[float, float]
    marker_size_mm: float

    @property
    def question_capacity(self) -> int:
        return max(block.end_q for block in self.answer_blocks)

    def block_for(self, question: int) -> Optional[AnswerBlock]:
        for block in self.answer_blocks:
            if block.contains(question):
                return block
        return None

    def bubble_position(self, question: int, choice: int) -> Tuple[float, float]:
        """Normalized center of one answer bubble (question is 1-based, choice 0-based)."""
        block = self.block_for(question)
        if block is None:
            raise ValueError(f"Question {question} is not on the {self.template_type}-question sheet.")
        row = question - block.start_q
        return (block.first_bubble_nx + choice * block.bubble_spacing_nx,
                block.first_bubble_ny + row * block.row_spacing_ny)

    def id_bubble_position(self, column: int, digit: int) -> Tuple[float, float]:
        """Normalized center of the bubble for `digit` in ID column `column` (both 0-based)."""
        grid = self.id_grid
        return (grid.first_col_nx + column * grid.col_spacing_nx,
                grid.first_row_ny + digit * grid.row_spacing_ny)

    def iter_answer_bubbles(self, question_count: int, choices: int) -> Iterator[Tuple[int, int, float, float]]:
        """Yield (question, choice, nx, ny) in block order."""
        for block in self.answer_blocks:
            for q in range(block.start_q, min(block.end_q, question_count) + 1):
                for c in range(choices):
                    nx, ny = self.bubble_position(q, c)
                    yield q, c, nx, ny

    def iter_id_bubbles(self) -> Iterator[Tuple[int, int, float, float]]:
        """Yield (column, digit, nx, ny)."""
        for col in range(self.id_grid.columns):
            for digit in range(self.id_grid.rows):
                nx, ny = self.id_bubble_position(col, digit)
                yield col, digit, nx, ny

    def to_page_mm(self, nx: float, ny: float) -> Tuple[float, float]:
        """Normalized frame position -> position on the printed page (mm)."""
        ox, oy = self.marker_origin_mm
        fw, fh = self.frame_size_mm
        return ox + nx * fw, oy + ny * fh


def template_type_for(question_count: int) -> int:
    if question_count <= 20:
        return 20
    if question_count <= 50:
        return 50
    return 100


def _block(start_q: int, end_q: int, x_mm: float, y_mm: float,
           spacing_x_mm: float, spacing_y_mm: float, fw: float, fh: float) -> AnswerBlock:
    return AnswerBlock(
        start_q=start_q, end_q=end_q,
        first_bubble_nx=x_mm / fw, first_bubble_ny=y_mm / fh,
        bubble_spacing_nx=spacing_x_mm / fw, row_spacing_ny=spacing_y_mm / fh,
    )


def _mini_sheet(template_type: int, page_h: float, fh: float, blocks) -> TemplateLayout:
    # Mini / half-page sheets, 105 mm wide, marker centers at x = 7 and x = 98
    fw = 91.0
    return TemplateLayout(
        template_type=template_type,
        id_grid=IdGrid(
            first_col_nx=11 / fw,
            first_row_ny=15 / fh,
            col_spacing_nx=4.5 / fw,
            row_spacing_ny=3.5 / fh,
        ),
        answer_blocks=tuple(_block(s, e, x, y, 4.8, 4.5, fw, fh) for s, e, x, y in blocks),
        bubble_diameter_nx=3.2 / fw,
        bubble_diameter_ny=3.2 / fh,
        page_size_mm=(105.0, page_h),
        marker_origin_mm=(7.0, 19.0),
        frame_size_mm=(fw, fh),
        marker_size_mm=6.0,
    )


def _full_page_sheet() -> TemplateLayout:
    # A4 210 x 297 mm. Top markers: rect(3,3,7,7) & rect(200,3,7,7) -> centers (6.5, 6.5), (203.5, 6.5).
    # Bottom markers sit under the answer grid at y = 222, not at the page bottom.
    fw, fh = 197.0, 215.5
    blocks = [
        # Top row, beside the ID grid
        (41, 50, 89.35, 51),
        (71, 80, 154.85, 51),
        # Bottom grid, row 0
        (1, 10, 24.86, 105),
        (21, 30, 70.02, 105),
        (51, 60, 115.18, 105),
        (81, 90, 160.34, 105),
        # Bottom grid, row 1
        (11, 20, 24.86, 161),
        (31, 40, 70.02, 161),
        (61, 70, 115.18, 161),
        (91, 100, 160.34, 161),
    ]
    return TemplateLayout(
        template_type=100,
        id_grid=IdGrid(
            first_col_nx=14.5 / fw,
            first_row_ny=46.5 / fh,
            col_spacing_nx=4.5 / fw,
            row_spacing_ny=4.8 / fh,
        ),
        answer_blocks=tuple(_block(s, e, x, y, 5.0, 4.8, fw, fh) for s, e, x, y in blocks),
        bubble_diameter_nx=3.8 / fw,
        bubble_diameter_ny=3.8 / fh,
        page_size_mm=(210.0, 297.0),
        marker_origin_mm=(6.5, 6.5),
        frame_size_mm=(fw, fh),
        marker_size_mm=7.0,
    )


@lru_cache(maxsize=None)
def _layout_for_type(template_type: int) -> TemplateLayout:
    if template_type == 20:
        # 105 x 148.5 mm, marker centers TL (7, 19) BR (98, 126)
        return _mini_sheet(20, 148.5, 107.0, [
            (1, 10, 13, 58),
            (11, 20, 55.5, 58),
        ])
    if template_type == 50:
        # 105 x 297 mm, marker centers TL (7, 19) BR (98, 230)
        return _mini_sheet(50, 297.0, 211.0, [
            # Left column
            (1, 10, 13, 58),
            (11, 20, 13, 110),
            (21, 30, 13, 162),
            # Right column
            (31, 40, 55.5, 58),
            (41, 50, 55.5, 110),
        ])
    return _full_page_sheet()


def get_template_layout(question_count: int) -> TemplateLayout:
    """Layout of the sheet that holds `question_count` questions."""
    return _layout_for_type(template_type_for(question_count))
