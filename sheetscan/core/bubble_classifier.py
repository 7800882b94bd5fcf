import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from sheetscan.utils.logger import app_logger
from .config import RecognitionConfig
from .coordinate_mapper import map_to_pixel, bubble_radius
from .template_layout import TemplateLayout
from .types import MarkerFrame

CHOICE_LABELS = "ABCDEFGH"


@dataclass(frozen=True)
class MarkDecision:
    """Outcome for one question (or one ID column)."""
    index: Optional[int]
    ambiguous: bool
    dark_ratio: float
    gap_ratio: float
    reference: float

    @property
    def marked(self) -> bool:
        return self.index is not None


def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5).astype(np.int64)


def sample_bubble_at(gray: np.ndarray, cx: float, cy: float, rx: float, ry: float,
                     inner_fraction: float = 0.50) -> float:
    """
    Mean brightness (0-255) of a bubble interior. Lower = darker = more filled.

    Samples the inner ellipse (half the radius by default, clear of the
    printed outline) plus a center cross that catches small pencil marks.
    Points outside the image are skipped; no samples at all reads as 255.
    """
    h, w = gray.shape[:2]
    irx = rx * inner_fraction
    iry = ry * inner_fraction
    step = max(1, int(math.floor(min(irx, iry) / 4)))

    span_y = int(math.ceil(iry))
    span_x = int(math.ceil(irx))
    dy, dx = np.meshgrid(
        np.arange(-span_y, span_y + 1, step, dtype=np.float64),
        np.arange(-span_x, span_x + 1, step, dtype=np.float64),
        indexing='ij',
    )
    dx = dx.ravel()
    dy = dy.ravel()
    if irx > 0 and iry > 0:
        inside = (dx * dx) / (irx * irx) + (dy * dy) / (iry * iry) <= 1
        dx, dy = dx[inside], dy[inside]

    r = np.arange(0, int(math.floor(irx * 0.7)) + 1, dtype=np.float64)
    zeros = np.zeros_like(r)
    cross_dx = np.concatenate([r, -r, zeros, zeros])
    cross_dy = np.concatenate([zeros, zeros, r, -r])

    px = _round_half_up(cx + np.concatenate([dx, cross_dx]))
    py = _round_half_up(cy + np.concatenate([dy, cross_dy]))
    valid = (px >= 0) & (px < w) & (py >= 0) & (py < h)
    if not np.any(valid):
        return 255.0
    return float(gray[py[valid], px[valid]].astype(np.float64).mean())


def classify_marks(samples: Sequence[float], reference_rank: Optional[int] = None,
                   config: Optional[RecognitionConfig] = None) -> MarkDecision:
    """
    Pick the shaded bubble out of one row of brightness samples.

    Args:
        samples: brightness per choice (or per digit), in bubble order.
        reference_rank: index into the ascending sort used as the "unfilled"
            reference. None means the brightest sample (choice rows); the
            10-row ID grid uses rank 7, an upper-quartile estimate.
    """
    cfg = config or RecognitionConfig()
    values = [float(s) for s in samples]
    if not values:
        return MarkDecision(None, False, 1.0, 0.0, 0.0)

    ordered = sorted(values)
    darkest = ordered[0]
    second = ordered[1] if len(ordered) >= 2 else 255.0
    if reference_rank is None:
        reference = ordered[-1]
    else:
        reference = ordered[min(reference_rank, len(ordered) - 1)]

    usable = reference > cfg.min_reference_brightness
    gap = second - darkest
    dark_ratio = darkest / reference if usable else 1.0
    gap_ratio = gap / reference if usable else 0.0

    marked = (dark_ratio < cfg.strong_dark_ratio
              or (dark_ratio < cfg.moderate_dark_ratio and gap_ratio > cfg.min_gap_ratio))
    if not marked:
        return MarkDecision(None, False, dark_ratio, gap_ratio, reference)

    second_ratio = second / reference if usable else 1.0
    top_gap = gap / reference if usable else 1.0
    ambiguous = second_ratio < cfg.ambiguous_second_ratio and top_gap < cfg.ambiguous_max_gap_ratio

    return MarkDecision(values.index(darkest), ambiguous, dark_ratio, gap_ratio, reference)


def digits_to_student_id(digits: Sequence[int]) -> str:
    """Confident digits in column order. Unshaded columns (-1) are left out, never read as 0."""
    return ''.join(str(d) for d in digits if d != -1)


class BubbleClassifier:
    """Samples every bubble of a layout and turns the samples into marks."""

    def __init__(self, config: Optional[RecognitionConfig] = None):
        self.config = config or RecognitionConfig()

    def _sample(self, gray: np.ndarray, frame: MarkerFrame, nx: float, ny: float,
                radius: Tuple[float, float]) -> float:
        px, py = map_to_pixel(frame, nx, ny)
        return sample_bubble_at(gray, px, py, radius[0], radius[1], self.config.bubble_inner_fraction)

    def read_student_id(self, gray: np.ndarray, frame: MarkerFrame,
                        layout: TemplateLayout) -> Tuple[str, Tuple[int, ...], Tuple[int, ...]]:
        """
        Decode the ID grid.

        Returns:
            (student_id, double-shaded column numbers (1-based), raw digits with -1 for unshaded)
        """
        radius = bubble_radius(frame, layout, id_grid=True)
        grid = layout.id_grid
        digits: List[int] = []
        double_shades: List[int] = []

        for col in range(grid.columns):
            fills = [self._sample(gray, frame, *layout.id_bubble_position(col, row), radius)
                     for row in range(grid.rows)]
            decision = classify_marks(fills, self.config.id_reference_rank, self.config)

            if decision.marked and decision.ambiguous:
                double_shades.append(col + 1)
                app_logger.debug(f"[ID] Col {col} DOUBLE SHADE: {[round(f) for f in fills]}")

            digits.append(decision.index if decision.marked else -1)
            app_logger.debug(
                f"[ID] Col {col}: {[round(f) for f in fills]} -> "
                f"{decision.index if decision.marked else '_'} "
                f"(ratio={decision.dark_ratio:.2f} gap={decision.gap_ratio:.2f} ref={decision.reference:.0f})"
            )

        student_id = digits_to_student_id(digits)
        app_logger.debug(f"[ID] Raw: {''.join('_' if d == -1 else str(d) for d in digits)} -> '{student_id}'")
        return student_id, tuple(double_shades), tuple(digits)

    def read_answers(self, gray: np.ndarray, frame: MarkerFrame, layout: TemplateLayout,
                     question_count: int, choices: int) -> Tuple[Tuple[str, ...], Tuple[int, ...]]:
        """
        Decode every question on the sheet.

        Returns:
            (answer letter per question, "" when unmarked; question numbers with multiple marks)
        """
        labels = CHOICE_LABELS[:choices]
        radius = bubble_radius(frame, layout)
        answers = [''] * question_count
        multiple: List[int] = []

        for block in layout.answer_blocks:
            for q in range(block.start_q, min(block.end_q, question_count) + 1):
                fills = [self._sample(gray, frame, *layout.bubble_position(q, c), radius)
                         for c in range(choices)]
                decision = classify_marks(fills, None, self.config)
                if decision.marked:
                    answers[q - 1] = labels[decision.index]
                    if decision.ambiguous:
                        multiple.append(q)
                        app_logger.debug(f"[MULTI] Q{q}: {[round(f) for f in fills]}")

        app_logger.debug(f"[ANS] {sum(1 for a in answers if a)}/{question_count} answered, multiple={sorted(multiple)}")
        return tuple(answers), tuple(sorted(multiple))
