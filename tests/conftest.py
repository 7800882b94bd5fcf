import os
import tempfile

# Keep test runs from writing session logs into the project
os.environ.setdefault("SHEETSCAN_LOG_DIR", os.path.join(tempfile.gettempdir(), "sheetscan-test-logs"))

import pytest  # noqa: E402

from sheetscan.core.template_layout import get_template_layout  # noqa: E402
from sheetscan.core.sheet_renderer import render_sheet  # noqa: E402
from sheetscan.core.types import MarkerFrame, Point  # noqa: E402

PX_PER_MM = 8.0
STUDENT_DIGITS = [2, 0, 2, 4, 1, 5, 3, 7, 9]
ANSWERS_20 = list("ABCDDCBAABCDACBDBDCA")


def frame_for(layout, px_per_mm=PX_PER_MM, offset=(0.0, 0.0)) -> MarkerFrame:
    """Exact marker centers of a sheet printed by render_sheet."""
    ox, oy = layout.marker_origin_mm
    fw, fh = layout.frame_size_mm
    dx, dy = offset

    def p(x_mm, y_mm):
        return Point(x_mm * px_per_mm + dx, y_mm * px_per_mm + dy)

    return MarkerFrame(
        top_left=p(ox, oy),
        top_right=p(ox + fw, oy),
        bottom_left=p(ox, oy + fh),
        bottom_right=p(ox + fw, oy + fh),
    )


@pytest.fixture(scope="session")
def layout_20():
    return get_template_layout(20)


@pytest.fixture(scope="session")
def filled_sheet_20(layout_20):
    return render_sheet(layout_20, PX_PER_MM, question_count=20, choices=4,
                        answers=ANSWERS_20, id_digits=STUDENT_DIGITS)
