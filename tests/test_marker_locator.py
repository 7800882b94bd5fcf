import numpy as np
import pytest

from sheetscan.core.config import RecognitionConfig
from sheetscan.core.marker_locator import MarkerLocator, find_corner_markers
from sheetscan.core.normalizer import to_grayscale
from sheetscan.core.sheet_renderer import place_on_background
from sheetscan.core.types import MarkerFrame

from conftest import frame_for

MARGIN = 60


def assert_close(point, expected, tol=3.0):
    assert point.x == pytest.approx(expected.x, abs=tol)
    assert point.y == pytest.approx(expected.y, abs=tol)


class TestFallbacks:
    def test_white_image_uses_fixed_margin(self):
        white = np.full((500, 400), 255, dtype=np.uint8)
        result = find_corner_markers(white, 20)
        assert not result.found
        assert result.confidence == 0.0
        assert result.candidate_count == 0
        assert result.frame == MarkerFrame.fixed_margin(400, 500, 0.02)

    def test_full_page_margin_is_wider(self):
        white = np.full((500, 400), 255, dtype=np.uint8)
        result = find_corner_markers(white, 100)
        assert result.frame == MarkerFrame.fixed_margin(400, 500, 0.04)

    def test_single_square_gives_partial_confidence(self):
        img = np.full((400, 400), 255, dtype=np.uint8)
        img[190:210, 190:210] = 0
        result = find_corner_markers(img, 20)
        assert not result.found
        assert result.candidate_count == 1
        assert result.confidence == pytest.approx(0.25)
        # Every corner collapses onto the only candidate
        assert result.frame.area() == 0

    def test_four_squares_in_a_line_are_not_a_frame(self):
        img = np.full((400, 800), 255, dtype=np.uint8)
        for x in (100, 300, 500, 700):
            img[190:210, x - 10:x + 10] = 0
        result = find_corner_markers(img, 20)
        assert not result.found
        assert result.confidence == pytest.approx(0.3)

    def test_rejects_color_input(self):
        with pytest.raises(ValueError):
            MarkerLocator().locate(np.zeros((10, 10, 3), dtype=np.uint8))


class TestPrintedSheet:
    def test_finds_all_four_markers(self, layout_20, filled_sheet_20):
        photo = place_on_background(filled_sheet_20, MARGIN, desk=240)
        result = MarkerLocator(RecognitionConfig()).locate(to_grayscale(photo), 20)

        assert result.found
        assert result.confidence > 0.9
        expected = frame_for(layout_20, offset=(MARGIN - 0.5, MARGIN - 0.5))
        assert_close(result.frame.top_left, expected.top_left)
        assert_close(result.frame.top_right, expected.top_right)
        assert_close(result.frame.bottom_left, expected.bottom_left)
        assert_close(result.frame.bottom_right, expected.bottom_right)

    def test_dark_desk_around_paper(self, filled_sheet_20):
        photo = place_on_background(filled_sheet_20, MARGIN, desk=100)
        result = find_corner_markers(to_grayscale(photo), 20)
        assert result.found

    def test_deterministic(self, filled_sheet_20):
        gray = to_grayscale(place_on_background(filled_sheet_20, MARGIN, desk=200))
        assert find_corner_markers(gray, 20) == find_corner_markers(gray, 20)


class TestRefinement:
    def test_markers_larger_than_every_window(self):
        # Base window is 15 px, the printed squares are 40 px wide
        img = np.full((600, 600), 255, dtype=np.uint8)
        for x, y in ((80, 80), (480, 80), (80, 480), (480, 480)):
            img[y:y + 40, x:x + 40] = 0
        result = find_corner_markers(img, 20)

        assert result.found
        for point, (ex, ey) in zip(result.frame.as_list(), ((100, 100), (500, 100), (100, 500), (500, 500))):
            assert point[0] == pytest.approx(ex, abs=1.0)
            assert point[1] == pytest.approx(ey, abs=1.0)
