import cv2
import numpy as np
import pytest

from sheetscan.core.skew import detect_skew_angle, rotate_image, correct_skew
from sheetscan.core.normalizer import to_grayscale
from sheetscan.core.sheet_renderer import place_on_background, rotate_photo


def grid_paper(size=600, spacing=60, thickness=3):
    """White page with a black square grid: lots of straight edges."""
    img = np.full((size, size), 255, dtype=np.uint8)
    for pos in range(spacing, size - spacing + 1, spacing):
        img[pos:pos + thickness, spacing:size - spacing] = 0
        img[spacing:size - spacing, pos:pos + thickness] = 0
    return img


def grid_tilt(gray):
    """Tilt in degrees of the dark grid outline, folded into [-45, 45)."""
    ys, xs = np.nonzero(gray < 128)
    points = np.column_stack([xs, ys]).astype(np.float32)
    angle = cv2.minAreaRect(points)[2]
    return (angle + 45) % 90 - 45


class TestDetectSkewAngle:
    def test_straight_page(self):
        assert detect_skew_angle(grid_paper()) == 0.0

    @pytest.mark.parametrize("ccw_angle", [4.0, -4.0, 7.5])
    def test_rotated_page(self, ccw_angle):
        # Counter-clockwise on screen reads as a negative (anti-clockwise) skew
        rotated = rotate_photo(grid_paper(), ccw_angle, border=255)
        assert detect_skew_angle(rotated) == pytest.approx(-ccw_angle, abs=0.5)

    def test_blank_page_has_no_evidence(self):
        assert detect_skew_angle(np.full((400, 400), 255, dtype=np.uint8)) == 0.0

    def test_tiny_image(self):
        assert detect_skew_angle(np.zeros((6, 6), dtype=np.uint8)) == 0.0

    def test_small_angle_ignored(self):
        rotated = rotate_photo(grid_paper(), 0.5, border=255)
        assert detect_skew_angle(rotated) == 0.0


class TestRotateImage:
    def test_negligible_angle_is_noop(self):
        img = grid_paper(100, 20)
        assert rotate_image(img, 0.3) is img

    def test_canvas_grows_and_corners_are_white(self):
        img = np.zeros((100, 200, 3), dtype=np.uint8)
        out = rotate_image(img, 10)
        assert out.shape[0] > 100 and out.shape[1] > 200
        assert tuple(out[0, 0]) == (255, 255, 255)

    def test_correct_skew_undoes_rotation(self):
        page = np.dstack([grid_paper()] * 3)
        rotated = rotate_photo(page, 5.0, border=255)
        corrected, angle = correct_skew(rotated)
        assert angle == pytest.approx(-5.0, abs=0.5)
        assert abs(grid_tilt(corrected[:, :, 0])) <= 0.8

    def test_correct_skew_leaves_straight_page(self):
        page = np.dstack([grid_paper()] * 3)
        corrected, angle = correct_skew(page)
        assert angle == 0.0
        assert corrected is page


class TestMoreSkewCases:
    def test_printed_sheet_on_desk(self, filled_sheet_20):
        photo = to_grayscale(place_on_background(filled_sheet_20, 60, desk=150))
        assert detect_skew_angle(photo) == 0.0

    @pytest.mark.parametrize("ccw_angle", [3.0, 12.0, -12.0])
    def test_angles_on_both_sides_of_zero(self, ccw_angle):
        rotated = rotate_photo(grid_paper(), ccw_angle, border=255)
        assert detect_skew_angle(rotated) == pytest.approx(-ccw_angle, abs=0.5)
