import numpy as np

from sheetscan.core.brightness import flatten_brightness, local_white_map
from sheetscan.core.config import RecognitionConfig


def shaded_paper(width=480, height=240, left=200, right=120):
    """Gray paper that gets darker to the right, as BGR."""
    row = np.linspace(left, right, width).astype(np.uint8)
    gray = np.tile(row, (height, 1))
    return np.dstack([gray, gray, gray])


class TestLocalWhiteMap:
    def test_uniform_image(self):
        image = np.full((100, 150, 3), 230, dtype=np.uint8)
        white = local_white_map(image)
        assert white.shape == (100, 150)
        assert np.allclose(white, 230)

    def test_uses_brightest_channel(self):
        image = np.zeros((96, 96, 3), dtype=np.uint8)
        image[:, :, 2] = 210  # red only
        assert np.allclose(local_white_map(image), 210)


class TestFlattenBrightness:
    def test_white_paper_maps_to_target(self):
        image = np.full((96, 96, 3), 255, dtype=np.uint8)
        out = flatten_brightness(image)
        assert np.all(out == 245)

    def test_shadow_gradient_is_removed(self):
        out = flatten_brightness(shaded_paper())
        # Away from the image border (no neighbour cell to interpolate with)
        gray = out[:, 48:-48, 0].astype(int)
        assert gray.max() - gray.min() <= 8
        assert abs(gray.mean() - 245) <= 8

    def test_dark_mark_stays_dark(self):
        image = shaded_paper()
        image[100:110, 300:310] = 30
        out = flatten_brightness(image)
        assert out[105, 305, 0] < 60
        assert out[105, 250, 0] > 230

    def test_large_dark_region_not_blown_up(self):
        cfg = RecognitionConfig()
        image = np.full((192, 192, 3), 40, dtype=np.uint8)
        out = flatten_brightness(image, cfg)
        # white floored at 80: 40 * 245 / 80
        assert np.all(np.abs(out.astype(int) - 122) <= 1)

    def test_grayscale_input(self):
        gray = shaded_paper()[:, :, 0]
        out = flatten_brightness(gray)
        assert out.shape == gray.shape
        assert out.dtype == np.uint8

    def test_alpha_preserved(self):
        image = np.dstack([shaded_paper(), np.full((240, 480), 7, dtype=np.uint8)])
        out = flatten_brightness(image)
        assert np.all(out[:, :, 3] == 7)

    def test_input_untouched(self):
        image = shaded_paper()
        before = image.copy()
        flatten_brightness(image)
        assert np.array_equal(image, before)
