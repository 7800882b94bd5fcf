from typing import Optional, Tuple

import cv2
import numpy as np

from .config import RecognitionConfig


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Luminance 0.299R + 0.587G + 0.114B. Accepts gray, BGR or BGRA (OpenCV order)."""
    if image is None or image.size == 0:
        raise ValueError("Empty image.")
    if image.ndim == 2:
        return image.astype(np.uint8, copy=True)
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    raise ValueError(f"Unsupported image shape: {image.shape}")


def stretch_contrast(gray: np.ndarray, config: Optional[RecognitionConfig] = None) -> Tuple[np.ndarray, int, int]:
    """
    Global histogram stretch.

    Black/white points are the 2nd/98th percentiles of a sparse sample, all
    pixels are rescaled linearly to [0, 255] and clamped.

    Returns:
        (stretched image, black point, white point)
    """
    cfg = config or RecognitionConfig()
    flat = gray.reshape(-1)
    step = max(1, flat.size // cfg.stretch_sample_target)
    sample = np.sort(flat[::step])

    g_min = int(sample[int(len(sample) * cfg.stretch_low_percentile)])
    g_max = int(sample[min(len(sample) - 1, int(len(sample) * cfg.stretch_high_percentile))])
    g_range = max(1, g_max - g_min)

    scaled = (gray.astype(np.float32) - g_min) / g_range * 255.0
    stretched = np.clip(np.rint(scaled), 0, 255).astype(np.uint8)
    return stretched, g_min, g_max
