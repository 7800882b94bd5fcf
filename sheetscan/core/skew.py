import math
from typing import Optional, Tuple

import cv2
import numpy as np

from sheetscan.utils.logger import app_logger
from .config import RecognitionConfig
from .normalizer import to_grayscale

# Histogram smoothing kernel (approximately Gaussian)
SMOOTHING_KERNEL = np.array([0.1, 0.2, 0.4, 0.2, 0.1])


def detect_skew_angle(gray: np.ndarray, config: Optional[RecognitionConfig] = None) -> float:
    """
    Estimate in-plane rotation from edge-gradient directions.

    Strong Sobel gradients on a sparse grid vote for a rotation offset: edges
    that are nearly vertical vote their own angle, nearly horizontal ones vote
    their angle minus 90 degrees. Votes are weighted by magnitude into half
    degree buckets, smoothed, and the peak wins.

    Returns:
        Rotation in degrees, positive when the content is turned clockwise on
        screen. 0.0 when the evidence is weak or the angle is negligible.
    """
    cfg = config or RecognitionConfig()
    h, w = gray.shape[:2]
    step = max(4, min(w, h) // 100)
    if h <= 2 * step or w <= 2 * step:
        return 0.0

    g = gray.astype(np.float32)
    gx_full = cv2.Sobel(g, cv2.CV_32F, 1, 0, ksize=3)
    gy_full = cv2.Sobel(g, cv2.CV_32F, 0, 1, ksize=3)

    ys = np.arange(step, h - step, step)
    xs = np.arange(step, w - step, step)
    gx = gx_full[np.ix_(ys, xs)].ravel()
    gy = gy_full[np.ix_(ys, xs)].ravel()

    magnitude = np.hypot(gx, gy)
    strong = magnitude >= cfg.skew_min_magnitude
    gx, gy, magnitude = gx[strong], gy[strong], magnitude[strong]

    angle = np.degrees(np.arctan2(gy, gx))
    vertical_edge = np.abs(gx) > np.abs(gy)

    # Vertical edge: gradient near 0 or 180 degrees
    rot_v = np.where(angle > 90, angle - 180, angle)
    rot_v = np.where(rot_v < -90, rot_v + 180, rot_v)
    # Horizontal edge: gradient near +-90 degrees
    rot_h = np.where(angle > 0, angle - 90, angle + 90)
    rotation = np.where(vertical_edge, rot_v, rot_h)

    max_angle = cfg.skew_max_angle
    in_range = (rotation >= -max_angle) & (rotation <= max_angle)
    rotation, magnitude = rotation[in_range], magnitude[in_range]

    # Half degree buckets over [-max_angle, +max_angle]
    n_buckets = int(round(max_angle * 4)) + 1
    center = n_buckets // 2
    idx = np.floor((rotation + max_angle) * 2 + 0.5).astype(np.int64)
    valid = (idx >= 0) & (idx < n_buckets)
    hist = np.bincount(idx[valid], weights=magnitude[valid], minlength=n_buckets).astype(np.float64)

    smoothed = np.correlate(hist, SMOOTHING_KERNEL, mode='valid')
    max_val = 0.0
    max_idx = center
    if smoothed.size and smoothed.max() > 0:
        best = int(np.argmax(smoothed))
        max_val = float(smoothed[best])
        max_idx = best + 2

    detected = (max_idx - center) / 2.0
    total = float(hist.sum())
    peak_strength = max_val / (total or 1.0)

    app_logger.debug(f"[Skew] Detected angle: {detected:.1f} deg (peak strength: {peak_strength * 100:.1f}%)")

    if peak_strength < cfg.skew_min_peak_strength:
        return 0.0
    if abs(detected) < cfg.skew_min_angle:
        return 0.0
    return detected


def rotate_image(image: np.ndarray, angle: float) -> np.ndarray:
    """
    Turn the image back by a detected skew angle around its center.

    The canvas grows to hold the whole rotated image and the exposed corners
    are filled with white (paper), never black.
    """
    if abs(angle) < 0.5:
        return image

    h, w = image.shape[:2]
    rad = math.radians(angle)
    cos = abs(math.cos(rad))
    sin = abs(math.sin(rad))
    new_w = int(math.ceil(w * cos + h * sin))
    new_h = int(math.ceil(w * sin + h * cos))

    # OpenCV: positive angle = counter-clockwise on screen
    matrix = cv2.getRotationMatrix2D((w / 2.0, h / 2.0), angle, 1.0)
    matrix[0, 2] += new_w / 2.0 - w / 2.0
    matrix[1, 2] += new_h / 2.0 - h / 2.0

    channels = 1 if image.ndim == 2 else image.shape[2]
    white = (255,) * channels if channels > 1 else 255

    rotated = cv2.warpAffine(
        image, matrix, (new_w, new_h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=white,
    )
    app_logger.debug(f"[Skew] Rotated image by {angle:.1f} deg ({w}x{h} -> {new_w}x{new_h})")
    return rotated


def correct_skew(image: np.ndarray, config: Optional[RecognitionConfig] = None) -> Tuple[np.ndarray, float]:
    """Detect and undo in-plane rotation. Returns (image, applied angle)."""
    cfg = config or RecognitionConfig()
    angle = detect_skew_angle(to_grayscale(image), cfg)
    if abs(angle) < cfg.skew_min_angle:
        app_logger.debug("[Skew] No significant skew detected")
        return image, 0.0
    return rotate_image(image, angle), angle
