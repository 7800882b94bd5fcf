from typing import Optional

import numpy as np

from sheetscan.utils.logger import app_logger
from .config import RecognitionConfig


def _cell_whites(channel_max: np.ndarray, cfg: RecognitionConfig) -> np.ndarray:
    """Local "paper white" (85th percentile of max(B, G, R)) for every grid cell."""
    h, w = channel_max.shape
    cell = cfg.flatten_cell_size
    step = cfg.flatten_sample_step
    g_w = -(-w // cell)
    g_h = -(-h // cell)

    whites = np.empty((g_h, g_w), dtype=np.float32)
    for gy in range(g_h):
        y1, y2 = gy * cell, min(h, (gy + 1) * cell)
        for gx in range(g_w):
            x1, x2 = gx * cell, min(w, (gx + 1) * cell)
            samples = np.sort(channel_max[y1:y2:step, x1:x2:step], axis=None)
            if samples.size == 0:
                whites[gy, gx] = 200.0
            else:
                whites[gy, gx] = samples[int(samples.size * cfg.flatten_white_percentile)]
    return whites


def _axis_weights(length: int, cells: int, cell: int):
    """Neighbour indices and fractional weight along one axis (cell centers as knots)."""
    pos = np.arange(length, dtype=np.float32) / cell - 0.5
    i0 = np.maximum(0, np.floor(pos)).astype(np.int64)
    i0 = np.minimum(i0, cells - 1)
    i1 = np.minimum(cells - 1, i0 + 1)
    frac = np.clip(pos - i0, 0.0, 1.0).astype(np.float32)
    return i0, i1, frac


def local_white_map(image: np.ndarray, config: Optional[RecognitionConfig] = None) -> np.ndarray:
    """Per-pixel local white level, bilinearly interpolated between grid cells."""
    cfg = config or RecognitionConfig()
    if image.ndim == 2:
        channel_max = image
    else:
        channel_max = image[:, :, :3].max(axis=2)

    h, w = channel_max.shape
    whites = _cell_whites(channel_max, cfg)
    g_h, g_w = whites.shape

    gx0, gx1, fx = _axis_weights(w, g_w, cfg.flatten_cell_size)
    gy0, gy1, fy = _axis_weights(h, g_h, cfg.flatten_cell_size)

    fx = fx[None, :]
    fy = fy[:, None]
    w00 = whites[np.ix_(gy0, gx0)]
    w10 = whites[np.ix_(gy0, gx1)]
    w01 = whites[np.ix_(gy1, gx0)]
    w11 = whites[np.ix_(gy1, gx1)]
    return (w00 * (1 - fx) * (1 - fy) + w10 * fx * (1 - fy)
            + w01 * (1 - fx) * fy + w11 * fx * fy)


def flatten_brightness(image: np.ndarray, config: Optional[RecognitionConfig] = None) -> np.ndarray:
    """
    Remove shadows and uneven lighting without warping.

    Every pixel is scaled so that its local paper white maps to 245. The
    white level is floored at 80 so large dark regions (markers, desk) are
    not blown up to paper.
    """
    cfg = config or RecognitionConfig()
    white = local_white_map(image, cfg)
    scale = cfg.flatten_target_white / np.maximum(cfg.flatten_min_white, white)

    out = image.copy()
    if image.ndim == 2:
        out = np.minimum(255, np.rint(image.astype(np.float32) * scale)).astype(np.uint8)
    else:
        color = image[:, :, :3].astype(np.float32) * scale[:, :, None]
        out[:, :, :3] = np.minimum(255, np.rint(color)).astype(np.uint8)

    h, w = image.shape[:2]
    app_logger.debug(f"[Enhance] Applied adaptive brightness: {w}x{h}, grid={cfg.flatten_cell_size}px")
    return out
