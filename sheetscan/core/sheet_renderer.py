"""
Synthetic answer sheets.

Prints a template layout to a raster at a chosen resolution, optionally with
shaded answers and ID digits, and fakes the usual photo defects (desk around
the paper, rotation, shadow). Used by the tests and for checking a layout
against a real printout.
"""

import math
from typing import Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from .bubble_classifier import CHOICE_LABELS
from .template_layout import TemplateLayout, ID_BUBBLE_SCALE

IdMark = Union[int, Tuple[int, ...]]


def _px(value_mm: float, px_per_mm: float) -> int:
    return int(round(value_mm * px_per_mm))


def render_sheet(layout: TemplateLayout,
                 px_per_mm: float = 8.0,
                 question_count: Optional[int] = None,
                 choices: int = 4,
                 answers: Optional[Sequence[str]] = None,
                 id_digits: Optional[Sequence[IdMark]] = None,
                 ink: int = 40,
                 outline: int = 170) -> np.ndarray:
    """
    Print a blank or filled sheet as a BGR image (white paper).

    Args:
        layout: template to print.
        px_per_mm: output resolution.
        question_count: questions to print (default: the template capacity).
        choices: bubbles per question.
        answers: per question, the letters to shade ("" = none, "AC" = two marks).
        id_digits: per ID column, a digit, a tuple of digits, or -1 for none.
        ink: gray level of a shaded bubble.
        outline: gray level of the printed bubble outlines.
    """
    page_w_mm, page_h_mm = layout.page_size_mm
    sheet = np.full((_px(page_h_mm, px_per_mm), _px(page_w_mm, px_per_mm), 3), 255, dtype=np.uint8)
    ink_color = (ink, ink, ink)
    outline_color = (outline, outline, outline)

    # Corner markers
    ox, oy = layout.marker_origin_mm
    fw, fh = layout.frame_size_mm
    half = layout.marker_size_mm / 2
    for cx, cy in ((ox, oy), (ox + fw, oy), (ox, oy + fh), (ox + fw, oy + fh)):
        cv2.rectangle(sheet,
                      (_px(cx - half, px_per_mm), _px(cy - half, px_per_mm)),
                      (_px(cx + half, px_per_mm) - 1, _px(cy + half, px_per_mm) - 1),
                      (0, 0, 0), -1)

    def center(nx: float, ny: float) -> Tuple[int, int]:
        x_mm, y_mm = layout.to_page_mm(nx, ny)
        return _px(x_mm, px_per_mm), _px(y_mm, px_per_mm)

    r_answer = max(1, _px(layout.bubble_diameter_nx * fw / 2, px_per_mm))
    r_id = max(1, _px(layout.bubble_diameter_nx * fw / 2 * ID_BUBBLE_SCALE, px_per_mm))

    # ID grid
    shaded_id = {}
    for col, mark in enumerate(id_digits or []):
        digits = mark if isinstance(mark, tuple) else (mark,)
        shaded_id[col] = {d for d in digits if d != -1}
    for col, digit, nx, ny in layout.iter_id_bubbles():
        filled = digit in shaded_id.get(col, ())
        cv2.circle(sheet, center(nx, ny), r_id, ink_color if filled else outline_color, -1 if filled else 1)

    # Answers
    count = question_count or layout.question_capacity
    labels = CHOICE_LABELS[:choices]
    for q, c, nx, ny in layout.iter_answer_bubbles(count, choices):
        marked = answers is not None and q <= len(answers) and labels[c] in (answers[q - 1] or "")
        cv2.circle(sheet, center(nx, ny), r_answer, ink_color if marked else outline_color, -1 if marked else 1)

    return sheet


def place_on_background(sheet: np.ndarray, margin_px: int = 60, desk: int = 110) -> np.ndarray:
    """Surround the page with a flat desk colour."""
    h, w = sheet.shape[:2]
    photo = np.full((h + 2 * margin_px, w + 2 * margin_px) + sheet.shape[2:], desk, dtype=np.uint8)
    photo[margin_px:margin_px + h, margin_px:margin_px + w] = sheet
    return photo


def rotate_photo(image: np.ndarray, angle: float, border: int = 110) -> np.ndarray:
    """
    Rotate like a tilted phone (OpenCV convention: positive = counter-clockwise).
    The canvas grows so no paper is cut off; new area is filled with `border`.
    """
    h, w = image.shape[:2]
    rad = math.radians(angle)
    new_w = int(math.ceil(w * abs(math.cos(rad)) + h * abs(math.sin(rad))))
    new_h = int(math.ceil(w * abs(math.sin(rad)) + h * abs(math.cos(rad))))

    matrix = cv2.getRotationMatrix2D((w / 2.0, h / 2.0), angle, 1.0)
    matrix[0, 2] += new_w / 2.0 - w / 2.0
    matrix[1, 2] += new_h / 2.0 - h / 2.0
    fill = (border,) * (image.shape[2] if image.ndim == 3 else 1)
    return cv2.warpAffine(image, matrix, (new_w, new_h), flags=cv2.INTER_LINEAR,
                          borderMode=cv2.BORDER_CONSTANT, borderValue=fill)


def apply_shadow(image: np.ndarray, strength: float = 0.4, vertical: bool = False) -> np.ndarray:
    """Multiply by a linear gradient from 1.0 down to 1 - strength (left to right, or top to bottom)."""
    h, w = image.shape[:2]
    if vertical:
        ramp = np.linspace(1.0, 1.0 - strength, h, dtype=np.float32)[:, None]
    else:
        ramp = np.linspace(1.0, 1.0 - strength, w, dtype=np.float32)[None, :]
    if image.ndim == 3:
        ramp = ramp[:, :, None]
    shaded = image.astype(np.float32) * ramp
    return np.clip(np.rint(shaded), 0, 255).astype(np.uint8)
