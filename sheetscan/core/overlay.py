from typing import Any, Dict, Optional, Tuple

import cv2
import numpy as np

from .bubble_classifier import CHOICE_LABELS
from .coordinate_mapper import map_to_pixel, bubble_radius
from .skew import rotate_image
from .template_layout import TemplateLayout
from .types import RecognitionResult


def _color(vis_config: Dict[str, Any], key: str, default) -> Tuple[int, int, int]:
    return tuple(int(c) for c in vis_config.get(key, default))


def _pt(x: float, y: float) -> Tuple[int, int]:
    return int(round(x)), int(round(y))


def draw_overlay(image: np.ndarray, result: RecognitionResult, layout: TemplateLayout,
                 choices: int = 4, vis_config: Optional[Dict[str, Any]] = None) -> np.ndarray:
    """
    Draw what the recognizer saw on a copy of the input photo.

    The photo is first turned by the same skew angle the recognizer applied,
    so the marker frame on the result lines up with the drawing.

    Colours (BGR, from ALGORITHM_CONFIG.visualization):
        color_high   - confident mark
        color_medium - double shade / multiple answers
        color_low    - row or column without any mark
        color_frame  - marker frame outline and marker centers
    """
    vis = vis_config or {}
    color_high = _color(vis, 'color_high', [0, 255, 0])
    color_medium = _color(vis, 'color_medium', [0, 255, 255])
    color_low = _color(vis, 'color_low', [0, 165, 255])
    color_frame = _color(vis, 'color_frame', [255, 0, 0])

    canvas = rotate_image(image, result.skew_angle)
    if canvas.ndim == 2:
        canvas = cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR)
    elif canvas.shape[2] == 4:
        canvas = cv2.cvtColor(canvas, cv2.COLOR_BGRA2BGR)
    else:
        canvas = canvas.copy()

    frame = result.marker_frame
    corners = [frame.top_left, frame.top_right, frame.bottom_right, frame.bottom_left]
    polygon = np.array([_pt(p.x, p.y) for p in corners], dtype=np.int32)
    cv2.polylines(canvas, [polygon], True, color_frame, 2)
    for p in corners:
        cv2.drawMarker(canvas, _pt(p.x, p.y), color_frame, cv2.MARKER_CROSS, 20, 2)

    # ID grid
    rx, ry = bubble_radius(frame, layout, id_grid=True)
    r_id = max(2, int(round(min(rx, ry))))
    for col, digit in enumerate(result.raw_id_digits):
        if digit == -1:
            for row in range(layout.id_grid.rows):
                x, y = map_to_pixel(frame, *layout.id_bubble_position(col, row))
                cv2.circle(canvas, _pt(x, y), r_id, color_low, 1)
            continue
        color = color_medium if (col + 1) in result.id_double_shades else color_high
        x, y = map_to_pixel(frame, *layout.id_bubble_position(col, digit))
        cv2.circle(canvas, _pt(x, y), r_id, color, -1)

    # Answers
    rx, ry = bubble_radius(frame, layout)
    r_ans = max(2, int(round(min(rx, ry))))
    labels = CHOICE_LABELS[:choices]
    for index, answer in enumerate(result.answers):
        q = index + 1
        if not answer:
            for c in range(choices):
                x, y = map_to_pixel(frame, *layout.bubble_position(q, c))
                cv2.circle(canvas, _pt(x, y), r_ans, color_low, 1)
            continue
        color = color_medium if q in result.multiple_answers else color_high
        x, y = map_to_pixel(frame, *layout.bubble_position(q, labels.index(answer)))
        cv2.circle(canvas, _pt(x, y), r_ans, color, -1)

    return canvas
