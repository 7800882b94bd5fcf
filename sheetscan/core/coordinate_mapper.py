from typing import Tuple

from .types import MarkerFrame
from .template_layout import TemplateLayout, ID_BUBBLE_SCALE


def map_to_pixel(frame: MarkerFrame, nx: float, ny: float) -> Tuple[float, float]:
    """
    Bilinear map from the normalized marker frame to pixel coordinates.

    Interpolates along the top and bottom edges at `nx`, then between those
    two points at `ny`. This is the only place where rotation and mild
    perspective of the photographed sheet are absorbed.
    """
    tl, tr, bl, br = frame.top_left, frame.top_right, frame.bottom_left, frame.bottom_right
    top_x = tl.x + nx * (tr.x - tl.x)
    top_y = tl.y + nx * (tr.y - tl.y)
    bot_x = bl.x + nx * (br.x - bl.x)
    bot_y = bl.y + nx * (br.y - bl.y)
    return top_x + ny * (bot_x - top_x), top_y + ny * (bot_y - top_y)


def map_to_normalized(frame: MarkerFrame, px: float, py: float,
                      iterations: int = 30, tolerance: float = 1e-12) -> Tuple[float, float]:
    """
    Inverse of map_to_pixel (Newton iteration on the bilinear patch).

    Raises:
        ValueError: the frame is degenerate around the requested point.
    """
    tl, tr, bl, br = frame.top_left, frame.top_right, frame.bottom_left, frame.bottom_right
    u, v = 0.5, 0.5
    for _ in range(iterations):
        x, y = map_to_pixel(frame, u, v)
        fx, fy = x - px, y - py
        if fx * fx + fy * fy < tolerance:
            break

        # Partial derivatives of the bilinear patch
        du_x = (1 - v) * (tr.x - tl.x) + v * (br.x - bl.x)
        du_y = (1 - v) * (tr.y - tl.y) + v * (br.y - bl.y)
        dv_x = (1 - u) * (bl.x - tl.x) + u * (br.x - tr.x)
        dv_y = (1 - u) * (bl.y - tl.y) + u * (br.y - tr.y)

        det = du_x * dv_y - dv_x * du_y
        if abs(det) < 1e-12:
            raise ValueError("Degenerate marker frame, cannot invert mapping.")

        u -= (fx * dv_y - fy * dv_x) / det
        v -= (fy * du_x - fx * du_y) / det
    return u, v


def bubble_radius(frame: MarkerFrame, layout: TemplateLayout, id_grid: bool = False) -> Tuple[float, float]:
    """Bubble radius (rx, ry) in pixels for this frame."""
    rx = layout.bubble_diameter_nx * frame.width / 2.0
    ry = layout.bubble_diameter_ny * frame.height / 2.0
    if id_grid:
        rx *= ID_BUBBLE_SCALE
        ry *= ID_BUBBLE_SCALE
    return rx, ry
