"""
Corner Marker Locator.

Finds the four solid black corner squares printed on every sheet. The whole
image is scanned (not just the corners) because the paper rarely fills the
photo: candidates are collected at several window sizes, merged, and the set
of four that forms the most plausible rectangle wins.
"""

import math
from dataclasses import dataclass
from functools import reduce
from itertools import combinations
from typing import List, Optional

import cv2
import numpy as np

from sheetscan.utils.logger import app_logger
from .config import RecognitionConfig
from .types import MarkerFrame, MarkerSearchResult, Point


@dataclass(eq=False)
class _Candidate:
    x: int
    y: int
    score: float
    size: int


def _ratio(a: float, b: float) -> float:
    hi = max(a, b)
    if hi <= 0:
        return 0.0
    return min(a, b) / hi


class MarkerLocator:
    def __init__(self, config: Optional[RecognitionConfig] = None):
        self.config = config or RecognitionConfig()
        self._integral = None
        self._w = 0
        self._h = 0

    # ------------------------------------------------------------------
    # Integral image helpers
    # ------------------------------------------------------------------
    def _rect_avg(self, x1, y1, x2, y2) -> np.ndarray:
        """Average brightness of [x1, x2) x [y1, y2), vectorized. Empty rectangles read 255."""
        x1 = np.clip(np.floor(x1), 0, None).astype(np.int64)
        y1 = np.clip(np.floor(y1), 0, None).astype(np.int64)
        x2 = np.clip(np.floor(x2), None, self._w).astype(np.int64)
        y2 = np.clip(np.floor(y2), None, self._h).astype(np.int64)
        area = (x2 - x1) * (y2 - y1)

        ok = area > 0
        ii = self._integral
        xa, ya = np.clip(x1, 0, self._w), np.clip(y1, 0, self._h)
        xb, yb = np.clip(x2, 0, self._w), np.clip(y2, 0, self._h)
        total = ii[yb, xb] - ii[ya, xb] - ii[yb, xa] + ii[ya, xa]
        return np.where(ok, total / np.maximum(area, 1), 255.0)

    def _ring(self, cx, cy, half: int):
        """Top, bottom, left and right ring averages around a window of half-size `half`."""
        inner = int(math.floor(half * 1.5))
        outer = int(math.floor(half * 3))
        top = self._rect_avg(cx - outer, cy - outer, cx + outer, cy - inner)
        bottom = self._rect_avg(cx - outer, cy + inner, cx + outer, cy + outer)
        left = self._rect_avg(cx - outer, cy - inner, cx - inner, cy + inner)
        right = self._rect_avg(cx + inner, cy - inner, cx + outer, cy + inner)
        return top, bottom, left, right

    # ------------------------------------------------------------------
    # Phase 1: candidates
    # ------------------------------------------------------------------
    def _window_sizes(self, base: int) -> List[int]:
        return [
            max(8, int(round(base * 0.5))),
            max(10, int(round(base * 0.7))),
            max(12, base),
            int(round(base * 1.3)),
            int(round(base * 1.6)),
            int(round(base * 2.0)),
        ]

    def _scan_size(self, size: int, base: int) -> List[_Candidate]:
        cfg = self.config
        half = size // 2
        step = max(3, size // 2)
        ys = np.arange(half + 2, self._h - half - 2, step)
        xs = np.arange(half + 2, self._w - half - 2, step)
        if ys.size == 0 or xs.size == 0:
            return []

        cy, cx = np.meshgrid(ys, xs, indexing='ij')
        cx = cx.ravel()
        cy = cy.ravel()

        inner = self._rect_avg(cx - half, cy - half, cx + half, cy + half)
        keep = inner <= cfg.marker_dark_threshold
        cx, cy, inner = cx[keep], cy[keep], inner[keep]
        if cx.size == 0:
            return []

        # Uniformity: all four quadrants of a solid square are equally dark
        quads = np.stack([
            self._rect_avg(cx - half, cy - half, cx, cy),
            self._rect_avg(cx, cy - half, cx + half, cy),
            self._rect_avg(cx - half, cy, cx, cy + half),
            self._rect_avg(cx, cy, cx + half, cy + half),
        ])
        keep = (quads.max(axis=0) - quads.min(axis=0)) <= cfg.marker_uniformity_tolerance
        cx, cy, inner = cx[keep], cy[keep], inner[keep]
        if cx.size == 0:
            return []

        # Surroundings must be paper on at least two sides (corners may touch the desk)
        sides = np.stack(self._ring(cx, cy, half))
        bright_sides = (sides > cfg.marker_bright_threshold).sum(axis=0)
        contrast = sides.mean(axis=0) - inner
        keep = (bright_sides >= cfg.marker_min_bright_sides) & (contrast >= cfg.marker_min_contrast)

        scores = contrast[keep] * (size / base)
        return [_Candidate(int(x), int(y), float(s), size)
                for x, y, s in zip(cx[keep], cy[keep], scores)]

    def _merge(self, candidates: List[_Candidate], radius: float) -> List[_Candidate]:
        """Keep the best-scoring candidate of every cluster."""
        ordered = sorted(candidates, key=lambda c: c.score, reverse=True)
        merged: List[_Candidate] = []
        for c in ordered:
            if not any(abs(m.x - c.x) < radius and abs(m.y - c.y) < radius for m in merged):
                merged.append(c)
        return merged

    def _edge_filter(self, candidates: List[_Candidate]) -> List[_Candidate]:
        """Full-page sheets: true corners sit in the outer band, section marks inside do not."""
        mx = self._w * 0.35
        my = self._h * 0.35
        near = [c for c in candidates
                if (c.x < mx or c.x > self._w - mx) and (c.y < my or c.y > self._h - my)]
        app_logger.debug(f"[Markers] 100-item edge filter: {len(candidates)} -> {len(near)} candidates")
        if len(near) < 4:
            app_logger.debug("[Markers] Edge filter too aggressive, using all candidates")
            return candidates
        return near

    # ------------------------------------------------------------------
    # Phase 2: rectangle selection
    # ------------------------------------------------------------------
    @staticmethod
    def _assign_corners(pts):
        tl = reduce(lambda a, b: a if a.x + a.y < b.x + b.y else b, pts)
        br = reduce(lambda a, b: a if a.x + a.y > b.x + b.y else b, pts)
        tr = reduce(lambda a, b: a if a.x - a.y > b.x - b.y else b, pts)
        bl = reduce(lambda a, b: a if a.y - a.x > b.y - b.x else b, pts)
        return tl, tr, bl, br

    def _rect_score(self, tl, tr, bl, br, template_type: int) -> float:
        """Score of one corner assignment, 0 when it is not a plausible marker frame."""
        cfg = self.config
        w, h = self._w, self._h
        top_w = tr.x - tl.x
        bot_w = br.x - bl.x
        left_h = bl.y - tl.y
        right_h = br.y - tr.y

        min_w = w * cfg.marker_min_side_fraction
        min_h = h * cfg.marker_min_side_fraction
        if top_w < min_w or bot_w < min_w or left_h < min_h or right_h < min_h:
            return 0.0

        w_ratio = _ratio(top_w, bot_w)
        h_ratio = _ratio(left_h, right_h)
        if w_ratio < cfg.marker_min_side_ratio or h_ratio < cfg.marker_min_side_ratio:
            return 0.0

        avg_w = (top_w + bot_w) / 2
        avg_h = (left_h + right_h) / 2
        aspect = avg_w / avg_h
        full_page = template_type == 100
        if full_page:
            # Marker frame is 197 x 215.5 mm
            if aspect < 0.7 or aspect > 1.1:
                return 0.0
        elif aspect < 0.4 or aspect > 2.0:
            return 0.0

        skew = cfg.marker_max_edge_skew
        if (abs(tl.x - bl.x) / avg_w > skew or abs(tr.x - br.x) / avg_w > skew
                or abs(tl.y - tr.y) / avg_h > skew or abs(bl.y - br.y) / avg_h > skew):
            return 0.0

        aspect_bonus = 1.0
        position_bonus = 1.0
        if full_page:
            aspect_bonus = max(0.5, 1.0 - abs(aspect - 0.91))

            # Bottom markers sit under the answer grid, never at the image bottom
            bottom_y = (bl.y + br.y) / 2
            frame_h_ratio = (bottom_y - (tl.y + tr.y) / 2) / h
            bottom_ratio = bottom_y / h
            if bottom_ratio > 0.95:
                position_bonus = 0.3
            elif bottom_ratio < 0.50:
                position_bonus = 0.5
            elif frame_h_ratio < 0.35:
                position_bonus = 0.4
            else:
                position_bonus = 1.0 + frame_h_ratio * 0.5

        area_bonus = avg_w * avg_h / (w * h)
        return ((tl.score + tr.score + bl.score + br.score)
                * w_ratio * h_ratio * area_bonus * position_bonus * aspect_bonus)

    def _best_rectangle(self, candidates: List[_Candidate], template_type: int):
        best = None
        best_score = 0.0
        top = candidates[:self.config.marker_max_combo_candidates]
        for pts in combinations(top, 4):
            tl, tr, bl, br = self._assign_corners(pts)
            if len({tl, tr, bl, br}) < 4:
                continue
            score = self._rect_score(tl, tr, bl, br, template_type)
            if score > best_score:
                best_score = score
                best = (tl, tr, bl, br)
        return best, best_score

    def _refine(self, c: _Candidate) -> Point:
        """Pixel-level search around a candidate for the strongest dark-square contrast."""
        half = c.size // 2
        # Wide enough to cover the whole plateau of a marker up to twice the window size
        r = max(4, c.size)
        cy, cx = np.meshgrid(np.arange(c.y - r, c.y + r + 1), np.arange(c.x - r, c.x + r + 1), indexing='ij')
        cx = cx.ravel()
        cy = cy.ravel()

        inside = (cx - half >= 0) & (cx + half < self._w) & (cy - half >= 0) & (cy + half < self._h)
        cx, cy = cx[inside], cy[inside]
        if cx.size == 0:
            return Point(float(c.x), float(c.y))

        inner = self._rect_avg(cx - half, cy - half, cx + half, cy + half)
        contrast = np.stack(self._ring(cx, cy, half)).mean(axis=0) - inner
        contrast = np.where(inner <= self.config.marker_dark_threshold, contrast, -np.inf)

        peak = float(contrast.max())
        if not peak > 0:
            return Point(float(c.x), float(c.y))
        # A window smaller than the marker scores the same anywhere inside it:
        # take the centroid of the whole plateau
        plateau = contrast >= peak - max(1.0, peak * 0.01)
        return Point(float(cx[plateau].mean()), float(cy[plateau].mean()))

    def _closest_frame(self, candidates: List[_Candidate]) -> MarkerFrame:
        def closest(tx: float, ty: float) -> Point:
            best = min(candidates, key=lambda c: math.hypot(c.x - tx, c.y - ty))
            return Point(float(best.x), float(best.y))

        return MarkerFrame(
            top_left=closest(0, 0),
            top_right=closest(self._w, 0),
            bottom_left=closest(0, self._h),
            bottom_right=closest(self._w, self._h),
        )

    def fallback_frame(self, width: int, height: int, template_type: int) -> MarkerFrame:
        """Fixed inset frame used when nothing usable was found."""
        margin = self.config.fallback_margin_full_page if template_type == 100 else self.config.fallback_margin
        return MarkerFrame.fixed_margin(width, height, margin)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def locate(self, gray: np.ndarray, template_type: int = 20) -> MarkerSearchResult:
        """
        Search a grayscale image for the four corner markers.

        Args:
            gray: 2-D uint8 image, unstretched.
            template_type: 20, 50 or 100 (full page sheets get extra filtering).

        Returns:
            MarkerSearchResult. `found` is True only when a valid rectangle
            was selected; otherwise the frame is a best-effort fallback.
        """
        if gray.ndim != 2:
            raise ValueError(f"Expected a 2-D grayscale image, got shape {gray.shape}")

        cfg = self.config
        self._h, self._w = gray.shape
        self._integral = cv2.integral(gray, sdepth=cv2.CV_64F)

        base = int(round(self._w * cfg.marker_base_fraction))
        if base <= 0:
            return MarkerSearchResult(self.fallback_frame(self._w, self._h, template_type), False, 0.0)
        sizes = self._window_sizes(base)
        app_logger.debug(f"[Markers] Search: image={self._w}x{self._h}, base={base}px, sizes={sizes}")

        raw: List[_Candidate] = []
        for size in sizes:
            raw.extend(self._scan_size(size, base))

        merged = self._merge(raw, base * 2)
        app_logger.debug(f"[Markers] {len(raw)} raw candidates, {len(merged)} after merge")
        for m in merged[:8]:
            app_logger.debug(f"[Markers]   candidate ({m.x},{m.y}) score={m.score:.0f} size={m.size}")

        if not merged:
            app_logger.debug("[Markers] No candidates, using fixed margin frame")
            return MarkerSearchResult(self.fallback_frame(self._w, self._h, template_type), False, 0.0, 0)

        if len(merged) < 4:
            app_logger.debug(f"[Markers] Only {len(merged)} candidates, using corner-closest frame")
            return MarkerSearchResult(self._closest_frame(merged), False, len(merged) / 4, len(merged))

        pool = self._edge_filter(merged) if template_type == 100 else merged
        combo, rect_score = self._best_rectangle(pool, template_type)
        if combo is None:
            app_logger.debug("[Markers] No valid rectangle, using corner-closest frame")
            return MarkerSearchResult(self._closest_frame(merged), False, 0.3, len(merged))

        tl, tr, bl, br = (self._refine(c) for c in combo)
        frame = MarkerFrame(top_left=tl, top_right=tr, bottom_left=bl, bottom_right=br)

        avg_score = sum(c.score for c in combo) / 4
        quality = _ratio(tr.x - tl.x, br.x - bl.x) * _ratio(bl.y - tl.y, br.y - tr.y)
        normalized = min(1.0, avg_score / cfg.marker_score_normalizer)
        confidence = min(1.0, normalized * quality * cfg.marker_confidence_boost)

        app_logger.debug(
            f"[Markers] Selected TL=({tl.x:.0f},{tl.y:.0f}) TR=({tr.x:.0f},{tr.y:.0f}) "
            f"BL=({bl.x:.0f},{bl.y:.0f}) BR=({br.x:.0f},{br.y:.0f}) rectScore={rect_score:.0f}"
        )
        app_logger.debug(f"[Markers] Confidence {confidence:.1%} (markerScore={avg_score:.0f}, rectQuality={quality:.2f})")
        return MarkerSearchResult(frame, True, confidence, len(merged))


def find_corner_markers(gray: np.ndarray, template_type: int = 20,
                        config: Optional[RecognitionConfig] = None) -> MarkerSearchResult:
    return MarkerLocator(config).locate(gray, template_type)
