from dataclasses import dataclass, fields, asdict
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class RecognitionConfig:
    """
    Every tunable of the recognition pipeline in one immutable object.

    The defaults are the calibrated values the grading results depend on.
    Change them per template only after checking against real scans.
    """

    # --- Image Normalizer ---
    stretch_low_percentile: float = 0.02
    stretch_high_percentile: float = 0.98
    stretch_sample_target: int = 10000

    # --- Skew Corrector ---
    correct_skew: bool = True
    skew_max_angle: float = 30.0
    skew_min_magnitude: float = 50.0
    skew_min_peak_strength: float = 0.05
    skew_min_angle: float = 1.0

    # --- Brightness Flattener ---
    flatten_brightness: bool = True
    flatten_cell_size: int = 48
    flatten_sample_step: int = 3
    flatten_white_percentile: float = 0.85
    flatten_target_white: float = 245.0
    flatten_min_white: float = 80.0

    # --- Corner Marker Locator ---
    marker_base_fraction: float = 0.025
    marker_dark_threshold: float = 80.0
    marker_uniformity_tolerance: float = 50.0
    marker_bright_threshold: float = 150.0
    marker_min_bright_sides: int = 2
    marker_min_contrast: float = 60.0
    marker_max_combo_candidates: int = 12
    marker_min_side_fraction: float = 0.2
    marker_min_side_ratio: float = 0.85
    marker_max_edge_skew: float = 0.15
    marker_score_normalizer: float = 200.0
    marker_confidence_boost: float = 1.2
    fallback_margin: float = 0.02
    fallback_margin_full_page: float = 0.04
    min_frame_area_fraction: float = 0.05

    # --- Bubble Classifier ---
    bubble_inner_fraction: float = 0.50
    strong_dark_ratio: float = 0.70
    moderate_dark_ratio: float = 0.85
    min_gap_ratio: float = 0.15
    ambiguous_second_ratio: float = 0.75
    ambiguous_max_gap_ratio: float = 0.08
    min_reference_brightness: float = 20.0
    id_reference_rank: int = 7

    # --- Result ---
    low_confidence_limit: float = 0.5

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]]) -> "RecognitionConfig":
        """
        Build from the app config dict.

        Accepts either the whole app config (reads
        ``ALGORITHM_CONFIG.recognition``) or the recognition section itself.
        Unknown keys are rejected so typos do not silently keep a default.
        """
        if not config:
            return cls()

        # App config sections are upper-case (ALGORITHM_CONFIG, GRADING, ...)
        if any(key.isupper() for key in config):
            section = config.get('ALGORITHM_CONFIG', {}).get('recognition', {})
        else:
            section = config

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(section) - known)
        if unknown:
            raise ValueError(f"Unknown recognition config keys: {', '.join(unknown)}")

        return cls(**section)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
