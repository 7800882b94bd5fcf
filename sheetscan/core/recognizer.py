"""
Recognition Orchestrator.

One photograph in, one RecognitionResult out:

    skew -> flatten -> grayscale -> markers -> stretch -> frame -> ID -> answers

Recognition problems (no markers, weak marks, double shades) never raise;
they are reported on the result. Only caller bugs raise ValueError.
"""

from typing import Any, Dict, Optional, Union

import numpy as np

from sheetscan.utils.logger import app_logger
from .bubble_classifier import BubbleClassifier
from .brightness import flatten_brightness
from .config import RecognitionConfig
from .marker_locator import MarkerLocator
from .normalizer import to_grayscale, stretch_contrast
from .skew import correct_skew
from .template_layout import get_template_layout, template_type_for
from .types import MarkerFrame, RecognitionResult

MAX_QUESTIONS = 100
MIN_CHOICES = 2
MAX_CHOICES = 8


class OMRRecognizer:
    def __init__(self, config: Union[RecognitionConfig, Dict[str, Any], None] = None):
        if isinstance(config, RecognitionConfig):
            self.config = config
        else:
            self.config = RecognitionConfig.from_dict(config)
        self.locator = MarkerLocator(self.config)
        self.classifier = BubbleClassifier(self.config)
        app_logger.debug("OMRRecognizer initialized.")

    @staticmethod
    def _validate(image: np.ndarray, question_count: int, choices: int):
        if image is None or not isinstance(image, np.ndarray) or image.size == 0:
            raise ValueError("Image is empty or not a numpy array.")
        if image.ndim not in (2, 3) or (image.ndim == 3 and image.shape[2] not in (3, 4)):
            raise ValueError(f"Unsupported image shape: {image.shape}")
        if not 1 <= question_count <= MAX_QUESTIONS:
            raise ValueError(f"question_count must be between 1 and {MAX_QUESTIONS}, got {question_count}")
        if not MIN_CHOICES <= choices <= MAX_CHOICES:
            raise ValueError(f"choices must be between {MIN_CHOICES} and {MAX_CHOICES}, got {choices}")

    def _effective_frame(self, search, width: int, height: int, template_type: int) -> MarkerFrame:
        frame = search.frame
        if frame.is_degenerate(width * height, self.config.min_frame_area_fraction):
            app_logger.debug("[Frame] Degenerate marker frame, using fixed margin frame")
            return self.locator.fallback_frame(width, height, template_type)
        return frame

    def recognize(self, image: np.ndarray, question_count: int, choices: int = 4) -> RecognitionResult:
        """
        Read one answer sheet.

        Args:
            image: BGR, BGRA or grayscale uint8 array.
            question_count: questions on the sheet (1-100), selects the template.
            choices: options per question (2-8).

        Returns:
            RecognitionResult, always (best effort when markers are missing).
        """
        self._validate(image, question_count, choices)
        cfg = self.config
        template_type = template_type_for(question_count)

        # 1. Skew & lighting (colour image, before any grayscale step)
        work = image
        skew_angle = 0.0
        if cfg.correct_skew:
            work, skew_angle = correct_skew(work, cfg)
        if cfg.flatten_brightness:
            work = flatten_brightness(work, cfg)

        # 2. Markers on the unstretched grayscale
        gray = to_grayscale(work)
        h, w = gray.shape
        search = self.locator.locate(gray, template_type)

        # 3. Bubbles on the stretched grayscale
        stretched, g_min, g_max = stretch_contrast(gray, cfg)
        app_logger.debug(f"[Normalize] Contrast stretch: min={g_min}, max={g_max}")

        frame = self._effective_frame(search, w, h, template_type)
        layout = get_template_layout(question_count)

        student_id, double_shades, raw_digits = self.classifier.read_student_id(stretched, frame, layout)
        answers, multiple = self.classifier.read_answers(stretched, frame, layout, question_count, choices)

        result = RecognitionResult(
            student_id=student_id,
            answers=answers,
            multiple_answers=multiple,
            id_double_shades=double_shades,
            raw_id_digits=raw_digits,
            markers_found=search.found,
            marker_confidence=float(search.confidence),
            marker_frame=frame,
            template_type=template_type,
            skew_angle=float(skew_angle),
            low_confidence_limit=cfg.low_confidence_limit,
        )

        answered = sum(1 for a in answers if a)
        app_logger.info(
            f"Recognized {template_type}-item sheet: ID='{student_id}', {answered}/{question_count} answered, "
            f"markers={'found' if search.found else 'fallback'} ({search.confidence:.0%})"
            + (f", issues={[i.value for i in result.issues]}" if result.needs_review else "")
        )
        return result


def recognize(image: np.ndarray, question_count: int, choices: int = 4,
              config: Optional[RecognitionConfig] = None) -> RecognitionResult:
    """Module-level shortcut for a one-off recognition."""
    return OMRRecognizer(config).recognize(image, question_count, choices)
