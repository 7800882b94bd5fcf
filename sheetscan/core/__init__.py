"""
Core package: the recognition pipeline and the logic built on top of it.
- OMRRecognizer / recognize: one photo -> RecognitionResult.
- MarkerLocator, BubbleClassifier: pipeline stages.
- GradeManager: scoring against an answer key.
"""

from .config import RecognitionConfig
from .types import Point, MarkerFrame, MarkerSearchResult, RecognitionIssue, RecognitionResult
from .template_layout import TemplateLayout, get_template_layout, template_type_for
from .marker_locator import MarkerLocator
from .bubble_classifier import BubbleClassifier
from .recognizer import OMRRecognizer, recognize
from .grade_manager import GradeManager

__all__ = [
    'RecognitionConfig', 'Point', 'MarkerFrame', 'MarkerSearchResult', 'RecognitionIssue',
    'RecognitionResult', 'TemplateLayout', 'get_template_layout', 'template_type_for',
    'MarkerLocator', 'BubbleClassifier', 'OMRRecognizer', 'recognize', 'GradeManager',
]
