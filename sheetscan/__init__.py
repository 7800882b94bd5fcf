"""
SheetScan: answer sheet recognition from phone photos.

    from sheetscan import recognize
    result = recognize(image, question_count=20, choices=4)
"""

from .core import RecognitionConfig, RecognitionResult, RecognitionIssue, OMRRecognizer, recognize

__version__ = "1.0.0"

__all__ = ['RecognitionConfig', 'RecognitionResult', 'RecognitionIssue', 'OMRRecognizer', 'recognize']
