from typing import List

from sheetscan.core.bubble_classifier import CHOICE_LABELS
from sheetscan.core.types import RecognitionIssue, RecognitionResult


class OMRUtils:
    """
    Static helpers around a recognition result (no I/O).
    """

    @staticmethod
    def choice_labels(choices: int) -> str:
        """Letters used for `choices` options, e.g. 4 -> "ABCD"."""
        if not 2 <= choices <= len(CHOICE_LABELS):
            raise ValueError(f"choices must be between 2 and {len(CHOICE_LABELS)}, got {choices}")
        return CHOICE_LABELS[:choices]

    @staticmethod
    def describe_issues(result: RecognitionResult) -> List[str]:
        """
        Operator guidance for everything that needs review.

        Alignment problems come first and hide the ID messages they would
        cause anyway: with a bad frame, a blank or double-shaded ID is
        usually a misread, not a student mistake.
        """
        issues = result.issues
        messages: List[str] = []
        alignment_issue = (RecognitionIssue.MARKERS_NOT_FOUND in issues
                           or RecognitionIssue.LOW_CONFIDENCE in issues)

        if RecognitionIssue.MARKERS_NOT_FOUND in issues:
            messages.append("Corner markers were not found. Retake the photo with all four "
                            "black corner squares visible.")
        elif RecognitionIssue.LOW_CONFIDENCE in issues:
            messages.append(f"Corner markers are unclear (confidence {result.marker_confidence:.0%}). "
                            "Retake the photo flat and well lit.")

        if not alignment_issue:
            if RecognitionIssue.ID_DOUBLE_SHADE in issues:
                cols = ', '.join(str(c) for c in result.id_double_shades)
                messages.append(f"Student ID has multiple bubbles shaded in column(s): {cols}. "
                                "Each column must have only one bubble shaded.")
            elif RecognitionIssue.ID_BLANK in issues:
                messages.append("No Student ID was detected. Check that the ID bubbles are shaded.")
            elif RecognitionIssue.ID_INCOMPLETE in issues:
                blanks = ', '.join(str(i + 1) for i, d in enumerate(result.raw_id_digits) if d == -1)
                messages.append(f"Student ID is incomplete, column(s) {blanks} are not shaded.")

        if RecognitionIssue.MULTIPLE_ANSWERS in issues:
            questions = ', '.join(str(q) for q in result.multiple_answers)
            messages.append(f"Question(s) {questions} have more than one answer shaded.")

        if RecognitionIssue.MISSING_ANSWERS in issues:
            missing = [i + 1 for i, a in enumerate(result.answers) if not a]
            messages.append(f"{len(missing)} question(s) have no answer: {', '.join(str(q) for q in missing)}.")

        return messages
