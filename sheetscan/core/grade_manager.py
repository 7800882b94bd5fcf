from typing import Any, Dict, List, Optional, Sequence, Tuple

from sheetscan.utils.logger import app_logger
from .types import RecognitionResult

# (minimum percentage, letter), checked top-down
LETTER_GRADES = [
    (90, 'A'),
    (85, 'A-'),
    (80, 'B+'),
    (75, 'B'),
    (70, 'C+'),
    (65, 'C'),
    (60, 'D'),
]


class GradeManager:
    """
    Grading logic:
    1. Compare recognized answers with the answer key.
    2. Turn the raw score into a percentage and a letter grade.
    3. Format one report row per sheet.
    4. Decide whether a recognition is clean enough to save.
    """

    def __init__(self, answer_key: Sequence[str], choice_points: Optional[Dict[str, float]] = None,
                 exam_name: str = "", exam_date: str = ""):
        """
        Args:
            answer_key: one letter per question ("ABCD..." or a list).
            choice_points: optional points per choice letter (default 1 per correct answer).
            exam_name, exam_date: metadata for the report.
        """
        self.key = self._process_key(answer_key)
        self.choice_points = {k.upper(): float(v) for k, v in (choice_points or {}).items()}
        self.exam_name = exam_name
        self.exam_date = exam_date

        app_logger.debug(f"GradeManager initialized for '{exam_name}' (Length: {len(self.key)})")

    def _process_key(self, key_raw: Sequence[str]) -> List[str]:
        """Strip whitespace and normalize case."""
        if not key_raw:
            return []
        if isinstance(key_raw, str):
            return [ch.upper() for ch in ''.join(key_raw.split())]
        return [str(k).strip().upper() for k in key_raw]

    def _points_for(self, letter: str) -> float:
        return self.choice_points.get(letter, 1.0)

    @property
    def max_score(self) -> float:
        return sum(self._points_for(k) for k in self.key)

    def grade_answers(self, user_answers: Sequence[str]) -> Tuple[Dict[str, Any], List[int]]:
        """
        Score one sheet.

        Returns:
            stats (Dict): score, max_score, correct, total, percentage, letter_grade.
            correct_vector (List[int]): 1/0 per question of the key.
        """
        n_answers = len(user_answers)
        n_key = len(self.key)
        if n_key != n_answers:
            app_logger.warning(f"Mismatch length! Key: {n_key}, User: {n_answers}")

        min_len = min(n_key, n_answers)
        correct_vector = [1 if (user_answers[i] or '').upper() == self.key[i] else 0 for i in range(min_len)]
        # Missing answers at the end count as wrong
        if n_answers < n_key:
            correct_vector.extend([0] * (n_key - n_answers))

        score = sum(self._points_for(self.key[i]) for i, ok in enumerate(correct_vector) if ok)
        max_score = self.max_score
        percentage = round(score / max_score * 100, 2) if max_score > 0 else 0.0

        stats = {
            'score': score,
            'max_score': max_score,
            'correct': int(sum(correct_vector)),
            'total': n_key,
            'percentage': percentage,
            'letter_grade': self.letter_grade(percentage),
        }
        app_logger.info(f"Grading finished. Score: {score:g}/{max_score:g} ({percentage}%, {stats['letter_grade']})")
        return stats, correct_vector

    @staticmethod
    def letter_grade(percentage: float) -> str:
        for threshold, letter in LETTER_GRADES:
            if percentage >= threshold:
                return letter
        return 'F'

    @staticmethod
    def can_save(result: RecognitionResult) -> Tuple[bool, Optional[str]]:
        """
        A sheet may be saved only when its ID is readable and the alignment
        is trusted. Returns (allowed, reason).
        """
        if result.id_double_shades:
            return False, f"ID column(s) {list(result.id_double_shades)} have more than one bubble shaded."
        if result.id_blank:
            return False, "No student ID detected."
        if not result.alignment_ok:
            return False, "Sheet alignment is unreliable, retake the photo."
        return True, None

    def format_result(self, base_name: str, result: RecognitionResult, stats: Dict[str, Any]) -> Dict[str, Any]:
        """Build the dictionary for one report row (CSV)."""
        return {
            "Date": self.exam_date,
            "Exam": self.exam_name,
            "Name": base_name,
            "Student ID": result.student_id,
            "Score": stats['score'],
            "Max": stats['max_score'],
            "Percentage": stats['percentage'],
            "Grade": stats['letter_grade'],
            "Answers": ''.join(a or '-' for a in result.answers),
            "Multiple": ' '.join(str(q) for q in result.multiple_answers),
            "Marker Confidence": round(result.marker_confidence, 3),
            "Review": ' '.join(issue.value for issue in result.issues),
        }
