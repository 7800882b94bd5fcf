from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class MarkerFrame:
    """
    Pixel-space centers of the four corner fiducials.
    All bubble coordinates are expressed relative to this quadrilateral.
    """
    top_left: Point
    top_right: Point
    bottom_left: Point
    bottom_right: Point

    @classmethod
    def fixed_margin(cls, width: int, height: int, margin: float) -> "MarkerFrame":
        """Frame inset by a fraction of the image size (used when nothing was found)."""
        return cls(
            top_left=Point(width * margin, height * margin),
            top_right=Point(width * (1 - margin), height * margin),
            bottom_left=Point(width * margin, height * (1 - margin)),
            bottom_right=Point(width * (1 - margin), height * (1 - margin)),
        )

    @property
    def width(self) -> float:
        return self.top_right.x - self.top_left.x

    @property
    def height(self) -> float:
        return self.bottom_left.y - self.top_left.y

    def area(self) -> float:
        # Shoelace over TL -> TR -> BR -> BL
        pts = [self.top_left, self.top_right, self.bottom_right, self.bottom_left]
        s = 0.0
        for i, p in enumerate(pts):
            q = pts[(i + 1) % 4]
            s += p.x * q.y - q.x * p.y
        return abs(s) / 2.0

    def is_degenerate(self, image_area: float, min_fraction: float) -> bool:
        if self.width <= 0 or self.height <= 0:
            return True
        return self.area() < image_area * min_fraction

    def as_list(self) -> List[Tuple[float, float]]:
        """Corners in TL, TR, BL, BR order."""
        return [p.as_tuple() for p in (self.top_left, self.top_right, self.bottom_left, self.bottom_right)]


@dataclass(frozen=True)
class MarkerSearchResult:
    frame: MarkerFrame
    found: bool
    confidence: float
    candidate_count: int = 0


class RecognitionIssue(Enum):
    MARKERS_NOT_FOUND = "markers_not_found"
    LOW_CONFIDENCE = "low_confidence"
    ID_BLANK = "id_blank"
    ID_INCOMPLETE = "id_incomplete"
    ID_DOUBLE_SHADE = "id_double_shade"
    MULTIPLE_ANSWERS = "multiple_answers"
    MISSING_ANSWERS = "missing_answers"


@dataclass(frozen=True)
class RecognitionResult:
    """
    The only value returned by the pipeline. Never mutated after construction.

    - student_id: confident digits in column order, unshaded columns elided.
    - answers: one letter per question, "" when no confident mark.
    - multiple_answers: 1-based question numbers with two similar marks.
    - id_double_shades: 1-based ID column numbers with two similar marks.
    - raw_id_digits: digit per ID column, -1 when unshaded.
    """
    student_id: str
    answers: Tuple[str, ...]
    multiple_answers: Tuple[int, ...]
    id_double_shades: Tuple[int, ...]
    raw_id_digits: Tuple[int, ...]
    markers_found: bool
    marker_confidence: float
    marker_frame: MarkerFrame
    template_type: int = 0
    skew_angle: float = 0.0
    low_confidence_limit: float = field(default=0.5, repr=False)

    @property
    def alignment_ok(self) -> bool:
        return self.markers_found and self.marker_confidence >= self.low_confidence_limit

    @property
    def id_blank(self) -> bool:
        return all(d == -1 for d in self.raw_id_digits)

    @property
    def id_complete(self) -> bool:
        return bool(self.raw_id_digits) and all(d != -1 for d in self.raw_id_digits)

    @property
    def issues(self) -> Tuple[RecognitionIssue, ...]:
        found: List[RecognitionIssue] = []
        if not self.markers_found:
            found.append(RecognitionIssue.MARKERS_NOT_FOUND)
        elif self.marker_confidence < self.low_confidence_limit:
            found.append(RecognitionIssue.LOW_CONFIDENCE)
        if self.id_blank:
            found.append(RecognitionIssue.ID_BLANK)
        elif not self.id_complete:
            found.append(RecognitionIssue.ID_INCOMPLETE)
        if self.id_double_shades:
            found.append(RecognitionIssue.ID_DOUBLE_SHADE)
        if self.multiple_answers:
            found.append(RecognitionIssue.MULTIPLE_ANSWERS)
        if any(a == "" for a in self.answers):
            found.append(RecognitionIssue.MISSING_ANSWERS)
        return tuple(found)

    @property
    def needs_review(self) -> bool:
        return bool(self.issues)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student_id": self.student_id,
            "answers": list(self.answers),
            "multiple_answers": list(self.multiple_answers),
            "id_double_shades": list(self.id_double_shades),
            "raw_id_digits": list(self.raw_id_digits),
            "markers_found": self.markers_found,
            "marker_confidence": round(float(self.marker_confidence), 4),
            "marker_frame": [list(p) for p in self.marker_frame.as_list()],
            "template_type": self.template_type,
            "skew_angle": self.skew_angle,
            "issues": [issue.value for issue in self.issues],
        }
