import json

import pytest

from sheetscan.core.types import MarkerFrame, Point, RecognitionIssue, RecognitionResult


def square_frame(size=100.0):
    return MarkerFrame(Point(0, 0), Point(size, 0), Point(0, size), Point(size, size))


def make_result(**overrides):
    values = dict(
        student_id="123456789",
        answers=("A", "B", "C"),
        multiple_answers=(),
        id_double_shades=(),
        raw_id_digits=(1, 2, 3, 4, 5, 6, 7, 8, 9),
        markers_found=True,
        marker_confidence=0.95,
        marker_frame=square_frame(),
        template_type=20,
    )
    values.update(overrides)
    return RecognitionResult(**values)


class TestMarkerFrame:
    def test_area_of_square(self):
        assert square_frame(10).area() == pytest.approx(100)

    def test_area_of_skewed_quad(self):
        frame = MarkerFrame(Point(0, 0), Point(10, 2), Point(0, 10), Point(10, 12))
        assert frame.area() == pytest.approx(100)

    def test_fixed_margin(self):
        frame = MarkerFrame.fixed_margin(200, 100, 0.1)
        assert frame.top_left == Point(20, 10)
        assert frame.bottom_right == Point(180, 90)

    def test_degenerate(self):
        p = Point(5, 5)
        assert MarkerFrame(p, p, p, p).is_degenerate(10000, 0.05)
        assert square_frame(10).is_degenerate(10000, 0.05)
        assert not square_frame(50).is_degenerate(10000, 0.05)

    def test_flipped_frame_is_degenerate(self):
        frame = MarkerFrame(Point(100, 0), Point(0, 0), Point(100, 100), Point(0, 100))
        assert frame.is_degenerate(100, 0.05)


class TestRecognitionResult:
    def test_clean_result_has_no_issues(self):
        result = make_result()
        assert result.issues == ()
        assert not result.needs_review
        assert result.alignment_ok

    def test_low_confidence(self):
        result = make_result(marker_confidence=0.4)
        assert result.issues == (RecognitionIssue.LOW_CONFIDENCE,)
        assert not result.alignment_ok

    def test_markers_not_found_hides_low_confidence(self):
        result = make_result(markers_found=False, marker_confidence=0.0)
        assert RecognitionIssue.MARKERS_NOT_FOUND in result.issues
        assert RecognitionIssue.LOW_CONFIDENCE not in result.issues

    def test_id_states(self):
        blank = make_result(student_id="", raw_id_digits=(-1,) * 9)
        assert blank.id_blank and not blank.id_complete
        assert RecognitionIssue.ID_BLANK in blank.issues

        partial = make_result(student_id="12345678", raw_id_digits=(1, 2, 3, 4, -1, 5, 6, 7, 8))
        assert not partial.id_blank and not partial.id_complete
        assert RecognitionIssue.ID_INCOMPLETE in partial.issues

    def test_answer_issues(self):
        result = make_result(answers=("A", "", "C"), multiple_answers=(3,), id_double_shades=(2,))
        assert result.issues == (
            RecognitionIssue.ID_DOUBLE_SHADE,
            RecognitionIssue.MULTIPLE_ANSWERS,
            RecognitionIssue.MISSING_ANSWERS,
        )

    def test_custom_confidence_limit(self):
        assert make_result(marker_confidence=0.6, low_confidence_limit=0.7).issues == (
            RecognitionIssue.LOW_CONFIDENCE,)

    def test_is_immutable(self):
        result = make_result()
        with pytest.raises(AttributeError):
            result.student_id = "x"

    def test_to_dict_is_json_serializable(self):
        data = make_result(answers=("A", ""), multiple_answers=(1,)).to_dict()
        text = json.dumps(data)
        assert json.loads(text)["issues"] == ["multiple_answers", "missing_answers"]
        assert data["marker_frame"] == [[0, 0], [100, 0], [0, 100], [100, 100]]
