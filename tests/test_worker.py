import cv2

from sheetscan.core import OMRRecognizer
from sheetscan.core.sheet_renderer import place_on_background
from sheetscan.workers import RecognitionWorker

from conftest import ANSWERS_20


def run_worker(path, question_count=20):
    calls = []
    worker = RecognitionWorker(path, question_count, 4, OMRRecognizer(),
                               lambda *args: calls.append(args))
    worker.start()
    worker.join(timeout=60)
    assert not worker.is_alive()
    assert len(calls) == 1
    return calls[0]


class TestRecognitionWorker:
    def test_reports_result(self, tmp_path, filled_sheet_20):
        path = tmp_path / "sheet.png"
        cv2.imwrite(str(path), place_on_background(filled_sheet_20, 60, desk=150))

        done_path, result, error = run_worker(path)
        assert done_path == path
        assert error is None
        assert result.answers == tuple(ANSWERS_20)

    def test_reports_error(self, tmp_path):
        done_path, result, error = run_worker(tmp_path / "missing.png")
        assert result is None
        assert "not found" in error

    def test_is_daemon(self, tmp_path):
        worker = RecognitionWorker(tmp_path / "x.png", 20, 4, OMRRecognizer(), lambda *args: None)
        assert worker.daemon
