import time
from pathlib import Path
from threading import Thread
from typing import Callable, Optional

from sheetscan.core import OMRRecognizer, RecognitionResult
from sheetscan.utils import app_logger, FileHandler

# callback(image_path, result or None, error message or None)
ResultCallback = Callable[[Path, Optional[RecognitionResult], Optional[str]], None]


class RecognitionWorker(Thread):
    """
    Background thread that reads one sheet photo.
    Keeps the caller (UI or console loop) responsive while OpenCV works.
    """

    def __init__(self,
                 image_path: Path,
                 question_count: int,
                 choices: int,
                 recognizer: OMRRecognizer,
                 on_done: ResultCallback):
        super().__init__()
        self.image_path = Path(image_path)
        self.question_count = question_count
        self.choices = choices
        self.recognizer = recognizer
        self.on_done = on_done

        # Daemon so it never keeps the program alive on exit
        self.daemon = True

    def run(self):
        result = None
        error_msg = None
        start_time = time.time()

        try:
            app_logger.debug(f"Worker processing: {self.image_path.name}")
            image = FileHandler.load_image(self.image_path)
            result = self.recognizer.recognize(image, self.question_count, self.choices)
        except Exception as e:
            error_msg = str(e)
            app_logger.error(f"Error processing {self.image_path.name}: {error_msg}")

        app_logger.debug(f"Worker finished {self.image_path.name} in {time.time() - start_time:.2f}s")
        self.on_done(self.image_path, result, error_msg)
