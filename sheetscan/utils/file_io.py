import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import cv2
import numpy as np
import pandas as pd
from PIL import Image, ImageOps

from .logger import app_logger


class FileHandler:
    """
    Static class for every file Input/Output task.
    Keeps file handling consistent and error reporting in one place.
    """

    @staticmethod
    def load_json(file_path: Path) -> Dict[str, Any]:
        """
        Read a JSON document (app config or answer keys).

        Raises:
            FileNotFoundError: the file does not exist.
            ValueError: the file is not valid JSON.
        """
        path = Path(file_path).resolve()
        if not path.is_file():
            app_logger.error(f"[FileIO] Missing file: {path}")
            raise FileNotFoundError(f"File not found: {path}")

        try:
            with path.open('r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            app_logger.critical(f"[FileIO] Invalid JSON in {path.name} (line {e.lineno}): {e.msg}")
            raise ValueError(f"JSON syntax error in {path.name}, line {e.lineno}") from e

        app_logger.debug(f"[FileIO] Loaded {path.name} ({len(data)} top-level entries)")
        return data

    @staticmethod
    def load_config(filename: Path = Path("config/app_config.json")) -> Dict[str, Any]:
        """Load the app configuration."""
        return FileHandler.load_json(filename)

    @staticmethod
    def load_key(key_file_path: Path, exam_name: str) -> str:
        """
        Answer key of one exam from a key file: {"<exam name>": "ABCD..."}.
        """
        data = FileHandler.load_json(key_file_path)
        if exam_name not in data:
            raise KeyError(f"Exam '{exam_name}' not found in {Path(key_file_path).name}")
        return data[exam_name]

    @staticmethod
    def load_image(image_path: Path) -> np.ndarray:
        """
        Read a photo as a BGR array, upright.

        Phone cameras store the orientation in EXIF instead of rotating the
        pixels, so the EXIF transpose is applied with Pillow first.
        np.fromfile + cv2.imdecode handles non-ASCII paths on Windows.
        """
        image_path = Path(image_path)
        if not image_path.exists():
            app_logger.error(f"Image not found: {image_path}")
            raise FileNotFoundError(f"Image not found: {image_path}")

        try:
            with Image.open(image_path) as img:
                orientation = img.getexif().get(0x0112, 1)
                if orientation != 1:
                    upright = ImageOps.exif_transpose(img).convert('RGB')
                    app_logger.debug(f"Applied EXIF orientation {orientation}: {image_path.name}")
                    return cv2.cvtColor(np.asarray(upright), cv2.COLOR_RGB2BGR)
        except OSError as e:
            # Not a format Pillow understands; OpenCV may still decode it
            app_logger.debug(f"Pillow could not open {image_path.name}: {e}")

        stream = np.fromfile(str(image_path), np.uint8)
        image = cv2.imdecode(stream, cv2.IMREAD_UNCHANGED)
        if image is None:
            app_logger.error(f"Cannot decode image: {image_path}")
            raise ValueError(f"Cannot read image file (corrupt or unsupported format): {image_path.name}")
        if image.dtype != np.uint8:
            image = cv2.convertScaleAbs(image, alpha=255.0 / max(1, int(image.max())))
        return image

    @staticmethod
    def save_result_image(base_name: str, image: np.ndarray, result_dir: Path) -> Path:
        """Save an overlay image as PNG (cv2.imencode, unicode-safe)."""
        try:
            result_dir = Path(result_dir)
            result_dir.mkdir(parents=True, exist_ok=True)
            save_path = result_dir / f"{base_name}.png"

            success, buffer = cv2.imencode(".png", image)
            if not success:
                raise ValueError("Failed to encode image for saving.")
            with open(save_path, "wb") as f:
                f.write(buffer)
            app_logger.debug(f"Saved result image: {save_path.name}")
            return save_path

        except Exception as e:
            app_logger.error(f"Error saving result image {base_name}: {e}")
            raise

    @staticmethod
    def save_results_to_csv(results: List[Dict[str, Any]], result_dir: Path, file_name_prefix: str = "") -> Optional[Path]:
        """
        Append results to <prefix>_summary.csv, writing the header only for a new file.
        """
        if not results:
            app_logger.warning("No results to save.")
            return None

        try:
            result_dir = Path(result_dir)
            result_dir.mkdir(parents=True, exist_ok=True)
            csv_path = result_dir / f"{file_name_prefix or result_dir.name}_summary.csv"

            df_new = pd.DataFrame(results)
            # Dates and IDs stay text (keeps leading zeros)
            for column in ('Date', 'Student ID'):
                if column in df_new.columns:
                    df_new[column] = df_new[column].astype(str)

            file_exists = csv_path.exists()
            df_new.to_csv(
                csv_path,
                mode='a' if file_exists else 'w',
                index=False,
                header=not file_exists,
                encoding='utf-8-sig',
            )

            app_logger.info(f"Results saved to: {csv_path.name}")
            return csv_path

        except Exception as e:
            app_logger.error(f"Failed to save CSV: {e}")
            raise
