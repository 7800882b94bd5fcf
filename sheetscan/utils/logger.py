import logging
import os
import sys
from pathlib import Path
from datetime import datetime

LOG_DIR_ENV = "SHEETSCAN_LOG_DIR"


def setup_logger(name: str = "SHEETSCAN", log_dir: str = "logs") -> logging.Logger:
    """
    Set up the shared logger for the whole package.

    Handlers:
    1. File: DEBUG level, one session file per day (every pipeline detail).
    2. Console: INFO level (short progress lines for the operator).

    The log directory defaults to ``logs/`` next to the package and can be
    moved with the SHEETSCAN_LOG_DIR environment variable.
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)

    # Avoid duplicate handlers when called more than once
    if logger.hasHandlers():
        return logger

    formatter = logging.Formatter('%(asctime)s - [%(levelname)s] - %(message)s', datefmt='%H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    env_dir = os.environ.get(LOG_DIR_ENV)
    if env_dir:
        log_path = Path(env_dir)
    else:
        project_root = Path(__file__).resolve().parent.parent.parent
        log_path = project_root / log_dir

    log_filename = f"session_{datetime.now().strftime('%Y-%m-%d')}.log"
    try:
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path / log_filename, encoding='utf-8')
    except OSError as e:
        logger.warning(f"File logging disabled ({log_path}): {e}")
        return logger

    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger


# Shared logger, import and use directly
app_logger = setup_logger()
