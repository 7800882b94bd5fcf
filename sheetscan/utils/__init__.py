"""
Utils package: shared tools for the whole project.
Logging, file I/O (JSON, images, CSV) and result helpers.
"""

from .logger import app_logger
from .file_io import FileHandler
from .helpers import OMRUtils

__all__ = ['app_logger', 'FileHandler', 'OMRUtils']
