"""
Centralized logging for MeetingMind.

Logs to a rotating file in the log directory. Console output is opt-in
(the terminal entry point enables it when print_to_terminal is set).
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Log directory (override with MEETINGMIND_LOG_DIR)
LOGS_DIR = Path(os.environ.get("MEETINGMIND_LOG_DIR", Path.home() / ".meetingmind" / "logs"))

# Log file path
LOG_FILE = LOGS_DIR / "meetingmind.log"

LOGGER_NAME = "meetingmind"


class MeetingMindLogger:
    """Centralized logger for MeetingMind (singleton)."""

    _instance = None
    _logger: Optional[logging.Logger] = None

    def __init__(self, level: int = logging.DEBUG):
        if MeetingMindLogger._logger is None:
            MeetingMindLogger._logger = self._setup_logger(level)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get the singleton logger instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._logger

    @classmethod
    def set_level(cls, level_name: str):
        """Set the logger level from a name like 'INFO'."""
        level = getattr(logging, str(level_name).upper(), logging.INFO)
        cls.get_logger().setLevel(level)

    @classmethod
    def enable_console(cls):
        """Echo log records to stderr (used by the terminal entry point)."""
        logger = cls.get_logger()
        for handler in logger.handlers:
            if getattr(handler, "_meetingmind_console", False):
                return
        console = logging.StreamHandler(sys.stderr)
        console._meetingmind_console = True
        console.setFormatter(logging.Formatter('%(levelname)s - %(message)s'))
        logger.addHandler(console)

    def _setup_logger(self, level: int) -> logging.Logger:
        """Set up the rotating file logger."""
        logger = logging.getLogger(LOGGER_NAME)
        logger.setLevel(level)

        # Remove any existing handlers
        logger.handlers = []

        try:
            LOGS_DIR.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                LOG_FILE, maxBytes=2_000_000, backupCount=3, encoding='utf-8'
            )
        except OSError:
            # Read-only home (CI, sandboxes): records still reach propagating handlers
            return logger

        # Format: [2024-01-15 14:30:25] ERROR - message
        formatter = logging.Formatter(
            '[%(asctime)s] %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        return logger


def log_debug(message: str):
    """Log a debug message."""
    MeetingMindLogger.get_logger().debug(message)


def log_info(message: str):
    """Log an informational message."""
    MeetingMindLogger.get_logger().info(message)


def log_warning(message: str):
    """Log a warning message."""
    MeetingMindLogger.get_logger().warning(message)


def log_error(message, exception=None):
    """
    Log an error message.

    Args:
        message: Error message string
        exception: Optional exception object to include traceback
    """
    logger = MeetingMindLogger.get_logger()
    if exception:
        logger.error(f"{message}: {str(exception)}", exc_info=exception)
    else:
        logger.error(message)


def log_exception(exception, context=""):
    """
    Log an exception with full traceback.

    Args:
        exception: Exception object
        context: Optional context string (e.g., "in transcription")
    """
    logger = MeetingMindLogger.get_logger()
    if context:
        logger.error(f"Exception {context}", exc_info=exception)
    else:
        logger.error("Exception occurred", exc_info=exception)
