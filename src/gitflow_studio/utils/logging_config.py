"""Logging configuration for GitFlow Studio."""

import logging
import logging.handlers
import sys

from .path_manager import PathManager

GIT_LOGGER_NAME = "gitflow_studio.services.git_service"
SETUP_LOGGER_NAME = "gitflow_studio.services.setup_pipeline"
ERROR_LOGGER_NAME = "gitflow_studio.errors"


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output."""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record):
        # Work on a copy so file handlers sharing the record stay uncolored
        record = logging.makeLogRecord(record.__dict__)
        if record.levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[record.levelname]}{record.levelname}"
                f"{self.COLORS['RESET']}"
            )
        return super().format(record)


class StructuredErrorFormatter(logging.Formatter):
    """Appends the ``error_details`` dict of a record below the message."""

    def format(self, record):
        formatted = super().format(record)
        error_details = getattr(record, "error_details", None)
        if isinstance(error_details, dict):
            lines = [
                f"  {key}: {value}"
                for key, value in error_details.items()
                if value is not None
            ]
            if lines:
                formatted += "\nError Details:\n" + "\n".join(lines)
        return formatted


def _rotating_handler(
    filename: str, level: int, max_file_size: int, backup_count: int
) -> logging.handlers.RotatingFileHandler:
    handler = logging.handlers.RotatingFileHandler(
        PathManager.get_log_dir() / filename,
        maxBytes=max_file_size,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(
        StructuredErrorFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return handler


def setup_logging(
    level: str = "INFO",
    log_to_file: bool = True,
    log_to_console: bool = True,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> None:
    """
    Set up logging for the application.

    Besides the general ``app.log`` and ``errors.log`` files, every git
    invocation is written to ``git_operations.log`` and every worktree setup
    step to ``setup_pipeline.log``.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to files
        log_to_console: Whether to log to console
        max_file_size: Maximum size of log files before rotation
        backup_count: Number of backup log files to keep
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(
            ColoredFormatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        root_logger.addHandler(console_handler)

    if log_to_file:
        try:
            PathManager.get_log_dir().mkdir(parents=True, exist_ok=True)

            root_logger.addHandler(
                _rotating_handler("app.log", numeric_level, max_file_size, backup_count)
            )
            root_logger.addHandler(
                _rotating_handler(
                    "errors.log", logging.ERROR, max_file_size, backup_count
                )
            )

            for logger_name, filename in (
                (GIT_LOGGER_NAME, "git_operations.log"),
                (SETUP_LOGGER_NAME, "setup_pipeline.log"),
            ):
                component_logger = logging.getLogger(logger_name)
                component_logger.handlers.clear()
                component_logger.addHandler(
                    _rotating_handler(
                        filename, logging.DEBUG, max_file_size, backup_count
                    )
                )
                component_logger.propagate = True

        except OSError as e:
            # If file logging fails, at least log to console
            logging.getLogger(__name__).error(f"Failed to set up file logging: {e}")

    logging.getLogger(__name__).info(
        f"Logging configured - Level: {level}, File: {log_to_file}, Console: {log_to_console}"
    )


def set_log_level(level: str) -> None:
    """
    Change the logging level for the root logger and all of its handlers.

    Args:
        level: New logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers:
        handler.setLevel(numeric_level)

    logging.getLogger(__name__).info(f"Log level changed to {level}")


def log_structured_error(
    error_dict: dict, message: str = "Structured error occurred"
) -> None:
    """
    Log an error dictionary (see ``GitFlowStudioError.to_dict``).

    Args:
        error_dict: Dictionary containing error details
        message: Main error message
    """
    logging.getLogger(ERROR_LOGGER_NAME).error(
        message, extra={"error_details": error_dict}
    )
