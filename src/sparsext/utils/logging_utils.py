"""Logging setup and helpers for the space-time heat solver."""

import functools
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Union

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# plotting backends log font and image lookups at debug level
NOISY_LIBRARIES = ("matplotlib", "PIL")


class ColoredFormatter(logging.Formatter):
    """Console formatter that colours the level name."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        # format a copy so other handlers still see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        if record.levelname in self.COLORS:
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(
    level: Union[str, int] = logging.INFO,
    format_string: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None,
    console_output: bool = True,
    colored_console: bool = True,
    library_level: Union[str, int] = logging.WARNING
) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level
        format_string: Custom format string
        log_file: Path to log file (optional)
        console_output: Enable console output
        colored_console: Use colored console output
        library_level: Level for the loggers in NOISY_LIBRARIES
    """
    if format_string is None:
        format_string = DEFAULT_FORMAT

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handlers = []
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        formatter_class = ColoredFormatter if colored_console else logging.Formatter
        console_handler.setFormatter(formatter_class(format_string))
        handlers.append(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(logging.Formatter(format_string))
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)
        root_logger.addHandler(handler)

    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized: level={logging.getLevelName(level)}, "
                f"console={console_output}, file={log_file is not None}")


def get_logger(name: str, level: Optional[Union[str, int]] = None) -> logging.Logger:
    """
    Get a logger, optionally overriding its level.

    Args:
        name: Logger name (typically __name__)
        level: Optional override level for this logger
    """
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger


class LoggingContext:
    """Context manager for a temporary logging level."""

    def __init__(self, level: Union[str, int], logger_name: Optional[str] = None):
        self.new_level = level
        self.logger_name = logger_name
        self.original_level = None
        self.logger = None

    def __enter__(self):
        self.logger = logging.getLogger(self.logger_name)
        self.original_level = self.logger.level
        self.logger.setLevel(self.new_level)
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.logger is not None and self.original_level is not None:
            self.logger.setLevel(self.original_level)


def log_function_call(func):
    """Decorator logging entry, exit and duration of a call at debug level."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)
        start_time = time.time()
        logger.debug(f"Entering {func.__name__}")
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Exception in {func.__name__} after {time.time() - start_time:.3f}s: {e}")
            raise
        logger.debug(f"Exiting {func.__name__} (elapsed: {time.time() - start_time:.3f}s)")
        return result

    return wrapper
