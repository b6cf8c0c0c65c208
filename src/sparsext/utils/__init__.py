"""Logging and timing utilities."""

from .logging_utils import setup_logging, get_logger, LoggingContext, log_function_call
from .performance import Timer, TimingResult, PerformanceProfiler

__all__ = [
    "setup_logging",
    "get_logger",
    "LoggingContext",
    "log_function_call",
    "Timer",
    "TimingResult",
    "PerformanceProfiler",
]
