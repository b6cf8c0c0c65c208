"""Timing of assembly and solve phases."""

import time
import numpy as np
from typing import Dict, Any, List
from contextlib import contextmanager
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)


@dataclass
class TimingResult:
    """Accumulated timings of one named operation."""
    name: str
    total_time: float = 0.0
    call_count: int = 0
    min_time: float = field(default=float('inf'))
    max_time: float = 0.0
    times: List[float] = field(default_factory=list)

    @property
    def average_time(self) -> float:
        return self.total_time / max(1, self.call_count)

    def add_time(self, elapsed_time: float) -> None:
        self.total_time += elapsed_time
        self.call_count += 1
        self.min_time = min(self.min_time, elapsed_time)
        self.max_time = max(self.max_time, elapsed_time)
        self.times.append(elapsed_time)

    def get_statistics(self) -> Dict[str, float]:
        if not self.times:
            return {'count': 0, 'total': 0.0}
        return {
            'count': self.call_count,
            'total': self.total_time,
            'average': self.average_time,
            'min': self.min_time,
            'max': self.max_time,
            'median': float(np.median(self.times)),
        }


class Timer:
    """Wall-clock timer, usable as a context manager."""

    def __init__(self, name: str = "Timer"):
        self.name = name
        self.start_time = None
        self.elapsed_time = None

    def start(self) -> 'Timer':
        self.start_time = time.perf_counter()
        self.elapsed_time = None
        return self

    def stop(self) -> float:
        if self.start_time is None:
            raise RuntimeError("Timer not started")
        self.elapsed_time = time.perf_counter() - self.start_time
        return self.elapsed_time

    def __enter__(self) -> 'Timer':
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
        logger.debug(f"{self.name}: {self.elapsed_time:.3f}s")


class PerformanceProfiler:
    """
    Collects timings of named solver phases and size counters.

    Counters hold problem sizes of the last assembly (unknowns, nonzeros,
    essential DOFs) so timings can be read against the system they built.
    """

    def __init__(self):
        self.timings: Dict[str, TimingResult] = {}
        self.active_timers: Dict[str, float] = {}
        self.counters: Dict[str, int] = {}

    def record_count(self, name: str, value: int) -> None:
        self.counters[name] = int(value)

    def start_timing(self, operation_name: str) -> None:
        self.active_timers[operation_name] = time.perf_counter()

    def end_timing(self, operation_name: str) -> float:
        if operation_name not in self.active_timers:
            raise ValueError(f"No active timer for operation: {operation_name}")
        elapsed_time = time.perf_counter() - self.active_timers.pop(operation_name)
        self.timings.setdefault(operation_name, TimingResult(operation_name)).add_time(elapsed_time)
        return elapsed_time

    @contextmanager
    def time_operation(self, operation_name: str):
        """Context manager timing one phase."""
        self.start_timing(operation_name)
        try:
            yield
        finally:
            elapsed = self.end_timing(operation_name)
            logger.debug(f"{operation_name}: {elapsed:.3f}s")

    def get_timing_summary(self) -> Dict[str, Dict[str, float]]:
        return {name: result.get_statistics() for name, result in self.timings.items()}

    def log_summary(self, top_n: int = 10) -> None:
        logger.info("Timing summary:")
        ranked = sorted(self.timings.values(), key=lambda r: r.total_time, reverse=True)
        for i, result in enumerate(ranked[:top_n]):
            logger.info(f"{i + 1:2d}. {result.name:25s}: {result.total_time:8.3f}s total, "
                        f"{result.call_count:4d} calls")
        for name, value in self.counters.items():
            logger.info(f"    {name:25s}: {value:d}")

