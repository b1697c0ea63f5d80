"""Timing utilities for Monte Carlo runs.

``PerformanceTimer`` measures a block and reports draw throughput,
``performance_monitor`` flags slow calls, and ``profiler`` captures cProfile
stats for a scenario that runs slower than expected.
"""

import cProfile
import functools
import io
import pstats
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from .logging_config import get_logger

logger = get_logger(__name__)

# performance_monitor logs calls at or above this many seconds
SLOW_CALL_SECONDS = 1.0


@dataclass
class PerformanceMetrics:
    """Wall time of one operation and, for runs, the number of draws."""
    duration: float
    iterations: Optional[int] = None

    @property
    def iterations_per_second(self) -> Optional[float]:
        if not self.iterations or self.duration <= 0:
            return None
        return self.iterations / self.duration

    def to_dict(self):
        return {
            "duration": self.duration,
            "iterations": self.iterations,
            "iterations_per_second": self.iterations_per_second,
        }


class PerformanceTimer:
    """Time a block with ``time.perf_counter``.

    ``duration`` is readable inside the block (elapsed so far) and after it
    (total). A timer that never started reports 0.
    """

    def __init__(self, name: str = "Operation"):
        self.name = name
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.end_time = None
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.perf_counter()
        logger.debug(f"{self.name}: {self.duration:.3f}s")

    @property
    def duration(self) -> float:
        if self.start_time is None:
            return 0.0
        stop = time.perf_counter() if self.end_time is None else self.end_time
        return stop - self.start_time

    def metrics(self, iterations: Optional[int] = None) -> PerformanceMetrics:
        return PerformanceMetrics(duration=self.duration, iterations=iterations)


def performance_monitor(name: Optional[str] = None):
    """Decorator that logs calls taking ``SLOW_CALL_SECONDS`` or longer."""
    def decorator(func: Callable) -> Callable:
        label = name or f"{func.__module__}.{func.__qualname__}"

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            timer = PerformanceTimer(label)
            with timer:
                result = func(*args, **kwargs)
            if timer.duration >= SLOW_CALL_SECONDS:
                logger.info(f"Slow call: {label} took {timer.duration:.3f}s")
            return result
        return wrapper
    return decorator


@contextmanager
def profiler(output_file: Optional[str] = None, sort_by: str = 'cumulative') -> Iterator[cProfile.Profile]:
    """Profile the enclosed block.

    Args:
        output_file: Write raw stats here (readable with ``pstats``); when
            omitted the top 20 entries are logged instead
        sort_by: ``pstats`` sort key for the logged summary
    """
    prof = cProfile.Profile()
    prof.enable()
    try:
        yield prof
    finally:
        prof.disable()
        if output_file:
            prof.dump_stats(output_file)
            logger.info(f"Profile written to {output_file}")
        else:
            buffer = io.StringIO()
            pstats.Stats(prof, stream=buffer).sort_stats(sort_by).print_stats(20)
            logger.info(f"Profile ({sort_by}):\n{buffer.getvalue()}")
