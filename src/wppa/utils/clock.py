"""
Event clock for per-request instrumentation.

Wraps a monotonic time source and a process memory reader so the trackers
never call `time` or `psutil` directly (and tests can inject fakes).
"""

import os
import time
from typing import Callable, Optional

import psutil

from wppa.loggers.error_log import get_error_logger


def _process_peak_memory() -> int:
    """
    Peak memory of the current process in bytes.

    psutil exposes a true peak (`peak_wset`) on Windows only; elsewhere the
    current RSS is used and the clock keeps the running maximum.
    """
    info = psutil.Process(os.getpid()).memory_info()
    return int(getattr(info, "peak_wset", info.rss))


class EventClock:
    """
    now()         -> seconds since an arbitrary epoch, monotonic within a request
    peak_memory() -> bytes, 0 if memory cannot be read
    """

    def __init__(
        self,
        time_fn: Callable[[], float] = time.perf_counter,
        memory_fn: Optional[Callable[[], int]] = _process_peak_memory,
    ) -> None:
        self._time_fn = time_fn
        self._memory_fn = memory_fn
        self._peak = 0
        self.logger = get_error_logger("EventClock")

    def now(self) -> float:
        return float(self._time_fn())

    def peak_memory(self) -> int:
        if self._memory_fn is None:
            return self._peak
        try:
            self._peak = max(self._peak, int(self._memory_fn()))
        except Exception as e:
            self.logger.error(f"[WPPA] memory reading failed: {e}")
        return self._peak
