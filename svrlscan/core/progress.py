from __future__ import annotations
import threading
import time
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ProgressSnapshot:
    processed: int
    total: int
    elapsed_ms: int
    eta_ms: Optional[int]
    running_workers: int = 0
    paused_workers: int = 0

    @property
    def active_workers(self) -> int:
        return max(self.running_workers - self.paused_workers, 0)


def estimate_remaining_ms(elapsed_ms: float, processed: int, total: int) -> Optional[int]:
    """Linear ETA: average time per finished file times the files left.

    Deliberately naive. No smoothing or windowing, so the estimate jumps
    around when file durations vary.
    """
    if processed <= 0:
        return None
    remaining = total - processed
    if remaining <= 0:
        return 0
    return int(elapsed_ms / processed * remaining)


def format_duration(ms: Optional[int]) -> str:
    if ms is None:
        return "--:--"
    seconds = int(ms // 1000)
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours:d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


class ProgressTracker:
    """Elapsed time and ETA for one run, recomputed after every completion."""

    def __init__(self, total: int) -> None:
        self.total = total
        self._lock = threading.Lock()
        self._started: Optional[float] = None
        self._stopped: Optional[float] = None
        self._processed = 0
        self._eta_ms: Optional[int] = None

    def start(self) -> None:
        with self._lock:
            self._started = time.perf_counter()
            self._stopped = None

    def stop(self) -> int:
        with self._lock:
            self._stopped = time.perf_counter()
            return self._elapsed_ms()

    def completed(self, processed: int) -> ProgressSnapshot:
        with self._lock:
            self._processed = processed
            elapsed = self._elapsed_ms()
            self._eta_ms = estimate_remaining_ms(elapsed, processed, self.total)
            return ProgressSnapshot(processed, self.total, elapsed, self._eta_ms)

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return ProgressSnapshot(self._processed, self.total, self._elapsed_ms(), self._eta_ms)

    def _elapsed_ms(self) -> int:
        if self._started is None:
            return 0
        end = self._stopped if self._stopped is not None else time.perf_counter()
        return int((end - self._started) * 1000)
