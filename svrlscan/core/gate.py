from __future__ import annotations
import threading
from typing import Optional


class PauseGate:
    """Cooperative pause point shared by every worker of one run.

    Workers call :meth:`wait_if_paused` once per file, before starting it. While
    the gate is paused they block there and are counted in ``paused_workers``;
    :meth:`request_resume` wakes all of them at once. A worker already inside a
    file is never interrupted, it only stops at its next file boundary.

    :meth:`abort` opens the gate for good and tells every waiter to skip its
    file, so a failing run cannot hang on a paused pool.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._paused = False
        self._aborted = False
        self._paused_workers = 0

    @property
    def is_paused(self) -> bool:
        with self._cond:
            return self._paused

    @property
    def paused_workers(self) -> int:
        with self._cond:
            return self._paused_workers

    def request_pause(self) -> bool:
        """Pause the gate. Returns False if it was already paused or aborted."""
        with self._cond:
            if self._paused or self._aborted:
                return False
            self._paused = True
            return True

    def request_resume(self) -> bool:
        """Resume the gate. Returns False if it was not paused."""
        with self._cond:
            if not self._paused:
                return False
            self._paused = False
            self._cond.notify_all()
            return True

    def abort(self) -> None:
        with self._cond:
            self._aborted = True
            self._paused = False
            self._cond.notify_all()

    def wait_if_paused(self) -> bool:
        """Block while paused. Returns False when the run was aborted."""
        with self._cond:
            if self._aborted:
                return False
            if not self._paused:
                return True
            self._paused_workers += 1
            # observers may be waiting on the parked count
            self._cond.notify_all()
            try:
                self._cond.wait_for(lambda: not self._paused or self._aborted)
            finally:
                self._paused_workers -= 1
            return not self._aborted

    def wait_for_paused_workers(self, count: int, timeout: Optional[float] = None) -> bool:
        """Block until at least ``count`` workers are parked at the gate."""
        with self._cond:
            return self._cond.wait_for(lambda: self._paused_workers >= count, timeout=timeout)
