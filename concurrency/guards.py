"""
Marginalia - Single-Flight Guards
Non-blocking in-flight flags with acquisition statistics
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Any, Optional, Iterator


@dataclass
class GuardStats:
    """Statistics for a single guard."""
    acquisitions: int = 0
    rejections: int = 0  # Attempts made while already held
    total_hold_time: float = 0.0
    max_hold_time: float = 0.0
    last_acquired: Optional[datetime] = None
    last_released: Optional[datetime] = None


class SingleFlightGuard:
    """
    A flag allowing at most one holder at a time.

    Acquisition never waits: a second caller is told no and is expected to
    drop its work rather than queue it. Guards are owned by one event loop
    and need no locking of their own.
    """

    def __init__(self, name: str):
        self.name = name
        self._held = False
        self._acquired_at: Optional[float] = None
        self._stats = GuardStats()

    @property
    def held(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        """Take the guard if free. Returns False when already held."""
        if self._held:
            self._stats.rejections += 1
            return False

        self._held = True
        self._acquired_at = time.monotonic()
        self._stats.acquisitions += 1
        self._stats.last_acquired = datetime.now()
        return True

    def release(self) -> None:
        if not self._held:
            return

        hold_time = time.monotonic() - (self._acquired_at or time.monotonic())
        self._stats.total_hold_time += hold_time
        self._stats.max_hold_time = max(self._stats.max_hold_time, hold_time)
        self._stats.last_released = datetime.now()
        self._held = False
        self._acquired_at = None

    @contextmanager
    def attempt(self) -> Iterator[bool]:
        """
        Try to take the guard for the duration of a block.

        Yields:
            True if this block holds the guard; the guard is released on
            exit only in that case.
        """
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()

    def stats(self) -> Dict[str, Any]:
        s = self._stats
        return {
            "guard_name": self.name,
            "acquisitions": s.acquisitions,
            "rejections": s.rejections,
            "avg_hold_time": s.total_hold_time / max(s.acquisitions, 1),
            "max_hold_time": s.max_hold_time,
            "currently_held": self._held,
        }
