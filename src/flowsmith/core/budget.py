"""Shared budget state for generation spend.

BudgetState is the only mutable state shared across jobs. Every
read-check-increment runs under its lock, and never across a provider call:
callers reserve the projected cost, make the call outside the lock, then
settle the reservation with the actual cost.
"""

import logging
import threading
import time
from collections import deque
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class BudgetState:
    """Rolling-window spend with in-flight reservations.

    A call is authorized only while ``spend + reserved < daily_limit``, so the
    recorded spend can exceed the limit by at most one authorized call.
    """

    def __init__(
        self,
        daily_limit_usd: float,
        per_call_limit_usd: float,
        window_hours: float = 24.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.daily_limit_usd = daily_limit_usd
        self.per_call_limit_usd = per_call_limit_usd
        self.window_seconds = window_hours * 3600
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self._spend: deque[tuple[float, float]] = deque()
        self._reserved = 0.0

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._spend and self._spend[0][0] <= cutoff:
            self._spend.popleft()

    def _current_spend(self) -> float:
        self._prune(self._clock())
        return sum(amount for _, amount in self._spend)

    @property
    def daily_spend_usd(self) -> float:
        with self._lock:
            return round(self._current_spend(), 6)

    @property
    def reserved_usd(self) -> float:
        with self._lock:
            return round(self._reserved, 6)

    def is_exhausted(self) -> bool:
        """True once recorded spend in the window has reached the daily limit."""
        with self._lock:
            return self._current_spend() >= self.daily_limit_usd

    def try_reserve(self, amount: float) -> bool:
        """Reserve ``amount`` against the daily limit.

        Returns:
            True if the reservation was taken, False if the window is full
        """
        with self._lock:
            committed = self._current_spend() + self._reserved
            if committed >= self.daily_limit_usd:
                logger.debug(f"Reservation of ${amount:.6f} refused: committed ${committed:.6f}")
                return False
            self._reserved += amount
            return True

    def settle(self, reserved: float, actual: float) -> None:
        """Replace a reservation with the actual spend of the call."""
        with self._lock:
            self._reserved = max(0.0, self._reserved - reserved)
            if actual > 0:
                self._spend.append((self._clock(), actual))

    def release(self, reserved: float) -> None:
        """Drop a reservation whose call never happened."""
        self.settle(reserved, 0.0)

    def record_spend(self, amount: float) -> None:
        """Add spend that had no reservation."""
        self.settle(0.0, amount)
