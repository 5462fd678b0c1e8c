"""
Usage state store.

Holds the single shared UsageState behind one lock, together with the alert
thresholds and the cache bookkeeping. Every read returns a copy, and every
write replaces all fields for its outcome in one critical section, so
readers never see a mix of two updates. Status is always derived from the
thresholds held under the same lock.
"""

import threading
import time
from dataclasses import replace
from typing import Callable, Optional
from datetime import datetime

from dailyuse.parser import DailyRecord
from dailyuse.schemas import (
    AlertStatus,
    TerminalState,
    UsageState,
    local_now,
    status_for_cost,
)


class UsageStore:
    """Lock-guarded owner of the usage snapshot, thresholds and cache timestamp."""

    def __init__(
        self,
        clock: Callable[[], datetime] = local_now,
        monotonic: Callable[[], float] = time.monotonic,
        thresholds: tuple[float, float] = (10.0, 20.0),
    ):
        self._clock = clock
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._thresholds = (float(thresholds[0]), float(thresholds[1]))

        now = clock()
        self._state = UsageState(
            daily_count=0,
            daily_cost=0.0,
            status=AlertStatus.UNKNOWN,
            is_available=False,
            last_update=now,
            last_reset=now,
        )
        # Monotonic time of the last cacheable write; None forces a refresh
        self._last_query: Optional[float] = None
        # Bumped whenever cached data must not be trusted anymore
        self._generation = 0

    def snapshot(self) -> UsageState:
        """Return a copy of the current state."""
        with self._lock:
            return replace(self._state)

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def thresholds(self) -> tuple[float, float]:
        with self._lock:
            return self._thresholds

    def status_for(self, cost: float) -> AlertStatus:
        with self._lock:
            yellow, red = self._thresholds
        return status_for_cost(cost, yellow, red)

    def read_if_fresh(self, cache_window: float) -> Optional[UsageState]:
        """
        Return a copy if the cached state is still valid, else None.

        The validity check and the copy happen under the same lock hold.
        """
        with self._lock:
            if self._last_query is None or not self._state.is_available:
                return None
            if self._monotonic() - self._last_query >= cache_window:
                return None
            return replace(self._state)

    def write_terminal(
        self,
        kind: TerminalState,
        record: Optional[DailyRecord] = None,
        generation: Optional[int] = None,
    ) -> UsageState:
        """
        Write the final state of a refresh cycle.

        Args:
            kind: Which outcome to record
            record: Today's record (APPLIED only)
            generation: Value of ``generation`` when the refresh started.
                A write from an older generation is stored but not cached.

        Returns:
            Copy of the state just written
        """
        if kind is TerminalState.APPLIED and record is None:
            raise ValueError("APPLIED requires a record")

        with self._lock:
            now = self._clock()
            state = self._state
            if kind is TerminalState.APPLIED:
                yellow, red = self._thresholds
                state.daily_count = record.total_tokens
                state.daily_cost = record.total_cost
                state.is_available = True
                state.status = status_for_cost(record.total_cost, yellow, red)
            elif kind is TerminalState.NO_DATA_TODAY:
                state.daily_count = 0
                state.daily_cost = 0.0
                state.is_available = True
                state.status = AlertStatus.GREEN
            else:
                state.daily_count = 0
                state.daily_cost = 0.0
                state.is_available = False
                state.status = AlertStatus.UNKNOWN
            state.last_update = now
            if generation is None or generation == self._generation:
                self._last_query = self._monotonic()
            return replace(state)

    def mark_unavailable(self) -> None:
        """
        Flag the tool as unreachable without finalizing the cycle.

        Counters and timestamps are left alone; status follows availability.
        """
        with self._lock:
            self._state.is_available = False
            self._state.status = AlertStatus.UNKNOWN

    def reset(self) -> UsageState:
        """
        Clear the daily counters.

        Availability and last_update are preserved. Status becomes GREEN
        unless the tool is unavailable. The cache is invalidated.
        """
        with self._lock:
            state = self._state
            state.daily_count = 0
            state.daily_cost = 0.0
            state.status = AlertStatus.GREEN if state.is_available else AlertStatus.UNKNOWN
            state.last_reset = self._clock()
            self._drop_cache()
            return replace(state)

    def set_thresholds(self, yellow_threshold: float, red_threshold: float) -> UsageState:
        """Replace the thresholds and re-derive status while the tool is available."""
        with self._lock:
            self._thresholds = (float(yellow_threshold), float(red_threshold))
            if self._state.is_available:
                self._state.status = status_for_cost(
                    self._state.daily_cost, *self._thresholds
                )
            return replace(self._state)

    def invalidate(self) -> None:
        """Force the next cached read to refresh, including in-flight refreshes."""
        with self._lock:
            self._drop_cache()

    def _drop_cache(self) -> None:
        self._last_query = None
        self._generation += 1
