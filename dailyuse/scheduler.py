"""
Background loops for dailyuse.

Two loops share the usage service: the polling loop refreshes on a fixed
interval, and the reset loop watches for the calendar day to change.
Both are built on PeriodicTask, a single-use worker thread stopped by an
Event.
"""

import logging
import threading
from datetime import date, datetime
from enum import Enum
from typing import Callable, Optional

from dailyuse.errors import UsageError
from dailyuse.schemas import UsageState, local_now
from dailyuse.validation import validate_interval


logger = logging.getLogger("dailyuse.scheduler")

UpdateCallback = Callable[[UsageState], None]


class TaskState(str, Enum):
    """Lifecycle of a PeriodicTask."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class PeriodicTask:
    """
    Calls ``tick`` every ``interval`` seconds on a daemon thread.

    The first tick happens one interval after start. A task runs at most
    once: after stop() it cannot be restarted.
    """

    def __init__(self, name: str, interval: float, tick: Callable[[threading.Event], None]):
        self.name = name
        self.interval = interval
        self._tick = tick
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._state = TaskState.IDLE

    @property
    def state(self) -> TaskState:
        with self._lock:
            return self._state

    def start(self) -> bool:
        """Launch the worker. Returns False if already started or stopped."""
        with self._lock:
            if self._state is not TaskState.IDLE:
                return False
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._state = TaskState.RUNNING
            self._thread.start()
            return True

    def stop(self) -> None:
        """
        Signal the worker and wait for it to exit.

        Safe from any state and from the worker thread itself (no join then).
        """
        with self._lock:
            thread = self._thread
            self._thread = None
            self._state = TaskState.STOPPED
            self._stop_event.set()

        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self._tick(self._stop_event)
            except Exception:
                logger.exception("Unhandled error in %s tick", self.name)


def _deliver(callback: Optional[UpdateCallback], state: Optional[UsageState]) -> None:
    if callback is None or state is None:
        return
    try:
        callback(state)
    except Exception:
        logger.exception("Update callback failed")


class PollingScheduler:
    """Refreshes usage on an interval and hands each snapshot to a callback."""

    def __init__(self, refresh: Callable[[], UsageState]):
        """
        Args:
            refresh: Multi-attempt refresh; may raise UsageError carrying a state
        """
        self._refresh = refresh
        self._lock = threading.Lock()
        self._task: Optional[PeriodicTask] = None
        self._callback: Optional[UpdateCallback] = None

    @property
    def state(self) -> TaskState:
        with self._lock:
            task = self._task
        return task.state if task is not None else TaskState.IDLE

    @property
    def is_running(self) -> bool:
        return self.state is TaskState.RUNNING

    def start(self, interval_seconds: float, callback: Optional[UpdateCallback]) -> None:
        """
        Stop any previous loop and start a new one.

        Raises:
            ValidationError: If interval_seconds is not positive (nothing changes)
        """
        validate_interval(interval_seconds)

        task = PeriodicTask("dailyuse-poll", interval_seconds, self._tick)
        with self._lock:
            previous, self._task = self._task, task
            self._callback = callback
        if previous is not None:
            previous.stop()

        task.start()
        logger.info(
            "Starting usage polling",
            extra={"context": {"intervalSeconds": interval_seconds}},
        )

    def stop(self) -> None:
        """Stop the loop. No callback fires after this returns."""
        with self._lock:
            task, self._task = self._task, None
        if task is None:
            return
        task.stop()
        logger.info("Usage polling stopped")

    def _tick(self, stop_event: threading.Event) -> None:
        logger.debug("Polling timer triggered")
        try:
            state = self._refresh()
        except UsageError as exc:
            logger.error("Polling update failed", extra={"context": {"error": str(exc)}})
            state = exc.state

        if stop_event.is_set():
            return
        with self._lock:
            callback = self._callback
        _deliver(callback, state)


class DailyResetScheduler:
    """
    Clears the daily counters when the local calendar day changes.

    After a successful reset, one fresh refresh is delivered to the
    registered callback so displays reflect the new day at once.
    """

    def __init__(
        self,
        reset: Callable[[], object],
        refresh: Callable[[], UsageState],
        callback: Callable[[], Optional[UpdateCallback]],
        check_interval: float = 60.0,
        clock: Callable[[], datetime] = local_now,
    ):
        """
        Args:
            reset: Counter reset; raising UsageError means the reset failed
            refresh: Single on-demand refresh run after a reset
            callback: Returns the current update callback (or None)
            check_interval: Seconds between rollover checks
            clock: Source of the current local time
        """
        self._reset = reset
        self._refresh = refresh
        self._callback = callback
        self.check_interval = check_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._task: Optional[PeriodicTask] = None
        self._last_day: Optional[date] = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            task = self._task
        return task is not None and task.state is TaskState.RUNNING

    def start(self) -> None:
        """Start the monitor. Calling it while running does nothing."""
        with self._lock:
            if self._task is not None and self._task.state is TaskState.RUNNING:
                return
            self._last_day = self._clock().date()
            self._task = PeriodicTask("dailyuse-reset", self.check_interval, self._tick)
            self._task.start()
        logger.info("Daily reset monitor started")

    def stop(self) -> None:
        with self._lock:
            task, self._task = self._task, None
        if task is None:
            return
        task.stop()
        logger.debug("Daily reset loop stopped")

    def check(self, stop_event: Optional[threading.Event] = None) -> bool:
        """
        Run one rollover check.

        Returns:
            True if the day changed and a reset was attempted
        """
        now = self._clock()
        today = now.date()
        with self._lock:
            last_day = self._last_day
            if last_day is not None and today == last_day:
                return False
            self._last_day = today

        logger.info(
            "Daily reset triggered",
            extra={"context": {"newDay": today.isoformat(), "lastResetDay": str(last_day)}},
        )

        try:
            self._reset()
        except UsageError as exc:
            logger.error("Daily reset failed", extra={"context": {"error": str(exc)}})
            return True

        logger.info("Daily usage reset successfully")
        callback = self._callback()
        if callback is None:
            return True

        try:
            state = self._refresh()
        except UsageError as exc:
            logger.error("Post-reset usage fetch failed", extra={"context": {"error": str(exc)}})
            state = exc.state

        if stop_event is not None and stop_event.is_set():
            return True
        _deliver(callback, state)
        return True

    def _tick(self, stop_event: threading.Event) -> None:
        self.check(stop_event)
