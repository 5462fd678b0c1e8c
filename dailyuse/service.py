"""
Usage service for dailyuse.

Owns the usage store and is its only writer. A refresh runs the external
tool, retrying transient failures with linear backoff, and always ends in
exactly one terminal state:

- APPLIED: today's record was found and written
- NO_DATA_TODAY: the tool works but has nothing for today (Green, $0)
- UNKNOWN: the tool is unreachable or its answer is not trustworthy
"""

import logging
import threading
import time
from datetime import datetime
from typing import Callable, NoReturn, Optional

from dailyuse.config import Config
from dailyuse.errors import (
    UsageError,
    ToolUnavailableError,
    InvocationError,
    ParseError,
    NoDataTodayError,
    ZeroValuesError,
    error_code,
    truncate_output,
)
from dailyuse.metrics import MetricsCollector
from dailyuse.parser import parse_report, find_today, today_string
from dailyuse.scheduler import (
    PollingScheduler,
    DailyResetScheduler,
    UpdateCallback,
)
from dailyuse.schemas import (
    AlertStatus,
    TerminalState,
    UsageState,
    local_now,
)
from dailyuse.store import UsageStore
from dailyuse.tool import UsageTool
from dailyuse.validation import (
    ValidationError,
    validate_interval,
    validate_thresholds,
    validate_tool_path,
)


logger = logging.getLogger("dailyuse.service")


class UsageService:
    """
    Tracks today's ccusage cost and token count.

    Example:
        ```python
        service = UsageService(Config.from_env())

        try:
            state = service.get_daily_usage()
        except NoDataTodayError as exc:
            state = exc.state  # Green, $0.00: nothing spent yet
        except UsageError as exc:
            state = exc.state  # Unknown: tool unavailable

        service.start_polling(30, on_update)
        service.start_daily_reset_monitor()
        ...
        service.close()
        ```
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        metrics: Optional[MetricsCollector] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = local_now,
        backoff_unit: float = 1.0,
    ):
        """
        Initialize the service.

        Args:
            config: Settings. Uses defaults if not provided.
            metrics: Collector for refresh metrics (optional)
            sleep: Used for retry backoff
            clock: Source of the current local time
            backoff_unit: Seconds of backoff per attempt number
        """
        self.config = config or Config()
        self.metrics = metrics
        self._sleep = sleep
        self._clock = clock
        self._backoff_unit = backoff_unit

        self._store = UsageStore(
            clock=clock,
            thresholds=(self.config.yellow_threshold, self.config.red_threshold),
        )
        self._tool = UsageTool(self.config.tool_path, self.config.cmd_timeout)
        self._cache_window = float(self.config.cache_window)
        self._callback: Optional[UpdateCallback] = None
        # Held while the reset monitor delivers to the polling callback
        self._callback_lock = threading.RLock()

        self._poller = PollingScheduler(
            refresh=lambda: self.refresh(self.config.polling_retry_count),
        )
        self._reset_monitor = DailyResetScheduler(
            reset=self._rollover_reset,
            refresh=self.update_usage,
            callback=self._reset_callback,
            check_interval=self.config.reset_check_interval,
            clock=clock,
        )

    # =========================================================================
    # Read path
    # =========================================================================

    def get_daily_usage(self) -> UsageState:
        """
        Return today's usage, from cache when still fresh.

        Raises:
            UsageError: From the refresh when the cache cannot serve the read
        """
        cached = self._store.read_if_fresh(self._cache_window)
        if cached is not None:
            if self.metrics:
                self.metrics.record_cache_hit()
            return cached
        return self.update_usage()

    def update_usage(self) -> UsageState:
        """Force a single-attempt refresh, bypassing the cache."""
        return self.refresh(1)

    def snapshot(self) -> UsageState:
        """Current state without touching the tool."""
        return self._store.snapshot()

    # =========================================================================
    # Refresh engine
    # =========================================================================

    def refresh(self, max_attempts: int = 1) -> UsageState:
        """
        Query the tool, retrying transient failures.

        Unavailability and invocation failures are retried with a backoff
        of ``attempt`` seconds. Parse failures, missing data for today and
        all-zero records end the cycle immediately.

        Args:
            max_attempts: Attempt budget (values below 1 mean 1)

        Returns:
            Snapshot after applying today's record

        Raises:
            ToolUnavailableError: Tool missing or not executable
            InvocationError: Last attempt failed to run the tool
            ParseError: Output was not the expected JSON
            NoDataTodayError: No record for today (state is Green/$0)
            ZeroValuesError: Today's record is all zeros (state is Unknown)
        """
        max_attempts = max(1, max_attempts)
        started = time.monotonic()
        generation = self._store.generation
        tool = self._tool
        last_error: Optional[UsageError] = None

        for attempt in range(1, max_attempts + 1):
            if max_attempts > 1:
                logger.debug(
                    "Attempting ccusage query",
                    extra={"context": {
                        "attempt": attempt,
                        "maxRetries": max_attempts,
                        "ccusagePath": tool.path,
                    }},
                )

            if not tool.is_available():
                last_error = ToolUnavailableError(tool.path)
                logger.warning(
                    "ccusage not available",
                    extra={"context": {"attempt": attempt, "path": tool.path}},
                )
                if attempt < max_attempts:
                    self._backoff(attempt)
                    continue
                self._finish(TerminalState.UNKNOWN, last_error, attempt, started, generation)

            try:
                output = tool.run()
            except InvocationError as exc:
                last_error = exc
                self._store.mark_unavailable()
                context = tool.describe_failure(exc.output)
                context["error"] = str(exc)
                if max_attempts > 1:
                    context["attempt"] = attempt
                    context["maxRetries"] = max_attempts
                logger.warning("ccusage command failed", extra={"context": context})
                if attempt < max_attempts:
                    self._backoff(attempt)
                    continue
                self._finish(TerminalState.UNKNOWN, exc, attempt, started, generation)

            try:
                report = parse_report(output)
            except ParseError as exc:
                logger.warning(
                    "ccusage JSON parsing failed, marking as unknown",
                    extra={"context": {
                        "error": str(exc),
                        "out_len": len(output),
                        "output": truncate_output(output),
                    }},
                )
                self._finish(TerminalState.UNKNOWN, exc, attempt, started, generation)

            today = today_string(self._clock())
            record = find_today(report, today)
            if record is None:
                logger.info(
                    "No data found for today, setting to $0.00",
                    extra={"context": {
                        "today": today,
                        "availableDates": report.available_dates(),
                    }},
                )
                self._finish(
                    TerminalState.NO_DATA_TODAY,
                    NoDataTodayError(today, report.available_dates()),
                    attempt,
                    started,
                    generation,
                )

            if record.is_zero:
                logger.warning(
                    "ccusage returned zero values, marking as unknown",
                    extra={"context": {
                        "totalTokens": record.total_tokens,
                        "totalCost": record.total_cost,
                        "date": record.date,
                    }},
                )
                self._finish(
                    TerminalState.UNKNOWN, ZeroValuesError(record.date), attempt, started, generation
                )

            state = self._store.write_terminal(
                TerminalState.APPLIED,
                record=record,
                generation=generation,
            )
            context = {
                "totalTokens": record.total_tokens,
                "totalCost": record.total_cost,
                "date": record.date,
            }
            if max_attempts > 1:
                context["attempt"] = attempt
            logger.info("Successfully parsed ccusage data", extra={"context": context})
            self._record(TerminalState.APPLIED, attempt, started)
            return state

        # Only reachable if the loop exits without a terminal write
        self._finish(
            TerminalState.UNKNOWN,
            last_error or ToolUnavailableError(tool.path),
            max_attempts,
            started,
            generation,
        )

    def _finish(
        self,
        kind: TerminalState,
        error: UsageError,
        attempts: int,
        started: float,
        generation: Optional[int] = None,
    ) -> NoReturn:
        """Write the terminal state, attach it to the error and raise."""
        error.state = self._store.write_terminal(kind, generation=generation)
        self._record(kind, attempts, started, error)
        raise error

    def _record(
        self,
        kind: TerminalState,
        attempts: int,
        started: float,
        error: Optional[UsageError] = None,
    ) -> None:
        if self.metrics:
            self.metrics.record_refresh(
                kind.value,
                attempts,
                time.monotonic() - started,
                error_code(error) if error is not None else "",
            )

    def _backoff(self, attempt: int) -> None:
        self._sleep(attempt * self._backoff_unit)

    # =========================================================================
    # Thresholds, tool path, reset
    # =========================================================================

    @property
    def thresholds(self) -> tuple[float, float]:
        return self._store.thresholds

    def status_for(self, cost: float) -> AlertStatus:
        return self._store.status_for(cost)

    def set_thresholds(self, yellow_threshold: float, red_threshold: float) -> UsageState:
        """
        Replace the thresholds and recompute status for the current cost.

        Raises:
            ValidationError: If a threshold is negative or red <= yellow
        """
        validate_thresholds(yellow_threshold, red_threshold)
        return self._store.set_thresholds(yellow_threshold, red_threshold)

    def is_available(self) -> bool:
        """Whether the configured tool resolves to an executable file."""
        return self._tool.is_available()

    @property
    def tool_path(self) -> str:
        return self._tool.path

    def set_tool_path(self, path: str) -> None:
        """
        Switch to another tool executable.

        Raises:
            ValidationError: If path is empty or not executable. The
                previous path stays active.
        """
        validate_tool_path(path)
        candidate = UsageTool(path, self._tool.timeout)
        if not candidate.is_available():
            raise ValidationError(f"ccusage path is not executable: {path}")

        # Swap first: refresh() reads the generation before the tool
        self._tool = candidate
        self._store.invalidate()
        logger.info("ccusage path updated", extra={"context": {"path": path}})

    def reset_daily(self) -> UsageState:
        """
        Clear today's counters.

        Availability and last_update are kept; the next read refreshes.
        """
        state = self._store.reset()
        if self.metrics:
            self.metrics.record_reset("manual")
        logger.info("Daily counters reset")
        return state

    def _rollover_reset(self) -> UsageState:
        state = self._store.reset()
        if self.metrics:
            self.metrics.record_reset("rollover")
        return state

    # =========================================================================
    # Background loops
    # =========================================================================

    def start_polling(self, interval_seconds: float, callback: Optional[UpdateCallback]) -> None:
        """
        Refresh every ``interval_seconds`` with the polling retry budget.

        The callback receives every resulting snapshot, including Unknown
        ones. Any previous polling loop is stopped first.

        Raises:
            ValidationError: If interval_seconds is not positive
        """
        validate_interval(interval_seconds)
        with self._callback_lock:
            self._callback = callback
        self._poller.start(interval_seconds, callback)

    def stop_polling(self) -> None:
        """
        Stop polling. Idempotent; no callback fires after it returns.

        The reset monitor keeps resetting the counters but no longer
        delivers to the callback. A delivery already in progress on the
        reset thread finishes before this returns.
        """
        with self._callback_lock:
            self._callback = None
        self._poller.stop()

    def _reset_callback(self) -> Optional[UpdateCallback]:
        with self._callback_lock:
            return self._notify if self._callback is not None else None

    def _notify(self, state: UsageState) -> None:
        with self._callback_lock:
            callback = self._callback
            if callback is not None:
                callback(state)

    @property
    def is_polling(self) -> bool:
        return self._poller.is_running

    def start_daily_reset_monitor(self) -> None:
        """Watch for the local day to change and reset the counters."""
        self._reset_monitor.start()

    def stop_daily_reset_monitor(self) -> None:
        self._reset_monitor.stop()

    def close(self) -> None:
        """Stop both background loops."""
        self.stop_polling()
        self.stop_daily_reset_monitor()

    def __enter__(self) -> "UsageService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
