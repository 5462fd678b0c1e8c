"""
Metrics and observability for dailyuse.

Provides structured logging setup and refresh-cycle metrics.
"""

import json
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, asdict
from datetime import datetime, UTC
from typing import Optional, Any, TextIO
from pathlib import Path


TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class TextFormatter(logging.Formatter):
    """Plain formatter that appends the record's context, if any."""

    def __init__(self):
        super().__init__(TEXT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = getattr(record, "context", None)
        if context:
            message += " " + json.dumps(context, default=str, sort_keys=True)
        return message


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, component, message, context."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure the ``dailyuse`` logger hierarchy.

    The handler is attached only once; later calls just adjust the level.

    Args:
        level: Minimum level to emit
        json_format: Emit JSON lines instead of plain text
        stream: Destination (stderr by default)

    Returns:
        The package root logger
    """
    logger = logging.getLogger("dailyuse")
    if not logger.handlers:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JSONFormatter() if json_format else TextFormatter())
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger


@dataclass
class MetricEvent:
    """A single metric event."""
    timestamp: str
    event_type: str  # refresh, reset, error
    data: dict[str, Any]


class MetricsCollector:
    """
    Collects and aggregates metrics from refresh cycles.

    Safe to share between the polling loop, the reset loop and callers.
    """

    def __init__(
        self,
        metrics_file: Optional[Path] = None,
        enable_logging: bool = True,
        max_events: int = 1000,
    ):
        """
        Initialize metrics collector.

        Args:
            metrics_file: Optional file to write metrics to (JSONL format)
            enable_logging: Whether to log each recorded event at DEBUG
            max_events: Number of recent events kept in memory
        """
        self.metrics_file = metrics_file
        self.enable_logging = enable_logging
        self.max_events = max_events
        self.logger = logging.getLogger("dailyuse.metrics")
        self._lock = threading.Lock()

        self._events: list[MetricEvent] = []
        self._counters: dict[str, int] = defaultdict(int)
        self._histograms: dict[str, list[float]] = defaultdict(list)

    def record_refresh(
        self,
        outcome: str,
        attempts: int,
        duration_s: float,
        error_code: str = "",
    ) -> None:
        """
        Record the end of a refresh cycle.

        Args:
            outcome: Terminal state value (applied, no_data_today, unknown)
            attempts: Attempts used
            duration_s: Wall time including backoff
            error_code: Code of the raised error, if any
        """
        with self._lock:
            self._counters["refreshes_total"] += 1
            self._counters[f"refreshes_{outcome}"] += 1
            self._counters["attempts_total"] += attempts
            if error_code:
                self._counters[f"errors_{error_code}"] += 1
            self._histograms["refresh_duration_s"].append(duration_s)
        self._record_event(
            "refresh",
            {
                "outcome": outcome,
                "attempts": attempts,
                "duration_s": round(duration_s, 3),
                "error_code": error_code,
            },
        )

    def record_cache_hit(self) -> None:
        with self._lock:
            self._counters["cache_hits_total"] += 1

    def record_reset(self, trigger: str) -> None:
        """Record a daily counter reset (manual or rollover)."""
        with self._lock:
            self._counters["resets_total"] += 1
            self._counters[f"resets_{trigger}"] += 1
        self._record_event("reset", {"trigger": trigger})

    def _record_event(self, event_type: str, data: dict) -> None:
        """Record a metric event."""
        event = MetricEvent(
            timestamp=datetime.now(UTC).isoformat(),
            event_type=event_type,
            data=data,
        )

        with self._lock:
            self._events.append(event)
            if len(self._events) > self.max_events:
                del self._events[: len(self._events) - self.max_events]

            if self.metrics_file:
                with open(self.metrics_file, "a") as f:
                    f.write(json.dumps(asdict(event)) + "\n")

        if self.enable_logging:
            self.logger.debug(f"{event_type.upper()}: {data}")

    def get_stats(self) -> dict:
        """
        Get aggregated statistics.

        Returns:
            Dictionary with metrics summary
        """
        import statistics as stats

        with self._lock:
            durations = list(self._histograms.get("refresh_duration_s", []))
            counters = dict(self._counters)
            total_events = len(self._events)

        return {
            "counters": counters,
            "refresh_duration_s": {
                "avg": stats.mean(durations) if durations else 0,
                "p50": stats.median(durations) if durations else 0,
                "max": max(durations) if durations else 0,
            },
            "total_events": total_events,
        }

    def recent_events(self, limit: int = 20) -> list[MetricEvent]:
        with self._lock:
            return list(self._events[-limit:])

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._events.clear()
            self._counters.clear()
            self._histograms.clear()
