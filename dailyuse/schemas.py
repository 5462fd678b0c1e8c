"""
Data schemas for dailyuse.

The usage snapshot, its alert status, and the terminal outcomes of a refresh.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any


def local_now() -> datetime:
    """Current time in the process-local timezone."""
    return datetime.now().astimezone()


class AlertStatus(str, Enum):
    """Alert level derived from the daily cost."""
    GREEN = "green"      # Below yellow threshold
    YELLOW = "yellow"    # [yellow, red)
    RED = "red"          # [red, inf)
    UNKNOWN = "unknown"  # Tool unreachable or response invalid

    @property
    def label(self) -> str:
        """Human-readable label shown by display collaborators."""
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    AlertStatus.GREEN: "OK",
    AlertStatus.YELLOW: "High",
    AlertStatus.RED: "Critical",
    AlertStatus.UNKNOWN: "Unknown",
}


class TerminalState(str, Enum):
    """The three possible outcomes of one refresh cycle."""
    APPLIED = "applied"
    NO_DATA_TODAY = "no_data_today"
    UNKNOWN = "unknown"


def status_for_cost(cost: float, yellow_threshold: float, red_threshold: float) -> AlertStatus:
    """
    Derive the alert status for a cost.

    Boundary values belong to the higher severity bucket:
    ``[yellow, red)`` is YELLOW and ``[red, inf)`` is RED.

    Args:
        cost: Daily cost in USD
        yellow_threshold: Cost at which the status turns yellow
        red_threshold: Cost at which the status turns red

    Returns:
        GREEN, YELLOW or RED (never UNKNOWN)
    """
    if cost >= red_threshold:
        return AlertStatus.RED
    if cost >= yellow_threshold:
        return AlertStatus.YELLOW
    return AlertStatus.GREEN


@dataclass
class UsageState:
    """
    Snapshot of the daily usage.

    Instances handed out by the store are copies; mutating one never
    affects the shared state.
    """
    daily_count: int = 0
    daily_cost: float = 0.0
    status: AlertStatus = AlertStatus.UNKNOWN
    is_available: bool = False
    last_update: datetime = field(default_factory=local_now)
    last_reset: datetime = field(default_factory=local_now)

    @property
    def cost_display(self) -> str:
        return f"${self.daily_cost:.2f}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly dict."""
        data = asdict(self)
        data["status"] = self.status.value
        data["status_label"] = self.status.label
        data["last_update"] = self.last_update.isoformat()
        data["last_reset"] = self.last_reset.isoformat()
        return data
