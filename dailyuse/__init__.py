"""
dailyuse - Know what your coding-assistant day costs.

Polls ``ccusage daily --json``, keeps a short-lived cache of the last good
answer and turns today's cost into a Green/Yellow/Red alert status.

Simple usage:
    from dailyuse import UsageService, Config

    service = UsageService(Config.from_env())
    state = service.update_usage()
    print(state.daily_cost)     # 5.0
    print(state.status.label)   # "OK"

No data yet vs. tool broken:
    from dailyuse import NoDataTodayError, UsageError

    try:
        state = service.get_daily_usage()
    except NoDataTodayError as exc:
        state = exc.state       # Green, $0.00, available
    except UsageError as exc:
        state = exc.state       # Unknown, unavailable

Background updates:
    service.start_polling(30, lambda state: print(state.cost_display))
    service.start_daily_reset_monitor()
    ...
    service.close()
"""

from dailyuse.config import Config
from dailyuse.errors import (
    UsageError,
    ToolUnavailableError,
    InvocationError,
    ToolNotFoundError,
    ToolExitError,
    ToolTimeoutError,
    ParseError,
    NoDataTodayError,
    ZeroValuesError,
    error_code,
)
from dailyuse.metrics import MetricsCollector, configure_logging
from dailyuse.parser import DailyRecord, UsageReport, parse_report, find_today
from dailyuse.schemas import AlertStatus, TerminalState, UsageState, status_for_cost
from dailyuse.service import UsageService
from dailyuse.tool import UsageTool
from dailyuse.validation import ValidationError


__version__ = "1.0.0"
__all__ = [
    # Service
    "UsageService",
    "Config",
    "UsageState",
    "AlertStatus",
    "TerminalState",
    "status_for_cost",
    # Tool and parser
    "UsageTool",
    "DailyRecord",
    "UsageReport",
    "parse_report",
    "find_today",
    # Errors
    "UsageError",
    "ToolUnavailableError",
    "InvocationError",
    "ToolNotFoundError",
    "ToolExitError",
    "ToolTimeoutError",
    "ParseError",
    "NoDataTodayError",
    "ZeroValuesError",
    "ValidationError",
    "error_code",
    # Observability
    "MetricsCollector",
    "configure_logging",
]
