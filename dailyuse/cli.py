"""
Command-line interface for dailyuse.

Provides commands for:
- Showing today's usage once
- Watching usage with polling and the midnight reset
- Checking the ccusage executable
- Printing the effective configuration
"""

import argparse
import json
import sys
import threading
from dataclasses import replace
from typing import Optional

from dailyuse.config import Config
from dailyuse.errors import UsageError, NoDataTodayError
from dailyuse.metrics import configure_logging
from dailyuse.schemas import UsageState
from dailyuse.service import UsageService
from dailyuse.tool import UsageTool
from dailyuse.validation import ValidationError


def format_state(state: UsageState) -> str:
    """One-line summary of a snapshot."""
    if not state.is_available:
        return f"{state.status.label}: ccusage unavailable"
    return (
        f"{state.status.label}: {state.cost_display} today "
        f"({state.daily_count:,} tokens, updated {state.last_update:%H:%M})"
    )


def _load_config(args) -> Config:
    config = Config.from_env()
    tool = getattr(args, "tool", None)
    if tool:
        config = replace(config, tool_path=tool)
    return config


def cmd_status(args) -> int:
    """Refresh once and print today's usage."""
    config = _load_config(args)
    service = UsageService(config)
    error: Optional[UsageError] = None

    try:
        state = service.update_usage()
    except UsageError as exc:
        error = exc
        state = exc.state or service.snapshot()

    if args.json:
        payload = state.to_dict()
        payload["error"] = str(error) if error else None
        print(json.dumps(payload, indent=2))
    else:
        print(format_state(state))
        if error is not None and not isinstance(error, NoDataTodayError):
            print(f"Error: {error}", file=sys.stderr)

    if error is None or isinstance(error, NoDataTodayError):
        return 0
    return 1


def cmd_watch(args) -> int:
    """Poll until interrupted, printing every delivered snapshot."""
    config = _load_config(args)
    interval = args.interval or config.update_interval
    service = UsageService(config)
    print_lock = threading.Lock()

    def on_update(state: UsageState) -> None:
        with print_lock:
            print(format_state(state), flush=True)

    try:
        on_update(service.get_daily_usage())
    except UsageError as exc:
        on_update(exc.state or service.snapshot())

    try:
        service.start_polling(interval, on_update)
    except ValidationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    service.start_daily_reset_monitor()
    print(f"Watching ccusage every {interval}s (Ctrl-C to stop)")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        service.close()
    return 0


def cmd_check(args) -> int:
    """Report whether the ccusage executable can be run."""
    config = _load_config(args)
    tool = UsageTool(config.tool_path, config.cmd_timeout)
    resolved = tool.resolve()

    if tool.is_available():
        print(f"ccusage available: {resolved}")
        return 0

    print(f"ccusage not available: {config.tool_path}", file=sys.stderr)
    return 1


def cmd_config(args) -> int:
    """Print the effective configuration and validate it."""
    try:
        config = _load_config(args)
    except ValidationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(config.to_dict(), indent=2))
    try:
        config.validate()
    except ValidationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="dailyuse: daily ccusage cost and alert status",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show today's usage
  dailyuse status

  # Same, as JSON, with a specific ccusage binary
  dailyuse status --json --tool ~/.npm-global/bin/ccusage

  # Print updates every 60 seconds
  dailyuse watch --interval 60
""",
    )
    parser.add_argument("--log-level", default=None,
                        help="Override DAILYUSE_LOG_LEVEL (DEBUG, INFO, WARN, ERROR)")
    parser.add_argument("--log-json", action="store_true",
                        help="Emit log lines as JSON")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    status_parser = subparsers.add_parser("status", help="Show today's usage once")
    status_parser.add_argument("--tool", help="Path to the ccusage executable")
    status_parser.add_argument("--json", action="store_true", help="Print JSON")

    watch_parser = subparsers.add_parser("watch", help="Poll and print updates")
    watch_parser.add_argument("--tool", help="Path to the ccusage executable")
    watch_parser.add_argument("--interval", "-i", type=int, default=None,
                              help="Seconds between polls (default: update_interval)")

    check_parser = subparsers.add_parser("check", help="Check the ccusage executable")
    check_parser.add_argument("--tool", help="Path to the ccusage executable")

    subparsers.add_parser("config", help="Show the effective configuration")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    level_name = args.log_level
    if level_name is None:
        try:
            level_name = Config.from_env().log_level
        except ValidationError:
            level_name = "INFO"
    configure_logging(Config(log_level=level_name).log_level_value(), json_format=args.log_json)

    commands = {
        "status": cmd_status,
        "watch": cmd_watch,
        "check": cmd_check,
        "config": cmd_config,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return handler(args)
    except ValidationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
