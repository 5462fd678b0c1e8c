"""
Error taxonomy for dailyuse.

Every classified refresh failure is a UsageError. The snapshot the refresh
left behind travels with the exception as ``state`` so callers that need a
value regardless of outcome (the polling loop, the HTTP layer) still get one.
"""

from typing import Optional

from dailyuse.schemas import UsageState


ERR_CODE_CCUSAGE = "CCUSAGE_ERROR"
ERR_CODE_VALIDATION = "VALIDATION_ERROR"
ERR_CODE_SYSTEM = "SYSTEM_ERROR"

MAX_LOGGED_OUTPUT = 128


def truncate_output(output: bytes | str | None, limit: int = MAX_LOGGED_OUTPUT) -> str:
    """Trim captured tool output for log lines."""
    if not output:
        return ""
    if isinstance(output, bytes):
        text = output[:limit].decode("utf-8", errors="replace")
        truncated = len(output) > limit
    else:
        text = output[:limit]
        truncated = len(output) > limit
    return text + "..." if truncated else text


class UsageError(Exception):
    """Base class for refresh failures."""

    code = ERR_CODE_CCUSAGE

    def __init__(self, message: str, state: Optional[UsageState] = None):
        self.message = message
        self.state = state
        super().__init__(message)

    def __str__(self) -> str:
        cause = self.__cause__
        if cause is not None:
            return f"[{self.code}] {self.message}: {cause}"
        return f"[{self.code}] {self.message}"


class ToolUnavailableError(UsageError):
    """Tool path empty, missing, not executable, or retries exhausted."""

    def __init__(self, path: str, state: Optional[UsageState] = None):
        self.path = path
        super().__init__(f"ccusage is not available at '{path}'", state)


class InvocationError(UsageError):
    """Running the tool failed (spawn error, non-zero exit, timeout)."""

    def __init__(self, message: str, output: bytes = b"", state: Optional[UsageState] = None):
        self.output = output
        super().__init__(message, state)


class ToolNotFoundError(InvocationError):
    """The tool could not be resolved or spawned."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"ccusage executable not found: '{path}'")


class ToolExitError(InvocationError):
    """The tool exited with a non-zero status."""

    def __init__(self, returncode: int, output: bytes = b"", stderr: bytes = b""):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"ccusage exited with status {returncode}", output)


class ToolTimeoutError(InvocationError):
    """The tool did not finish within the command timeout."""

    def __init__(self, timeout: float, output: bytes = b""):
        self.timeout = timeout
        super().__init__(f"ccusage timed out after {timeout:g}s", output)


class ParseError(UsageError):
    """The tool's output is not the expected JSON document."""


class NoDataTodayError(UsageError):
    """
    The tool answered, but has no record for today.

    Informational: the accompanying state is Green/$0 and available.
    """

    def __init__(self, today: str, available_dates: list[str], state: Optional[UsageState] = None):
        self.today = today
        self.available_dates = available_dates
        super().__init__(f"ccusage has no data for today ({today})", state)


class ZeroValuesError(UsageError):
    """Today's record reports zero tokens and zero cost."""

    def __init__(self, date: str, state: Optional[UsageState] = None):
        self.date = date
        super().__init__(f"ccusage returned invalid zero values for {date}", state)


def error_code(exc: BaseException) -> str:
    """Return the error code of a dailyuse exception, or '' for others."""
    return getattr(exc, "code", "") or ""
