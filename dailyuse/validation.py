"""
Input validation for dailyuse.

Rejects bad caller input before it can touch the usage state.
"""

from dailyuse.errors import ERR_CODE_VALIDATION


class ValidationError(ValueError):
    """Raised when input validation fails."""
    code = ERR_CODE_VALIDATION


MIN_UPDATE_INTERVAL = 10
MAX_UPDATE_INTERVAL = 300
MIN_CACHE_WINDOW = 1
MAX_CACHE_WINDOW = 300
MIN_CMD_TIMEOUT = 1
MAX_CMD_TIMEOUT = 60

LOG_LEVELS = ("DEBUG", "INFO", "WARN", "WARNING", "ERROR", "FATAL", "CRITICAL")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_tool_path(path: str) -> None:
    """
    Validate a tool path before it is resolved.

    Args:
        path: Executable name or path

    Raises:
        ValidationError: If path is empty or not a string
    """
    if not isinstance(path, str):
        raise ValidationError(f"tool path must be a string, got {type(path).__name__}")

    if not path.strip():
        raise ValidationError("ccusage path cannot be empty")


def validate_interval(interval_seconds) -> None:
    """
    Validate a polling interval.

    Raises:
        ValidationError: If interval is not a positive number
    """
    if not _is_number(interval_seconds):
        raise ValidationError(
            f"polling interval must be a number, got {type(interval_seconds).__name__}"
        )

    if interval_seconds <= 0:
        raise ValidationError(f"polling interval must be positive, got {interval_seconds}")


def validate_thresholds(yellow_threshold, red_threshold) -> None:
    """
    Validate alert thresholds.

    Args:
        yellow_threshold: Cost at which the status turns yellow
        red_threshold: Cost at which the status turns red

    Raises:
        ValidationError: If a threshold is negative or red <= yellow
    """
    if not _is_number(yellow_threshold) or not _is_number(red_threshold):
        raise ValidationError("thresholds must be numbers")

    if yellow_threshold < 0:
        raise ValidationError("yellow_threshold must be positive")

    if red_threshold < 0:
        raise ValidationError("red_threshold must be positive")

    if red_threshold <= yellow_threshold:
        raise ValidationError("red_threshold must be greater than yellow_threshold")


def validate_range(name: str, value, minimum: int, maximum: int) -> None:
    """Validate that an integer setting lies within [minimum, maximum]."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer, got {type(value).__name__}")

    if value < minimum or value > maximum:
        raise ValidationError(f"{name} must be between {minimum} and {maximum} seconds")


def validate_log_level(level: str) -> None:
    """Validate a log level name (case-insensitive)."""
    if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
        raise ValidationError(
            "log_level must be one of: DEBUG, INFO, WARN, ERROR, FATAL"
        )
