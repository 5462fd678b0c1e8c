"""Configuration for dailyuse."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, asdict, fields, replace
from typing import Dict, Any

from dailyuse.validation import (
    ValidationError,
    validate_tool_path,
    validate_thresholds,
    validate_range,
    validate_log_level,
    MIN_UPDATE_INTERVAL,
    MAX_UPDATE_INTERVAL,
    MIN_CACHE_WINDOW,
    MAX_CACHE_WINDOW,
    MIN_CMD_TIMEOUT,
    MAX_CMD_TIMEOUT,
)


ENV_PREFIX = "DAILYUSE_"

_LOG_LEVELS: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "FATAL": logging.CRITICAL,
    "CRITICAL": logging.CRITICAL,
}


@dataclass(frozen=True)
class Config:
    """Settings consumed read-only by the usage service."""
    tool_path: str = "ccusage"
    update_interval: int = 30  # Seconds between polls
    yellow_threshold: float = 10.00
    red_threshold: float = 20.00
    log_level: str = "INFO"
    cache_window: int = 10  # Seconds a read may be served from cache
    cmd_timeout: int = 5  # Seconds per tool invocation
    polling_retry_count: int = 3
    reset_check_interval: float = 60.0  # Seconds between day-rollover checks

    def validate(self) -> None:
        """
        Check configuration values.

        Raises:
            ValidationError: Describing the first failure found
        """
        validate_tool_path(self.tool_path)
        validate_range(
            "update_interval", self.update_interval, MIN_UPDATE_INTERVAL, MAX_UPDATE_INTERVAL
        )
        validate_thresholds(self.yellow_threshold, self.red_threshold)
        validate_log_level(self.log_level)
        validate_range("cache_window", self.cache_window, MIN_CACHE_WINDOW, MAX_CACHE_WINDOW)
        validate_range("cmd_timeout", self.cmd_timeout, MIN_CMD_TIMEOUT, MAX_CMD_TIMEOUT)
        if not isinstance(self.polling_retry_count, int) or self.polling_retry_count < 1:
            raise ValidationError("polling_retry_count must be at least 1")
        if self.reset_check_interval <= 0:
            raise ValidationError("reset_check_interval must be positive")

    def log_level_value(self) -> int:
        """Map log_level to a logging level. Unknown names map to INFO."""
        return _LOG_LEVELS.get(str(self.log_level).upper(), logging.INFO)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_env(cls, environ: Dict[str, str] | None = None) -> "Config":
        """
        Build a config from defaults overlaid with DAILYUSE_* variables.

        DAILYUSE_CONFIG_JSON may carry a whole JSON object of settings; the
        individual variables are applied on top of it.

        Raises:
            ValidationError: If a numeric variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        config = cls()

        parsed = _parse_json_env(env, f"{ENV_PREFIX}CONFIG_JSON")
        if parsed:
            known = {f.name for f in fields(cls)}
            config = replace(config, **{k: v for k, v in parsed.items() if k in known})

        overrides: Dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is None or raw == "":
                continue
            overrides[f.name] = _coerce(f.name, raw, type(getattr(config, f.name)))

        return replace(config, **overrides) if overrides else config


def _parse_json_env(env, var_name: str) -> Dict[str, Any] | None:
    value = env.get(var_name)
    if not value:
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


def _coerce(name: str, raw: str, kind: type) -> Any:
    if kind is str:
        return raw
    try:
        return kind(raw)
    except ValueError as exc:
        raise ValidationError(f"{ENV_PREFIX}{name.upper()} must be {kind.__name__}, got '{raw}'") from exc
