"""
Parser for the ``ccusage daily --json`` payload.

Three outcomes matter downstream and are kept apart:
no record for today, a record that is all zeros, and a real record.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from dailyuse.errors import ParseError
from dailyuse.schemas import local_now


DATE_FORMAT = "%Y-%m-%d"


class DailyRecord(BaseModel):
    """Usage for one calendar day."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    date: str = ""
    total_tokens: int = Field(0, alias="totalTokens")
    total_cost: float = Field(0.0, alias="totalCost")

    @property
    def is_zero(self) -> bool:
        """True when both tokens and cost are exactly zero."""
        return self.total_tokens == 0 and self.total_cost == 0


class UsageTotals(BaseModel):
    """Totals across all reported days (not used by the refresh)."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    total_tokens: int = Field(0, alias="totalTokens")
    total_cost: float = Field(0.0, alias="totalCost")


class UsageReport(BaseModel):
    """Full document returned by the tool."""
    daily: list[DailyRecord] = Field(default_factory=list)
    totals: UsageTotals = Field(default_factory=UsageTotals)

    @field_validator("daily", mode="before")
    @classmethod
    def _null_daily(cls, value):
        return [] if value is None else value

    @field_validator("totals", mode="before")
    @classmethod
    def _null_totals(cls, value):
        return {} if value is None else value

    def available_dates(self) -> list[str]:
        return [record.date for record in self.daily]


def today_string(now: Optional[datetime] = None) -> str:
    """Process-local calendar date as YYYY-MM-DD."""
    return (now or local_now()).strftime(DATE_FORMAT)


def parse_report(raw: bytes | str) -> UsageReport:
    """
    Decode the tool's stdout.

    Raises:
        ParseError: If the output is not valid JSON of the expected shape
    """
    try:
        return UsageReport.model_validate_json(raw)
    except PydanticValidationError as exc:
        raise ParseError("failed to parse ccusage JSON output") from exc


def find_today(report: UsageReport, today: str) -> Optional[DailyRecord]:
    """Return the record whose date equals ``today``, or None."""
    for record in report.daily:
        if record.date == today:
            return record
    return None
