"""Tests for the ccusage response parser."""

from datetime import datetime

import pytest

from dailyuse.errors import ParseError
from dailyuse.parser import (
    DailyRecord,
    find_today,
    parse_report,
    today_string,
)


SAMPLE = b"""{
  "daily": [
    {"date": "2025-01-14", "totalTokens": 500, "totalCost": 1.5},
    {"date": "2025-01-15", "totalTokens": 100, "totalCost": 5.0}
  ],
  "totals": {"totalTokens": 600, "totalCost": 6.5}
}"""


class TestParseReport:
    """Test decoding the tool's JSON output."""

    def test_parses_daily_and_totals(self):
        report = parse_report(SAMPLE)
        assert len(report.daily) == 2
        assert report.daily[1].total_tokens == 100
        assert report.daily[1].total_cost == 5.0
        assert report.totals.total_cost == 6.5

    def test_accepts_str(self):
        report = parse_report(SAMPLE.decode())
        assert report.available_dates() == ["2025-01-14", "2025-01-15"]

    def test_missing_sections_default_to_empty(self):
        report = parse_report(b"{}")
        assert report.daily == []
        assert report.totals.total_tokens == 0

    def test_null_daily_is_empty(self):
        report = parse_report(b'{"daily": null, "totals": null}')
        assert report.daily == []

    def test_ignores_extra_fields(self):
        report = parse_report(
            b'{"daily": [{"date": "2025-01-15", "totalTokens": 1, "totalCost": 0.1, '
            b'"modelsUsed": ["sonnet"]}]}'
        )
        assert report.daily[0].total_tokens == 1

    @pytest.mark.parametrize("raw", [
        b"",
        b"not json",
        b'{"daily": [',
        b"[]",
        b'{"daily": "yesterday"}',
        b'{"daily": [{"date": "2025-01-15", "totalTokens": "many"}]}',
    ])
    def test_malformed_output_raises(self, raw):
        with pytest.raises(ParseError) as exc_info:
            parse_report(raw)
        assert exc_info.value.__cause__ is not None


class TestFindToday:
    """Test locating today's record."""

    def test_found(self):
        record = find_today(parse_report(SAMPLE), "2025-01-15")
        assert record == DailyRecord(date="2025-01-15", total_tokens=100, total_cost=5.0)
        assert record.is_zero is False

    def test_missing_is_none(self):
        assert find_today(parse_report(SAMPLE), "2025-01-16") is None

    def test_zero_record_is_flagged(self):
        report = parse_report(b'{"daily": [{"date": "2025-01-15", "totalTokens": 0, "totalCost": 0}]}')
        record = find_today(report, "2025-01-15")
        assert record is not None
        assert record.is_zero is True

    def test_partial_zero_is_not_flagged(self):
        tokens_only = DailyRecord(date="2025-01-15", total_tokens=10, total_cost=0.0)
        cost_only = DailyRecord(date="2025-01-15", total_tokens=0, total_cost=0.01)
        assert tokens_only.is_zero is False
        assert cost_only.is_zero is False


def test_today_string_format():
    assert today_string(datetime(2025, 1, 5, 23, 59)) == "2025-01-05"
