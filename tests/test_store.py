"""Tests for the lock-guarded usage store."""

from datetime import datetime, timedelta

import pytest

from dailyuse.parser import DailyRecord
from dailyuse.schemas import AlertStatus, TerminalState
from dailyuse.store import UsageStore


class FakeClock:
    """Deterministic wall clock and monotonic clock."""

    def __init__(self):
        self.now = datetime(2025, 1, 15, 12, 0).astimezone()
        self.mono = 1000.0

    def __call__(self):
        return self.now

    def monotonic(self):
        return self.mono

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)
        self.mono += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return UsageStore(clock=clock, monotonic=clock.monotonic)


RECORD = DailyRecord(date="2025-01-15", total_tokens=100, total_cost=5.0)


class TestSnapshots:
    """Test copy-out reads."""

    def test_initial_state_is_unknown(self, store):
        state = store.snapshot()
        assert state.status is AlertStatus.UNKNOWN
        assert state.is_available is False
        assert state.daily_count == 0

    def test_snapshot_is_a_copy(self, store):
        state = store.snapshot()
        state.daily_cost = 99.0
        state.is_available = True
        assert store.snapshot().daily_cost == 0.0
        assert store.snapshot().is_available is False

    def test_write_returns_a_copy(self, store):
        state = store.write_terminal(TerminalState.APPLIED, RECORD)
        state.daily_count = 1
        assert store.snapshot().daily_count == 100


class TestTerminalWrites:
    """Test the three terminal outcomes."""

    def test_applied(self, clock):
        store = UsageStore(clock=clock, monotonic=clock.monotonic, thresholds=(5.0, 10.0))
        clock.advance(5)
        state = store.write_terminal(TerminalState.APPLIED, RECORD)
        assert state.daily_count == 100
        assert state.daily_cost == 5.0
        assert state.is_available is True
        assert state.status is AlertStatus.YELLOW
        assert state.last_update == clock.now

    def test_applied_requires_record(self, store):
        with pytest.raises(ValueError):
            store.write_terminal(TerminalState.APPLIED)

    def test_no_data_today_is_green_and_available(self, store):
        store.write_terminal(TerminalState.APPLIED, RECORD)
        state = store.write_terminal(TerminalState.NO_DATA_TODAY)
        assert state.daily_count == 0
        assert state.daily_cost == 0.0
        assert state.is_available is True
        assert state.status is AlertStatus.GREEN

    def test_unknown_clears_counters(self, store):
        store.write_terminal(TerminalState.APPLIED, RECORD)
        state = store.write_terminal(TerminalState.UNKNOWN)
        assert state.daily_count == 0
        assert state.daily_cost == 0.0
        assert state.is_available is False
        assert state.status is AlertStatus.UNKNOWN

    def test_mark_unavailable_keeps_counters(self, store):
        store.write_terminal(TerminalState.APPLIED, RECORD)
        store.mark_unavailable()
        state = store.snapshot()
        assert state.daily_count == 100
        assert state.is_available is False
        assert state.status is AlertStatus.UNKNOWN


class TestCacheWindow:
    """Test read_if_fresh."""

    def test_no_cache_before_first_write(self, store):
        assert store.read_if_fresh(10) is None

    def test_fresh_within_window(self, store, clock):
        store.write_terminal(TerminalState.APPLIED, RECORD)
        clock.advance(9)
        first = store.read_if_fresh(10)
        second = store.read_if_fresh(10)
        assert first is not None
        assert first == second

    def test_stale_after_window(self, store, clock):
        store.write_terminal(TerminalState.APPLIED, RECORD)
        clock.advance(10)
        assert store.read_if_fresh(10) is None

    def test_unavailable_state_is_never_served_from_cache(self, store):
        store.write_terminal(TerminalState.UNKNOWN)
        assert store.read_if_fresh(10) is None

    def test_no_data_today_is_cached(self, store):
        store.write_terminal(TerminalState.NO_DATA_TODAY)
        assert store.read_if_fresh(10) is not None

    def test_invalidate(self, store):
        store.write_terminal(TerminalState.APPLIED, RECORD)
        store.invalidate()
        assert store.read_if_fresh(10) is None


class TestReset:
    """Test clearing the daily counters."""

    def test_reset_preserves_availability_and_last_update(self, store, clock):
        written = store.write_terminal(TerminalState.APPLIED, RECORD)
        clock.advance(3600)
        state = store.reset()
        assert state.daily_count == 0
        assert state.daily_cost == 0.0
        assert state.status is AlertStatus.GREEN
        assert state.is_available is True
        assert state.last_update == written.last_update
        assert state.last_reset == clock.now

    def test_reset_clears_cache(self, store):
        store.write_terminal(TerminalState.APPLIED, RECORD)
        store.reset()
        assert store.read_if_fresh(10) is None

    def test_reset_while_unavailable_stays_unknown(self, store):
        state = store.reset()
        assert state.is_available is False
        assert state.status is AlertStatus.UNKNOWN


class TestThresholds:
    """Test thresholds held under the store lock."""

    def test_defaults(self, store):
        assert store.thresholds == (10.0, 20.0)
        assert store.status_for(15.0) is AlertStatus.YELLOW

    def test_set_thresholds_recomputes_when_available(self, store):
        store.write_terminal(TerminalState.APPLIED, RECORD)
        state = store.set_thresholds(1.0, 5.0)
        assert state.status is AlertStatus.RED
        assert store.thresholds == (1.0, 5.0)

    def test_set_thresholds_keeps_unknown_when_unavailable(self, store):
        state = store.set_thresholds(0.0, 1.0)
        assert state.status is AlertStatus.UNKNOWN

    def test_write_uses_current_thresholds(self, store):
        store.set_thresholds(1.0, 2.0)
        state = store.write_terminal(TerminalState.APPLIED, RECORD)
        assert state.status is AlertStatus.RED


class TestGeneration:
    """Test that writes from before an invalidation are not cached."""

    def test_invalidate_bumps_generation(self, store):
        before = store.generation
        store.invalidate()
        assert store.generation == before + 1
        store.reset()
        assert store.generation == before + 2

    def test_stale_generation_is_written_but_not_cached(self, store):
        started = store.generation
        store.invalidate()
        state = store.write_terminal(TerminalState.APPLIED, RECORD, generation=started)
        assert state.daily_count == 100
        assert store.snapshot().daily_count == 100
        assert store.read_if_fresh(10) is None

    def test_current_generation_is_cached(self, store):
        store.write_terminal(TerminalState.APPLIED, RECORD, generation=store.generation)
        assert store.read_if_fresh(10) is not None
