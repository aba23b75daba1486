"""
Tests for the core clock and exception types.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from core.clock import ClockFactory, MockClock, SystemClock
from core.exceptions import (
    ErrorClassification,
    InsufficientFunds,
    PriceUnavailable,
    StoreConflict,
    StoreUnavailable,
)


class TestMockClock:
    """Deterministic time."""

    def test_naive_start_becomes_utc(self):
        clock = MockClock(datetime(2026, 1, 1, 9, 0))
        assert clock.now().tzinfo == timezone.utc

    def test_advance(self):
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        clock = MockClock(start)
        clock.advance(seconds=30, minutes=1)
        assert clock.now() == start + timedelta(seconds=90)

    def test_freeze_restores(self):
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        clock = MockClock(start)
        with clock.freeze(datetime(2030, 6, 1)):
            assert clock.now().year == 2030
        assert clock.now() == start

    def test_factory(self):
        mock = MockClock()
        try:
            ClockFactory.set_clock(mock)
            assert ClockFactory.get_clock() is mock
        finally:
            ClockFactory.reset()
        assert isinstance(ClockFactory.get_clock(), SystemClock)


class TestExceptions:
    """Codes, classification and serialization."""

    def test_insufficient_funds_message_and_dict(self):
        error = InsufficientFunds("alice", Decimal("1000.00"), Decimal("5.00"))
        assert error.message == "Insufficient balance. Required: $1000.00, Available: $5.00"

        data = error.to_dict()
        assert data["code"] == "INSUFFICIENT_FUNDS"
        assert data["context"]["required"] == "1000.00"

    def test_store_conflict_is_transient(self):
        assert StoreConflict("x").is_transient
        assert StoreUnavailable("x").classification == ErrorClassification.NON_RECOVERABLE

    def test_cause_is_recorded(self):
        error = PriceUnavailable("AAPL", reason="timeout", cause=TimeoutError("slow"))
        assert error.context["cause_type"] == "TimeoutError"
        assert error.symbol == "AAPL"
