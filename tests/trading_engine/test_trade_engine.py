"""
Tests for the Trade Engine.

============================================================
PURPOSE
============================================================
Covers:
1. Buy / sell ledger effects and the reference scenario
2. Rejections leave every table unchanged
3. Atomicity when a write fails mid-order
4. Concurrent orders for the same user
5. place_order result values and conflict retries
6. Price lookup before the ledger lock
7. Column limits on quantity, totals and prices

============================================================
"""

import threading
from decimal import Decimal

import pytest

from core.exceptions import (
    AccountNotFound,
    InsufficientFunds,
    InsufficientShares,
    InvalidAmount,
    PositionNotFound,
    PriceUnavailable,
    StoreConflict,
)
from trading_engine.trade_engine import TradeEngine
from trading_engine.types import OrderSide


def snapshot(services, user_id):
    """Balance, holdings and history of a user."""
    return (
        services.accounts.get_balance(user_id),
        [(v.symbol, v.quantity, v.average_cost) for v in services.portfolio.get_portfolio(user_id)],
        [t.transaction_id for t in services.portfolio.get_transactions(user_id)],
    )


# ============================================================
# BUY / SELL
# ============================================================

class TestBuy:
    """Buy orders."""

    def test_buy_debits_cash_and_opens_position(self, services, user_id, clock):
        record = services.trades.execute(user_id, "AAPL", OrderSide.BUY, 10)

        assert record.side == OrderSide.BUY
        assert record.symbol == "AAPL"
        assert record.quantity == 10
        assert record.fill_price == Decimal("100.00")
        assert record.total_amount == Decimal("1000.00")
        assert record.executed_at == clock.now()

        assert services.accounts.get_balance(user_id) == Decimal("9000.00")
        [position] = services.portfolio.get_portfolio(user_id)
        assert (position.symbol, position.quantity, position.average_cost) == ("AAPL", 10, Decimal("100.00"))

    def test_symbol_and_side_are_normalized(self, services, user_id):
        record = services.trades.execute(user_id, "  aapl ", "buy", 1)
        assert record.symbol == "AAPL"
        assert record.side == OrderSide.BUY

    def test_quote_is_rounded_to_fill_price(self, services, user_id, price_feed):
        price_feed.set_price("AAPL", "100.005")
        record = services.trades.execute(user_id, "AAPL", "BUY", 3)
        assert record.fill_price == Decimal("100.01")
        assert record.total_amount == Decimal("300.03")
        assert services.accounts.get_balance(user_id) == Decimal("9699.97")

    def test_two_buys_average_cost(self, services, user_id, price_feed):
        p1, q1, p2, q2 = Decimal("12.34"), 7, Decimal("15.67"), 3
        price_feed.set_price("MSFT", p1)
        services.trades.execute(user_id, "MSFT", "BUY", q1)
        price_feed.set_price("MSFT", p2)
        services.trades.execute(user_id, "MSFT", "BUY", q2)

        expected = ((p1 * q1 + p2 * q2) / (q1 + q2)).quantize(Decimal("0.01"))
        [position] = services.portfolio.get_portfolio(user_id)
        assert position.quantity == q1 + q2
        assert position.average_cost == expected

    def test_insufficient_funds_changes_nothing(self, services, user_id):
        before = snapshot(services, user_id)

        with pytest.raises(InsufficientFunds):
            services.trades.execute(user_id, "MSFT", "BUY", 34)

        assert snapshot(services, user_id) == before

    def test_spending_entire_balance(self, services, user_id):
        services.trades.execute(user_id, "AAPL", "BUY", 100)
        assert services.accounts.get_balance(user_id) == Decimal("0.00")


class TestSell:
    """Sell orders."""

    def test_partial_sell_keeps_average_cost(self, services, user_id, price_feed):
        services.trades.execute(user_id, "AAPL", "BUY", 10)
        price_feed.set_price("AAPL", "90.00")

        record = services.trades.execute(user_id, "AAPL", "SELL", 4)

        assert record.total_amount == Decimal("360.00")
        assert services.accounts.get_balance(user_id) == Decimal("9360.00")
        [position] = services.portfolio.get_portfolio(user_id)
        assert (position.quantity, position.average_cost) == (6, Decimal("100.00"))

    def test_full_sell_deletes_position(self, services, user_id):
        services.trades.execute(user_id, "AAPL", "BUY", 10)
        services.trades.execute(user_id, "AAPL", "SELL", 10)

        assert services.portfolio.get_portfolio(user_id) == []
        assert services.accounts.get_balance(user_id) == Decimal("10000.00")

    def test_oversell_changes_nothing(self, services, user_id):
        services.trades.execute(user_id, "AAPL", "BUY", 5)
        before = snapshot(services, user_id)

        with pytest.raises(InsufficientShares) as exc_info:
            services.trades.execute(user_id, "AAPL", "SELL", 6)

        assert (exc_info.value.held, exc_info.value.requested) == (5, 6)
        assert snapshot(services, user_id) == before

    def test_sell_without_position(self, services, user_id):
        before = snapshot(services, user_id)
        with pytest.raises(PositionNotFound):
            services.trades.execute(user_id, "TSLA", "SELL", 1)
        assert snapshot(services, user_id) == before


class TestReferenceScenario:
    """10000 -> buy 10 @100 -> buy 5 @130 -> sell 15 @120."""

    def test_scenario(self, services, user_id, price_feed):
        services.trades.execute(user_id, "AAPL", "BUY", 10)
        assert services.accounts.get_balance(user_id) == Decimal("9000.00")

        price_feed.set_price("AAPL", "130.00")
        services.trades.execute(user_id, "AAPL", "BUY", 5)
        [position] = services.portfolio.get_portfolio(user_id)
        assert (position.quantity, position.average_cost) == (15, Decimal("110.00"))
        assert services.accounts.get_balance(user_id) == Decimal("8350.00")

        price_feed.set_price("AAPL", "120.00")
        sell = services.trades.execute(user_id, "AAPL", "SELL", 15)
        assert sell.total_amount == Decimal("1800.00")
        assert services.accounts.get_balance(user_id) == Decimal("10150.00")
        assert services.portfolio.get_portfolio(user_id) == []

        history = services.portfolio.get_transactions(user_id)
        assert [(t.side, t.total_amount) for t in history] == [
            (OrderSide.SELL, Decimal("1800.00")),
            (OrderSide.BUY, Decimal("650.00")),
            (OrderSide.BUY, Decimal("1000.00")),
        ]


# ============================================================
# VALIDATION / PRICE
# ============================================================

class TestValidation:
    """Malformed orders never reach the feed or the store."""

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "3", True])
    def test_bad_quantity(self, services, user_id, price_feed, quantity):
        with pytest.raises(InvalidAmount):
            services.trades.execute(user_id, "AAPL", "BUY", quantity)
        assert price_feed.calls == []

    @pytest.mark.parametrize("symbol", ["", "   ", None])
    def test_bad_symbol(self, services, user_id, symbol):
        with pytest.raises(InvalidAmount):
            services.trades.execute(user_id, symbol, "BUY", 1)

    def test_bad_side(self, services, user_id):
        with pytest.raises(InvalidAmount):
            services.trades.execute(user_id, "AAPL", "HOLD", 1)

    def test_unknown_account(self, services, price_feed):
        with pytest.raises(AccountNotFound):
            services.trades.execute("nobody", "AAPL", "BUY", 1)


class TestPriceUnavailable:
    """Feed failures reject the order."""

    def test_unknown_symbol(self, services, user_id):
        before = snapshot(services, user_id)
        with pytest.raises(PriceUnavailable):
            services.trades.execute(user_id, "ZZZZ", "BUY", 1)
        assert snapshot(services, user_id) == before

    def test_feed_outage(self, services, user_id, price_feed):
        price_feed.fail("AAPL")
        with pytest.raises(PriceUnavailable):
            services.trades.execute(user_id, "AAPL", "BUY", 1)

    def test_zero_price(self, services, user_id, price_feed):
        price_feed.set_price("AAPL", "0")
        with pytest.raises(PriceUnavailable):
            services.trades.execute(user_id, "AAPL", "BUY", 1)

    def test_price_rounding_to_zero(self, services, user_id, price_feed):
        price_feed.set_price("AAPL", "0.004")
        with pytest.raises(PriceUnavailable):
            services.trades.execute(user_id, "AAPL", "BUY", 1)


# ============================================================
# ATOMICITY / CONCURRENCY
# ============================================================

class TestAtomicity:
    """A failure after the first write rolls back the whole order."""

    def test_failed_record_insert_rolls_back_cash_and_position(
        self, services, store, price_feed, config, clock, user_id
    ):
        engine = TradeEngine(store, price_feed, services.accounts, config, clock, id_factory=lambda: "same-id")
        engine.execute(user_id, "AAPL", "BUY", 10)
        before = snapshot(services, user_id)

        # Duplicate transaction_id fails at the record insert, after debit and position update
        with pytest.raises(StoreConflict):
            engine.execute(user_id, "AAPL", "BUY", 5)

        assert snapshot(services, user_id) == before


class TestConcurrency:
    """Orders of one user are serialized."""

    def test_concurrent_sells_exceeding_holding(self, services, user_id):
        services.trades.execute(user_id, "AAPL", "BUY", 10)
        barrier = threading.Barrier(2)
        outcomes = []

        def sell():
            barrier.wait()
            try:
                services.trades.execute(user_id, "AAPL", "SELL", 6)
                outcomes.append("ok")
            except InsufficientShares:
                outcomes.append("insufficient")

        threads = [threading.Thread(target=sell) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(outcomes) == ["insufficient", "ok"]
        [position] = services.portfolio.get_portfolio(user_id)
        assert position.quantity == 4
        assert services.accounts.get_balance(user_id) == Decimal("9600.00")

    def test_concurrent_buys_keep_every_debit(self, services, user_id):
        barrier = threading.Barrier(4)
        results = []

        def buy():
            barrier.wait()
            results.append(services.trades.place_order(user_id, "AAPL", "BUY", 5))

        threads = [threading.Thread(target=buy) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert all(r.success for r in results)
        [position] = services.portfolio.get_portfolio(user_id)
        assert position.quantity == 20
        assert services.accounts.get_balance(user_id) == Decimal("8000.00")
        assert len(services.portfolio.get_transactions(user_id)) == 4


# ============================================================
# PLACE ORDER
# ============================================================

class TestPlaceOrder:
    """Result values and retry policy."""

    def test_success(self, services, user_id):
        result = services.trades.place_order(user_id, "AAPL", "BUY", 1)
        assert result.success
        assert result.transaction.total_amount == Decimal("100.00")
        assert result.error_code is None
        assert result.attempts == 1

    def test_rejection_is_a_value(self, services, user_id):
        result = services.trades.place_order(user_id, "AAPL", "SELL", 1)
        assert not result.success
        assert result.transaction is None
        assert result.error_code == "POSITION_NOT_FOUND"
        assert result.attempts == 1

    def test_conflict_is_retried_from_price_lookup(self, services, store, price_feed, user_id, monkeypatch):
        real_unit_of_work = store.unit_of_work
        failures = {"left": 1}

        def flaky_unit_of_work(uid, operation="unit_of_work"):
            if failures["left"]:
                failures["left"] -= 1
                raise StoreConflict("simulated contention")
            return real_unit_of_work(uid, operation)

        monkeypatch.setattr(store, "unit_of_work", flaky_unit_of_work)
        price_feed.calls.clear()

        result = services.trades.place_order(user_id, "AAPL", "BUY", 2)

        assert result.success
        assert result.attempts == 2
        assert price_feed.calls == ["AAPL", "AAPL"]
        assert services.accounts.get_balance(user_id) == Decimal("9800.00")

    def test_retries_are_bounded(self, services, store, user_id, monkeypatch, config):
        def always_conflict(uid, operation="unit_of_work"):
            raise StoreConflict("simulated contention")

        monkeypatch.setattr(store, "unit_of_work", always_conflict)

        result = services.trades.place_order(user_id, "AAPL", "BUY", 1)

        assert not result.success
        assert result.error_code == "STORE_CONFLICT"
        assert result.attempts == config.retry.max_retries + 1

    def test_non_retryable_is_not_retried(self, services, user_id, price_feed):
        price_feed.calls.clear()
        result = services.trades.place_order(user_id, "AAPL", "BUY", 1000)
        assert result.error_code == "INSUFFICIENT_FUNDS"
        assert result.attempts == 1
        assert price_feed.calls == ["AAPL"]


# ============================================================
# LOCK ORDERING / LIMITS
# ============================================================

class TestPriceBeforeLock:
    """The quote is taken while no ledger lock is held."""

    def test_no_user_lock_during_price_lookup(self, services, store, price_feed, user_id, monkeypatch):
        real_quote = price_feed.quote
        locks_held = []

        def recording_quote(symbol):
            locks_held.append(len(store._user_locks))
            return real_quote(symbol)

        monkeypatch.setattr(price_feed, "quote", recording_quote)

        services.trades.execute(user_id, "AAPL", "BUY", 2)
        services.trades.execute(user_id, "AAPL", "SELL", 1)

        assert locks_held == [0, 0]


class TestLimits:
    """Orders the ledger columns cannot hold are rejected as InvalidAmount."""

    def test_quantity_above_column_limit(self, services, user_id, price_feed):
        with pytest.raises(InvalidAmount):
            services.trades.execute(user_id, "AAPL", "BUY", 10**27)
        assert price_feed.calls == []

    def test_place_order_reports_oversized_order(self, services, user_id):
        result = services.trades.place_order(user_id, "AAPL", "BUY", 10**27)
        assert not result.success
        assert result.error_code == "INVALID_AMOUNT"

    def test_total_above_money_limit(self, services, user_id, price_feed):
        price_feed.set_price("AAPL", "99999999999.00")
        before = snapshot(services, user_id)

        result = services.trades.place_order(user_id, "AAPL", "BUY", 2_000_000_000)

        assert result.error_code == "INVALID_AMOUNT"
        assert snapshot(services, user_id) == before

    def test_unroundable_price(self, services, user_id, price_feed):
        price_feed.set_price("AAPL", "1e30")
        with pytest.raises(PriceUnavailable):
            services.trades.execute(user_id, "AAPL", "BUY", 1)

    def test_symbol_longer_than_column(self, services, user_id, price_feed):
        with pytest.raises(InvalidAmount):
            services.trades.execute(user_id, "A" * 17, "BUY", 1)
        assert price_feed.calls == []

    def test_user_id_longer_than_column(self, services, price_feed):
        with pytest.raises(InvalidAmount):
            services.trades.execute("u" * 65, "AAPL", "BUY", 1)
        assert price_feed.calls == []
