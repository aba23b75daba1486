"""
Tests for the Position Accountant.

Covers:
1. Money rounding (2 dp, half-up)
2. Average cost recompute on buys
3. Quantity decrement on sells
4. Range limits of the money and quantity columns
"""

from decimal import Decimal

import pytest

from core.exceptions import InvalidAmount
from database.models import MAX_QUANTITY
from trading_engine.accountant import PositionAccountant, PositionState


@pytest.fixture
def accountant():
    return PositionAccountant()


class TestQuantize:
    """Money rounding."""

    def test_rounds_half_up(self, accountant):
        assert accountant.quantize(Decimal("1.005")) == Decimal("1.01")
        assert accountant.quantize(Decimal("1.004")) == Decimal("1.00")

    def test_total_amount(self, accountant):
        assert accountant.total_amount(Decimal("100.00"), 10) == Decimal("1000.00")
        assert accountant.total_amount(Decimal("0.33"), 3) == Decimal("0.99")

    def test_custom_scale(self):
        assert PositionAccountant(money_scale=4).quantize(Decimal("1.23456")) == Decimal("1.2346")


class TestApplyBuy:
    """Buying into new and existing positions."""

    def test_first_buy_uses_fill_price(self, accountant):
        state = accountant.apply_buy(None, Decimal("100.00"), 10, Decimal("1000.00"))
        assert state == PositionState(quantity=10, average_cost=Decimal("100.00"))

    def test_second_buy_recomputes_average(self, accountant):
        current = PositionState(quantity=10, average_cost=Decimal("100.00"))
        state = accountant.apply_buy(current, Decimal("130.00"), 5, Decimal("650.00"))
        assert state.quantity == 15
        assert state.average_cost == Decimal("110.00")

    def test_average_rounds_once(self, accountant):
        # (10.00*1 + 10.01*2) / 3 = 10.00666... -> 10.01
        current = PositionState(quantity=1, average_cost=Decimal("10.00"))
        state = accountant.apply_buy(current, Decimal("10.01"), 2, Decimal("20.02"))
        assert state.average_cost == Decimal("10.01")

    def test_closed_position_is_treated_as_new(self, accountant):
        current = PositionState(quantity=0, average_cost=Decimal("50.00"))
        state = accountant.apply_buy(current, Decimal("20.00"), 2, Decimal("40.00"))
        assert state == PositionState(quantity=2, average_cost=Decimal("20.00"))

    def test_rejects_non_positive_quantity(self, accountant):
        with pytest.raises(InvalidAmount):
            accountant.apply_buy(None, Decimal("1.00"), 0, Decimal("0.00"))


class TestApplySell:
    """Selling part or all of a position."""

    def test_partial_sell_keeps_average_cost(self, accountant):
        current = PositionState(quantity=15, average_cost=Decimal("110.00"))
        state = accountant.apply_sell(current, 5)
        assert state == PositionState(quantity=10, average_cost=Decimal("110.00"))
        assert not state.is_closed

    def test_full_sell_closes(self, accountant):
        state = accountant.apply_sell(PositionState(quantity=15, average_cost=Decimal("110.00")), 15)
        assert state.is_closed

    def test_oversell_raises(self, accountant):
        with pytest.raises(ValueError):
            accountant.apply_sell(PositionState(quantity=1, average_cost=Decimal("1.00")), 2)


class TestLimits:
    """Values outside the ledger columns raise InvalidAmount."""

    def test_max_amount_matches_money_column(self, accountant):
        assert accountant.max_amount == Decimal("9999999999999999.99")
        assert accountant.check_amount(accountant.max_amount) == accountant.max_amount

    @pytest.mark.parametrize("amount", [Decimal("NaN"), Decimal("Infinity"), Decimal("1e30")])
    def test_quantize_rejects_unroundable(self, accountant, amount):
        with pytest.raises(InvalidAmount):
            accountant.quantize(amount)

    def test_check_amount_rejects_overflow(self, accountant):
        with pytest.raises(InvalidAmount):
            accountant.check_amount(Decimal("10000000000000000.00"), "cash_balance")

    def test_total_amount_above_limit(self, accountant):
        with pytest.raises(InvalidAmount):
            accountant.total_amount(Decimal("100.00"), 10**15)

    def test_total_that_rounds_past_limit(self, accountant):
        with pytest.raises(InvalidAmount):
            accountant.total_amount(Decimal("9999999999999999.995"), 1)

    def test_position_quantity_limit(self, accountant):
        current = PositionState(quantity=MAX_QUANTITY, average_cost=Decimal("1.00"))
        with pytest.raises(InvalidAmount):
            accountant.apply_buy(current, Decimal("1.00"), 1, Decimal("1.00"))
