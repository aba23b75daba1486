"""
Tests for the Account Service.

Covers:
1. Account opening and closing
2. Balance reads
3. Standalone credit / debit
4. Composable primitives inside a caller's unit of work
5. Amount limits and exact storage of large balances
"""

from decimal import Decimal

import pytest

from core.exceptions import (
    AccountAlreadyExists,
    AccountNotFound,
    InsufficientFunds,
    InvalidAmount,
)


class TestOpenAccount:
    """Account opening."""

    def test_default_starting_balance(self, services, clock):
        snapshot = services.accounts.open_account("bob")
        assert snapshot.user_id == "bob"
        assert snapshot.cash_balance == Decimal("10000.00")
        assert snapshot.created_at == clock.now()

    def test_custom_starting_balance(self, services):
        snapshot = services.accounts.open_account("bob", Decimal("250.5"))
        assert snapshot.cash_balance == Decimal("250.50")

    def test_duplicate_is_rejected(self, services, user_id):
        with pytest.raises(AccountAlreadyExists):
            services.accounts.open_account(user_id)

    def test_negative_starting_balance_is_rejected(self, services):
        with pytest.raises(InvalidAmount):
            services.accounts.open_account("bob", Decimal("-1"))

    def test_empty_user_id_is_rejected(self, services):
        with pytest.raises(InvalidAmount):
            services.accounts.open_account("   ")

    def test_user_id_length_limit(self, services):
        services.accounts.open_account("u" * 64)
        with pytest.raises(InvalidAmount):
            services.accounts.open_account("u" * 65)

    def test_starting_balance_above_limit(self, services):
        with pytest.raises(InvalidAmount):
            services.accounts.open_account("bob", "1e30")


class TestBalance:
    """Balance reads."""

    def test_get_balance(self, services, user_id):
        assert services.accounts.get_balance(user_id) == Decimal("10000.00")

    def test_unknown_user(self, services):
        with pytest.raises(AccountNotFound):
            services.accounts.get_balance("nobody")


class TestCreditDebit:
    """Standalone deposits and withdrawals."""

    def test_credit_returns_new_balance(self, services, user_id):
        assert services.accounts.credit(user_id, Decimal("500")) == Decimal("10500.00")
        assert services.accounts.get_balance(user_id) == Decimal("10500.00")

    def test_debit_returns_new_balance(self, services, user_id):
        assert services.accounts.debit(user_id, "2500.25") == Decimal("7499.75")

    def test_debit_to_exactly_zero(self, services, user_id):
        assert services.accounts.debit(user_id, Decimal("10000.00")) == Decimal("0.00")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), "0.001", "abc", True, None])
    def test_invalid_amounts(self, services, user_id, amount):
        with pytest.raises(InvalidAmount):
            services.accounts.credit(user_id, amount)
        with pytest.raises(InvalidAmount):
            services.accounts.debit(user_id, amount)
        assert services.accounts.get_balance(user_id) == Decimal("10000.00")

    def test_overdraft_leaves_balance_unchanged(self, services, user_id):
        with pytest.raises(InsufficientFunds) as exc_info:
            services.accounts.debit(user_id, Decimal("10000.01"))

        assert exc_info.value.required == Decimal("10000.01")
        assert exc_info.value.available == Decimal("10000.00")
        assert services.accounts.get_balance(user_id) == Decimal("10000.00")

    def test_unknown_user(self, services):
        with pytest.raises(AccountNotFound):
            services.accounts.credit("nobody", Decimal("1"))

    @pytest.mark.parametrize("amount", ["1e30", "10000000000000000", Decimal("Infinity")])
    def test_amount_above_limit(self, services, user_id, amount):
        with pytest.raises(InvalidAmount):
            services.accounts.credit(user_id, amount)
        assert services.accounts.get_balance(user_id) == Decimal("10000.00")

    def test_credit_past_maximum_balance(self, services):
        services.accounts.open_account("bob", "9999999999999999.99")
        with pytest.raises(InvalidAmount):
            services.accounts.credit("bob", Decimal("0.01"))
        assert services.accounts.get_balance("bob") == Decimal("9999999999999999.99")

    def test_large_balance_is_exact(self, services, user_id):
        amount = Decimal("1234567890123456.78")
        assert services.accounts.credit(user_id, amount) == Decimal("1234567890133456.78")
        assert services.accounts.get_balance(user_id) == Decimal("1234567890133456.78")

    def test_updated_at_follows_clock(self, services, user_id, clock):
        opened_at = clock.now()
        clock.advance(minutes=5)
        services.accounts.credit(user_id, Decimal("1"))
        account = services.accounts.get_account(user_id)
        assert account.created_at == opened_at
        assert (account.updated_at - opened_at).total_seconds() == 300


class TestComposablePrimitives:
    """apply_credit / apply_debit share the caller's transaction."""

    def test_rolled_back_with_caller(self, services, store, user_id):
        with pytest.raises(RuntimeError):
            with store.unit_of_work(user_id) as ledger:
                services.accounts.apply_debit(ledger, user_id, Decimal("100.00"))
                raise RuntimeError("caller failed after debit")

        assert services.accounts.get_balance(user_id) == Decimal("10000.00")

    def test_committed_with_caller(self, services, store, user_id):
        with store.unit_of_work(user_id) as ledger:
            assert services.accounts.apply_debit(ledger, user_id, Decimal("100.00")) == Decimal("9900.00")
            assert services.accounts.apply_credit(ledger, user_id, Decimal("0.50")) == Decimal("9900.50")

        assert services.accounts.get_balance(user_id) == Decimal("9900.50")


class TestCloseAccount:
    """Explicit cascade on account closure."""

    def test_cascade_keeps_history(self, services, user_id):
        services.trades.execute(user_id, "AAPL", "BUY", 1)
        services.watchlist.add(user_id, "MSFT")

        deleted = services.accounts.close_account(user_id)

        assert deleted == {"positions": 1, "watchlist_entries": 1, "accounts": 1}
        with pytest.raises(AccountNotFound):
            services.accounts.get_balance(user_id)
        assert len(services.portfolio.get_transactions(user_id)) == 1

    def test_reopen_after_close(self, services, user_id):
        services.accounts.close_account(user_id)
        assert services.accounts.open_account(user_id).cash_balance == Decimal("10000.00")

    def test_unknown_user(self, services):
        with pytest.raises(AccountNotFound):
            services.accounts.close_account("nobody")
