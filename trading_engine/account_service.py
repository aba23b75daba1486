"""
Trading Engine - Account Service.

============================================================
PURPOSE
============================================================
Cash account lifecycle and balance adjustments.

_adjust_balance() is the ONLY writer of Account.cash_balance.
Two ways in:
- credit() / debit(): one unit of work per call
- apply_credit() / apply_debit(): run inside a caller's unit
  of work (the trade engine) so the balance change commits
  together with the position change

============================================================
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from core.clock import ClockFactory, ClockProtocol
from core.exceptions import (
    AccountAlreadyExists,
    AccountNotFound,
    InsufficientFunds,
    InvalidAmount,
)
from database.models import AccountModel
from storage.ledger_store import LedgerSession, LedgerStore

from .accountant import PositionAccountant
from .config import LedgerConfig
from .types import AccountSnapshot, validate_user_id


logger = logging.getLogger(__name__)


class AccountService:
    """
    Balance reads and cash movements for a user.
    """

    def __init__(
        self,
        store: LedgerStore,
        config: Optional[LedgerConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._store = store
        self._config = config or LedgerConfig()
        self._clock = clock or ClockFactory.get_clock()
        self._accountant = PositionAccountant(self._config.money_scale)

    # =========================================================
    # ACCOUNT LIFECYCLE
    # =========================================================

    def open_account(self, user_id: str, starting_balance: Optional[Any] = None) -> AccountSnapshot:
        """
        Create the account of a user.

        Args:
            user_id: Owner
            starting_balance: Opening cash; defaults to the configured amount

        Raises:
            AccountAlreadyExists: User already has an account
            InvalidAmount: Negative starting balance
        """
        user_id = validate_user_id(user_id)
        if starting_balance is None:
            starting_balance = self._config.starting_balance
        balance = self._to_amount(starting_balance, "starting_balance")
        if balance < 0:
            raise InvalidAmount("Starting balance cannot be negative", field="starting_balance", value=balance)

        with self._store.unit_of_work(user_id, "open_account") as ledger:
            if ledger.accounts.exists(user_id):
                raise AccountAlreadyExists(user_id)
            account = ledger.accounts.create(user_id, balance, self._clock.now())
            snapshot = AccountSnapshot.from_model(account)

        logger.info(f"Opened account for {user_id} with balance ${balance}")
        return snapshot

    def close_account(self, user_id: str) -> Dict[str, int]:
        """
        Delete the account with its positions and watchlist.

        Transaction records are retained.

        Returns:
            Rows deleted per table

        Raises:
            AccountNotFound: No account for the user
        """
        user_id = validate_user_id(user_id)
        with self._store.unit_of_work(user_id, "close_account") as ledger:
            deleted = ledger.delete_account_cascade(user_id)

        logger.info(f"Closed account for {user_id}")
        return deleted

    # =========================================================
    # READS
    # =========================================================

    def get_account(self, user_id: str) -> AccountSnapshot:
        """
        Raises:
            AccountNotFound: No account for the user
        """
        user_id = validate_user_id(user_id)
        with self._store.read_scope() as ledger:
            account = ledger.accounts.get(user_id)
            if account is None:
                raise AccountNotFound(user_id)
            return AccountSnapshot.from_model(account)

    def get_balance(self, user_id: str) -> Decimal:
        """Current cash balance."""
        return self.get_account(user_id).cash_balance

    # =========================================================
    # STANDALONE CASH MOVEMENTS
    # =========================================================

    def credit(self, user_id: str, amount: Any) -> Decimal:
        """
        Deposit cash in its own unit of work.

        Returns:
            New balance

        Raises:
            InvalidAmount: amount <= 0
            AccountNotFound: No account for the user
        """
        user_id = validate_user_id(user_id)
        amount = self._validate_positive(amount)
        with self._store.unit_of_work(user_id, "credit") as ledger:
            balance = self.apply_credit(ledger, user_id, amount)

        logger.info(f"Credited ${amount} to {user_id}, balance ${balance}")
        return balance

    def debit(self, user_id: str, amount: Any) -> Decimal:
        """
        Withdraw cash in its own unit of work.

        Returns:
            New balance

        Raises:
            InvalidAmount: amount <= 0
            InsufficientFunds: Balance below amount
            AccountNotFound: No account for the user
        """
        user_id = validate_user_id(user_id)
        amount = self._validate_positive(amount)
        with self._store.unit_of_work(user_id, "debit") as ledger:
            balance = self.apply_debit(ledger, user_id, amount)

        logger.info(f"Debited ${amount} from {user_id}, balance ${balance}")
        return balance

    # =========================================================
    # COMPOSABLE PRIMITIVES
    # =========================================================

    def apply_credit(self, ledger: LedgerSession, user_id: str, amount: Decimal) -> Decimal:
        """Add amount to the balance inside the caller's unit of work."""
        amount = self._validate_positive(amount)
        account = self._lock_account(ledger, user_id)
        return self._adjust_balance(ledger, account, amount)

    def apply_debit(self, ledger: LedgerSession, user_id: str, amount: Decimal) -> Decimal:
        """
        Subtract amount inside the caller's unit of work.

        Raises:
            InsufficientFunds: Balance below amount (nothing written)
        """
        amount = self._validate_positive(amount)
        account = self._lock_account(ledger, user_id)
        if account.cash_balance < amount:
            raise InsufficientFunds(user_id, required=amount, available=account.cash_balance)
        return self._adjust_balance(ledger, account, -amount)

    def _lock_account(self, ledger: LedgerSession, user_id: str) -> AccountModel:
        account = ledger.accounts.get_for_update(user_id)
        if account is None:
            raise AccountNotFound(user_id)
        return account

    def _adjust_balance(self, ledger: LedgerSession, account: AccountModel, delta: Decimal) -> Decimal:
        new_balance = self._accountant.quantize(account.cash_balance + delta)
        if new_balance < 0:
            raise InsufficientFunds(account.user_id, required=-delta, available=account.cash_balance)
        self._accountant.check_amount(new_balance, "cash_balance")
        ledger.accounts.set_balance(account, new_balance, self._clock.now())
        return new_balance

    # =========================================================
    # VALIDATION
    # =========================================================

    def _validate_positive(self, amount: Any) -> Decimal:
        value = self._to_amount(amount, "amount")
        if value <= 0:
            raise InvalidAmount("Amount must be positive", field="amount", value=amount)
        return value

    def _to_amount(self, amount: Any, field_name: str) -> Decimal:
        if isinstance(amount, bool) or not isinstance(amount, (Decimal, int, float, str)):
            raise InvalidAmount(f"{field_name} must be a number", field=field_name, value=amount)
        try:
            value = Decimal(str(amount).strip())
        except InvalidOperation:
            raise InvalidAmount(f"{field_name} must be a number", field=field_name, value=amount)
        if not value.is_finite():
            raise InvalidAmount(f"{field_name} must be finite", field=field_name, value=amount)
        self._accountant.check_amount(value, field_name)
        return self._accountant.check_amount(self._accountant.quantize(value), field_name)
