"""
Trading Engine - Portfolio Service.

============================================================
PURPOSE
============================================================
Read-side aggregation over a user's positions.

============================================================
VALUATION POLICY
============================================================
Positions are read in a closed read scope first; the price
feed is queried afterwards with no session or lock held.

If the feed fails for a symbol, that position is valued at
its average cost (zero unrealized P/L) and logged at
WARNING. Valuation never fails because of the feed; trading
does.

============================================================
"""

import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from core.exceptions import AccountNotFound, InvalidAmount
from market_data.base import PriceFeed
from market_data.exceptions import PriceFeedError
from storage.ledger_store import LedgerSession, LedgerStore

from .accountant import PositionAccountant
from .config import LedgerConfig
from .types import (
    PortfolioSummary,
    PortfolioValuation,
    PositionView,
    TransactionRecord,
    normalize_symbol,
)


logger = logging.getLogger(__name__)


class PortfolioService:
    """
    Portfolio views, valuation and transaction history.
    """

    def __init__(
        self,
        store: LedgerStore,
        price_feed: PriceFeed,
        config: Optional[LedgerConfig] = None,
    ):
        self._store = store
        self._price_feed = price_feed
        self._accountant = PositionAccountant((config or LedgerConfig()).money_scale)

    # =========================================================
    # POSITIONS
    # =========================================================

    def get_portfolio(self, user_id: str) -> List[PositionView]:
        """Open positions priced now, ordered by symbol."""
        _, holdings = self._load(user_id)
        return [self._view(symbol, quantity, average_cost) for symbol, quantity, average_cost in holdings]

    def value_portfolio(self, user_id: str) -> PortfolioValuation:
        """
        Market value and unrealized P/L of all positions.

        Returns:
            PortfolioValuation (unpriced_symbols lists fallbacks)
        """
        return self._valuate(self.get_portfolio(user_id))

    def get_summary(self, user_id: str) -> PortfolioSummary:
        """Cash, market value and their total."""
        cash_balance, holdings = self._load(user_id)
        views = [self._view(symbol, quantity, average_cost) for symbol, quantity, average_cost in holdings]
        valuation = self._valuate(views)

        return PortfolioSummary(
            user_id=user_id,
            cash_balance=cash_balance,
            market_value=valuation.market_value,
            total_value=cash_balance + valuation.market_value,
            unrealized_pnl=valuation.unrealized_pnl,
            holdings=views,
        )

    # =========================================================
    # TRANSACTION HISTORY
    # =========================================================

    def get_transactions(self, user_id: str, limit: Optional[int] = None) -> List[TransactionRecord]:
        """All transaction records of a user, newest first."""
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0):
            raise InvalidAmount("Limit must be a positive integer", field="limit", value=limit)

        with self._store.read_scope() as ledger:
            return [TransactionRecord.from_model(m) for m in ledger.transactions.list_for_user(user_id, limit)]

    def get_transactions_by_symbol(self, user_id: str, symbol: str) -> List[TransactionRecord]:
        """Transaction records of a user for one symbol, newest first."""
        symbol = normalize_symbol(symbol)

        with self._store.read_scope() as ledger:
            records = ledger.transactions.list_for_user_symbol(user_id, symbol)
            return [TransactionRecord.from_model(m) for m in records]

    # =========================================================
    # HELPERS
    # =========================================================

    def _load(self, user_id: str) -> Tuple[Decimal, List[Tuple[str, int, Decimal]]]:
        with self._store.read_scope() as ledger:
            account = ledger.accounts.get(user_id)
            if account is None:
                raise AccountNotFound(user_id)
            holdings = self._holdings(ledger, user_id)
            return account.cash_balance, holdings

    @staticmethod
    def _holdings(ledger: LedgerSession, user_id: str) -> List[Tuple[str, int, Decimal]]:
        return [(p.symbol, p.quantity, p.average_cost) for p in ledger.positions.list_for_user(user_id)]

    def _view(self, symbol: str, quantity: int, average_cost: Decimal) -> PositionView:
        try:
            current_price = self._accountant.quantize(self._price_feed.get_current_price(symbol))
            priced = True
        except PriceFeedError as e:
            logger.warning(f"Valuing {symbol} at average cost ${average_cost}: {e.message}")
            current_price = average_cost
            priced = False

        return PositionView(
            symbol=symbol,
            quantity=quantity,
            average_cost=average_cost,
            current_price=current_price,
            total_value=self._accountant.quantize(current_price * quantity),
            profit_loss=self._accountant.quantize((current_price - average_cost) * quantity),
            priced=priced,
        )

    @staticmethod
    def _valuate(views: List[PositionView]) -> PortfolioValuation:
        market_value = sum((v.total_value for v in views), Decimal("0.00"))
        unrealized_pnl = sum((v.profit_loss for v in views), Decimal("0.00"))
        return PortfolioValuation(
            market_value=market_value,
            unrealized_pnl=unrealized_pnl,
            unpriced_symbols=tuple(v.symbol for v in views if not v.priced),
        )
