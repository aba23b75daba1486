"""
Trading Engine - Trade Engine.

============================================================
PURPOSE
============================================================
Executes market orders against the ledger.

============================================================
EXECUTION WORKFLOW
============================================================
1. Validate the order (no I/O)
2. Resolve the fill price from the price feed (no locks held)
3. total_amount = fill_price * quantity
4. Inside ONE unit of work for the user:
   - lock the account
   - BUY: debit cash, create or re-average the position
   - SELL: check the position, credit cash, decrement or
     delete the position
   - append the transaction record
5. Commit, or roll back everything

An order either fully commits or fully fails.

============================================================
"""

import logging
import uuid
from decimal import Decimal
from typing import Callable, Optional, Union

from core.clock import ClockFactory, ClockProtocol
from core.exceptions import (
    AccountNotFound,
    InsufficientShares,
    InvalidAmount,
    OrderRejected,
    PositionNotFound,
    PriceUnavailable,
    TradingException,
)
from market_data.base import PriceFeed
from market_data.exceptions import PriceFeedError
from storage.ledger_store import LedgerSession, LedgerStore

from .accountant import PositionAccountant, PositionState
from .account_service import AccountService
from .config import TradingEngineConfig
from .errors import is_retryable
from .types import OrderSide, TradeOrder, TradeResult, TransactionRecord


logger = logging.getLogger(__name__)


class TradeEngine:
    """
    Buy / sell orchestration.

    execute() raises typed errors; place_order() returns a
    TradeResult and retries store conflicts.
    """

    def __init__(
        self,
        store: LedgerStore,
        price_feed: PriceFeed,
        account_service: AccountService,
        config: Optional[TradingEngineConfig] = None,
        clock: Optional[ClockProtocol] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self._store = store
        self._price_feed = price_feed
        self._accounts = account_service
        self._config = config or TradingEngineConfig()
        self._clock = clock or ClockFactory.get_clock()
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))
        self._accountant = PositionAccountant(self._config.ledger.money_scale)

    # =========================================================
    # PUBLIC API
    # =========================================================

    def execute(
        self,
        user_id: str,
        symbol: str,
        side: Union[OrderSide, str],
        quantity: int,
    ) -> TransactionRecord:
        """
        Execute one market order.

        Raises:
            InvalidAmount: Malformed order
            PriceUnavailable: No usable price
            AccountNotFound: No account for the user
            InsufficientFunds / InsufficientShares / PositionNotFound
            StoreConflict: Concurrent modification, safe to retry
            StoreUnavailable: Storage failure
        """
        order = TradeOrder.create(user_id, symbol, side, quantity)

        try:
            fill_price = self._resolve_price(order.symbol)
            total_amount = self._accountant.total_amount(fill_price, order.quantity)

            with self._store.unit_of_work(order.user_id, f"{order.side.value.lower()} {order.symbol}") as ledger:
                if ledger.accounts.get_for_update(order.user_id) is None:
                    raise AccountNotFound(order.user_id)

                if order.side == OrderSide.BUY:
                    self._apply_buy(ledger, order, fill_price, total_amount)
                else:
                    self._apply_sell(ledger, order, fill_price, total_amount)

                record = ledger.transactions.append(
                    transaction_id=self._new_id(),
                    user_id=order.user_id,
                    symbol=order.symbol,
                    side=order.side.value,
                    quantity=order.quantity,
                    fill_price=fill_price,
                    total_amount=total_amount,
                    executed_at=self._clock.now(),
                )
                transaction = TransactionRecord.from_model(record)

        except OrderRejected as e:
            logger.warning(
                f"Rejected {order.side.value} {order.quantity} {order.symbol} "
                f"for {order.user_id}: {e.message}"
            )
            raise

        logger.info(
            f"Executed {order.side.value} {order.quantity} {order.symbol} @ ${fill_price} "
            f"for {order.user_id} (total ${total_amount})"
        )
        return transaction

    def place_order(
        self,
        user_id: str,
        symbol: str,
        side: Union[OrderSide, str],
        quantity: int,
    ) -> TradeResult:
        """
        Execute an order and report the outcome as a value.

        Store conflicts re-run the whole order (price lookup
        included) up to retry.max_retries more times.
        """
        max_attempts = 1 + self._config.retry.max_retries

        for attempt in range(1, max_attempts + 1):
            try:
                transaction = self.execute(user_id, symbol, side, quantity)
                return TradeResult.ok(transaction, attempts=attempt)
            except TradingException as e:
                if is_retryable(e.code.value) and attempt < max_attempts:
                    logger.warning(
                        f"Retrying order for {user_id} after {e.code.value} "
                        f"(attempt {attempt}/{max_attempts})"
                    )
                    continue
                return TradeResult.failed(e.code.value, e.message, attempts=attempt)

        raise AssertionError("unreachable")

    # =========================================================
    # PRICE RESOLUTION
    # =========================================================

    def _resolve_price(self, symbol: str) -> Decimal:
        try:
            price = self._price_feed.get_current_price(symbol)
        except PriceFeedError as e:
            raise PriceUnavailable(symbol, reason=e.message, cause=e) from e

        try:
            fill_price = self._accountant.quantize(price)
        except InvalidAmount as e:
            raise PriceUnavailable(symbol, reason=f"unusable price {price}", cause=e) from e
        if fill_price <= 0:
            raise PriceUnavailable(symbol, reason=f"non-positive price {price}")
        return fill_price

    # =========================================================
    # LEDGER MUTATIONS
    # =========================================================

    def _apply_buy(
        self,
        ledger: LedgerSession,
        order: TradeOrder,
        fill_price: Decimal,
        total_amount: Decimal,
    ) -> None:
        self._accounts.apply_debit(ledger, order.user_id, total_amount)

        now = self._clock.now()
        position = ledger.positions.get_for_update(order.user_id, order.symbol)
        if position is None:
            state = self._accountant.apply_buy(None, fill_price, order.quantity, total_amount)
            ledger.positions.create(order.user_id, order.symbol, state.quantity, state.average_cost, now)
            return

        current = PositionState(quantity=position.quantity, average_cost=position.average_cost)
        state = self._accountant.apply_buy(current, fill_price, order.quantity, total_amount)
        ledger.positions.update(position, state.quantity, state.average_cost, now)

    def _apply_sell(
        self,
        ledger: LedgerSession,
        order: TradeOrder,
        fill_price: Decimal,
        total_amount: Decimal,
    ) -> None:
        position = ledger.positions.get_for_update(order.user_id, order.symbol)
        if position is None:
            raise PositionNotFound(order.user_id, order.symbol)
        if position.quantity < order.quantity:
            raise InsufficientShares(order.user_id, order.symbol, position.quantity, order.quantity)

        self._accounts.apply_credit(ledger, order.user_id, total_amount)

        current = PositionState(quantity=position.quantity, average_cost=position.average_cost)
        state = self._accountant.apply_sell(current, order.quantity)
        if state.is_closed:
            ledger.positions.delete(position)
        else:
            ledger.positions.update(position, state.quantity, state.average_cost, self._clock.now())
