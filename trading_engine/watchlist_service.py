"""
Trading Engine - Watchlist Service.

Symbols a user follows, with their latest quote.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from core.clock import ClockFactory, ClockProtocol
from core.exceptions import (
    AccountNotFound,
    DuplicateWatchlistEntry,
    PriceUnavailable,
    WatchlistEntryNotFound,
)
from market_data.base import PriceFeed
from market_data.exceptions import PriceFeedError
from storage.ledger_store import LedgerSession, LedgerStore

from .accountant import PositionAccountant
from .types import WatchlistItem, as_utc, normalize_symbol


logger = logging.getLogger(__name__)

PERCENT_QUANTUM = Decimal("0.0001")


class WatchlistService:
    """Per-user watchlist."""

    def __init__(
        self,
        store: LedgerStore,
        price_feed: PriceFeed,
        clock: Optional[ClockProtocol] = None,
    ):
        self._store = store
        self._price_feed = price_feed
        self._clock = clock or ClockFactory.get_clock()
        self._accountant = PositionAccountant()

    def add(self, user_id: str, symbol: str) -> WatchlistItem:
        """
        Follow a symbol.

        Raises:
            PriceUnavailable: Feed does not confirm the symbol
            DuplicateWatchlistEntry: Already followed
            AccountNotFound: No account for the user
        """
        symbol = self._normalize(symbol)
        if not self._price_feed.is_valid_symbol(symbol):
            raise PriceUnavailable(symbol, reason="symbol not confirmed by price feed")

        with self._store.unit_of_work(user_id, "watchlist_add") as ledger:
            self._require_account(ledger, user_id)
            if ledger.watchlist.get(user_id, symbol) is not None:
                raise DuplicateWatchlistEntry(user_id, symbol)
            entry = ledger.watchlist.add(user_id, symbol, self._clock.now())
            item = WatchlistItem(symbol=entry.symbol, added_at=as_utc(entry.added_at))

        logger.info(f"{user_id} added {symbol} to watchlist")
        return item

    def remove(self, user_id: str, symbol: str) -> None:
        """
        Raises:
            WatchlistEntryNotFound: Symbol not followed
        """
        symbol = self._normalize(symbol)
        with self._store.unit_of_work(user_id, "watchlist_remove") as ledger:
            entry = ledger.watchlist.get(user_id, symbol)
            if entry is None:
                raise WatchlistEntryNotFound(user_id, symbol)
            ledger.watchlist.delete(entry)

        logger.info(f"{user_id} removed {symbol} from watchlist")

    def list(self, user_id: str) -> List[WatchlistItem]:
        """Followed symbols in insertion order, quoted now."""
        with self._store.read_scope() as ledger:
            self._require_account(ledger, user_id)
            entries = [(e.symbol, as_utc(e.added_at)) for e in ledger.watchlist.list_for_user(user_id)]

        return [self._item(symbol, added_at) for symbol, added_at in entries]

    def contains(self, user_id: str, symbol: str) -> bool:
        symbol = self._normalize(symbol)
        with self._store.read_scope() as ledger:
            return ledger.watchlist.get(user_id, symbol) is not None

    def clear(self, user_id: str) -> int:
        """Remove every entry. Returns the number removed."""
        with self._store.unit_of_work(user_id, "watchlist_clear") as ledger:
            removed = ledger.watchlist.delete_all_for_user(user_id)

        logger.info(f"{user_id} cleared watchlist ({removed} entries)")
        return removed

    # =========================================================
    # HELPERS
    # =========================================================

    def _item(self, symbol, added_at) -> WatchlistItem:
        try:
            quote = self._price_feed.quote(symbol)
        except PriceFeedError as e:
            logger.warning(f"No quote for watchlist symbol {symbol}: {e.message}")
            return WatchlistItem(symbol=symbol, added_at=added_at)

        current_price = self._accountant.quantize(quote.current_price)
        change, change_percent = self._change(quote.current_price, quote.previous_close)
        return WatchlistItem(
            symbol=symbol,
            added_at=added_at,
            current_price=current_price,
            change=change,
            change_percent=change_percent,
        )

    def _change(
        self,
        current_price: Decimal,
        previous_close: Optional[Decimal],
    ) -> Tuple[Optional[Decimal], Optional[Decimal]]:
        if previous_close is None or previous_close == 0:
            return None, None
        change = current_price - previous_close
        ratio = (change / previous_close).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)
        return self._accountant.quantize(change), ratio * 100

    @staticmethod
    def _require_account(ledger: LedgerSession, user_id: str) -> None:
        if ledger.accounts.get(user_id) is None:
            raise AccountNotFound(user_id)

    @staticmethod
    def _normalize(symbol: str) -> str:
        return normalize_symbol(symbol)
