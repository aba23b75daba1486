"""
FastAPI Router for the Trading Ledger.

Provides REST API for:
- Account open / balance / deposit / withdraw / close
- Buy and sell orders
- Portfolio views, valuation and transaction history
- Watchlist
- Quotes: full quote, price only, symbol validation, batch

Every typed failure is rendered as ErrorResponse with the
HTTP status from the error registry.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse

from core.exceptions import ErrorClassification, PriceUnavailable, TradingException
from market_data.exceptions import PriceFeedError
from trading_engine.container import TradingServices
from trading_engine.errors import get_error_info
from trading_engine.types import OrderSide, TradeResult, normalize_symbol

from api.schemas import (
    AccountResponse,
    AmountRequest,
    BalanceResponse,
    BatchQuoteRequest,
    BatchQuoteResponse,
    ClearWatchlistResponse,
    CloseAccountResponse,
    ErrorResponse,
    OpenAccountRequest,
    OrderRequest,
    OrderResponse,
    PortfolioSummaryResponse,
    PositionResponse,
    PriceResponse,
    QuoteResponse,
    SymbolValidationResponse,
    TransactionResponse,
    ValuationResponse,
    WatchlistAddRequest,
    WatchlistCheckResponse,
    WatchlistItemResponse,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Trading Ledger"])


# =============================================================
# HELPER: Service dependency
# =============================================================

def get_services(request: Request) -> TradingServices:
    return request.app.state.services


# =============================================================
# HELPER: Error rendering
# =============================================================

def error_response(code: str, message: str) -> JSONResponse:
    info = get_error_info(code)
    body = ErrorResponse(error=info.category.value, code=code, message=message)
    return JSONResponse(status_code=info.http_status, content=body.model_dump())


async def trading_exception_handler(request: Request, exc: TradingException) -> JSONResponse:
    if exc.classification == ErrorClassification.NON_RECOVERABLE:
        logger.error(f"{request.method} {request.url.path} failed: {exc.to_dict()}")
    return error_response(exc.code.value, exc.message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TradingException, trading_exception_handler)


def _order_response(result: TradeResult):
    if not result.success:
        return error_response(result.error_code, result.error_message)
    return OrderResponse(
        transaction=TransactionResponse.from_record(result.transaction),
        attempts=result.attempts,
    )


# =============================================================
# ACCOUNT ENDPOINTS
# =============================================================

@router.post(
    "/users/{user_id}/account",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
)
def open_account(
    user_id: str,
    body: Optional[OpenAccountRequest] = None,
    services: TradingServices = Depends(get_services),
):
    """Open an account with the default or given starting balance."""
    starting_balance = body.starting_balance if body else None
    snapshot = services.accounts.open_account(user_id, starting_balance)
    return AccountResponse.from_snapshot(snapshot)


@router.get("/users/{user_id}/account", response_model=AccountResponse)
def get_account(user_id: str, services: TradingServices = Depends(get_services)):
    return AccountResponse.from_snapshot(services.accounts.get_account(user_id))


@router.delete("/users/{user_id}/account", response_model=CloseAccountResponse)
def close_account(user_id: str, services: TradingServices = Depends(get_services)):
    """Delete account, positions and watchlist; history is kept."""
    deleted = services.accounts.close_account(user_id)
    return CloseAccountResponse(user_id=user_id, deleted=deleted)


@router.get("/users/{user_id}/balance", response_model=BalanceResponse)
def get_balance(user_id: str, services: TradingServices = Depends(get_services)):
    return BalanceResponse(user_id=user_id, cash_balance=services.accounts.get_balance(user_id))


@router.post("/users/{user_id}/deposit", response_model=BalanceResponse)
def deposit(user_id: str, body: AmountRequest, services: TradingServices = Depends(get_services)):
    balance = services.accounts.credit(user_id, body.amount)
    return BalanceResponse(user_id=user_id, cash_balance=balance)


@router.post("/users/{user_id}/withdraw", response_model=BalanceResponse)
def withdraw(user_id: str, body: AmountRequest, services: TradingServices = Depends(get_services)):
    balance = services.accounts.debit(user_id, body.amount)
    return BalanceResponse(user_id=user_id, cash_balance=balance)


# =============================================================
# ORDER ENDPOINTS
# =============================================================

@router.post(
    "/users/{user_id}/orders/buy",
    response_model=OrderResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def buy(user_id: str, body: OrderRequest, services: TradingServices = Depends(get_services)):
    result = services.trades.place_order(user_id, body.symbol, OrderSide.BUY, body.quantity)
    return _order_response(result)


@router.post(
    "/users/{user_id}/orders/sell",
    response_model=OrderResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def sell(user_id: str, body: OrderRequest, services: TradingServices = Depends(get_services)):
    result = services.trades.place_order(user_id, body.symbol, OrderSide.SELL, body.quantity)
    return _order_response(result)


# =============================================================
# PORTFOLIO ENDPOINTS
# =============================================================

@router.get("/users/{user_id}/portfolio", response_model=List[PositionResponse])
def get_portfolio(user_id: str, services: TradingServices = Depends(get_services)):
    return [PositionResponse.from_view(v) for v in services.portfolio.get_portfolio(user_id)]


@router.get("/users/{user_id}/portfolio/summary", response_model=PortfolioSummaryResponse)
def get_portfolio_summary(user_id: str, services: TradingServices = Depends(get_services)):
    return PortfolioSummaryResponse.from_summary(services.portfolio.get_summary(user_id))


@router.get("/users/{user_id}/portfolio/value", response_model=ValuationResponse)
def get_portfolio_value(user_id: str, services: TradingServices = Depends(get_services)):
    return ValuationResponse.from_valuation(services.portfolio.value_portfolio(user_id))


@router.get("/users/{user_id}/transactions", response_model=List[TransactionResponse])
def get_transactions(
    user_id: str,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    services: TradingServices = Depends(get_services),
):
    """Transaction history, newest first."""
    records = services.portfolio.get_transactions(user_id, limit)
    return [TransactionResponse.from_record(r) for r in records]


@router.get("/users/{user_id}/transactions/{symbol}", response_model=List[TransactionResponse])
def get_transactions_by_symbol(user_id: str, symbol: str, services: TradingServices = Depends(get_services)):
    records = services.portfolio.get_transactions_by_symbol(user_id, symbol)
    return [TransactionResponse.from_record(r) for r in records]


# =============================================================
# WATCHLIST ENDPOINTS
# =============================================================

@router.get("/users/{user_id}/watchlist", response_model=List[WatchlistItemResponse])
def get_watchlist(user_id: str, services: TradingServices = Depends(get_services)):
    return [WatchlistItemResponse.from_item(i) for i in services.watchlist.list(user_id)]


@router.post(
    "/users/{user_id}/watchlist",
    response_model=WatchlistItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_to_watchlist(user_id: str, body: WatchlistAddRequest, services: TradingServices = Depends(get_services)):
    return WatchlistItemResponse.from_item(services.watchlist.add(user_id, body.symbol))


@router.get("/users/{user_id}/watchlist/{symbol}", response_model=WatchlistCheckResponse)
def check_watchlist(user_id: str, symbol: str, services: TradingServices = Depends(get_services)):
    return WatchlistCheckResponse(
        symbol=normalize_symbol(symbol),
        in_watchlist=services.watchlist.contains(user_id, symbol),
    )


@router.delete("/users/{user_id}/watchlist/{symbol}", status_code=status.HTTP_204_NO_CONTENT)
def remove_from_watchlist(user_id: str, symbol: str, services: TradingServices = Depends(get_services)):
    services.watchlist.remove(user_id, symbol)


@router.delete("/users/{user_id}/watchlist", response_model=ClearWatchlistResponse)
def clear_watchlist(user_id: str, services: TradingServices = Depends(get_services)):
    return ClearWatchlistResponse(removed=services.watchlist.clear(user_id))


# =============================================================
# QUOTE ENDPOINTS
# =============================================================

@router.get("/quotes/{symbol}", response_model=QuoteResponse)
def get_quote(symbol: str, services: TradingServices = Depends(get_services)):
    symbol = normalize_symbol(symbol)
    try:
        quote = services.price_feed.quote(symbol)
    except PriceFeedError as e:
        raise PriceUnavailable(symbol, reason=e.message, cause=e) from e
    return QuoteResponse.from_quote(quote)


@router.get("/quotes/{symbol}/price", response_model=PriceResponse)
def get_price(symbol: str, services: TradingServices = Depends(get_services)):
    symbol = normalize_symbol(symbol)
    try:
        price = services.price_feed.get_current_price(symbol)
    except PriceFeedError as e:
        raise PriceUnavailable(symbol, reason=e.message, cause=e) from e
    return PriceResponse(symbol=symbol, current_price=price)


@router.get("/quotes/{symbol}/validate", response_model=SymbolValidationResponse)
def validate_symbol(symbol: str, services: TradingServices = Depends(get_services)):
    """Whether the feed knows the symbol, with its price when it does."""
    symbol = normalize_symbol(symbol)
    if not services.price_feed.is_valid_symbol(symbol):
        return SymbolValidationResponse(symbol=symbol, valid=False)
    try:
        price = services.price_feed.get_current_price(symbol)
    except PriceFeedError as e:
        raise PriceUnavailable(symbol, reason=e.message, cause=e) from e
    return SymbolValidationResponse(symbol=symbol, valid=True, current_price=price)


@router.post("/quotes", response_model=BatchQuoteResponse)
def get_quotes(body: BatchQuoteRequest, services: TradingServices = Depends(get_services)):
    """Quote several symbols; per-symbol failures are reported, not raised."""
    symbols = [normalize_symbol(s) for s in body.symbols]
    quotes, errors = services.price_feed.quote_many(symbols)
    return BatchQuoteResponse(
        quotes={symbol: QuoteResponse.from_quote(q) for symbol, q in quotes.items()},
        errors={symbol: e.message for symbol, e in errors.items()},
    )
