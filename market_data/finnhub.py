"""
Finnhub Price Feed - Quote endpoint over HTTP.

============================================================
ENDPOINT
============================================================
GET {base_url}/quote?symbol=SYM&token=KEY

Response fields:
- c: current price
- pc: previous close
- h / l / o: day high / low / open
- t: quote time (unix seconds)

An unknown symbol is answered with c == 0, not with an
HTTP error.

============================================================
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from market_data.base import PriceFeed
from market_data.exceptions import QuoteNotFound, QuoteUnavailable
from market_data.models import Quote


logger = logging.getLogger(__name__)


class FinnhubPriceFeed(PriceFeed):
    """
    Price feed backed by the Finnhub REST API.

    The httpx client is created per feed and reused for every
    request; pass a transport to route requests elsewhere.
    """

    DEFAULT_BASE_URL = "https://finnhub.io/api/v1"
    DEFAULT_TIMEOUT = 5.0

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    @property
    def name(self) -> str:
        return "finnhub"

    def quote(self, symbol: str) -> Quote:
        symbol = self.normalize_symbol(symbol)
        if not symbol:
            raise QuoteNotFound("Empty symbol", symbol=symbol, feed_name=self.name)

        try:
            response = self._client.get(
                "/quote",
                params={"symbol": symbol, "token": self._api_key},
            )
            response.raise_for_status()
            data = response.json(parse_float=Decimal)
        except httpx.HTTPStatusError as e:
            logger.error(f"Finnhub HTTP error for {symbol}: {e.response.status_code}")
            raise QuoteUnavailable(
                f"HTTP {e.response.status_code}",
                symbol=symbol,
                feed_name=self.name,
                status_code=e.response.status_code,
                original_error=e,
            ) from e
        except httpx.TimeoutException as e:
            logger.error(f"Finnhub request timed out for {symbol}")
            raise QuoteUnavailable(
                "Request timed out", symbol=symbol, feed_name=self.name, original_error=e
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Finnhub transport error for {symbol}: {e}")
            raise QuoteUnavailable(
                "Transport error", symbol=symbol, feed_name=self.name, original_error=e
            ) from e
        except ValueError as e:
            logger.error(f"Finnhub returned malformed JSON for {symbol}")
            raise QuoteUnavailable(
                "Malformed response body", symbol=symbol, feed_name=self.name, original_error=e
            ) from e

        return self.normalize(symbol, data)

    def normalize(self, symbol: str, data: Any) -> Quote:
        """
        Convert a raw quote body into a Quote.

        Raises:
            QuoteNotFound: c missing, zero or negative
            QuoteUnavailable: Body is not an object or a field is not a finite number
        """
        if not isinstance(data, dict):
            raise QuoteUnavailable(
                "Response body is not an object",
                symbol=symbol,
                feed_name=self.name,
                context={"body_type": type(data).__name__},
            )

        current = self._decimal(symbol, data, "c")
        if current is None or current <= 0:
            raise QuoteNotFound(
                "No usable current price",
                symbol=symbol,
                feed_name=self.name,
                context={"c": str(data.get("c"))},
            )

        as_of = None
        timestamp = data.get("t")
        if isinstance(timestamp, (int, Decimal)) and timestamp > 0:
            as_of = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)

        return Quote(
            symbol=symbol,
            current_price=current,
            previous_close=self._decimal(symbol, data, "pc"),
            high=self._decimal(symbol, data, "h"),
            low=self._decimal(symbol, data, "l"),
            open=self._decimal(symbol, data, "o"),
            as_of=as_of,
            source_name=self.name,
        )

    def _decimal(self, symbol: str, data: dict, field_name: str) -> Optional[Decimal]:
        value = data.get(field_name)
        if value is None:
            return None
        if isinstance(value, bool):
            raise QuoteUnavailable(
                f"Field {field_name} is not numeric", symbol=symbol, feed_name=self.name
            )
        try:
            number = Decimal(str(value))
        except InvalidOperation as e:
            raise QuoteUnavailable(
                f"Field {field_name} is not numeric",
                symbol=symbol,
                feed_name=self.name,
                original_error=e,
            ) from e
        if not number.is_finite():
            raise QuoteUnavailable(
                f"Field {field_name} is not finite", symbol=symbol, feed_name=self.name
            )
        return number

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "FinnhubPriceFeed":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
