"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all typed failures of the trading ledger.

- Every failure carries an ErrorCode so callers branch on
  the kind of failure, never on message text
- Carries severity / classification for logging decisions
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
TradingException (base)
├── ConfigurationError
│   └── InvalidConfigError
├── OrderRejected
│   ├── InvalidAmount
│   ├── PriceUnavailable
│   ├── InsufficientFunds
│   ├── InsufficientShares
│   └── PositionNotFound
├── AccountError
│   ├── AccountNotFound
│   └── AccountAlreadyExists
├── WatchlistError
│   ├── DuplicateWatchlistEntry
│   └── WatchlistEntryNotFound
└── StoreError
    ├── StoreConflict      (transient, retry whole order)
    └── StoreUnavailable   (fatal to the request)

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional


# ============================================================
# ERROR CODES
# ============================================================

class ErrorCode(Enum):
    """Machine-readable failure kinds."""

    INVALID_AMOUNT = "INVALID_AMOUNT"
    PRICE_UNAVAILABLE = "PRICE_UNAVAILABLE"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    INSUFFICIENT_SHARES = "INSUFFICIENT_SHARES"
    POSITION_NOT_FOUND = "POSITION_NOT_FOUND"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    ACCOUNT_ALREADY_EXISTS = "ACCOUNT_ALREADY_EXISTS"
    WATCHLIST_DUPLICATE = "WATCHLIST_DUPLICATE"
    WATCHLIST_NOT_FOUND = "WATCHLIST_NOT_FOUND"
    STORE_CONFLICT = "STORE_CONFLICT"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    CONFIGURATION = "CONFIGURATION"


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for logging."""

    LOW = "low"
    """Caller error, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, may impact operations."""

    CRITICAL = "critical"
    """Critical issue, requires immediate action."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Caller can fix the request and resubmit."""

    TRANSIENT = "transient"
    """Temporary error, retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class TradingException(Exception):
    """
    Base exception for all trading ledger errors.

    All exceptions carry:
    - code: failure kind
    - severity: for logging
    - context: for debugging
    - classification: for retry decisions
    - timestamp: when the error occurred
    """

    code: ErrorCode = ErrorCode.STORE_UNAVAILABLE
    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_transient(self) -> bool:
        """Check if the failed operation may succeed when retried."""
        return self.classification == ErrorClassification.TRANSIENT

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/transport."""
        return {
            "type": type(self).__name__,
            "code": self.code.value,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": {k: _plain(v) for k, v in self.context.items()},
            "timestamp": self.timestamp.isoformat(),
        }


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(TradingException):
    """Error in configuration."""

    code = ErrorCode.CONFIGURATION
    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            context={"config_key": key, "actual_value": str(value)[:100], "reason": reason},
        )
        self.key = key


# ============================================================
# ORDER REJECTIONS
# ============================================================

class OrderRejected(TradingException):
    """An order or balance operation was refused before any write."""

    default_severity = Severity.LOW
    default_classification = ErrorClassification.RECOVERABLE


class InvalidAmount(OrderRejected):
    """Non-positive amount or quantity, or a malformed order field."""

    code = ErrorCode.INVALID_AMOUNT

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None, **kwargs):
        context = kwargs.pop("context", {})
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:100]
        super().__init__(message, context=context, **kwargs)
        self.field = field


class PriceUnavailable(OrderRejected):
    """The price feed could not confirm the symbol or a usable price."""

    code = ErrorCode.PRICE_UNAVAILABLE
    default_severity = Severity.MEDIUM

    def __init__(self, symbol: str, reason: str = "no usable price", **kwargs):
        super().__init__(
            f"Price unavailable for {symbol}: {reason}",
            context={"symbol": symbol, "reason": reason},
            **kwargs,
        )
        self.symbol = symbol


class InsufficientFunds(OrderRejected):
    """Debit would drive the cash balance negative."""

    code = ErrorCode.INSUFFICIENT_FUNDS

    def __init__(self, user_id: str, required: Decimal, available: Decimal):
        super().__init__(
            f"Insufficient balance. Required: ${required}, Available: ${available}",
            context={"user_id": user_id, "required": required, "available": available},
        )
        self.required = required
        self.available = available


class InsufficientShares(OrderRejected):
    """Sell quantity exceeds the held quantity."""

    code = ErrorCode.INSUFFICIENT_SHARES

    def __init__(self, user_id: str, symbol: str, held: int, requested: int):
        super().__init__(
            f"Insufficient shares of {symbol}. Held: {held}, requested: {requested}",
            context={"user_id": user_id, "symbol": symbol, "held": held, "requested": requested},
        )
        self.held = held
        self.requested = requested


class PositionNotFound(OrderRejected):
    """Sell for a symbol the user does not hold."""

    code = ErrorCode.POSITION_NOT_FOUND

    def __init__(self, user_id: str, symbol: str):
        super().__init__(
            f"No position in {symbol}",
            context={"user_id": user_id, "symbol": symbol},
        )
        self.symbol = symbol


# ============================================================
# ACCOUNT ERRORS
# ============================================================

class AccountError(TradingException):
    """Base class for account lookups and lifecycle."""

    default_severity = Severity.LOW


class AccountNotFound(AccountError):
    """No account exists for the user."""

    code = ErrorCode.ACCOUNT_NOT_FOUND

    def __init__(self, user_id: str):
        super().__init__(f"Account not found for user {user_id}", context={"user_id": user_id})
        self.user_id = user_id


class AccountAlreadyExists(AccountError):
    """Account opening for a user that already has one."""

    code = ErrorCode.ACCOUNT_ALREADY_EXISTS

    def __init__(self, user_id: str):
        super().__init__(f"Account already exists for user {user_id}", context={"user_id": user_id})
        self.user_id = user_id


# ============================================================
# WATCHLIST ERRORS
# ============================================================

class WatchlistError(TradingException):
    """Base class for watchlist failures."""

    default_severity = Severity.LOW


class DuplicateWatchlistEntry(WatchlistError):
    """Symbol already on the user's watchlist."""

    code = ErrorCode.WATCHLIST_DUPLICATE

    def __init__(self, user_id: str, symbol: str):
        super().__init__(
            f"{symbol} is already in the watchlist",
            context={"user_id": user_id, "symbol": symbol},
        )


class WatchlistEntryNotFound(WatchlistError):
    """Symbol not on the user's watchlist."""

    code = ErrorCode.WATCHLIST_NOT_FOUND

    def __init__(self, user_id: str, symbol: str):
        super().__init__(
            f"{symbol} is not in the watchlist",
            context={"user_id": user_id, "symbol": symbol},
        )


# ============================================================
# STORE ERRORS
# ============================================================

class StoreError(TradingException):
    """Base class for durable storage failures."""

    default_severity = Severity.HIGH


class StoreConflict(StoreError):
    """
    Concurrent mutation detected (lock contention, stale row
    version, unique-key race).

    No partial state exists; the whole order may be retried.
    """

    code = ErrorCode.STORE_CONFLICT
    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.TRANSIENT


class StoreUnavailable(StoreError):
    """Durable storage failed; the request is reported as failed."""

    code = ErrorCode.STORE_UNAVAILABLE
    default_severity = Severity.CRITICAL
    default_classification = ErrorClassification.NON_RECOVERABLE


__all__ = [
    "ErrorCode",
    "Severity",
    "ErrorClassification",
    "TradingException",
    "ConfigurationError",
    "InvalidConfigError",
    "OrderRejected",
    "InvalidAmount",
    "PriceUnavailable",
    "InsufficientFunds",
    "InsufficientShares",
    "PositionNotFound",
    "AccountError",
    "AccountNotFound",
    "AccountAlreadyExists",
    "WatchlistError",
    "DuplicateWatchlistEntry",
    "WatchlistEntryNotFound",
    "StoreError",
    "StoreConflict",
    "StoreUnavailable",
]
