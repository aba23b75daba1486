"""
Core Module Package.

This package contains the infrastructure components that all
other modules depend on.

Components:
- clock: Time source for ledger writes
- exceptions: Typed failure hierarchy and error codes
"""

from .clock import ClockProtocol, SystemClock, MockClock, ClockFactory
from .exceptions import (
    ErrorCode,
    Severity,
    ErrorClassification,
    TradingException,
    ConfigurationError,
    InvalidConfigError,
    OrderRejected,
    InvalidAmount,
    PriceUnavailable,
    InsufficientFunds,
    InsufficientShares,
    PositionNotFound,
    AccountError,
    AccountNotFound,
    AccountAlreadyExists,
    WatchlistError,
    DuplicateWatchlistEntry,
    WatchlistEntryNotFound,
    StoreError,
    StoreConflict,
    StoreUnavailable,
)
