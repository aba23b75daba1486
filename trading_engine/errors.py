"""
Trading Engine - Error Registry.

============================================================
PURPOSE
============================================================
Static information about every error code the ledger raises.

ERROR CATEGORIES:
1. Validation Errors - Malformed order or amount
2. Market Data Errors - Price feed could not confirm a price
3. Ledger Errors - Funds / shares / position checks failed
4. Account Errors - Account or watchlist lookups
5. Storage Errors - Durable storage failures

RETRYABLE vs NON-RETRYABLE:
- Retryable: StoreConflict only; no partial state exists, so
  the whole order can run again
- Non-retryable: Everything else

============================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Set

from core.exceptions import ErrorCode, Severity


# ============================================================
# ERROR CATEGORIES
# ============================================================

class ErrorCategory(Enum):
    """Error category classification."""

    VALIDATION = "VALIDATION"
    """Order or amount failed validation."""

    MARKET_DATA = "MARKET_DATA"
    """Price feed failure."""

    LEDGER = "LEDGER"
    """Funds, shares or position check failed."""

    ACCOUNT = "ACCOUNT"
    """Account or watchlist state."""

    STORAGE = "STORAGE"
    """Durable storage failure."""

    CONFIGURATION = "CONFIGURATION"
    """Invalid configuration."""


# ============================================================
# ERROR CODE REGISTRY
# ============================================================

@dataclass(frozen=True)
class ErrorCodeInfo:
    """Information about an error code."""

    code: str
    """Error code."""

    category: ErrorCategory
    """Error category."""

    severity: Severity
    """Error severity."""

    is_retryable: bool
    """Whether the whole order may be retried."""

    http_status: int
    """Status used by the HTTP transport."""

    description: str
    """Human-readable description."""

    recommended_action: str
    """Recommended action to take."""


ERROR_CODES: Dict[str, ErrorCodeInfo] = {
    # ========== VALIDATION ERRORS ==========
    ErrorCode.INVALID_AMOUNT.value: ErrorCodeInfo(
        code=ErrorCode.INVALID_AMOUNT.value,
        category=ErrorCategory.VALIDATION,
        severity=Severity.LOW,
        is_retryable=False,
        http_status=400,
        description="Amount, quantity, symbol or side is invalid",
        recommended_action="Correct the request",
    ),

    # ========== MARKET DATA ERRORS ==========
    ErrorCode.PRICE_UNAVAILABLE.value: ErrorCodeInfo(
        code=ErrorCode.PRICE_UNAVAILABLE.value,
        category=ErrorCategory.MARKET_DATA,
        severity=Severity.MEDIUM,
        is_retryable=False,
        http_status=400,
        description="Price feed could not confirm the symbol or a usable price",
        recommended_action="Verify the symbol or retry later",
    ),

    # ========== LEDGER ERRORS ==========
    ErrorCode.INSUFFICIENT_FUNDS.value: ErrorCodeInfo(
        code=ErrorCode.INSUFFICIENT_FUNDS.value,
        category=ErrorCategory.LEDGER,
        severity=Severity.LOW,
        is_retryable=False,
        http_status=400,
        description="Cash balance does not cover the amount",
        recommended_action="Reduce order size or deposit funds",
    ),
    ErrorCode.INSUFFICIENT_SHARES.value: ErrorCodeInfo(
        code=ErrorCode.INSUFFICIENT_SHARES.value,
        category=ErrorCategory.LEDGER,
        severity=Severity.LOW,
        is_retryable=False,
        http_status=400,
        description="Sell quantity exceeds the held quantity",
        recommended_action="Reduce sell quantity",
    ),
    ErrorCode.POSITION_NOT_FOUND.value: ErrorCodeInfo(
        code=ErrorCode.POSITION_NOT_FOUND.value,
        category=ErrorCategory.LEDGER,
        severity=Severity.LOW,
        is_retryable=False,
        http_status=400,
        description="No position held in the symbol",
        recommended_action="Check the portfolio before selling",
    ),

    # ========== ACCOUNT ERRORS ==========
    ErrorCode.ACCOUNT_NOT_FOUND.value: ErrorCodeInfo(
        code=ErrorCode.ACCOUNT_NOT_FOUND.value,
        category=ErrorCategory.ACCOUNT,
        severity=Severity.LOW,
        is_retryable=False,
        http_status=404,
        description="No account exists for the user",
        recommended_action="Open an account first",
    ),
    ErrorCode.ACCOUNT_ALREADY_EXISTS.value: ErrorCodeInfo(
        code=ErrorCode.ACCOUNT_ALREADY_EXISTS.value,
        category=ErrorCategory.ACCOUNT,
        severity=Severity.LOW,
        is_retryable=False,
        http_status=409,
        description="The user already has an account",
        recommended_action="Use the existing account",
    ),
    ErrorCode.WATCHLIST_DUPLICATE.value: ErrorCodeInfo(
        code=ErrorCode.WATCHLIST_DUPLICATE.value,
        category=ErrorCategory.ACCOUNT,
        severity=Severity.LOW,
        is_retryable=False,
        http_status=409,
        description="Symbol is already in the watchlist",
        recommended_action="None",
    ),
    ErrorCode.WATCHLIST_NOT_FOUND.value: ErrorCodeInfo(
        code=ErrorCode.WATCHLIST_NOT_FOUND.value,
        category=ErrorCategory.ACCOUNT,
        severity=Severity.LOW,
        is_retryable=False,
        http_status=404,
        description="Symbol is not in the watchlist",
        recommended_action="None",
    ),

    # ========== STORAGE ERRORS ==========
    ErrorCode.STORE_CONFLICT.value: ErrorCodeInfo(
        code=ErrorCode.STORE_CONFLICT.value,
        category=ErrorCategory.STORAGE,
        severity=Severity.MEDIUM,
        is_retryable=True,
        http_status=409,
        description="Concurrent modification of the same account",
        recommended_action="Retry the whole order",
    ),
    ErrorCode.STORE_UNAVAILABLE.value: ErrorCodeInfo(
        code=ErrorCode.STORE_UNAVAILABLE.value,
        category=ErrorCategory.STORAGE,
        severity=Severity.CRITICAL,
        is_retryable=False,
        http_status=503,
        description="Durable storage failed",
        recommended_action="Check database health",
    ),

    # ========== CONFIGURATION ERRORS ==========
    ErrorCode.CONFIGURATION.value: ErrorCodeInfo(
        code=ErrorCode.CONFIGURATION.value,
        category=ErrorCategory.CONFIGURATION,
        severity=Severity.HIGH,
        is_retryable=False,
        http_status=500,
        description="Configuration is invalid",
        recommended_action="Fix the environment and restart",
    ),
}


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_error_info(code: str) -> ErrorCodeInfo:
    """
    Get error info for a code.

    Args:
        code: Error code

    Returns:
        ErrorCodeInfo or default unknown error
    """
    return ERROR_CODES.get(code, ErrorCodeInfo(
        code=code,
        category=ErrorCategory.STORAGE,
        severity=Severity.HIGH,
        is_retryable=False,
        http_status=500,
        description=f"Unknown error code: {code}",
        recommended_action="Investigate the error",
    ))


def is_retryable(code: str) -> bool:
    """Check if an error code is retryable."""
    return get_error_info(code).is_retryable


# ============================================================
# RETRYABLE ERROR SETS
# ============================================================

RETRYABLE_ERROR_CODES: Set[str] = {
    code for code, info in ERROR_CODES.items() if info.is_retryable
}

CRITICAL_ERROR_CODES: Set[str] = {
    code for code, info in ERROR_CODES.items()
    if info.severity == Severity.CRITICAL
}
