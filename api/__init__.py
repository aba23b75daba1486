"""
API Package.

HTTP transport over the trading engine services.
"""

from .router import register_exception_handlers, router

__all__ = ["router", "register_exception_handlers"]
