#!/usr/bin/env python3
"""
Trading Ledger - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Builds the FastAPI application over the trading engine
services and serves it with uvicorn.

============================================================
USAGE
============================================================
Direct execution:
    python app.py --host 0.0.0.0 --port 8000

With uvicorn:
    uvicorn app:create_app --factory

Environment-based configuration (.env supported):
    DATABASE_URL, STARTING_BALANCE, PRICE_FEED_PROVIDER,
    FINNHUB_BASE_URL, FINNHUB_API_KEY, PRICE_FEED_TIMEOUT_SECONDS,
    LEDGER_LOCK_TIMEOUT_SECONDS, ORDER_MAX_RETRIES, LOG_LEVEL

============================================================
"""

import argparse
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import register_exception_handlers, router
from core.exceptions import TradingException
from trading_engine.config import TradingEngineConfig
from trading_engine.container import TradingServices, build_services


logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_app(services: Optional[TradingServices] = None) -> FastAPI:
    """
    Build the application.

    Args:
        services: Pre-built services; built from the environment
            at startup when omitted (and disposed at shutdown)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        app.state.services = services or build_services()
        try:
            yield
        finally:
            if owned:
                app.state.services.close()

    app = FastAPI(
        title="Trading Ledger API",
        description="Paper stock trading against a cash balance with live quotes.",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Services are also available before startup (TestClient without context manager)
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(router)

    @app.get("/")
    def root():
        return {"status": "ok", "message": "Trading Ledger API is running"}

    return app


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="trading-ledger",
        description="Paper stock trading ledger API server",
    )
    parser.add_argument(
        "--host",
        default=os.getenv("API_HOST", "0.0.0.0"),
        help="Bind address (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=int(os.getenv("API_PORT", os.getenv("PORT", "8000"))),
        help="Bind port (default: 8000)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = create_parser().parse_args(argv)

    try:
        config = TradingEngineConfig.from_env()
    except TradingException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    configure_logging(config.log_level)
    logger.info(f"Starting Trading Ledger API on {args.host}:{args.port}")

    services = build_services(config)
    try:
        uvicorn.run(
            create_app(services),
            host=args.host,
            port=args.port,
            log_level=config.log_level.lower(),
            access_log=True,
        )
    finally:
        services.close()
    return 0


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
