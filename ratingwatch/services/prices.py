"""Current market price lookup via yfinance."""

from __future__ import annotations

import yfinance as yf

from ratingwatch.core.data_helpers import run_in_executor, safe_float
from ratingwatch.core.logging import get_logger

logger = get_logger("services.prices")


class PriceUnavailableError(LookupError):
    """Yahoo Finance returned no usable price for a ticker."""


def _fetch_price_sync(symbol: str) -> float:
    """Fetch the regular market price (blocking)."""
    info = yf.Ticker(symbol).info or {}
    price = safe_float(info.get("regularMarketPrice"))
    if price is None:
        raise PriceUnavailableError(f"no regularMarketPrice for {symbol}")
    return price


async def get_current_price(symbol: str) -> float:
    """Current price for ``symbol``, or 0.0 when it cannot be fetched."""
    try:
        return await run_in_executor(_fetch_price_sync, symbol)
    except Exception as e:  # yfinance raises a wide variety of errors
        logger.warning(f"Could not fetch price for {symbol}: {e}")
        return 0.0
