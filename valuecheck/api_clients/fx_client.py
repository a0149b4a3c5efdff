"""
FX-rate client (yfinance).

Rate for CUR -> USD is the last close of the Yahoo pair "CURUSD=X" over the
past five sessions. yfinance is blocking, so the lookup runs in a worker
thread.
"""

import asyncio
import logging

import yfinance as yf

from valuecheck.errors import UpstreamError

logger = logging.getLogger(__name__)


def _last_close(currency: str) -> float:
    pair = f"{currency}USD=X"
    try:
        hist = yf.Ticker(pair).history(period="5d")
    except Exception as exc:
        raise UpstreamError(f"yfinance lookup failed for {pair}: {exc}") from exc

    if hist is None or hist.empty or "Close" not in hist:
        raise UpstreamError(f"No FX data for {pair}")
    closes = hist["Close"].dropna()
    if closes.empty:
        raise UpstreamError(f"No FX close for {pair}")
    rate = float(closes.iloc[-1])
    if rate <= 0:
        raise UpstreamError(f"Non-positive FX rate for {pair}: {rate}")
    return rate


async def fetch_usd_rate(currency: str) -> float:
    """Multiplier converting one unit of `currency` into USD."""
    rate = await asyncio.to_thread(_last_close, currency.upper())
    logger.info("[FX] %s->USD = %.6f", currency.upper(), rate)
    return rate
