"""
Stock assembly orchestrator.

get_stock(ticker, period, ...) for cache key "stock:{TICKER}:{period}":

  1. fresh cache entry                          -> return it       (hit)
  2. charge the daily new-ticker quota          -> QuotaExceededError if denied
  3. resolve ticker (then its ./- variant)      -> identifier
  4. fetch facts and quote concurrently; a failed quote means price = null
  5. select / convert / compute -> CompanyRecord
  6. write fresh cache entry                    -> return it       (miss)
  7. any failure in 3-5: serve the stale entry if one exists (stale),
     otherwise re-raise

No retries anywhere: a single upstream failure goes straight to step 7.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Literal

from sqlalchemy.orm import Session

from valuecheck.config import Settings
from valuecheck.errors import QuotaExceededError
from valuecheck.orchestrator.providers import Providers
from valuecheck.repositories.cache_repo import get_cache_entry, put_cache
from valuecheck.repositories.usage_repo import charge_ticker
from valuecheck.services.currency import CurrencyNormalizer
from valuecheck.services.fact_selector import Period
from valuecheck.services.stock_metrics import build_company_record

logger = logging.getLogger(__name__)

CacheStatus = Literal["hit", "miss", "stale"]
PERIODS: tuple[str, ...] = ("annual", "quarterly")


def cache_key(ticker: str, period: Period) -> str:
    return f"stock:{ticker.strip().upper()}:{period}"


class StockResult:
    def __init__(self, ticker: str):
        self.ticker = ticker
        self.payload: dict[str, Any] | None = None
        self.cache_status: CacheStatus = "miss"
        self.logs: list[str] = []

    def log(self, msg: str) -> None:
        logger.info(msg)
        self.logs.append(msg)


async def get_stock(
    ticker: str,
    period: Period,
    db: Session,
    settings: Settings,
    providers: Providers,
    *,
    now: datetime | None = None,
) -> StockResult:
    ticker = ticker.strip().upper()
    key = cache_key(ticker, period)
    result = StockResult(ticker)

    # Step 1: cache
    cached = get_cache_entry(db, key, now=now)
    if cached is not None and cached[1] == "fresh":
        result.payload = cached[0]
        result.cache_status = "hit"
        result.log(f"[Stock] {key} served from cache")
        return result

    # Step 2: quota (before any upstream call)
    if not charge_ticker(db, ticker, settings.daily_new_ticker_cap, now=now):
        result.log(f"[Stock] {ticker} denied: daily cap {settings.daily_new_ticker_cap} reached")
        raise QuotaExceededError("Daily ticker cap reached")

    try:
        # Step 3: resolve
        identifier = await providers.resolve(ticker)
        result.log(f"[Stock] {ticker} resolved to {identifier}")

        # Step 4: facts + quote
        facts, quote = await asyncio.gather(
            providers.fetch_facts(identifier, period),
            providers.fetch_quote(ticker),
            return_exceptions=True,
        )
        if isinstance(facts, BaseException):
            raise facts
        if isinstance(quote, BaseException):
            result.log(f"[Stock] {ticker} quote unavailable, continuing without price: {quote}")
            quote = None

        # Step 5: compute
        normalizer = CurrencyNormalizer(db, providers.fetch_fx_rate, now=now)
        record = await build_company_record(facts, quote, ticker, period, normalizer, now=now)
        payload = record.to_payload()

    except Exception as exc:
        # Step 7: degraded fallback
        if cached is not None:
            result.log(f"[Stock] {ticker} live fetch failed ({exc}), serving stale {key}")
            result.payload = cached[0]
            result.cache_status = "stale"
            return result
        logger.warning("[Stock] %s failed with no stale entry: %s", key, exc)
        raise

    # Step 6: cache write
    put_cache(db, key, payload, now=now)
    result.payload = payload
    result.cache_status = "miss"
    result.log(f"[Stock] {key} computed and cached")
    return result
