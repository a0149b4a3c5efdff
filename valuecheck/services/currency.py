"""
Currency normalizer.

to_usd(value, unit):
  unit "USD" or not an ISO currency code ("shares", "pure", "USD/shares")
      -> value unchanged
  otherwise -> value * rate(unit -> USD)

Rate lookup order:
  1. per-instance memo (one normalizer per request)
  2. fresh cache entry "fx:{CUR}:USD"
  3. live fetch (written back to the cache)
  4. stale cache entry (up to 7 days) when the live fetch fails
  5. 1.0, with a warning

Step 5 keeps a single FX outage from failing the whole record, at the cost of
reporting non-USD figures unconverted. It is a degrade policy, not a
correctness guarantee.
"""

import logging
import re
from collections.abc import Awaitable, Callable
from datetime import datetime

from sqlalchemy.orm import Session

from valuecheck.repositories.cache_repo import get_cache_entry, put_cache

logger = logging.getLogger(__name__)

RateFetcher = Callable[[str], Awaitable[float]]

FALLBACK_RATE: float = 1.0
_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def fx_cache_key(currency: str) -> str:
    return f"fx:{currency.upper()}:USD"


def is_currency_unit(unit: str | None) -> bool:
    return bool(unit) and bool(_CURRENCY_RE.match(unit.upper()))


class CurrencyNormalizer:
    def __init__(self, db: Session, rate_fetcher: RateFetcher, now: datetime | None = None):
        self.db = db
        self.rate_fetcher = rate_fetcher
        self.now = now
        self._rates: dict[str, float] = {"USD": 1.0}

    async def rate_to_usd(self, currency: str) -> float:
        cur = currency.upper()
        if cur in self._rates:
            return self._rates[cur]

        key = fx_cache_key(cur)
        cached = get_cache_entry(self.db, key, now=self.now)
        if cached is not None and cached[1] == "fresh":
            rate = float(cached[0]["rate"])
        else:
            try:
                rate = float(await self.rate_fetcher(cur))
                put_cache(self.db, key, {"rate": rate}, now=self.now)
            except Exception as exc:
                if cached is not None:
                    rate = float(cached[0]["rate"])
                    logger.warning("[FX] live %s rate failed (%s), using stale rate %.6f", cur, exc, rate)
                else:
                    rate = FALLBACK_RATE
                    logger.warning("[FX] no %s->USD rate available (%s), defaulting to 1.0", cur, exc)

        self._rates[cur] = rate
        return rate

    async def to_usd(self, value: float | None, unit: str | None) -> float | None:
        if value is None or not is_currency_unit(unit) or unit.upper() == "USD":
            return value
        return value * await self.rate_to_usd(unit)
