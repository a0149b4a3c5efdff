"""Trending tickers payload: {"tickers": [...], "lastUpdated": "YYYY-MM-DD"}."""

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from valuecheck.repositories.cache_repo import get_cache, put_cache, utcnow

logger = logging.getLogger(__name__)

TRENDING_CACHE_KEY: str = "trending"


def build_trending(tickers: Sequence[str], now: datetime | None = None) -> dict[str, Any]:
    return {
        "tickers": list(tickers),
        "lastUpdated": (now or utcnow()).date().isoformat(),
    }


def get_trending(
    db: Session,
    tickers: Sequence[str],
    *,
    now: datetime | None = None,
    refresh: bool = False,
) -> dict[str, Any]:
    """Cached payload while it is dated today (UTC); otherwise rebuilt from `tickers`."""
    now = now or utcnow()
    if not refresh:
        cached = get_cache(db, TRENDING_CACHE_KEY, allow_stale=True, now=now)
        if cached is not None and cached.get("lastUpdated") == now.date().isoformat():
            return cached
    payload = build_trending(tickers, now)
    put_cache(db, TRENDING_CACHE_KEY, payload, now=now)
    logger.info("[Trending] rebuilt list (%d tickers)", len(payload["tickers"]))
    return payload
