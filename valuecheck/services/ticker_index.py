"""
Ticker registry and search.

Index payload (cached under "sec:tickers:index"):
  {"map":  {"AAPL": 320193, ...},
   "list": [{"ticker": "AAPL", "title": "Apple Inc.", "cik": 320193}, ...]}

Search scoring (case-insensitive, first rule that matches):
  100  ticker == query
   80  ticker startswith query
   60  title startswith query
   40  title contains " " + query   (word start)
   20  title contains query
Queries shorter than 2 characters return nothing. Scanning stops once more
than 200 matches are collected; results sort by score, then shorter title,
and the top 10 are returned.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from valuecheck.repositories.cache_repo import get_cache_entry, put_cache

logger = logging.getLogger(__name__)

INDEX_CACHE_KEY: str = "sec:tickers:index"
MIN_QUERY_LENGTH: int = 2
MAX_SCAN_MATCHES: int = 200
MAX_RESULTS: int = 10

TickerIndex = dict[str, Any]


def build_index(raw: dict[str, Any]) -> TickerIndex:
    """Shape SEC company_tickers.json into {"map", "list"}."""
    ticker_map: dict[str, int] = {}
    items: list[dict[str, Any]] = []
    for row in (raw or {}).values():
        if not isinstance(row, dict) or not row.get("ticker") or not row.get("cik_str"):
            continue
        ticker = str(row["ticker"]).upper()
        ticker_map[ticker] = row["cik_str"]
        items.append({"ticker": ticker, "title": row.get("title") or "", "cik": row["cik_str"]})
    return {"map": ticker_map, "list": items}


async def load_ticker_index(
    db: Session,
    fetch_raw: Callable[[], Awaitable[dict[str, Any]]],
    *,
    now: datetime | None = None,
) -> TickerIndex:
    """Fresh cached index, else a live fetch, else the stale copy; raises if none."""
    cached = get_cache_entry(db, INDEX_CACHE_KEY, now=now)
    if cached is not None and cached[1] == "fresh":
        return cached[0]

    try:
        index = build_index(await fetch_raw())
    except Exception as exc:
        if cached is not None:
            logger.warning("[SEC] ticker registry refresh failed (%s), serving stale copy", exc)
            return cached[0]
        raise

    put_cache(db, INDEX_CACHE_KEY, index, now=now)
    return index


def symbol_variants(ticker: str) -> list[str]:
    """["BRK.B", "BRK-B"] / ["BRK-B", "BRK.B"] / ["AAPL"]."""
    raw = ticker.strip().upper()
    if "." in raw:
        alt = raw.replace(".", "-", 1)
    elif "-" in raw:
        alt = raw.replace("-", ".", 1)
    else:
        return [raw]
    return [raw, alt]


def lookup_cik(index: TickerIndex, ticker: str) -> str | None:
    """Zero-padded 10-digit CIK for the ticker or its ./- variant."""
    ticker_map = index.get("map") or {}
    for symbol in symbol_variants(ticker):
        cik = ticker_map.get(symbol)
        if cik:
            return str(int(cik)).zfill(10)
    return None


def _score(query: str, ticker: str, title: str) -> int:
    ticker_lower, title_lower = ticker.lower(), title.lower()
    if ticker_lower == query:
        return 100
    if ticker_lower.startswith(query):
        return 80
    if title_lower.startswith(query):
        return 60
    if f" {query}" in title_lower:
        return 40
    if query in title_lower:
        return 20
    return 0


def search_tickers(index: TickerIndex, raw_query: str, limit: int = MAX_RESULTS) -> list[dict[str, str]]:
    query = (raw_query or "").strip().lower()
    if len(query) < MIN_QUERY_LENGTH:
        return []

    matches: list[tuple[int, str, str]] = []
    for item in index.get("list") or []:
        ticker = item.get("ticker") or ""
        title = item.get("title") or ""
        score = _score(query, ticker, title)
        if score:
            matches.append((score, ticker, title))
        if len(matches) > MAX_SCAN_MATCHES:
            break

    matches.sort(key=lambda m: (-m[0], len(m[2])))
    return [{"ticker": t, "title": title} for _, t, title in matches[:limit]]
