"""
Financial Modeling Prep (stable API) client.

  GET /profile?symbol=T                                 -> [ {price, marketCap, ...} ]
  GET /income-statement?symbol=T&period=annual|quarter&limit=N
  GET /balance-sheet-statement?...
  GET /cash-flow-statement?...

No retries. Any non-2xx, transport error or FMP "Error Message" body raises
UpstreamError.
"""

import asyncio
import logging
from typing import Any

import httpx

from valuecheck.errors import UpstreamError

logger = logging.getLogger(__name__)

BASE_URL: str = "https://financialmodelingprep.com/stable"
STATEMENT_PATHS: tuple[str, ...] = (
    "income-statement",
    "balance-sheet-statement",
    "cash-flow-statement",
)
DEFAULT_LIMIT: int = 10


async def fmp_fetch(
    client: httpx.AsyncClient,
    path: str,
    api_key: str,
    **params: Any,
) -> Any:
    if not api_key:
        raise UpstreamError("FMP_API_KEY is not set")
    try:
        resp = await client.get(f"{BASE_URL}/{path}", params={**params, "apikey": api_key})
    except httpx.HTTPError as exc:
        raise UpstreamError(f"FMP /{path} request failed: {exc}") from exc

    if not resp.is_success:
        logger.warning("[FMP][%d] /%s %s", resp.status_code, path, params.get("symbol", ""))
        raise UpstreamError(f"FMP HTTP {resp.status_code}: {resp.reason_phrase}")

    try:
        data = resp.json()
    except ValueError as exc:
        raise UpstreamError(f"FMP /{path} returned invalid JSON") from exc

    if isinstance(data, dict) and data.get("Error Message"):
        raise UpstreamError(f"FMP /{path}: {data['Error Message']}")
    return data


async def fetch_profile(client: httpx.AsyncClient, symbol: str, api_key: str) -> Any:
    return await fmp_fetch(client, "profile", api_key, symbol=symbol)


async def fetch_statements(
    client: httpx.AsyncClient,
    symbol: str,
    period: str,
    api_key: str,
    limit: int = DEFAULT_LIMIT,
) -> tuple[list[dict[str, Any]], ...]:
    """
    Fetch income, balance and cash-flow statements concurrently.
    period is "annual" or "quarterly" (FMP calls the latter "quarter").
    """
    fmp_period = "quarter" if period == "quarterly" else "annual"
    results = await asyncio.gather(*(
        fmp_fetch(client, path, api_key, symbol=symbol, period=fmp_period, limit=limit)
        for path in STATEMENT_PATHS
    ))
    statements = tuple(r if isinstance(r, list) else [] for r in results)
    logger.info(
        "[FMP] %s %s statements: income=%d balance=%d cashflow=%d",
        symbol, fmp_period, *(len(s) for s in statements),
    )
    return statements
