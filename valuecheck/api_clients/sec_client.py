"""
SEC EDGAR client.

  ticker registry   https://www.sec.gov/files/company_tickers.json
                    {"0": {"cik_str": 320193, "ticker": "AAPL", "title": "Apple Inc."}, ...}
  company facts     https://data.sec.gov/api/xbrl/companyfacts/CIK##########.json

SEC rejects requests without a descriptive User-Agent. No retries: a failed
call raises UpstreamError at once and the orchestrator decides what to serve.
"""

import logging
from typing import Any

import httpx

from valuecheck.errors import IdentifierNotFoundError, UpstreamError

logger = logging.getLogger(__name__)

TICKERS_URL: str = "https://www.sec.gov/files/company_tickers.json"
COMPANY_FACTS_URL: str = "https://data.sec.gov/api/xbrl/companyfacts/CIK{cik}.json"


def pad_cik(cik: int | str) -> str:
    return str(int(cik)).zfill(10)


async def fetch_json(client: httpx.AsyncClient, url: str, user_agent: str) -> Any:
    try:
        resp = await client.get(
            url,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
        )
    except httpx.HTTPError as exc:
        raise UpstreamError(f"SEC request failed for {url}: {exc}") from exc

    if resp.status_code == 404:
        raise IdentifierNotFoundError(f"SEC returned 404 for {url}")
    if not resp.is_success:
        logger.warning("[SEC][%d] %s", resp.status_code, url)
        raise UpstreamError(f"SEC HTTP {resp.status_code}: {resp.reason_phrase}")

    try:
        return resp.json()
    except ValueError as exc:
        raise UpstreamError(f"SEC returned invalid JSON for {url}") from exc


async def fetch_ticker_index(client: httpx.AsyncClient, user_agent: str) -> dict[str, Any]:
    """GET company_tickers.json (raw; ticker_index.build_index shapes it)."""
    data = await fetch_json(client, TICKERS_URL, user_agent)
    if not isinstance(data, dict):
        raise UpstreamError("SEC ticker registry has an unexpected shape")
    logger.info("[SEC] fetched ticker registry (%d entries)", len(data))
    return data


async def fetch_company_facts(client: httpx.AsyncClient, cik: int | str, user_agent: str) -> dict[str, Any]:
    url = COMPANY_FACTS_URL.format(cik=pad_cik(cik))
    data = await fetch_json(client, url, user_agent)
    if not isinstance(data, dict):
        raise UpstreamError(f"SEC company facts for CIK {cik} has an unexpected shape")
    return data
