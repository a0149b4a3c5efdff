"""
Upstream provider wiring.

The orchestrator only sees a Providers bundle of async callables, so tests
can swap in fakes and FACTS_PROVIDER can switch the facts source:

  resolve(ticker)              -> identifier (SEC: 10-digit CIK, FMP: symbol)
  fetch_facts(identifier, p)   -> FactsDocument
  fetch_quote(ticker)          -> Quote | None   (always FMP /profile)
  fetch_fx_rate(currency)      -> float          (yfinance)
  load_ticker_index()          -> {"map", "list"} (SEC registry, for /search)

Both resolvers try the ticker and then its "." <-> "-" variant before raising
IdentifierNotFoundError.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx
from sqlalchemy.orm import Session

from valuecheck.api_clients import fmp_client, fx_client, sec_client
from valuecheck.config import Settings
from valuecheck.errors import IdentifierNotFoundError
from valuecheck.normalizers.fmp_normalizer import Quote, normalize_profile, normalize_statements
from valuecheck.normalizers.sec_normalizer import normalize_company_facts
from valuecheck.services.currency import RateFetcher
from valuecheck.services.fact_selector import FactsDocument, Period
from valuecheck.services.ticker_index import TickerIndex, load_ticker_index, lookup_cik, symbol_variants

logger = logging.getLogger(__name__)


@dataclass
class Providers:
    resolve: Callable[[str], Awaitable[str]]
    fetch_facts: Callable[[str, Period], Awaitable[FactsDocument]]
    fetch_quote: Callable[[str], Awaitable[Quote | None]]
    fetch_fx_rate: RateFetcher
    load_ticker_index: Callable[[], Awaitable[TickerIndex]]


def build_providers(settings: Settings, db: Session, client: httpx.AsyncClient) -> Providers:
    user_agent = settings.sec_user_agent
    api_key = settings.fmp_api_key
    profiles: dict[str, Quote | None] = {}

    async def profile_for(symbol: str) -> Quote | None:
        if symbol not in profiles:
            profiles[symbol] = normalize_profile(await fmp_client.fetch_profile(client, symbol, api_key))
        return profiles[symbol]

    # --- registry -----------------------------------------------------------
    async def load_index() -> TickerIndex:
        return await load_ticker_index(db, lambda: sec_client.fetch_ticker_index(client, user_agent))

    # --- quote (FMP) --------------------------------------------------------
    async def fetch_quote(ticker: str) -> Quote | None:
        if not api_key:
            logger.info("[FMP] no API key configured, quote for %s unavailable", ticker)
            return None
        for symbol in symbol_variants(ticker):
            quote = await profile_for(symbol)
            if quote is not None:
                return quote
        return None

    # --- facts: SEC ---------------------------------------------------------
    async def resolve_sec(ticker: str) -> str:
        cik = lookup_cik(await load_index(), ticker)
        if cik is None:
            raise IdentifierNotFoundError(f"CIK not found for ticker {ticker}")
        return cik

    async def fetch_sec_facts(cik: str, period: Period) -> FactsDocument:
        return normalize_company_facts(await sec_client.fetch_company_facts(client, cik, user_agent))

    # --- facts: FMP ---------------------------------------------------------
    async def resolve_fmp(ticker: str) -> str:
        for symbol in symbol_variants(ticker):
            if await profile_for(symbol) is not None:
                return symbol
        raise IdentifierNotFoundError(f"FMP has no profile for {ticker}")

    async def fetch_fmp_facts(symbol: str, period: Period) -> FactsDocument:
        statements = await fmp_client.fetch_statements(client, symbol, period, api_key)
        quote = await profile_for(symbol)
        return normalize_statements(*statements, entity_name=quote.name if quote else None)

    if settings.facts_provider == "fmp":
        resolve, fetch_facts = resolve_fmp, fetch_fmp_facts
    else:
        resolve, fetch_facts = resolve_sec, fetch_sec_facts

    return Providers(
        resolve=resolve,
        fetch_facts=fetch_facts,
        fetch_quote=fetch_quote,
        fetch_fx_rate=fx_client.fetch_usd_rate,
        load_ticker_index=load_index,
    )
