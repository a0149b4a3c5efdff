"""
Runtime settings read from the environment.

main.py loads .env (python-dotenv) before calling load_settings(); everything
downstream receives a Settings instance instead of reading os.environ itself.
"""

import logging
import os
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

FactsProvider = Literal["sec", "fmp"]

DEFAULT_DAILY_NEW_TICKER_CAP: int = 25
DEFAULT_SEC_USER_AGENT: str = "ValueCheck/1.0 (contact: support@valuecheck.local)"
DEFAULT_TRENDING: tuple[str, ...] = (
    "AAPL", "MSFT", "GOOGL", "AMZN", "NVDA", "BRK.B", "META", "TSLA", "UNH", "JPM",
    "V", "XOM", "AVGO", "MA", "LLY", "WMT", "COST", "HD", "KO", "PEP",
)


@dataclass(frozen=True)
class Settings:
    facts_provider: FactsProvider = "sec"
    sec_user_agent: str = DEFAULT_SEC_USER_AGENT
    fmp_api_key: str = ""
    daily_new_ticker_cap: int = DEFAULT_DAILY_NEW_TICKER_CAP
    trending_tickers: tuple[str, ...] = DEFAULT_TRENDING
    http_timeout_s: float = 30.0


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("[Config] %s=%r is not an integer, using %d", name, raw, default)
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("[Config] %s=%r is not a number, using %s", name, raw, default)
        return default


def _tickers_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.environ.get(name, "")
    tickers = tuple(t.strip().upper() for t in raw.split(",") if t.strip())
    return tickers or default


def load_settings() -> Settings:
    provider = os.environ.get("FACTS_PROVIDER", "sec").strip().lower()
    if provider not in ("sec", "fmp"):
        logger.warning("[Config] unknown FACTS_PROVIDER=%r, falling back to 'sec'", provider)
        provider = "sec"

    return Settings(
        facts_provider=provider,
        sec_user_agent=os.environ.get("SEC_USER_AGENT", "").strip() or DEFAULT_SEC_USER_AGENT,
        fmp_api_key=(os.environ.get("FMP_API_KEY") or os.environ.get("FMP_KEY") or "").strip(),
        daily_new_ticker_cap=_int_env("DAILY_NEW_TICKER_CAP", DEFAULT_DAILY_NEW_TICKER_CAP),
        trending_tickers=_tickers_env("TRENDING_TICKERS", DEFAULT_TRENDING),
        http_timeout_s=_float_env("HTTP_TIMEOUT_S", 30.0),
    )
