import logging
from pathlib import Path

# Load .env from repo root before any other imports read os.environ
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env", override=False)

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from valuecheck.config import Settings, load_settings
from valuecheck.database import Base, engine, get_db
from valuecheck.errors import QuotaExceededError
from valuecheck.orchestrator.providers import Providers, build_providers
from valuecheck.orchestrator.stock_orchestrator import PERIODS, get_stock
from valuecheck.services.ticker_index import search_tickers
from valuecheck.services.trending import get_trending

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CACHE_CONTROL: str = "public, max-age=300"

app = FastAPI(title="ValueCheck Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["content-type"],
)


@app.middleware("http")
async def add_cache_control(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("Cache-Control", CACHE_CONTROL)
    return response


Base.metadata.create_all(bind=engine)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_settings() -> Settings:
    return load_settings()


async def get_http_client(settings: Settings = Depends(get_settings)):
    async with httpx.AsyncClient(timeout=settings.http_timeout_s) as client:
        yield client


def get_providers(
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> Providers:
    return build_providers(settings, db, client)


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health")
def healthcheck():
    return {"status": "ok"}


@app.get("/stock/{ticker}")
async def stock(
    ticker: str,
    period: str = "annual",
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    providers: Providers = Depends(get_providers),
):
    """
    CompanyRecord for a ticker.

    X-Cache: hit (fresh cache) | miss (computed now) | stale (degraded fallback)
    Errors: 400 bad input, 429 daily new-ticker cap, 500 anything else.
    """
    ticker_upper = ticker.strip().upper()
    if not ticker_upper:
        return error_response("Ticker required", 400)
    if period not in PERIODS:
        return error_response(f"period must be one of {', '.join(PERIODS)}", 400)

    try:
        result = await get_stock(ticker_upper, period, db, settings, providers)
    except QuotaExceededError as exc:
        return error_response(str(exc), 429)
    except Exception as exc:
        logger.exception("Stock request failed for %s (%s)", ticker_upper, period)
        return error_response(str(exc) or "Unable to fetch data", 500)

    return JSONResponse(result.payload, headers={"X-Cache": result.cache_status})


@app.get("/trending")
def trending(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return get_trending(db, settings.trending_tickers)


@app.get("/search")
async def search(q: str = "", providers: Providers = Depends(get_providers)):
    query = q.strip().lower()
    if len(query) < 2:
        return {"query": query, "results": []}
    try:
        index = await providers.load_ticker_index()
    except Exception as exc:
        logger.exception("Ticker search failed for %r", query)
        return error_response(str(exc) or "Unable to search", 500)
    return {"query": query, "results": search_tickers(index, query)}
