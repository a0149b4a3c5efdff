"""
HTTP surface tests (FastAPI TestClient, dependencies overridden with an
in-memory database and fake providers).
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from valuecheck.config import Settings
from valuecheck.database import get_db
from valuecheck.errors import IdentifierNotFoundError, UpstreamError
from valuecheck.main import app, get_providers, get_settings
from valuecheck.normalizers.fmp_normalizer import Quote
from valuecheck.orchestrator.providers import Providers
from valuecheck.repositories.cache_repo import put_cache, utcnow
from valuecheck.services.fact_selector import FactsDocument, RawFinancialFact

_INDEX = {
    "map": {"AAPL": 320193, "APP": 1751008, "BRK-B": 1067983},
    "list": [
        {"ticker": "AAPL", "title": "Apple Inc.", "cik": 320193},
        {"ticker": "APP", "title": "AppLovin Corp", "cik": 1751008},
        {"ticker": "BRK-B", "title": "Berkshire Hathaway Inc", "cik": 1067983},
    ],
}


def _document():
    def fact(tag, value):
        return RawFinancialFact(tag=tag, unit="USD", value=value, fiscal_year=2023, fiscal_period="FY",
                                period_end="2023-12-31", filing_form="10-K")

    return FactsDocument(entity_name="Apple Inc.", facts_by_concept={
        "Revenues": {"USD": [fact("Revenues", 1000.0)]},
        "GrossProfit": {"USD": [fact("GrossProfit", 450.0)]},
    })


class _Fakes:
    def __init__(self):
        self.resolve_error = None
        self.facts_error = None

    async def resolve(self, ticker):
        if self.resolve_error:
            raise self.resolve_error
        return "0000320193"

    async def fetch_facts(self, identifier, period):
        if self.facts_error:
            raise self.facts_error
        return _document()

    async def fetch_quote(self, ticker):
        return Quote(price=190.0, market_cap=2_950_000.0, shares_outstanding=15_500.0, name="Apple Inc.")

    async def fetch_fx_rate(self, currency):
        return 1.0

    async def load_index(self):
        return _INDEX


@pytest.fixture
def fakes():
    return _Fakes()


@pytest.fixture
def settings():
    return Settings(daily_new_ticker_cap=25, trending_tickers=("AAPL", "MSFT"))


@pytest.fixture
def client(session_factory, fakes, settings):
    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    def override_providers():
        return Providers(
            resolve=fakes.resolve,
            fetch_facts=fakes.fetch_facts,
            fetch_quote=fakes.fetch_quote,
            fetch_fx_rate=fakes.fetch_fx_rate,
            load_ticker_index=fakes.load_index,
        )

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_providers] = override_providers
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Plumbing
# ---------------------------------------------------------------------------

def test_health_headers(client):
    resp = client.get("/health", headers={"Origin": "https://valuecheck.example"})
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers["cache-control"] == "public, max-age=300"
    assert resp.headers["access-control-allow-origin"] == "*"


# ---------------------------------------------------------------------------
# /stock
# ---------------------------------------------------------------------------

def test_stock_miss_then_hit(client):
    first = client.get("/stock/aapl")
    assert first.status_code == 200
    assert first.headers["x-cache"] == "miss"
    body = first.json()
    assert body["ticker"] == "AAPL"
    assert body["metrics"]["grossMargin"] == 45.0
    assert body["valuation"]["current"] == 190.0

    second = client.get("/stock/AAPL")
    assert second.headers["x-cache"] == "hit"
    assert second.json() == body


def test_stock_rejects_unknown_period(client):
    resp = client.get("/stock/AAPL", params={"period": "weekly"})
    assert resp.status_code == 400
    assert "error" in resp.json()


def test_stock_quota_exceeded_is_429(client):
    app.dependency_overrides[get_settings] = lambda: Settings(daily_new_ticker_cap=0)
    resp = client.get("/stock/AAPL")
    assert resp.status_code == 429
    assert resp.json() == {"error": "Daily ticker cap reached"}


def test_stock_unresolvable_ticker_is_500(client, fakes):
    fakes.resolve_error = IdentifierNotFoundError("CIK not found for ticker ZZZZ")
    resp = client.get("/stock/ZZZZ")
    assert resp.status_code == 500
    assert resp.json() == {"error": "CIK not found for ticker ZZZZ"}


def test_stock_stale_fallback_header(client, fakes, session_factory):
    with session_factory() as db:
        put_cache(db, "stock:AAPL:annual", {"ticker": "AAPL", "price": 150.0}, now=utcnow() - timedelta(days=2))
    fakes.facts_error = UpstreamError("SEC error 503")

    resp = client.get("/stock/AAPL")
    assert resp.status_code == 200
    assert resp.headers["x-cache"] == "stale"
    assert resp.json() == {"ticker": "AAPL", "price": 150.0}


# ---------------------------------------------------------------------------
# /trending and /search
# ---------------------------------------------------------------------------

def test_trending(client):
    body = client.get("/trending").json()
    assert body["tickers"] == ["AAPL", "MSFT"]
    assert body["lastUpdated"] == utcnow().date().isoformat()


def test_search_ranks_matches(client):
    body = client.get("/search", params={"q": "AP"}).json()
    assert body["query"] == "ap"
    assert [r["ticker"] for r in body["results"]] == ["APP", "AAPL"]
    assert body["results"][0] == {"ticker": "APP", "title": "AppLovin Corp"}


def test_search_short_query_returns_nothing(client):
    assert client.get("/search", params={"q": "a"}).json() == {"query": "a", "results": []}
