"""
Stock assembly tests with fake providers.

  1. Record assembly: ratios, snapshots, valuation, provenance
  2. Quarterly annualisation
  3. Orchestrator: hit / miss, quota before upstream, quote failure,
     stale fallback, error surfacing
"""

import asyncio
from datetime import datetime, timedelta

import pytest

from valuecheck.config import Settings
from valuecheck.errors import IdentifierNotFoundError, QuotaExceededError, UpstreamError
from valuecheck.normalizers.fmp_normalizer import Quote
from valuecheck.orchestrator.providers import Providers
from valuecheck.orchestrator.stock_orchestrator import cache_key, get_stock
from valuecheck.repositories.cache_repo import put_cache
from valuecheck.repositories.usage_repo import get_usage
from valuecheck.services import valuation
from valuecheck.services.currency import CurrencyNormalizer
from valuecheck.services.fact_selector import FactsDocument, RawFinancialFact
from valuecheck.services.stock_metrics import build_company_record

T0 = datetime(2024, 3, 1, 12, 0, 0)

_LATEST = {
    "Revenues": 1000.0,
    "GrossProfit": 400.0,
    "SellingGeneralAndAdministrativeExpense": 150.0,
    "ResearchAndDevelopmentExpense": 50.0,
    "OperatingIncomeLoss": 130.0,
    "InterestExpense": 10.0,
    "Assets": 2000.0,
    "Liabilities": 800.0,
    "StockholdersEquity": 1200.0,
    "AssetsCurrent": 600.0,
    "LiabilitiesCurrent": 300.0,
    "RetainedEarningsAccumulatedDeficit": 500.0,
    "LongTermDebt": 300.0,
    "DebtCurrent": 100.0,
    "NetCashProvidedByUsedInOperatingActivities": 160.0,
    "PaymentsToAcquirePropertyPlantAndEquipment": 40.0,
    "PaymentsOfDividends": 20.0,
    "PaymentsForRepurchaseOfCommonStock": 30.0,
}
_NET_INCOME = [(2023, 100.0), (2022, 90.0), (2021, 80.0), (2020, 70.0), (2019, 60.0)]


def _annual(tag, value, fy, unit="USD"):
    return RawFinancialFact(
        tag=tag, unit=unit, value=value, fiscal_year=fy, fiscal_period="FY",
        period_end=f"{fy}-12-31", filing_form="10-K", filed=f"{fy + 1}-02-15",
    )


def _document(unit="USD"):
    facts = {tag: {unit: [_annual(tag, v, 2023, unit)]} for tag, v in _LATEST.items()}
    facts["NetIncomeLoss"] = {unit: [_annual("NetIncomeLoss", v, fy, unit) for fy, v in _NET_INCOME]}
    facts["EntityCommonStockSharesOutstanding"] = {
        "shares": [_annual("EntityCommonStockSharesOutstanding", 100.0, 2023, "shares")],
    }
    return FactsDocument(entity_name="Example Corp", facts_by_concept=facts)


_QUOTE = Quote(price=25.0, market_cap=2500.0, shares_outstanding=100.0, currency="USD",
               name="Example Corp", industry="Widgets")


async def _no_fx(currency):
    raise AssertionError(f"unexpected FX lookup for {currency}")


def _build(db, document, quote=_QUOTE, period="annual", fx=_no_fx):
    normalizer = CurrencyNormalizer(db, fx, now=T0)
    return asyncio.run(build_company_record(document, quote, "EXM", period, normalizer, now=T0))


# ---------------------------------------------------------------------------
# 1. Record assembly
# ---------------------------------------------------------------------------

def test_record_metrics(db):
    record = _build(db, _document())
    m = record.metrics
    assert m.gross_margin == 40.0
    assert m.net_margin == 10.0
    assert m.sga_efficiency == 15.0
    assert m.rd_reliance == 5.0
    assert m.interest_coverage == 13.0
    assert m.debt_to_equity == 0.33
    assert m.roe == 8.3
    assert m.capex_efficiency == 25.0
    assert (m.consistent_earnings, m.consistent_earnings_years, m.consistent_earnings_pass) == (5, 5, True)


def test_record_snapshots(db):
    snap = _build(db, _document()).snapshots
    # 0.18 + 0.35 + 0.2145 + 1.875 + 0.5
    assert snap.altman_z == 3.12
    assert snap.solvency == "Safe"
    assert snap.shareholder_yield == 2.0


def test_record_valuation(db):
    val = _build(db, _document()).valuation
    assert val.current == 25.0
    assert val.dcf.model_dump() == valuation.dcf_scenarios(120.0, 100.0)

    implied = valuation.implied_growth_rate(120.0, 100.0, 25.0)
    assert val.implied_growth == round(implied * 100, 1)

    # EPS: mean of 100, 90, 80 over 100 shares; growth: 60 -> 100 over 4 years
    growth = (100.0 / 60.0) ** 0.25 - 1
    assert val.graham == valuation.graham_value(0.9, growth, 25.0)
    assert val.lynch == round(0.9 * growth * 100, 2)


def test_record_payload_is_camel_case_with_provenance(db):
    payload = _build(db, _document()).to_payload()
    assert payload["ticker"] == "EXM"
    assert payload["name"] == "Example Corp"
    assert payload["marketCap"] == 2500.0
    assert payload["lastUpdated"] == "2024-03-01T12:00:00Z"
    assert "grossMargin" in payload["metrics"]
    assert "altmanZ" in payload["snapshots"]
    assert "impliedGrowth" in payload["valuation"]
    assert [p["tag"] for p in payload["provenance"]["grossMargin"]] == ["GrossProfit", "Revenues"]
    assert payload["provenance"]["roe"][0] == {
        "tag": "NetIncomeLoss", "unit": "USD", "fiscalYear": 2023, "periodEnd": "2023-12-31", "form": "10-K",
    }


def test_empty_document_gives_null_metrics(db):
    record = _build(db, FactsDocument(entity_name=None, facts_by_concept={}), quote=None)
    assert record.metrics.gross_margin is None
    assert record.metrics.consistent_earnings is None
    assert record.snapshots.altman_z is None
    assert record.snapshots.solvency == "Unknown"
    assert record.valuation.dcf.base is None
    assert record.valuation.graham is None
    assert record.provenance == {}


def test_non_usd_facts_are_converted(db):
    async def eur(currency):
        assert currency == "EUR"
        return 2.0

    record = _build(db, _document(unit="EUR"), fx=eur)
    # margins are unit-free; debt/equity too
    assert record.metrics.gross_margin == 40.0
    # FCF doubles once converted: 240 instead of 120
    assert record.valuation.dcf.model_dump() == valuation.dcf_scenarios(240.0, 100.0)


def test_shares_and_market_cap_fall_back_without_quote_fields(db):
    record = _build(db, _document(), quote=Quote(price=25.0))
    assert record.shares_outstanding == 100.0
    assert record.market_cap == 2500.0


# ---------------------------------------------------------------------------
# 2. Quarterly
# ---------------------------------------------------------------------------

def test_quarterly_annualises_flows_against_balance_sheet(db):
    def q(tag, value, unit="USD"):
        return RawFinancialFact(
            tag=tag, unit=unit, value=value, fiscal_year=2024, fiscal_period="Q1",
            period_start="2024-01-01", period_end="2024-03-31", filing_form="10-Q",
        )

    doc = FactsDocument(entity_name=None, facts_by_concept={
        "Revenues": {"USD": [q("Revenues", 250.0)]},
        "NetIncomeLoss": {"USD": [q("NetIncomeLoss", 25.0)]},
        "StockholdersEquity": {"USD": [q("StockholdersEquity", 1200.0)]},
    })
    record = _build(db, doc, period="quarterly")
    assert record.period == "quarterly"
    assert record.metrics.net_margin == 10.0
    assert record.metrics.roe == 8.3          # 25 * 4 / 1200


def _quarter(tag, value, fy, fp, start, end):
    return RawFinancialFact(
        tag=tag, unit="USD", value=value, fiscal_year=fy, fiscal_period=fp,
        period_start=start, period_end=end, filing_form="10-Q",
    )


def test_quarterly_cash_flow_reported_year_to_date(db):
    doc = FactsDocument(entity_name=None, facts_by_concept={
        "NetCashProvidedByUsedInOperatingActivities": {"USD": [
            _quarter("NetCashProvidedByUsedInOperatingActivities", 100.0, 2024, "Q1", "2024-01-01", "2024-03-31"),
            _quarter("NetCashProvidedByUsedInOperatingActivities", 200.0, 2024, "Q2", "2024-01-01", "2024-06-30"),
        ]},
        "PaymentsToAcquirePropertyPlantAndEquipment": {"USD": [
            _quarter("PaymentsToAcquirePropertyPlantAndEquipment", 1.0, 2024, "Q1", "2024-01-01", "2024-03-31"),
            _quarter("PaymentsToAcquirePropertyPlantAndEquipment", 2.0, 2024, "Q2", "2024-01-01", "2024-06-30"),
        ]},
    })
    record = _build(db, doc, period="quarterly")
    # Q2 alone: (200 - 100) - (2 - 1) = 99, run rate 396 a year
    assert record.valuation.dcf.model_dump() == valuation.dcf_scenarios(396.0, 100.0)


_QUARTERLY_NET_INCOME = [
    (2023, "Q1", "2023-01-01", "2023-03-31", 20.0),
    (2023, "Q2", "2023-04-01", "2023-06-30", 21.0),
    (2023, "Q3", "2023-07-01", "2023-09-30", 22.0),
    (2024, "Q1", "2024-01-01", "2024-03-31", 24.0),
    (2024, "Q2", "2024-04-01", "2024-06-30", 25.0),
]


def _quarterly_earnings_document():
    return FactsDocument(entity_name=None, facts_by_concept={
        "NetIncomeLoss": {"USD": [
            _quarter("NetIncomeLoss", v, fy, fp, start, end) for fy, fp, start, end, v in _QUARTERLY_NET_INCOME
        ]},
    })


def test_quarterly_consistent_earnings_counts_years_not_quarters(db):
    metrics = _build(db, _quarterly_earnings_document(), period="quarterly").metrics
    assert metrics.consistent_earnings == 2
    assert metrics.consistent_earnings_years == 2
    assert metrics.consistent_earnings_pass is False


def test_quarterly_growth_spans_period_end_dates(db):
    val = _build(db, _quarterly_earnings_document(), period="quarterly").valuation
    # 2023Q1 -> 2024Q2 is five quarters even though the Q4 10-Q does not exist
    growth = 1.25 ** 0.8 - 1
    eps = valuation.normalized_eps([100.0, 96.0, 88.0, 84.0, 80.0], 100.0)
    assert val.lynch == valuation.lynch_value(eps, growth)


# ---------------------------------------------------------------------------
# 3. Orchestrator
# ---------------------------------------------------------------------------

class _FakeUpstream:
    def __init__(self, *, facts_error=None, quote_error=None, resolve_error=None):
        self.facts_error = facts_error
        self.quote_error = quote_error
        self.resolve_error = resolve_error
        self.calls = []

    async def resolve(self, ticker):
        self.calls.append(("resolve", ticker))
        if self.resolve_error:
            raise self.resolve_error
        return "0000000001"

    async def fetch_facts(self, identifier, period):
        self.calls.append(("facts", identifier, period))
        if self.facts_error:
            raise self.facts_error
        return _document()

    async def fetch_quote(self, ticker):
        self.calls.append(("quote", ticker))
        if self.quote_error:
            raise self.quote_error
        return _QUOTE

    async def load_index(self):
        return {"map": {}, "list": []}

    def providers(self):
        return Providers(
            resolve=self.resolve,
            fetch_facts=self.fetch_facts,
            fetch_quote=self.fetch_quote,
            fetch_fx_rate=_no_fx,
            load_ticker_index=self.load_index,
        )


def _get(db, upstream, ticker="exm", period="annual", cap=25, now=T0):
    settings = Settings(daily_new_ticker_cap=cap)
    return asyncio.run(get_stock(ticker, period, db, settings, upstream.providers(), now=now))


def test_miss_then_hit(db):
    upstream = _FakeUpstream()
    first = _get(db, upstream)
    assert first.cache_status == "miss"
    assert first.ticker == "EXM"
    assert first.payload["metrics"]["grossMargin"] == 40.0
    assert ("facts", "0000000001", "annual") in upstream.calls

    upstream.calls.clear()
    second = _get(db, upstream, now=T0 + timedelta(hours=23))
    assert second.cache_status == "hit"
    assert second.payload == first.payload
    assert upstream.calls == []


def test_periods_cached_separately(db):
    upstream = _FakeUpstream()
    _get(db, upstream)
    assert cache_key("exm", "annual") == "stock:EXM:annual"
    result = _get(db, upstream, period="quarterly")
    assert result.cache_status == "miss"


def test_quota_denied_before_any_upstream_call(db):
    _get(db, _FakeUpstream(), ticker="AAA", cap=1)
    upstream = _FakeUpstream()
    with pytest.raises(QuotaExceededError):
        _get(db, upstream, ticker="BBB", cap=1)
    assert upstream.calls == []
    assert get_usage(db, T0.date())["tickers"] == {"AAA"}


def test_quote_failure_yields_null_price(db):
    result = _get(db, _FakeUpstream(quote_error=UpstreamError("FMP down")))
    assert result.cache_status == "miss"
    assert result.payload["price"] is None
    assert result.payload["valuation"]["current"] is None
    assert result.payload["metrics"]["grossMargin"] == 40.0


def test_stale_entry_served_on_upstream_failure(db):
    put_cache(db, "stock:EXM:annual", {"ticker": "EXM", "old": True}, now=T0)
    later = T0 + timedelta(days=2)
    result = _get(db, _FakeUpstream(facts_error=UpstreamError("SEC down")), now=later)
    assert result.cache_status == "stale"
    assert result.payload == {"ticker": "EXM", "old": True}


def test_failure_without_stale_entry_surfaces(db):
    with pytest.raises(IdentifierNotFoundError):
        _get(db, _FakeUpstream(resolve_error=IdentifierNotFoundError("CIK not found")))


def test_expired_entry_is_not_served(db):
    put_cache(db, "stock:EXM:annual", {"ticker": "EXM", "old": True}, now=T0)
    with pytest.raises(UpstreamError):
        _get(db, _FakeUpstream(facts_error=UpstreamError("SEC down")), now=T0 + timedelta(days=8))
