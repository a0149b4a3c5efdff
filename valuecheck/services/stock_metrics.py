"""
Company record builder.

build_company_record(document, quote, ticker, period, normalizer)

  1. select one series per concept in CONCEPTS (fact selector)
  2. convert the values used to USD (currency normalizer)
  3. ratios, snapshots, valuation
  4. provenance: for every metric, the facts that fed it

Quarterly mode: flows (income / cash-flow items) are multiplied by 4 wherever
they meet a balance-sheet or market figure (ROE, Altman Z, shareholder yield,
DCF cash flow, EPS). Flow/flow ratios (margins, coverage) are used as reported.

Inputs:
  net income history   latest EARNINGS_HISTORY_YEARS worth of periods, newest
                       first; quarterly durability is judged per fiscal year
                       and growth spans the measured period-end dates
  shares               quote.shares_outstanding, else the latest share-count fact
  market cap           quote.market_cap, else price * shares
  FCF                  operating cash flow - |capex|
"""

import logging
from datetime import date, datetime

from valuecheck.normalizers.fmp_normalizer import Quote
from valuecheck.repositories.cache_repo import utcnow
from valuecheck.schemas import (
    CompanyRecord,
    DcfRange,
    ProvenanceEntry,
    Snapshots,
    StockMetrics,
    Valuation,
)
from valuecheck.services import ratios, valuation
from valuecheck.services.concept_registry import CONCEPTS
from valuecheck.services.currency import CurrencyNormalizer
from valuecheck.services.fact_selector import (
    FactsDocument,
    MetricSeries,
    Period,
    RawFinancialFact,
    fiscal_year_of,
    select_series,
)

logger = logging.getLogger(__name__)

EARNINGS_HISTORY_YEARS: int = 10
PERIODS_PER_YEAR: dict[str, int] = {"annual": 1, "quarterly": 4}

# metric key (as serialised) -> concepts it is computed from
METRIC_INPUTS: dict[str, tuple[str, ...]] = {
    "grossMargin": ("gross_profit", "revenue"),
    "sgaEfficiency": ("sga", "revenue"),
    "rdReliance": ("rd", "revenue"),
    "netMargin": ("net_income", "revenue"),
    "consistentEarnings": ("net_income",),
    "interestCoverage": ("ebit", "interest_expense"),
    "debtToEquity": ("long_debt", "short_debt", "equity"),
    "roe": ("net_income", "equity"),
    "capexEfficiency": ("capex", "operating_cash_flow"),
    "shareholderYield": ("dividends", "repurchases"),
    "altmanZ": (
        "current_assets", "current_liabilities", "retained_earnings", "ebit",
        "total_liabilities", "revenue", "total_assets",
    ),
    "dcf": ("operating_cash_flow", "capex", "shares"),
    "graham": ("net_income", "shares"),
    "lynch": ("net_income", "shares"),
}


def select_all(document: FactsDocument, period: Period) -> dict[str, MetricSeries]:
    return {
        name: select_series(document.facts_by_concept, spec.tags, period, preferred_unit=spec.unit)
        for name, spec in CONCEPTS.items()
    }


def build_provenance(series: dict[str, MetricSeries]) -> dict[str, list[ProvenanceEntry]]:
    out: dict[str, list[ProvenanceEntry]] = {}
    for metric, concepts in METRIC_INPUTS.items():
        entries = [
            ProvenanceEntry(**series[c].latest.provenance())
            for c in concepts
            if series.get(c) and series[c].latest is not None
        ]
        if entries:
            out[metric] = entries
    return out


def _scale(value: float | None, factor: int) -> float | None:
    return value * factor if value is not None else None


def _end_date(fact: RawFinancialFact) -> date | None:
    try:
        return date.fromisoformat((fact.period_end or "")[:10])
    except ValueError:
        return None


def history_span_years(facts: tuple[RawFinancialFact, ...], periods_per_year: int) -> float | None:
    """Years between the newest and oldest period end, in whole periods."""
    if len(facts) < 2:
        return None
    newest, oldest = _end_date(facts[0]), _end_date(facts[-1])
    if newest is None or oldest is None:
        return None
    periods = round((newest - oldest).days / (365.25 / periods_per_year))
    return periods / periods_per_year if periods > 0 else None


async def build_company_record(
    document: FactsDocument,
    quote: Quote | None,
    ticker: str,
    period: Period,
    normalizer: CurrencyNormalizer,
    now: datetime | None = None,
) -> CompanyRecord:
    now = now or utcnow()
    quote = quote or Quote()
    factor = PERIODS_PER_YEAR[period]
    series = select_all(document, period)

    latest: dict[str, float | None] = {}
    for name, s in series.items():
        latest[name] = await normalizer.to_usd(s.latest_value, s.unit)

    ni_facts = series["net_income"].facts[: EARNINGS_HISTORY_YEARS * factor]
    net_income_history = [await normalizer.to_usd(f.value, f.unit) for f in ni_facts]

    # --- market inputs ----------------------------------------------------
    quote_currency = (quote.currency or "USD").upper()
    price = await normalizer.to_usd(quote.price, quote_currency)
    shares = quote.shares_outstanding or latest["shares"]
    market_cap = await normalizer.to_usd(quote.market_cap, quote_currency)
    if market_cap is None and price is not None and shares:
        market_cap = price * shares

    # --- ratios -----------------------------------------------------------
    fiscal_years = [fiscal_year_of(f) for f in ni_facts] if period == "quarterly" else None
    profitable, total, passes = ratios.consistent_earnings(net_income_history, fiscal_years)
    metrics = StockMetrics(
        gross_margin=ratios.gross_margin(latest["gross_profit"], latest["revenue"]),
        sga_efficiency=ratios.sga_efficiency(latest["sga"], latest["revenue"]),
        rd_reliance=ratios.rd_reliance(latest["rd"], latest["revenue"]),
        net_margin=ratios.net_margin(latest["net_income"], latest["revenue"]),
        consistent_earnings=profitable,
        consistent_earnings_years=total,
        consistent_earnings_pass=passes,
        interest_coverage=ratios.interest_coverage(latest["ebit"], latest["interest_expense"]),
        debt_to_equity=ratios.debt_to_equity(latest["long_debt"], latest["short_debt"], latest["equity"]),
        roe=ratios.return_on_equity(_scale(latest["net_income"], factor), latest["equity"]),
        capex_efficiency=ratios.capex_efficiency(latest["capex"], latest["operating_cash_flow"]),
    )

    z = ratios.altman_z(
        working_capital=ratios.working_capital(latest["current_assets"], latest["current_liabilities"]),
        retained_earnings=latest["retained_earnings"],
        ebit=_scale(latest["ebit"], factor),
        market_value_equity=market_cap,
        total_liabilities=latest["total_liabilities"],
        sales=_scale(latest["revenue"], factor),
        total_assets=latest["total_assets"],
    )
    snapshots = Snapshots(
        shareholder_yield=ratios.shareholder_yield(
            _scale(latest["dividends"], factor),
            _scale(latest["repurchases"], factor),
            market_cap,
        ),
        solvency=ratios.solvency_label(z),
        altman_z=z,
    )

    # --- valuation --------------------------------------------------------
    fcf = _scale(ratios.free_cash_flow(latest["operating_cash_flow"], latest["capex"]), factor)
    implied = valuation.implied_growth_rate(fcf, shares, price)
    eps = valuation.normalized_eps([_scale(v, factor) for v in net_income_history], shares)
    growth = valuation.earnings_growth_rate(
        net_income_history, periods_per_year=factor, years=history_span_years(ni_facts, factor),
    )

    record_valuation = Valuation(
        dcf=DcfRange(**valuation.dcf_scenarios(fcf, shares)),
        graham=valuation.graham_value(eps, growth, price),
        lynch=valuation.lynch_value(eps, growth),
        implied_growth=round(implied * 100, 1) if implied is not None else None,
        current=price,
    )

    missing = [name for name, s in series.items() if not s]
    if missing:
        logger.info("[Stock] %s %s: no data for %s", ticker, period, ", ".join(missing))

    return CompanyRecord(
        ticker=ticker,
        name=quote.name or document.entity_name,
        industry=quote.industry,
        price=price,
        market_cap=market_cap,
        shares_outstanding=shares,
        currency="USD",
        period=period,
        last_updated=now.replace(microsecond=0).isoformat() + "Z",
        metrics=metrics,
        snapshots=snapshots,
        valuation=record_valuation,
        provenance=build_provenance(series),
    )
