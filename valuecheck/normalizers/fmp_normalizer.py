"""
FMP data normalizers.

Maps the stable-API statements (/income-statement, /balance-sheet-statement,
/cash-flow-statement) onto the same FactsDocument shape the SEC normalizer
produces, so the fact selector and everything after it are provider-agnostic.

Per statement row:
  tag          = FMP field name (e.g. "revenue", "totalAssets")
  unit         = row.reportedCurrency (default USD); share-count fields -> "shares"
  fiscal_year  = row.fiscalYear | row.calendarYear | year of row.date
  fiscal_period= row.period ("FY", "Q1".."Q4")
  period_end   = row.date
  filing_form  = "10-K" for FY rows, "10-Q" otherwise (FMP carries no form;
                 the period marker decides which class the row belongs to)
  filed        = row.filingDate | row.fillingDate

Also parses /profile into a Quote.
"""

import logging
from dataclasses import dataclass
from typing import Any

from valuecheck.normalizers.sec_normalizer import num_or_null
from valuecheck.services.fact_selector import FactsByConcept, FactsDocument, RawFinancialFact

logger = logging.getLogger(__name__)

_META_FIELDS = frozenset([
    "date", "symbol", "reportedCurrency", "cik", "filingDate", "fillingDate",
    "acceptedDate", "fiscalYear", "calendarYear", "period", "link", "finalLink",
])
_SHARE_FIELDS = frozenset([
    "weightedAverageShsOut", "weightedAverageShsOutDil", "sharesOutstanding",
])
_PER_SHARE_FIELDS = frozenset(["eps", "epsDiluted", "epsdiluted"])


@dataclass(frozen=True)
class Quote:
    price: float | None = None
    market_cap: float | None = None
    shares_outstanding: float | None = None
    currency: str | None = None
    name: str | None = None
    industry: str | None = None


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _pick_num(*candidates: Any) -> float | None:
    """Return first finite numeric value from candidates."""
    for c in candidates:
        v = num_or_null(c)
        if v is not None:
            return v
    return None


def _fiscal_year(row: dict[str, Any]) -> int | None:
    for key in ("fiscalYear", "calendarYear"):
        v = row.get(key)
        try:
            if v is not None and str(v).strip():
                return int(v)
        except (TypeError, ValueError):
            continue
    d = row.get("date")
    if isinstance(d, str) and len(d) >= 4 and d[:4].isdigit():
        return int(d[:4])
    return None


def _unit_for(field: str, currency: str) -> str:
    if field in _SHARE_FIELDS:
        return "shares"
    if field in _PER_SHARE_FIELDS:
        return f"{currency}/shares"
    return currency


# ---------------------------------------------------------------------------
# Statements -> FactsDocument
# ---------------------------------------------------------------------------

def normalize_statements(
    *statements: list[dict[str, Any]] | None,
    entity_name: str | None = None,
) -> FactsDocument:
    """
    Merge any number of statement lists (income, balance, cash flow) into one
    FactsDocument. Fields repeated across statements (netIncome appears in
    both income and cash-flow) keep every datapoint; the selector dedups.
    """
    by_concept: FactsByConcept = {}
    rows_seen = 0
    for rows in statements:
        for row in rows or []:
            if not isinstance(row, dict):
                continue
            rows_seen += 1
            period = str(row.get("period") or "").upper() or None
            currency = str(row.get("reportedCurrency") or "USD").upper()
            base = {
                "fiscal_year": _fiscal_year(row),
                "fiscal_period": period,
                "period_end": row.get("date"),
                "filing_form": "10-K" if period == "FY" else "10-Q",
                "filed": row.get("filingDate") or row.get("fillingDate"),
            }
            for field, raw in row.items():
                if field in _META_FIELDS:
                    continue
                value = num_or_null(raw)
                if value is None:
                    continue
                unit = _unit_for(field, currency)
                fact = RawFinancialFact(tag=field, unit=unit, value=value, **base)
                by_concept.setdefault(field, {}).setdefault(unit, []).append(fact)

    logger.info("[FMP] normalized %d statement rows into %d concepts", rows_seen, len(by_concept))
    return FactsDocument(entity_name=entity_name, facts_by_concept=by_concept)


# ---------------------------------------------------------------------------
# /profile -> Quote
# ---------------------------------------------------------------------------

def normalize_profile(data: Any) -> Quote | None:
    """FMP returns a list with one profile object; empty list means unknown symbol."""
    row = data[0] if isinstance(data, list) and data else data
    if not isinstance(row, dict) or not row:
        return None

    price = num_or_null(row.get("price"))
    market_cap = _pick_num(row.get("marketCap"), row.get("mktCap"))
    shares = num_or_null(row.get("sharesOutstanding"))
    if shares is None and market_cap and price:
        shares = market_cap / price

    return Quote(
        price=price,
        market_cap=market_cap,
        shares_outstanding=shares,
        currency=(row.get("currency") or None),
        name=(row.get("companyName") or None),
        industry=(row.get("industry") or None),
    )
