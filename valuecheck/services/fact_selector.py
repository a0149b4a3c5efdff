"""
Fact selector.

Picks one reported series per canonical concept out of a facts document:

  select_series(facts_by_concept, candidate_tags, period, preferred_unit)

  1. candidate tags are tried in order; the first tag that yields a non-empty
     series wins (no merging across tags)
  2. facts are filtered to the requested period class
       annual    forms 10-K, 10-K/A, 20-F, 40-F   fp FY / FYI / missing
       quarterly forms 10-Q, 10-Q/A              fp Q1..Q4 / missing
  3. quarterly: year-to-date 10-Q values (Q2, Q3 cash flows) are turned into
     single quarters by subtracting the previous cumulative value
  4. one fact per fiscal year (annual) or fiscal quarter (quarterly); ties go
     to the latest period end, then the matching duration (annual keeps the
     longest, quarterly the shortest), then the latest filing date
  5. series is ordered newest first
  6. if the preferred unit has no data the unit with the longest filtered
     series is used instead and reported back so the caller can convert it

An empty document yields an empty series. Nothing here raises on missing data.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Any, Literal

logger = logging.getLogger(__name__)

Period = Literal["annual", "quarterly"]

ANNUAL_FORMS = frozenset(["10-K", "10-K/A", "20-F", "40-F"])
QUARTERLY_FORMS = frozenset(["10-Q", "10-Q/A"])
_ANNUAL_MARKERS = frozenset(["FY", "FYI"])
_QUARTER_MARKERS = frozenset(["Q1", "Q2", "Q3", "Q4"])

# A 10-Q duration longer than this is a year-to-date figure
QUARTER_MAX_DAYS = 100
DAYS_PER_QUARTER = 91.3


@dataclass(frozen=True)
class RawFinancialFact:
    tag: str
    unit: str
    value: float
    fiscal_year: int | None = None
    fiscal_period: str | None = None
    period_start: str | None = None
    period_end: str | None = None
    filing_form: str | None = None
    filed: str | None = None

    def provenance(self) -> dict[str, Any]:
        return {
            "tag": self.tag,
            "unit": self.unit,
            "fiscal_year": self.fiscal_year,
            "period_end": self.period_end,
            "form": self.filing_form,
        }


@dataclass(frozen=True)
class MetricSeries:
    tag: str | None
    unit: str | None
    facts: tuple[RawFinancialFact, ...] = ()

    def __len__(self) -> int:
        return len(self.facts)

    def __bool__(self) -> bool:
        return bool(self.facts)

    @property
    def latest(self) -> RawFinancialFact | None:
        return self.facts[0] if self.facts else None

    @property
    def latest_value(self) -> float | None:
        return self.facts[0].value if self.facts else None

    def values(self, limit: int | None = None) -> list[float]:
        facts = self.facts if limit is None else self.facts[:limit]
        return [f.value for f in facts]


EMPTY_SERIES = MetricSeries(tag=None, unit=None)

FactsByConcept = dict[str, dict[str, list[RawFinancialFact]]]


@dataclass(frozen=True)
class FactsDocument:
    """Provider-neutral facts: tag -> unit -> facts."""
    entity_name: str | None
    facts_by_concept: FactsByConcept


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_date(d: Any) -> date | None:
    if isinstance(d, date):
        return d
    if isinstance(d, str):
        try:
            return date.fromisoformat(d[:10])
        except ValueError:
            return None
    return None


def fiscal_year_of(fact: RawFinancialFact) -> int | None:
    if fact.fiscal_year:
        return fact.fiscal_year
    end = _parse_date(fact.period_end)
    return end.year if end else None


def _matches_period(fact: RawFinancialFact, period: Period) -> bool:
    if not fact.filing_form:
        return False
    if period == "annual":
        return fact.filing_form in ANNUAL_FORMS and (
            not fact.fiscal_period or fact.fiscal_period in _ANNUAL_MARKERS
        )
    return fact.filing_form in QUARTERLY_FORMS and (
        not fact.fiscal_period or fact.fiscal_period in _QUARTER_MARKERS
    )


def _duration_days(fact: RawFinancialFact) -> int:
    start = _parse_date(fact.period_start)
    end = _parse_date(fact.period_end)
    if start is None or end is None:
        return 0
    return (end - start).days


def _preference(fact: RawFinancialFact, period: Period) -> tuple:
    """Larger tuple wins when two facts share a dedup key."""
    end = _parse_date(fact.period_end) or date.min
    duration = _duration_days(fact)
    duration_rank = duration if period == "annual" else -duration
    filed = _parse_date(fact.filed) or date.min
    return (end, duration_rank, filed)


def _dedup_key(fact: RawFinancialFact, period: Period) -> tuple | None:
    year = fiscal_year_of(fact)
    if year is None:
        return None
    if period == "annual":
        return (year,)
    return (year, fact.fiscal_period or "")


def _is_usable(fact: RawFinancialFact) -> bool:
    return isinstance(fact.value, (int, float)) and math.isfinite(fact.value)


def _single_quarter(fact: RawFinancialFact, pool: list[RawFinancialFact]) -> RawFinancialFact:
    """
    Turn a year-to-date 10-Q value into the last quarter it covers.

    Subtracts the latest earlier cumulative value with the same period start
    (Q2 YTD - Q1, Q3 YTD - Q2 YTD). Without one, the YTD value is spread
    evenly over the quarters it spans.
    """
    days = _duration_days(fact)
    if days <= QUARTER_MAX_DAYS:
        return fact
    end = _parse_date(fact.period_end)
    prior = [
        f for f in pool
        if f.period_start == fact.period_start
        and (_parse_date(f.period_end) or date.max) < end
    ]
    if prior:
        prev = max(prior, key=lambda f: _parse_date(f.period_end))
        start = _parse_date(prev.period_end) + timedelta(days=1)
        return replace(fact, value=fact.value - prev.value, period_start=start.isoformat())
    quarters = max(1, round(days / DAYS_PER_QUARTER))
    logger.debug("[FactSelector] %s %s: no earlier YTD value, dividing by %d quarters",
                 fact.tag, fact.period_end, quarters)
    return replace(fact, value=fact.value / quarters)


def filter_series(
    facts: list[RawFinancialFact],
    period: Period,
) -> list[RawFinancialFact]:
    """Period filter + per-year dedup + newest-first sort for one tag/unit."""
    usable = [f for f in facts if _is_usable(f)]
    best: dict[tuple, RawFinancialFact] = {}
    for fact in usable:
        if not _matches_period(fact, period):
            continue
        if period == "quarterly":
            fact = _single_quarter(fact, usable)
        key = _dedup_key(fact, period)
        if key is None:
            continue
        existing = best.get(key)
        if existing is None or _preference(fact, period) > _preference(existing, period):
            best[key] = fact

    return [best[k] for k in sorted(best, reverse=True)]


def select_series(
    facts_by_concept: FactsByConcept,
    candidate_tags: list[str],
    period: Period = "annual",
    preferred_unit: str = "USD",
) -> MetricSeries:
    for tag in candidate_tags:
        units = facts_by_concept.get(tag) or {}
        if not units:
            continue

        series = filter_series(units.get(preferred_unit) or [], period)
        if series:
            return MetricSeries(tag=tag, unit=preferred_unit, facts=tuple(series))

        # Preferred unit has no data: take the unit with the most usable facts
        fallback_unit: str | None = None
        fallback: list[RawFinancialFact] = []
        for unit, facts in units.items():
            if unit == preferred_unit:
                continue
            candidate = filter_series(facts or [], period)
            if len(candidate) > len(fallback):
                fallback_unit, fallback = unit, candidate
        if fallback:
            logger.debug(
                "[FactSelector] %s has no %s data, using unit %s (%d facts)",
                tag, preferred_unit, fallback_unit, len(fallback),
            )
            return MetricSeries(tag=tag, unit=fallback_unit, facts=tuple(fallback))

    return EMPTY_SERIES
