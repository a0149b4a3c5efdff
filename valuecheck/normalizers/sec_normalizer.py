"""
SEC company-facts normalizer.

Input: data.sec.gov/api/xbrl/companyfacts/CIK##########.json
  {
    "entityName": "...",
    "facts": {
      "us-gaap":   {Tag: {"units": {Unit: [{start, end, val, fy, fp, form, filed}, ...]}}},
      "ifrs-full": {...},
      "dei":       {...}
    }
  }

Output: FactsDocument with the taxonomies flattened into one tag namespace.
On a tag present in more than one taxonomy the first in TAXONOMY_ORDER wins.
Datapoints without a finite numeric value are dropped.
"""

import logging
import math
from typing import Any

from valuecheck.services.fact_selector import FactsByConcept, FactsDocument, RawFinancialFact

logger = logging.getLogger(__name__)

TAXONOMY_ORDER: tuple[str, ...] = ("us-gaap", "ifrs-full", "dei")


def num_or_null(v: Any) -> float | None:
    """Return float if v is a valid finite number, else None."""
    if v is None or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _int_or_null(v: Any) -> int | None:
    try:
        return int(v) if v is not None else None
    except (TypeError, ValueError):
        return None


def _str_or_null(v: Any) -> str | None:
    return v.strip() if isinstance(v, str) and v.strip() else None


def normalize_datapoint(tag: str, unit: str, item: dict[str, Any]) -> RawFinancialFact | None:
    value = num_or_null(item.get("val"))
    if value is None:
        return None
    return RawFinancialFact(
        tag=tag,
        unit=unit,
        value=value,
        fiscal_year=_int_or_null(item.get("fy")),
        fiscal_period=_str_or_null(item.get("fp")),
        period_start=_str_or_null(item.get("start")),
        period_end=_str_or_null(item.get("end")),
        filing_form=_str_or_null(item.get("form")),
        filed=_str_or_null(item.get("filed")),
    )


def normalize_company_facts(raw: dict[str, Any]) -> FactsDocument:
    facts = raw.get("facts") if isinstance(raw, dict) else None
    if not isinstance(facts, dict):
        logger.warning("[SEC] company facts document has no 'facts' object")
        return FactsDocument(entity_name=None, facts_by_concept={})

    by_concept: FactsByConcept = {}
    total = 0
    for taxonomy in TAXONOMY_ORDER:
        concepts = facts.get(taxonomy)
        if not isinstance(concepts, dict):
            continue
        for tag, concept in concepts.items():
            if tag in by_concept:
                continue
            units = (concept or {}).get("units")
            if not isinstance(units, dict):
                continue
            unit_map: dict[str, list[RawFinancialFact]] = {}
            for unit, items in units.items():
                if not isinstance(items, list):
                    continue
                points = [p for p in (normalize_datapoint(tag, unit, i) for i in items if isinstance(i, dict)) if p]
                if points:
                    unit_map[unit] = points
                    total += len(points)
            if unit_map:
                by_concept[tag] = unit_map

    logger.info("[SEC] normalized %d datapoints across %d concepts", total, len(by_concept))
    return FactsDocument(
        entity_name=_str_or_null(raw.get("entityName")),
        facts_by_concept=by_concept,
    )
