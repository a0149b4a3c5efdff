"""
Ratio / percentage engine.

Pure functions over already-selected, already-converted scalars. Every
function returns None (never NaN / Infinity) when a required input is
None / NaN / infinite or a denominator is zero.

Key formulas:
  grossMargin      = 100 * grossProfit / revenue                 (1 dp)
  netMargin        = 100 * netIncome / revenue                   (1 dp)
  sgaEfficiency    = 100 * sga / revenue                         (1 dp)
  rdReliance       = 100 * rd / revenue                          (1 dp)
  interestCoverage = |ebit| / |interestExpense|                  (2 dp)
  debtToEquity     = (longDebt + shortDebt) / equity             (2 dp)
  roe              = 100 * netIncome / equity                    (1 dp)
  capexEfficiency  = 100 * |capex| / |operatingCashFlow|         (1 dp)
  shareholderYield = 100 * (|dividends| + |repurchases|) / mktCap (1 dp)
  Altman Z         = 1.2 WC/TA + 1.4 RE/TA + 3.3 EBIT/TA
                     + 0.6 MVE/TL + 1.0 Sales/TA                  (2 dp)
"""

import math
from typing import Any

SOLVENCY_SAFE = 3.0
SOLVENCY_CAUTION = 1.8
MIN_CONSISTENT_YEARS = 5


# ---------------------------------------------------------------------------
# Basic numeric helpers
# ---------------------------------------------------------------------------

def _is_num(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


def _safe_div(a: Any, b: Any) -> float | None:
    """Return a/b or None if either is non-numeric or b==0."""
    if not _is_num(a) or not _is_num(b) or b == 0:
        return None
    result = a / b
    return result if _is_num(result) else None


def to_percent(value: float | None) -> float | None:
    if not _is_num(value):
        return None
    return round(value * 100, 1)


def to_ratio(value: float | None) -> float | None:
    if not _is_num(value):
        return None
    return round(value, 2)


def sum_available(*values: float | None) -> float | None:
    """Sum of the numeric values; None only when none are numeric."""
    nums = [v for v in values if _is_num(v)]
    return sum(nums) if nums else None


# ---------------------------------------------------------------------------
# Margins and efficiency
# ---------------------------------------------------------------------------

def gross_margin(gross_profit: float | None, revenue: float | None) -> float | None:
    return to_percent(_safe_div(gross_profit, revenue))


def net_margin(net_income: float | None, revenue: float | None) -> float | None:
    return to_percent(_safe_div(net_income, revenue))


def sga_efficiency(sga: float | None, revenue: float | None) -> float | None:
    return to_percent(_safe_div(sga, revenue))


def rd_reliance(rd: float | None, revenue: float | None) -> float | None:
    return to_percent(_safe_div(rd, revenue))


def capex_efficiency(capex: float | None, operating_cash_flow: float | None) -> float | None:
    if not _is_num(capex) or not _is_num(operating_cash_flow):
        return None
    return to_percent(_safe_div(abs(capex), abs(operating_cash_flow)))


# ---------------------------------------------------------------------------
# Leverage and returns
# ---------------------------------------------------------------------------

def interest_coverage(ebit: float | None, interest_expense: float | None) -> float | None:
    if not _is_num(ebit) or not _is_num(interest_expense):
        return None
    return to_ratio(_safe_div(abs(ebit), abs(interest_expense)))


def debt_to_equity(
    long_debt: float | None,
    short_debt: float | None,
    equity: float | None,
) -> float | None:
    return to_ratio(_safe_div(sum_available(long_debt, short_debt), equity))


def return_on_equity(net_income: float | None, equity: float | None) -> float | None:
    return to_percent(_safe_div(net_income, equity))


def free_cash_flow(operating_cash_flow: float | None, capex: float | None) -> float | None:
    """FCF = CFO - |capex| (capex sign differs across providers)."""
    if not _is_num(operating_cash_flow) or not _is_num(capex):
        return None
    return operating_cash_flow - abs(capex)


def working_capital(current_assets: float | None, current_liabilities: float | None) -> float | None:
    if not _is_num(current_assets) or not _is_num(current_liabilities):
        return None
    return current_assets - current_liabilities


# ---------------------------------------------------------------------------
# Durability
# ---------------------------------------------------------------------------

def consistent_earnings(
    net_incomes: list[float | None],
    fiscal_years: list[int | None] | None = None,
) -> tuple[int | None, int | None, bool | None]:
    """
    Return (profitable_years, total_years, passes).

    With fiscal_years (aligned with net_incomes) the values are quarters and
    are summed per fiscal year first; otherwise each value is one year.
    passes = every available year profitable and at least 5 years of
    history. All three are None when there is no history at all.
    """
    if fiscal_years is None:
        values = [v for v in net_incomes if _is_num(v)]
    else:
        by_year: dict[int, float] = {}
        for fy, v in zip(fiscal_years, net_incomes):
            if fy is not None and _is_num(v):
                by_year[fy] = by_year.get(fy, 0.0) + v
        values = list(by_year.values())
    if not values:
        return None, None, None
    profitable = sum(1 for v in values if v > 0)
    total = len(values)
    return profitable, total, (profitable == total and total >= MIN_CONSISTENT_YEARS)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

def altman_z(
    working_capital: float | None,
    retained_earnings: float | None,
    ebit: float | None,
    market_value_equity: float | None,
    total_liabilities: float | None,
    sales: float | None,
    total_assets: float | None,
) -> float | None:
    inputs = (
        working_capital, retained_earnings, ebit, market_value_equity,
        total_liabilities, sales, total_assets,
    )
    if not all(_is_num(v) for v in inputs):
        return None
    if total_assets == 0 or total_liabilities == 0:
        return None

    z = (
        1.2 * (working_capital / total_assets)
        + 1.4 * (retained_earnings / total_assets)
        + 3.3 * (ebit / total_assets)
        + 0.6 * (market_value_equity / total_liabilities)
        + 1.0 * (sales / total_assets)
    )
    return to_ratio(z)


def solvency_label(z: float | None) -> str:
    if not _is_num(z):
        return "Unknown"
    if z >= SOLVENCY_SAFE:
        return "Safe"
    if z >= SOLVENCY_CAUTION:
        return "Caution"
    return "Risk"


def shareholder_yield(
    dividends_paid: float | None,
    share_repurchases: float | None,
    market_cap: float | None,
) -> float | None:
    if not _is_num(market_cap) or market_cap == 0:
        return None
    if not _is_num(dividends_paid) and not _is_num(share_repurchases):
        return None
    returned = (
        (abs(dividends_paid) if _is_num(dividends_paid) else 0.0)
        + (abs(share_repurchases) if _is_num(share_repurchases) else 0.0)
    )
    return to_percent(_safe_div(returned, market_cap))
