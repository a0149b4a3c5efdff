"""
Valuation engine.

  DCF (per share)
    cash_t   = FCF * (1 + g)^t                     t = 1..10
    PV       = sum(cash_t / (1 + r)^t)
    terminal = cash_10 * (1 + tg) / (r - tg) / (1 + r)^10
    value    = (PV + terminal) / shares

    scenarios (g / r / tg):
      low   2%  / 12% / 2%
      base  5%  / 10% / 2%
      high  8%  /  8% / 2.5%

  Implied growth
    g such that DCF(g, r=10%, tg=2%) == price, by bisection over [-5%, 30%]
    (30 halvings). None when DCF at either bound is non-positive/undefined.

  Graham   = EPS * (8.5 + 2 * g%)    g clamped to [0, 15%], 5% when unknown
             None when EPS <= 0 or value > 6 * price
  Lynch    = EPS * g%                g clamped to [0, 25%], no fallback

  The two clamps differ on purpose; they are business rules, not derived.

Every function returns None instead of raising on missing / non-finite input.
"""

import logging
import math
from typing import Any

from valuecheck.services.numeric import bisect_increasing

logger = logging.getLogger(__name__)

DCF_YEARS = 10

DCF_SCENARIOS: dict[str, dict[str, float]] = {
    "low":  {"growth_rate": 0.02, "discount_rate": 0.12, "terminal_growth": 0.02},
    "base": {"growth_rate": 0.05, "discount_rate": 0.10, "terminal_growth": 0.02},
    "high": {"growth_rate": 0.08, "discount_rate": 0.08, "terminal_growth": 0.025},
}

IMPLIED_GROWTH_LOW = -0.05
IMPLIED_GROWTH_HIGH = 0.30
IMPLIED_GROWTH_ITERATIONS = 30

GRAHAM_BASE_PE = 8.5
GRAHAM_GROWTH_RANGE = (0.0, 0.15)
GRAHAM_GROWTH_FALLBACK = 0.05
GRAHAM_MAX_PRICE_MULTIPLE = 6.0

LYNCH_GROWTH_RANGE = (0.0, 0.25)

EPS_WINDOW = 3
EPS_MIN_POSITIVE = 2


def _is_num(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


# ---------------------------------------------------------------------------
# DCF
# ---------------------------------------------------------------------------

def dcf_value(
    free_cash_flow: float | None,
    shares_outstanding: float | None,
    growth_rate: float,
    discount_rate: float,
    terminal_growth: float,
    years: int = DCF_YEARS,
) -> float | None:
    """Per-share DCF fair value (unrounded)."""
    if not free_cash_flow or not shares_outstanding:
        return None
    if not all(_is_num(v) for v in (free_cash_flow, shares_outstanding, growth_rate, discount_rate, terminal_growth)):
        return None
    # Gordon growth is undefined unless r > tg
    if discount_rate <= terminal_growth:
        return None

    cash = free_cash_flow
    present_value = 0.0
    for year in range(1, years + 1):
        cash *= 1 + growth_rate
        present_value += cash / (1 + discount_rate) ** year

    terminal = cash * (1 + terminal_growth) / (discount_rate - terminal_growth)
    present_value += terminal / (1 + discount_rate) ** years

    value = present_value / shares_outstanding
    return value if _is_num(value) else None


def dcf_scenarios(
    free_cash_flow: float | None,
    shares_outstanding: float | None,
) -> dict[str, float | None]:
    """{"low", "base", "high"} per-share values, rounded to 2 decimals."""
    out: dict[str, float | None] = {}
    for name, params in DCF_SCENARIOS.items():
        value = dcf_value(free_cash_flow, shares_outstanding, **params)
        out[name] = round(value, 2) if value is not None else None
    return out


def implied_growth_rate(
    free_cash_flow: float | None,
    shares_outstanding: float | None,
    price: float | None,
    discount_rate: float = DCF_SCENARIOS["base"]["discount_rate"],
    terminal_growth: float = DCF_SCENARIOS["base"]["terminal_growth"],
    low: float = IMPLIED_GROWTH_LOW,
    high: float = IMPLIED_GROWTH_HIGH,
    iterations: int = IMPLIED_GROWTH_ITERATIONS,
) -> float | None:
    """
    Growth rate (fraction) at which the DCF value equals `price`.

    The DCF is increasing in g for positive cash flow, which the bisection
    relies on. A price outside [DCF(low), DCF(high)] converges to the nearer
    bound.
    """
    if not _is_num(price) or price <= 0:
        return None

    def value_at(g: float) -> float | None:
        return dcf_value(free_cash_flow, shares_outstanding, g, discount_rate, terminal_growth)

    at_low, at_high = value_at(low), value_at(high)
    if at_low is None or at_high is None or at_low <= 0 or at_high <= 0:
        return None

    return bisect_increasing(value_at, price, low, high, iterations=iterations)


# ---------------------------------------------------------------------------
# Graham / Lynch
# ---------------------------------------------------------------------------

def normalize_growth_rate(
    rate: float | None,
    low: float,
    high: float,
    fallback: float | None = None,
) -> float | None:
    """Clamp a growth fraction to [low, high]; missing/NaN -> fallback."""
    if not _is_num(rate):
        return fallback
    return min(max(rate, low), high)


def graham_value(
    eps: float | None,
    growth_rate: float | None,
    current_price: float | None = None,
) -> float | None:
    if not _is_num(eps) or eps <= 0:
        return None
    g = normalize_growth_rate(growth_rate, *GRAHAM_GROWTH_RANGE, fallback=GRAHAM_GROWTH_FALLBACK)
    value = eps * (GRAHAM_BASE_PE + 2 * g * 100)
    if not _is_num(value) or value <= 0:
        return None
    if _is_num(current_price) and current_price > 0 and value > GRAHAM_MAX_PRICE_MULTIPLE * current_price:
        logger.debug("[Valuation] Graham %.2f rejected, above %.0fx price %.2f",
                     value, GRAHAM_MAX_PRICE_MULTIPLE, current_price)
        return None
    return round(value, 2)


def lynch_value(eps: float | None, growth_rate: float | None) -> float | None:
    g = normalize_growth_rate(growth_rate, *LYNCH_GROWTH_RANGE)
    if g is None:
        return None
    if not _is_num(eps) or eps <= 0:
        return None
    return round(eps * g * 100, 2)


# ---------------------------------------------------------------------------
# Earnings inputs
# ---------------------------------------------------------------------------

def earnings_growth_rate(
    values_newest_first: list[float | None],
    periods_per_year: int = 1,
    years: float | None = None,
) -> float | None:
    """
    CAGR = (newest / oldest)^(1/years) - 1 over the whole series.

    years defaults to the point count over periods_per_year; callers with
    gaps in the series (no Q4 10-Q) pass the measured span instead.
    None when fewer than 2 points, the oldest value is not a profit, or the
    newest is not positive.
    """
    values = [v for v in values_newest_first if _is_num(v)]
    if len(values) < 2 or periods_per_year <= 0:
        return None
    newest, oldest = values[0], values[-1]
    if oldest <= 0 or newest <= 0:
        return None
    if years is None:
        years = (len(values) - 1) / periods_per_year
    if not _is_num(years) or years <= 0:
        return None
    rate = (newest / oldest) ** (1 / years) - 1
    return rate if _is_num(rate) else None


def normalized_eps(
    net_income_newest_first: list[float | None],
    shares_outstanding: float | None,
) -> float | None:
    """
    Mean of the positive net incomes among the trailing 3 periods, per share,
    when at least 2 are positive; otherwise latest net income per share.
    """
    if not _is_num(shares_outstanding) or shares_outstanding <= 0:
        return None
    window = [v for v in net_income_newest_first[:EPS_WINDOW] if _is_num(v)]
    if not window:
        return None
    positives = [v for v in window if v > 0]
    if len(positives) >= EPS_MIN_POSITIVE:
        return (sum(positives) / len(positives)) / shares_outstanding
    return window[0] / shares_outstanding
