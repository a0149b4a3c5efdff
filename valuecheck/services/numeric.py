"""Numeric utilities shared by the valuation engine."""

import math
from collections.abc import Callable


def bisect_increasing(
    func: Callable[[float], float | None],
    target: float,
    low: float,
    high: float,
    iterations: int = 30,
    tolerance: float = 0.0,
) -> float | None:
    """
    Find x in [low, high] with func(x) == target by bisection.

    Precondition: func is defined and monotonically increasing on [low, high].
    This is not checked; a non-monotonic func silently converges somewhere
    in the interval. When target lies outside [func(low), func(high)] the
    result converges to the nearer bound.

    Runs `iterations` halvings, stopping early once the bracket is narrower
    than `tolerance`. Returns the midpoint of the final bracket, so the error
    is at most (high - low) / 2**(iterations + 1). Returns None as soon as
    func yields None or a non-finite value.
    """
    lo, hi = low, high
    for _ in range(iterations):
        if hi - lo <= tolerance:
            break
        mid = (lo + hi) / 2
        value = func(mid)
        if value is None or not math.isfinite(value):
            return None
        if value > target:
            hi = mid
        else:
            lo = mid
    return (lo + hi) / 2
