import math
from statistics import NormalDist
from typing import Iterable, Iterator, Optional, Union

import torch

from ..constants import MAX_SQRT_ITERATIONS
from ..dtypes import FLOAT64, DTypeLike, Precision, as_precision
from ..summation import SummationType, build_summation

Values = Union[Iterable[float], torch.Tensor]


def iter_values(values: Values) -> Iterator[float]:
    """Iterate plain Python numbers from an iterable or a tensor of any shape."""
    if isinstance(values, torch.Tensor):
        return iter(values.detach().flatten().tolist())
    return iter(values)


def _element_precision(
    values: Values, precision: Optional[Union[Precision, DTypeLike]]
) -> Precision:
    if precision is not None:
        return as_precision(precision)
    if isinstance(values, torch.Tensor):
        return Precision(values.dtype)
    return FLOAT64


def stats_max(
    values: Values, precision: Optional[Union[Precision, DTypeLike]] = None
):
    """
    Maximum of the elements.

    Args:
        values: Iterable of numbers or a tensor (flattened).
        precision: Element type; defaults to the tensor dtype, else float64.

    Returns:
        The maximum, or negative infinity (the dtype minimum for integer types)
        when there are no elements. NaN elements are skipped.
    """
    max_value = _element_precision(values, precision).negative_infinity
    for v in iter_values(values):
        if max_value < v:
            max_value = v
    return max_value


def stats_min(
    values: Values, precision: Optional[Union[Precision, DTypeLike]] = None
):
    """
    Minimum of the elements.

    Args:
        values: Iterable of numbers or a tensor (flattened).
        precision: Element type; defaults to the tensor dtype, else float64.

    Returns:
        The minimum, or positive infinity (the dtype maximum for integer types)
        when there are no elements. NaN elements are skipped.
    """
    min_value = _element_precision(values, precision).positive_infinity
    for v in iter_values(values):
        if v < min_value:
            min_value = v
    return min_value


def stats_sum(
    values: Values,
    precision: Union[Precision, DTypeLike] = FLOAT64,
    summation: Union[SummationType, str] = SummationType.kahan,
) -> float:
    """
    Compensated sum of the elements.

    Args:
        values: Iterable of numbers or a tensor (flattened).
        precision: Accumulation precision (floating point).
        summation: Compensated summation policy.

    Returns:
        The sum estimate, 0.0 for no elements.
    """
    p = as_precision(precision)
    acc = build_summation(summation, p)
    for v in iter_values(values):
        acc += p.cast(v)
    return float(acc)


def stats_sum_sq_diff(
    values: Values,
    x: float = 0.0,
    precision: Union[Precision, DTypeLike] = FLOAT64,
    summation: Union[SummationType, str] = SummationType.kahan,
) -> float:
    """
    Compensated sum of squared differences, sum_i (v_i - x)^2.

    Args:
        values: Iterable of numbers or a tensor (flattened).
        x: Reference value the differences are taken from.
        precision: Accumulation precision (floating point).
        summation: Compensated summation policy.

    Returns:
        The sum estimate, 0.0 for no elements.
    """
    p = as_precision(precision)
    acc = build_summation(summation, p)
    x = p.cast(x)
    for v in iter_values(values):
        diff = p.cast(v - x)
        acc += p.cast(diff * diff)
    return float(acc)


def float_div(num: float, den: float) -> float:
    """
    IEEE 754 division: a zero divisor gives a signed inf, or NaN for 0/0 and NaN/0,
    where Python would raise ZeroDivisionError.
    """
    if den != 0.0:
        return num / den
    if num == 0.0 or math.isnan(num):
        return math.nan
    return math.copysign(math.inf, num) * math.copysign(1.0, den)


def _sqrt_newton(x: float, cast) -> float:
    # Only valid for finite x > 0.
    prev = 1.0
    prev2 = None
    for _ in range(MAX_SQRT_ITERATIONS):
        nxt = cast(0.5 * cast(prev + cast(x / prev)))
        if nxt == prev:
            return nxt
        if nxt == prev2:
            # rounding can leave the iteration flipping between neighbours
            return min(nxt, prev)
        prev2, prev = prev, nxt
    return prev


def checked_sqrt(
    x: float, precision: Union[Precision, DTypeLike] = FLOAT64
) -> float:
    """
    Square root by Newton's method, evaluated in the given precision.

    Pure function for contexts that must not depend on the platform libm. Prefer
    math.sqrt everywhere else.

    Negative inputs (including -inf) give NaN. NaN, +inf and zero are returned
    unchanged since the iteration does not converge on them.
    """
    p = as_precision(precision)
    if not p.is_floating_point:
        raise ValueError(f"checked_sqrt needs a floating dtype, got {p.name}")
    x = p.cast(x)
    if x < 0.0:
        return math.nan
    if math.isnan(x) or x == math.inf or x == 0.0:
        return x
    return _sqrt_newton(x, p.cast)


def z_from_confidence(ci_confidence: float) -> float:
    """Two-sided normal z for given confidence, e.g. 0.95 -> 1.9599..."""
    if not (0.0 < ci_confidence < 1.0):
        raise ValueError("ci_confidence must be in (0, 1)")
    alpha = 1.0 - float(ci_confidence)
    return NormalDist().inv_cdf(1.0 - alpha / 2.0)


def effective_sample_size(weight: float, weight2: float) -> float:
    """Kish effective sample size of a weighted sample, weight^2 / sum(w_i^2)."""
    if weight2 <= 0.0:
        return 0.0
    return weight * weight / weight2


def normal_mean_bounds(stats, z: float) -> tuple[float, float, float]:
    """
    Return (low, high, se) for the running mean under normal approx.

    `stats` is anything exposing mean, variance, weight and weight2, so both the
    running engine and the reference oracle work. The effective sample size
    replaces n so exponentially weighted streams get honest bounds.
    """
    mean = stats.mean
    var = stats.variance
    n_eff = effective_sample_size(stats.weight, stats.weight2)
    if stats.n <= 1 or n_eff <= 0.0 or not var > 0.0 or z <= 0.0:
        return mean, mean, 0.0
    se = math.sqrt(var / n_eff)
    return mean - z * se, mean + z * se, se
