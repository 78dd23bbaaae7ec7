"""
Running weighted mean, variance, min and max of a sample stream.

The weighting is like an IIR filter: the most recent sample has weight 1 and every
older sample decays by alpha per step. With alpha == 1 this is rectangular weighting
and the update reduces to Welford's algorithm.

    weight = sum_{i=1}^n alpha^{n-i}
    mean   = 1/weight * sum_{i=1}^n alpha^{n-i} x_i
    var    = 1/weight * sum_{i=1}^n alpha^{n-i} (x_i - mean)^2

Updates take constant time and storage, so `add` and the accessors may be driven
from a latency sensitive producer (an audio callback, say). `describe` formats a
string and should stay off that path.

With alpha == 1 and float32 accumulation, reset before 1 << 23 samples (1 << 52 for
float64) or the weight loses precision and the variance drifts. Continuously running
statistics should use alpha < 1 - 32 * eps of the accumulation type.

Alpha may change between samples based on how reliable new data is, and may be set
above 1 temporarily to emphasise recent samples. It is never clamped.

Instances are not synchronised; one writer at a time is the caller's contract.
"""

import math
from typing import Union

from .constants import (
    DEFAULT_ACCUM_DTYPE,
    DEFAULT_ALPHA,
    DEFAULT_SAMPLE_DTYPE,
    UNAVAILABLE,
)
from .dtypes import DTypeLike, Precision, as_precision
from .summation import SummationType, build_summation
from .utils.stats_utils import Values, float_div, iter_values


class Statistics:
    """Exponentially weighted running statistics with a compensated mean."""

    def __init__(
        self,
        alpha: float = DEFAULT_ALPHA,
        sample_dtype: Union[Precision, DTypeLike] = DEFAULT_SAMPLE_DTYPE,
        accum_dtype: Union[Precision, DTypeLike] = DEFAULT_ACCUM_DTYPE,
        summation: Union[SummationType, str] = SummationType.kahan,
    ) -> None:
        self.sample_precision = as_precision(sample_dtype)
        self.accum_precision = as_precision(accum_dtype)
        if not self.accum_precision.is_floating_point:
            raise ValueError(
                f"Accumulation dtype must be floating point, got {self.accum_precision.name}"
            )
        self.summation = SummationType(summation)

        self._alpha = self.accum_precision.cast(alpha)
        self._mean = build_summation(self.summation, self.accum_precision)
        self._min = self.sample_precision.positive_infinity
        self._max = self.sample_precision.negative_infinity
        self._n = 0
        self._weight = 0.0
        self._weight2 = 0.0
        self._m2 = 0.0

    @classmethod
    def from_values(
        cls,
        values: Values,
        alpha: float = DEFAULT_ALPHA,
        sample_dtype: Union[Precision, DTypeLike] = DEFAULT_SAMPLE_DTYPE,
        accum_dtype: Union[Precision, DTypeLike] = DEFAULT_ACCUM_DTYPE,
        summation: Union[SummationType, str] = SummationType.kahan,
    ) -> "Statistics":
        stats = cls(alpha, sample_dtype, accum_dtype, summation)
        stats.extend(values)
        return stats

    @property
    def alpha(self) -> float:
        return self._alpha

    def set_alpha(self, alpha: float) -> None:
        """Change the decay for subsequent samples; history is not reweighted."""
        self._alpha = self.accum_precision.cast(alpha)

    def add(self, value) -> None:
        d = self.accum_precision.cast
        value = self.sample_precision.cast(value)

        # comparison order rejects NaN
        if self._max < value:
            self._max = value
        if value < self._min:
            self._min = value

        self._n += 1
        alpha = self._alpha
        delta = d(value - self._mean.value)
        self._weight = d(1.0 + d(alpha * self._weight))
        self._weight2 = d(1.0 + d(d(alpha * alpha) * self._weight2))
        self._mean += d(delta / self._weight)
        # delta * (value - new mean) is non-negative, as in Welford's update
        self._m2 = d(d(alpha * self._m2) + d(delta * d(value - self._mean.value)))

    def extend(self, values: Values) -> None:
        for v in iter_values(values):
            self.add(v)

    def reset(self) -> None:
        self._min = self.sample_precision.positive_infinity
        self._max = self.sample_precision.negative_infinity
        self._n = 0
        self._weight = 0.0
        self._weight2 = 0.0
        self._mean.reset()
        self._m2 = 0.0

    @property
    def n(self) -> int:
        return self._n

    @property
    def weight(self) -> float:
        return self._weight

    @property
    def weight2(self) -> float:
        return self._weight2

    @property
    def mean(self) -> float:
        return self._mean.value

    @property
    def min(self):
        return self._min

    @property
    def max(self):
        return self._max

    @property
    def sample_weight(self) -> float:
        """
        Reliability weight correction for the unbiased variance.

        The mean is estimated from the same samples, so the divisor is
        weight - weight2 / weight. For constant alpha this equals
        (weight - 1) * 2 / (1 + alpha), and weight - 1 when alpha == 1.
        """
        if self._weight == 0.0:
            return 0.0
        d = self.accum_precision.cast
        return d(self._weight - d(self._weight2 / self._weight))

    @property
    def variance(self) -> float:
        # sample variance needs two samples
        if self._n < 2:
            return 0.0
        # alpha near zero can round the divisor to 0
        return self.accum_precision.cast(float_div(self._m2, self.sample_weight))

    @property
    def pop_variance(self) -> float:
        if self._n < 1:
            return 0.0
        return self.accum_precision.cast(self._m2 / self._weight)

    @property
    def std_dev(self) -> float:
        """
        Square root of `variance`. A variance rounded a few ulps below zero gives
        0.0 rather than NaN; NaN and inf variances pass through.
        """
        return _sqrt(self.variance)

    @property
    def pop_std_dev(self) -> float:
        return _sqrt(self.pop_variance)

    def describe(self) -> str:
        if self._n == 0:
            return UNAVAILABLE
        parts = [f"ave={self.mean}"]
        if self._n > 1:
            # sample std is not unbiased even though the sample variance is
            parts.append(f"std={self.std_dev}")
        parts.append(f"min={self.min}")
        parts.append(f"max={self.max}")
        return " ".join(parts)

    def __str__(self) -> str:
        return self.describe()

    def __repr__(self) -> str:
        return (
            f"Statistics(alpha={self._alpha}, n={self._n}, "
            f"sample_dtype={self.sample_precision.name}, "
            f"accum_dtype={self.accum_precision.name}, "
            f"summation={self.summation.value})"
        )


def _sqrt(v: float) -> float:
    # m2 may dip a few ulps below zero; NaN still propagates
    if v < 0.0:
        return 0.0
    return math.sqrt(v)
