import math
from collections import deque
from typing import Deque, Union

from .constants import DEFAULT_ACCUM_DTYPE, DEFAULT_ALPHA, DEFAULT_SAMPLE_DTYPE, UNAVAILABLE
from .dtypes import DTypeLike, Precision, as_precision
from .utils.stats_utils import Values, float_div, iter_values


class ReferenceStatistics:
    """
    Naive weighted running statistics that keep every sample.

    Slower and unbounded in memory; every query walks the full history. Exists to
    check `Statistics` in tests and must not be fed from a real time thread.

    No compensated summation or other tricks are used. For independent testing,
    min and max treat NaN differently from `Statistics`: the first sample always
    initialises them, so a leading NaN sticks.
    """

    def __init__(
        self,
        alpha: float = DEFAULT_ALPHA,
        sample_dtype: Union[Precision, DTypeLike] = DEFAULT_SAMPLE_DTYPE,
        accum_dtype: Union[Precision, DTypeLike] = DEFAULT_ACCUM_DTYPE,
    ) -> None:
        self.sample_precision = as_precision(sample_dtype)
        self.accum_precision = as_precision(accum_dtype)
        if not self.accum_precision.is_floating_point:
            raise ValueError(
                f"Accumulation dtype must be floating point, got {self.accum_precision.name}"
            )
        self._alpha = self.accum_precision.cast(alpha)
        self._min = self.sample_precision.zero
        self._max = self.sample_precision.zero
        # index 0 is the most recent sample
        self._data: Deque = deque()
        self._alphas: Deque[float] = deque()

    @classmethod
    def from_values(
        cls,
        values: Values,
        alpha: float = DEFAULT_ALPHA,
        sample_dtype: Union[Precision, DTypeLike] = DEFAULT_SAMPLE_DTYPE,
        accum_dtype: Union[Precision, DTypeLike] = DEFAULT_ACCUM_DTYPE,
    ) -> "ReferenceStatistics":
        stats = cls(alpha, sample_dtype, accum_dtype)
        stats.extend(values)
        return stats

    @property
    def alpha(self) -> float:
        return self._alpha

    def set_alpha(self, alpha: float) -> None:
        self._alpha = self.accum_precision.cast(alpha)

    def add(self, value) -> None:
        value = self.sample_precision.cast(value)
        if self.n == 0:
            self._max = value
            self._min = value
        elif value > self._max:
            self._max = value
        elif value < self._min:
            self._min = value

        self._data.appendleft(value)
        self._alphas.appendleft(self._alpha)

    def extend(self, values: Values) -> None:
        for v in iter_values(values):
            self.add(v)

    def reset(self) -> None:
        self._min = self.sample_precision.zero
        self._max = self.sample_precision.zero
        self._data.clear()
        self._alphas.clear()

    @property
    def n(self) -> int:
        return len(self._data)

    @property
    def weight(self) -> float:
        d = self.accum_precision.cast
        weight = 0.0
        alpha_i = 1.0
        for a in self._alphas:
            weight = d(weight + alpha_i)
            alpha_i = d(alpha_i * a)
        return weight

    @property
    def weight2(self) -> float:
        d = self.accum_precision.cast
        weight2 = 0.0
        alpha2_i = 1.0
        for a in self._alphas:
            weight2 = d(weight2 + alpha2_i)
            alpha2_i = d(alpha2_i * d(a * a))
        return weight2

    @property
    def mean(self) -> float:
        if self.n == 0:
            return 0.0
        d = self.accum_precision.cast
        wsum = 0.0
        alpha_i = 1.0
        for x, a in zip(self._data, self._alphas):
            wsum = d(wsum + d(alpha_i * x))
            alpha_i = d(alpha_i * a)
        return d(wsum / self.weight)

    @property
    def min(self):
        return self._min

    @property
    def max(self):
        return self._max

    @property
    def variance(self) -> float:
        if self.n < 2:
            return 0.0
        d = self.accum_precision.cast
        weight = self.weight
        return d(
            float_div(self._unweighted_variance(), d(weight - d(self.weight2 / weight)))
        )

    @property
    def pop_variance(self) -> float:
        if self.n < 1:
            return 0.0
        return self.accum_precision.cast(self._unweighted_variance() / self.weight)

    @property
    def std_dev(self) -> float:
        # negative rounding residue clamps to 0, as in Statistics
        return math.sqrt(max(self.variance, 0.0))

    @property
    def pop_std_dev(self) -> float:
        return math.sqrt(max(self.pop_variance, 0.0))

    def _unweighted_variance(self) -> float:
        d = self.accum_precision.cast
        mean = self.mean
        wsum = 0.0
        alpha_i = 1.0
        for x, a in zip(self._data, self._alphas):
            diff = d(x - mean)
            wsum = d(wsum + d(d(alpha_i * diff) * diff))
            alpha_i = d(alpha_i * a)
        return wsum

    def describe(self) -> str:
        n = self.n
        if n == 0:
            return UNAVAILABLE
        parts = [f"ave={self.mean}"]
        if n > 1:
            parts.append(f"std={self.std_dev}")
        parts.append(f"min={self.min}")
        parts.append(f"max={self.max}")
        return " ".join(parts)

    def __str__(self) -> str:
        return self.describe()
