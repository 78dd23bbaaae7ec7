from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Type, Union

from .dtypes import FLOAT64, DTypeLike, Precision, as_precision


class SummationType(str, Enum):
    """Summation policy enum for stable JSON serialization."""

    kahan = "kahan"
    neumaier = "neumaier"


class CompensatedSum(ABC):
    """
    Running sum that carries the low order bits lost to rounding.

    Accepts plain numbers (not other sums). NaN and inf propagate through the
    arithmetic; there is no failure mode.
    """

    def __init__(self, precision: Union[Precision, DTypeLike] = FLOAT64) -> None:
        self.precision = as_precision(precision)
        if not self.precision.is_floating_point:
            raise ValueError(
                f"Compensated summation needs a floating dtype, got {self.precision.name}"
            )
        self.sum = 0.0
        self.correction = 0.0

    @abstractmethod
    def add(self, value: float) -> None:
        """Add one term in place."""
        raise NotImplementedError

    @property
    @abstractmethod
    def value(self) -> float:
        """Best estimate of the true sum."""
        raise NotImplementedError

    def __iadd__(self, value: float) -> "CompensatedSum":
        self.add(value)
        return self

    def __float__(self) -> float:
        return self.value

    def reset(self) -> None:
        self.sum = 0.0
        self.correction = 0.0

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(sum={self.sum!r}, correction={self.correction!r}, "
            f"precision={self.precision.name})"
        )


class KahanSum(CompensatedSum):
    """
    Classic Kahan summation.

    Assumes the correction never exceeds the incoming term in magnitude, which holds
    for the running mean update where deltas are already divided by the weight.
    `correction` holds the negative low order bits of `sum`.
    """

    def add(self, value: float) -> None:
        cast = self.precision.cast
        y = cast(value - self.correction)
        t = cast(self.sum + y)
        # (t - sum) recovers the high part of y; must not be simplified algebraically
        self.correction = cast(cast(t - self.sum) - y)
        self.sum = t

    @property
    def value(self) -> float:
        return self.sum


class NeumaierSum(CompensatedSum):
    """
    Kahan-Babuska-Neumaier summation.

    Also correct when an incoming term is larger than the running sum, at the cost
    of one magnitude comparison per add. `correction` holds the low order bits of
    `sum` and is folded in on read.
    """

    def add(self, value: float) -> None:
        cast = self.precision.cast
        t = cast(self.sum + value)
        if abs(self.sum) >= abs(value):
            self.correction = cast(self.correction + cast(cast(self.sum - t) + value))
        else:
            self.correction = cast(self.correction + cast(cast(value - t) + self.sum))
        self.sum = t

    @property
    def value(self) -> float:
        return self.precision.cast(self.sum + self.correction)


_SUM_BY_TYPE: Dict[SummationType, Type[CompensatedSum]] = {
    SummationType.kahan: KahanSum,
    SummationType.neumaier: NeumaierSum,
}


def build_summation(
    summation: Union[SummationType, str] = SummationType.kahan,
    precision: Union[Precision, DTypeLike] = FLOAT64,
) -> CompensatedSum:
    """Factory: build an empty accumulator for the given policy and precision."""
    stype = SummationType(summation)
    sum_cls = _SUM_BY_TYPE.get(stype)
    if sum_cls is None:
        raise ValueError(f"Unknown summation type: {summation}")
    return sum_cls(precision)
