"""
Exponentially weighted running statistics with compensated summation.
"""

from .dtypes import Precision
from .summation import CompensatedSum, KahanSum, NeumaierSum, SummationType, build_summation
from .statistics import Statistics
from .reference import ReferenceStatistics
from .utils.stats_utils import (
    checked_sqrt,
    stats_max,
    stats_min,
    stats_sum,
    stats_sum_sq_diff,
)

__version__ = "0.1.0"

__all__ = [
    "Precision",
    "CompensatedSum",
    "KahanSum",
    "NeumaierSum",
    "SummationType",
    "build_summation",
    "Statistics",
    "ReferenceStatistics",
    "checked_sqrt",
    "stats_max",
    "stats_min",
    "stats_sum",
    "stats_sum_sq_diff",
]
