from .stats_utils import (
    checked_sqrt,
    effective_sample_size,
    float_div,
    iter_values,
    normal_mean_bounds,
    stats_max,
    stats_min,
    stats_sum,
    stats_sum_sq_diff,
    z_from_confidence,
)

__all__ = [
    "checked_sqrt",
    "effective_sample_size",
    "float_div",
    "iter_values",
    "normal_mean_bounds",
    "stats_max",
    "stats_min",
    "stats_sum",
    "stats_sum_sq_diff",
    "z_from_confidence",
]
