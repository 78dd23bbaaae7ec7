"""
Constants for the running statistics engines.
"""

DEFAULT_ALPHA = 1.0
DEFAULT_SAMPLE_DTYPE = "float64"
DEFAULT_ACCUM_DTYPE = "float64"

# describe() output when no samples were added
UNAVAILABLE = "unavail"

# Newton's method from 1.0 needs ~540 halvings for the float64 extremes
MAX_SQRT_ITERATIONS = 4096

SNAPSHOT_LOG_NAME = "stats_snapshots.jsonl"
