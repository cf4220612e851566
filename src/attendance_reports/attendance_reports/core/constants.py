"""Constants and defaults.

Note: Keep tunables here to avoid magic numbers spread across the cache and index code.
"""

DEFAULT_L0_TTL_SECONDS = 600
DEFAULT_L1_TTL_SECONDS = 3600
DEFAULT_COMPRESSION_THRESHOLD_BYTES = 10 * 1024
DEFAULT_DEDUP_GRACE_SECONDS = 0.1
DEFAULT_L0_MAX_ENTRIES = 10_000

DEFAULT_SHARED_FAILURE_THRESHOLD = 3
DEFAULT_SHARED_RESET_SECONDS = 30
DEFAULT_SHARED_RETRY_ATTEMPTS = 2

DEFAULT_AGGREGATOR_MAX_WORKERS = 8

# Stands for an absent filter part in cache keys; never a valid hierarchy code.
ALL_CODES = "*"
