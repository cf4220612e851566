import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "attendance_db"),
    "pool_size": int(os.getenv("DB_POOL_SIZE", "20")),
    "pool_wait_seconds": float(os.getenv("DB_POOL_WAIT_SECONDS", "5")),
}

REDIS_CONFIG = {
    "enabled": bool(int(os.getenv("REDIS_ENABLED", "1"))),
    "url": os.getenv("REDIS_URL"),
    "host": os.getenv("REDIS_HOST", "localhost"),
    "port": int(os.getenv("REDIS_PORT", "6379")),
    "db": int(os.getenv("REDIS_DB", "0")),
    "password": os.getenv("REDIS_PASSWORD", ""),
    "socket_timeout": float(os.getenv("REDIS_SOCKET_TIMEOUT", "0.5")),
}

CACHE_CONFIG = {
    "l0_ttl_seconds": os.getenv("CACHE_L0_TTL_SECONDS", "600"),
    "l1_ttl_seconds": os.getenv("CACHE_L1_TTL_SECONDS", "3600"),
    "compression_threshold_bytes": os.getenv("CACHE_COMPRESSION_THRESHOLD_BYTES", "10240"),
    "dedup_grace_seconds": os.getenv("CACHE_DEDUP_GRACE_SECONDS", "0.1"),
    "l0_max_entries": os.getenv("CACHE_L0_MAX_ENTRIES", "10000"),
    "shared_failure_threshold": os.getenv("CACHE_SHARED_FAILURE_THRESHOLD", "3"),
    "shared_reset_seconds": os.getenv("CACHE_SHARED_RESET_SECONDS", "30"),
    "shared_retry_attempts": os.getenv("CACHE_SHARED_RETRY_ATTEMPTS", "2"),
    "aggregator_max_workers": os.getenv("AGGREGATOR_MAX_WORKERS", "8"),
}

AGGREGATION_POLICY = os.getenv("AGGREGATION_POLICY", "fail_fast")

DEBUG = False

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
