import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "attendance_db"),
    "pool_size": int(os.getenv("DB_POOL_SIZE", "10")),
    "pool_wait_seconds": float(os.getenv("DB_POOL_WAIT_SECONDS", "5")),
}

# Shared (L1) cache tier. Set REDIS_ENABLED=0 to run on the local tier only.
REDIS_CONFIG = {
    "enabled": bool(int(os.getenv("REDIS_ENABLED", "1"))),
    "host": os.getenv("REDIS_HOST", "localhost"),
    "port": int(os.getenv("REDIS_PORT", "6379")),
    "db": int(os.getenv("REDIS_DB", "0")),
    "password": os.getenv("REDIS_PASSWORD", ""),
    "socket_timeout": float(os.getenv("REDIS_SOCKET_TIMEOUT", "1.0")),
}

CACHE_CONFIG = {
    "l0_ttl_seconds": os.getenv("CACHE_L0_TTL_SECONDS"),
    "l1_ttl_seconds": os.getenv("CACHE_L1_TTL_SECONDS"),
    "compression_threshold_bytes": os.getenv("CACHE_COMPRESSION_THRESHOLD_BYTES"),
    "dedup_grace_seconds": os.getenv("CACHE_DEDUP_GRACE_SECONDS"),
    "l0_max_entries": os.getenv("CACHE_L0_MAX_ENTRIES"),
}

AGGREGATION_POLICY = os.getenv("AGGREGATION_POLICY", "fail_fast")

DEBUG = True

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
