import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "attendance_test"),
}

REDIS_CONFIG = {"enabled": False}

CACHE_CONFIG = {
    "l0_ttl_seconds": 60,
    "l1_ttl_seconds": 120,
    "dedup_grace_seconds": 0.1,
    "aggregator_max_workers": 4,
}

AGGREGATION_POLICY = "fail_fast"

DEBUG = False
TESTING = True

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
