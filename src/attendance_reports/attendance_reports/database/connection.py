from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import mysql.connector
from mysql.connector import pooling
from mysql.connector.errors import PoolError
from tenacity import Retrying, retry_if_exception_type, stop_after_delay, wait_exponential

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    pool_size: int = 0
    # How long a caller waits for a pooled connection before PoolError reaches it.
    pool_wait_seconds: float = 5.0

    @classmethod
    def from_mapping(cls, db_config: Mapping[str, Any]) -> "DBConfig":
        return cls(
            host=str(db_config.get("host", "localhost")),
            port=int(db_config.get("port", 3306)),
            user=str(db_config.get("user", "root")),
            password=str(db_config.get("password", "")),
            database=str(db_config.get("database", "attendance_db")),
            pool_size=int(db_config.get("pool_size", 0)),
            pool_wait_seconds=float(db_config.get("pool_wait_seconds", 5.0)),
        )


class DatabaseConnection:
    """DB connection factory.

    Without a pool we create short-lived connections per operation. With ``pool_size`` set,
    connections come from a mysql-connector pool so dashboard fan-out does not pay a
    handshake per sub-query. The pool does not block when it is empty, so ``connect`` keeps
    asking for up to ``pool_wait_seconds``. One factory per container; nothing here is
    process-global.
    """

    def __init__(self, config: DBConfig):
        self._config = config
        self._pool: Optional[pooling.MySQLConnectionPool] = None
        self._pool_lock = threading.Lock()

    @property
    def config(self) -> DBConfig:
        return self._config

    def _connect_kwargs(self) -> dict:
        return {
            "host": self._config.host,
            "port": int(self._config.port),
            "user": self._config.user,
            "password": self._config.password,
            "database": self._config.database,
        }

    def _get_pool(self) -> pooling.MySQLConnectionPool:
        with self._pool_lock:
            if self._pool is None:
                self._pool = pooling.MySQLConnectionPool(
                    pool_name=f"reports_{self._config.database}",
                    pool_size=self._config.pool_size,
                    **self._connect_kwargs(),
                )
                logger.info("Opened MySQL pool of %d connections", self._config.pool_size)
            return self._pool

    def connect(self):
        if self._config.pool_size <= 0:
            return mysql.connector.connect(**self._connect_kwargs())

        pool = self._get_pool()
        retrying = Retrying(
            stop=stop_after_delay(self._config.pool_wait_seconds),
            wait=wait_exponential(multiplier=0.01, max=0.2),
            retry=retry_if_exception_type(PoolError),
            reraise=True,
        )
        return retrying(pool.get_connection)
