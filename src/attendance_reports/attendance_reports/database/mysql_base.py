from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def executemany_chunked(cur, sql: str, params: Iterable[Sequence[Any]], *, chunk_size: int = 1000) -> int:
    """Run ``executemany`` in fixed-size chunks, preserving the input order.

    Level tables are written in clustered-key order, so callers pass already sorted rows.
    """

    total = 0
    chunk: list[Sequence[Any]] = []
    for p in params:
        chunk.append(p)
        if len(chunk) >= chunk_size:
            cur.executemany(sql, chunk)
            total += len(chunk)
            chunk.clear()
    if chunk:
        cur.executemany(sql, chunk)
        total += len(chunk)
    return total
