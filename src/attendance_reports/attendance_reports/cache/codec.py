"""Payload framing for the shared tier.

Values are serialized to compact JSON. Payloads above the compression threshold are gzipped
and framed with ``GZIP:``; the rest are framed with ``JSON:``.
"""
from __future__ import annotations

import gzip
import json
import time
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, NamedTuple

PLAIN_PREFIX = b"JSON:"
GZIP_PREFIX = b"GZIP:"


class CodecError(ValueError):
    """Stored bytes are not a payload this codec wrote."""


def _default(o: Any):
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    if isinstance(o, Decimal):
        return float(o)
    if isinstance(o, Enum):
        return o.value
    if isinstance(o, (set, frozenset)):
        return sorted(o)
    if is_dataclass(o) and not isinstance(o, type):
        return asdict(o)
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


def serialize(value: Any) -> bytes:
    return json.dumps(value, default=_default, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def deserialize(data: bytes) -> Any:
    return json.loads(data.decode("utf-8"))


def compress(payload: bytes) -> bytes:
    # mtime=0 keeps output deterministic for identical payloads.
    return gzip.compress(payload, mtime=0)


def decompress(payload: bytes) -> bytes:
    return gzip.decompress(payload)


class Encoded(NamedTuple):
    data: bytes
    raw: bytes
    compressed: bool
    elapsed_ms: float


class Decoded(NamedTuple):
    value: Any
    compressed: bool
    elapsed_ms: float


class PayloadCodec:
    def __init__(self, threshold_bytes: int):
        self._threshold = int(threshold_bytes)

    @property
    def threshold_bytes(self) -> int:
        return self._threshold

    def encode(self, value: Any) -> Encoded:
        raw = serialize(value)
        if len(raw) <= self._threshold:
            return Encoded(PLAIN_PREFIX + raw, raw, False, 0.0)
        start = time.perf_counter()
        packed = compress(raw)
        elapsed = (time.perf_counter() - start) * 1000
        return Encoded(GZIP_PREFIX + packed, raw, True, elapsed)

    def decode(self, data: bytes) -> Decoded:
        if data.startswith(GZIP_PREFIX):
            start = time.perf_counter()
            raw = decompress(data[len(GZIP_PREFIX):])
            elapsed = (time.perf_counter() - start) * 1000
            return Decoded(deserialize(raw), True, elapsed)
        if data.startswith(PLAIN_PREFIX):
            return Decoded(deserialize(data[len(PLAIN_PREFIX):]), False, 0.0)
        raise CodecError("payload has no known frame prefix")
