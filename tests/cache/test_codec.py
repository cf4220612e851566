from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from src.attendance_reports.attendance_reports.cache.codec import (
    GZIP_PREFIX,
    PLAIN_PREFIX,
    CodecError,
    PayloadCodec,
)


def test_small_payload_is_framed_plain():
    codec = PayloadCodec(threshold_bytes=1024)
    encoded = codec.encode({"division_code": "66", "present": 10})

    assert encoded.data.startswith(PLAIN_PREFIX)
    assert not encoded.compressed
    assert codec.decode(encoded.data).value == {"division_code": "66", "present": 10}


def test_payload_above_threshold_is_gzipped_and_smaller():
    codec = PayloadCodec(threshold_bytes=1024)
    rows = [{"employee_id": f"E{i:05d}", "status": "Present"} for i in range(500)]

    encoded = codec.encode(rows)

    assert encoded.compressed
    assert encoded.data.startswith(GZIP_PREFIX)
    assert len(encoded.data) < len(encoded.raw)
    decoded = codec.decode(encoded.data)
    assert decoded.compressed
    assert decoded.value == rows


def test_threshold_is_inclusive_of_exact_size():
    sample = PayloadCodec(threshold_bytes=10).encode("x" * 100)
    size = len(sample.raw)

    assert not PayloadCodec(threshold_bytes=size).encode("x" * 100).compressed
    assert PayloadCodec(threshold_bytes=size - 1).encode("x" * 100).compressed


def test_dates_and_decimals_are_json_friendly():
    codec = PayloadCodec(threshold_bytes=1024)
    value = {"day": date(2026, 1, 5), "at": datetime(2026, 1, 5, 8, 0), "pct": Decimal("95.50")}

    decoded = codec.decode(codec.encode(value).data).value

    assert decoded == {"day": "2026-01-05", "at": "2026-01-05T08:00:00", "pct": 95.5}


def test_identical_values_encode_to_identical_bytes():
    codec = PayloadCodec(threshold_bytes=16)
    value = {"rows": list(range(200))}
    assert codec.encode(value).data == codec.encode(value).data


def test_unknown_frame_is_rejected():
    with pytest.raises(CodecError):
        PayloadCodec(threshold_bytes=10).decode(b'{"raw": true}')
