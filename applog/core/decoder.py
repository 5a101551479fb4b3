"""
Incremental decoding of the log stream.

The platform sends log records as JSON arrays written one after another
on a single long-lived HTTP response. Chunks can split an array (or a
UTF-8 sequence) at any byte, so decoding always runs over everything
received so far and only the bytes of complete arrays are consumed.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from .models import LogRecord

_JSON = json.JSONDecoder()
_WHITESPACE = re.compile(r"[ \t\n\r]*")
_FRACTION = re.compile(r"\.(\d+)")

_TIMESTAMP_KEYS = ("date", "timestamp")


class InvalidRecord(ValueError):
    """Raised when a decoded JSON value is not a valid log unit."""


def _six_digit_fraction(match: "re.Match") -> str:
    return "." + (match.group(1) + "000000")[:6]


def parse_timestamp(value: Any) -> datetime:
    """Parse an RFC 3339 timestamp into an aware datetime.

    Fractions are normalized to microseconds (nanoseconds are truncated),
    ``Z`` means UTC and timestamps without an offset are taken as UTC.

    Raises:
        InvalidRecord: If the value is not a parseable timestamp string
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidRecord(f"invalid timestamp: {value!r}")
    text = value.strip()
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(_six_digit_fraction, text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise InvalidRecord(f"invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def record_from_dict(data: Dict[str, Any]) -> LogRecord:
    """Build a LogRecord from one decoded JSON object.

    Keys are matched case-insensitively since the platform emits
    ``Date``, ``Message``, ``Source`` and ``Unit``.
    """
    fields = {str(key).lower(): value for key, value in data.items()}

    raw_timestamp = None
    for key in _TIMESTAMP_KEYS:
        if key in fields:
            raw_timestamp = fields[key]
            break

    unit = fields.get("unit")
    return LogRecord(
        timestamp=parse_timestamp(raw_timestamp),
        message=_as_text(fields.get("message"), "message"),
        source=_as_text(fields.get("source"), "source"),
        unit=_as_text(unit, "unit") or None,
    )


def _as_text(value: Any, name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidRecord(f"{name} must be a string, got {type(value).__name__}")
    return value


def _records_from_unit(value: Any) -> List[LogRecord]:
    if not isinstance(value, list):
        raise InvalidRecord(f"expected a JSON array, got {type(value).__name__}")
    records = []
    for item in value:
        if not isinstance(item, dict):
            raise InvalidRecord(f"expected a JSON object, got {type(item).__name__}")
        records.append(record_from_dict(item))
    return records


def _decode_text_prefix(data: bytes) -> str:
    """Decode the longest valid UTF-8 prefix of data."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        return data[:e.start].decode("utf-8")


def consume_prefix(data: bytes) -> Tuple[List[LogRecord], int]:
    """Decode as many complete units as possible from the start of data.

    Whitespace between and after units is consumed with them. Decoding
    stops at the first position that does not hold a complete, valid
    unit; that position is where the unconsumed remainder starts.

    Args:
        data: Bytes received so far and not yet consumed

    Returns:
        Tuple of (records in document order, number of bytes consumed)
    """
    text = _decode_text_prefix(data)
    records: List[LogRecord] = []
    position = 0

    while True:
        position = _WHITESPACE.match(text, position).end()
        if position == len(text):
            break
        try:
            value, end = _JSON.raw_decode(text, position)
            unit_records = _records_from_unit(value)
        except (json.JSONDecodeError, InvalidRecord):
            break
        records.extend(unit_records)
        position = end

    return records, len(text[:position].encode("utf-8"))


class StreamDecoder:
    """Accumulates stream bytes and emits records as they complete.

    The buffer holds exactly the bytes received that have not been
    consumed into a record yet. A parse failure is the normal state
    while an array is still arriving and is never raised.
    """

    def __init__(self):
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> List[LogRecord]:
        """Append chunk to the buffer and return newly completed records."""
        self._buffer.extend(chunk)
        records, consumed = consume_prefix(bytes(self._buffer))
        if consumed:
            del self._buffer[:consumed]
        return records

    def remaining(self) -> bytes:
        """Bytes received that never decoded into a record."""
        return bytes(self._buffer)
