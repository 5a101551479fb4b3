"""
Stream orchestration.

Pulls chunks from a byte source, decodes them into records and writes
each formatted record to the sink before reading the next chunk.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from .decoder import StreamDecoder
from .formatter import LogFormatter

logger = logging.getLogger(__name__)

DIAGNOSTIC_PREFIX = "Error: "


class Sink(Protocol):
    """Write-only text destination, usually the terminal."""

    def write(self, text: str) -> object:
        ...


@dataclass(frozen=True)
class StreamOutcome:
    """Result of one stream session."""
    records_written: int
    remaining: bytes = b""

    @property
    def has_diagnostic(self) -> bool:
        """Whether undecodable trailing bytes were reported."""
        return bool(self.remaining)


def _emit(sink: Sink, text: str) -> None:
    sink.write(text)
    flush = getattr(sink, "flush", None)
    if flush is not None:
        flush()


def stream_logs(
    source: Iterable[bytes],
    sink: Sink,
    formatter: Optional[LogFormatter] = None,
    decoder: Optional[StreamDecoder] = None
) -> StreamOutcome:
    """Display every record of a byte stream as soon as it decodes.

    Runs until the source is exhausted, which in follow mode only happens
    when the server closes the connection. Bytes that never decoded are
    written once at the end as an ``Error:`` annotation.

    Args:
        source: Iterable of raw byte chunks in arrival order
        sink: Destination for formatted lines
        formatter: Record formatter (plain, local timezone when None)
        decoder: Decoder owning the accumulation buffer (new one when None)

    Returns:
        StreamOutcome with the record count and undecoded remainder

    Raises:
        Any transport error raised by the source, unchanged
    """
    formatter = formatter or LogFormatter(color=False)
    decoder = decoder or StreamDecoder()
    written = 0

    for chunk in source:
        if not chunk:
            continue
        for record in decoder.feed(chunk):
            _emit(sink, formatter.format(record))
            written += 1

    remaining = decoder.remaining()
    if remaining:
        logger.debug("Stream ended with %d undecodable bytes", len(remaining))
        _emit(sink, DIAGNOSTIC_PREFIX + remaining.decode("utf-8", errors="replace"))
    logger.debug("Stream finished after %d records", written)

    return StreamOutcome(records_written=written, remaining=remaining)
