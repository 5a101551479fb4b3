"""
Record formatting for terminal display.

Turns decoded log records into display lines with a localized
timestamp and a colorized source/unit prefix.
"""

from dataclasses import dataclass
from datetime import tzinfo
from typing import Optional

from rich.color import ColorSystem
from rich.style import Style

from .models import LogRecord

# %Y is not zero padded for years below 1000 on every libc
_TIME_FORMAT = "%m-%d %H:%M:%S %z"

PREFIX_STYLE = Style(color="blue")


def colorize(text: str, color: bool = True, style: Style = PREFIX_STYLE) -> str:
    """Wrap text in ANSI escape codes for style when color is enabled."""
    if not color:
        return text
    return style.render(text, color_system=ColorSystem.STANDARD)


@dataclass(frozen=True)
class LogFormatter:
    """Formats log records as single display lines.

    Attributes:
        color: Whether the sink supports ANSI colors
        tz: Display timezone (the local timezone when None)
    """
    color: bool = True
    tz: Optional[tzinfo] = None

    def format_timestamp(self, record: LogRecord) -> str:
        """Render the record timestamp in the display timezone.

        Timestamps that fall outside the datetime range once converted
        (such as the zero time 0001-01-01T00:00:00Z) keep their own offset.
        """
        try:
            when = record.timestamp.astimezone(self.tz)
        except OverflowError:
            when = record.timestamp
        return f"{when.year:04d}-{when.strftime(_TIME_FORMAT)}"

    def prefix(self, record: LogRecord) -> str:
        """Build the undecorated ``<timestamp> [<source>][<unit>]:`` prefix."""
        date = self.format_timestamp(record)
        if record.unit:
            return f"{date} [{record.source}][{record.unit}]:"
        return f"{date} [{record.source}]:"

    def format(self, record: LogRecord) -> str:
        """Format a record as ``<decorated prefix> <message>`` plus newline."""
        return f"{colorize(self.prefix(record), self.color)} {record.message}\n"
