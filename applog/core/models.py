"""
Data models for log records.

Defines the decoded log entry shown to the user.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class LogRecord:
    """One log entry decoded from the stream.

    Records are immutable once decoded and are consumed exactly once
    by the formatter.
    """
    timestamp: datetime
    message: str
    source: str
    unit: Optional[str] = None
