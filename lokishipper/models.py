"""
Log record types shipped to Loki.

A LogEntry is created by the producer at call time and is immutable from
then on. Timestamps are nanoseconds since the Unix epoch, which is the
resolution the Loki push API expects.
"""

import logging
import time
from enum import Enum
from functools import total_ordering

from pydantic import BaseModel, ConfigDict, Field, field_validator


@total_ordering
class LogLevel(Enum):
    """Log severity levels, ordered by declaration."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    CRITICAL = "critical"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, LogLevel):
            return NotImplemented
        members = list(LogLevel)
        return members.index(self) < members.index(other)

    @classmethod
    def from_logging(cls, levelno: int) -> "LogLevel":
        """Map a stdlib logging level number onto the closest LogLevel."""
        if levelno >= logging.CRITICAL:
            return cls.CRITICAL
        if levelno >= logging.ERROR:
            return cls.ERROR
        if levelno >= logging.WARNING:
            return cls.WARN
        if levelno >= logging.INFO:
            return cls.INFO
        return cls.DEBUG


def _encodable(text: str) -> str:
    """Replace lone surrogates, which cannot be encoded as UTF-8, with "?"."""
    return text.encode("utf-8", "replace").decode("utf-8")


class FrozenMetadata(dict):
    """Read-only dict used for LogEntry.metadata."""

    def _readonly(self, *args, **kwargs):
        raise TypeError("LogEntry metadata is immutable")

    __setitem__ = __delitem__ = __ior__ = _readonly
    clear = pop = popitem = setdefault = update = _readonly

    def __reduce__(self):
        return (FrozenMetadata, (dict(self),))


class LogEntry(BaseModel):
    """A single log record: timestamp, level, message and string metadata."""

    model_config = ConfigDict(frozen=True)

    timestamp: int = Field(default_factory=time.time_ns, ge=0)
    level: LogLevel
    message: str
    metadata: dict[str, str] = Field(default_factory=FrozenMetadata)

    @field_validator("message")
    @classmethod
    def _clean_message(cls, value: str) -> str:
        return _encodable(value)

    @field_validator("metadata")
    @classmethod
    def _freeze_metadata(cls, value: dict[str, str]) -> FrozenMetadata:
        return FrozenMetadata({_encodable(k): _encodable(v) for k, v in value.items()})
