"""
Durable storage for log entries that could not be delivered.

LogBuffer appends batches here when retries are exhausted or when it
stops with entries still pending, and drains the store on the next
start(). A store holds at most one generation of pending entries
between load_and_clear() calls.
"""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import TypeAdapter, ValidationError

from .errors import PersistenceError
from .models import LogEntry

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "loki_logs_cache.json"
CORRUPT_SUFFIX = ".corrupt"

_entries_adapter = TypeAdapter(list[LogEntry])


@runtime_checkable
class LogPersistence(Protocol):
    """Storage contract consumed by LogBuffer."""

    def save(self, entries: list[LogEntry]) -> None:
        """Replace everything stored with ``entries``."""
        ...

    def append(self, entries: list[LogEntry]) -> None:
        """Add ``entries`` after whatever is already stored."""
        ...

    def load_and_clear(self) -> list[LogEntry]:
        """Return everything stored and empty the store."""
        ...

    def clear(self) -> None:
        """Empty the store."""
        ...


def default_cache_dir() -> Path:
    """Per-user cache directory, honouring XDG_CACHE_HOME."""
    base = os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache"
    return Path(base) / "lokishipper"


class FileLogPersistence:
    """
    JSON file store.

    The file holds a JSON array of ``{timestamp, level, message, metadata}``
    objects. Writes go to a temporary file in the same directory which is
    then renamed over the target, so a reader never sees a partial file.
    A missing file is treated as an empty store. A file that cannot be
    decoded is renamed with a ``.corrupt`` suffix by append() and
    load_and_clear(), which then carry on with an empty store; peek()
    reports it as a PersistenceError instead.
    """

    def __init__(self, path: str | Path | None = None, filename: str = DEFAULT_FILENAME):
        self.path = Path(path) if path is not None else default_cache_dir() / filename
        self._lock = threading.Lock()

    def save(self, entries: list[LogEntry]) -> None:
        with self._lock:
            self._write(entries)

    def append(self, entries: list[LogEntry]) -> None:
        if not entries:
            return
        with self._lock:
            self._write(self._read(quarantine=True) + list(entries))

    def load_and_clear(self) -> list[LogEntry]:
        with self._lock:
            entries = self._read(quarantine=True)
            self._remove()
        logger.debug(f"Loaded {len(entries)} log entries from {self.path}")
        return entries

    def peek(self) -> list[LogEntry]:
        """Return stored entries without clearing them."""
        with self._lock:
            return self._read()

    def clear(self) -> None:
        with self._lock:
            self._remove()

    def _read(self, quarantine: bool = False) -> list[LogEntry]:
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise PersistenceError(e) from e

        if not data.strip():
            return []
        try:
            return _entries_adapter.validate_json(data)
        except ValidationError as e:
            if not quarantine:
                raise PersistenceError(e) from e
            self._quarantine(e)
            return []

    def _quarantine(self, error: ValidationError) -> None:
        target = self.path.with_name(self.path.name + CORRUPT_SUFFIX)
        try:
            os.replace(self.path, target)
        except OSError as e:
            raise PersistenceError(e) from e
        logger.warning(
            f"Moved unreadable log cache {self.path} to {target} "
            f"({error.error_count()} validation errors)"
        )

    def _write(self, entries: list[LogEntry]) -> None:
        try:
            data = _entries_adapter.dump_json(list(entries))
        except ValueError as e:
            raise PersistenceError(e) from e

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise PersistenceError(e) from e

    def _remove(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(e) from e


class InMemoryLogPersistence:
    """List-backed store for tests and short-lived processes."""

    def __init__(self, entries: list[LogEntry] | None = None):
        self._entries: list[LogEntry] = list(entries or [])
        self._lock = threading.Lock()

    def save(self, entries: list[LogEntry]) -> None:
        with self._lock:
            self._entries = list(entries)

    def append(self, entries: list[LogEntry]) -> None:
        with self._lock:
            self._entries.extend(entries)

    def load_and_clear(self) -> list[LogEntry]:
        with self._lock:
            entries, self._entries = self._entries, []
            return entries

    def peek(self) -> list[LogEntry]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries = []
