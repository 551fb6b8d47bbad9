"""Tests for LogLevel and LogEntry."""

import copy
import logging
import time

import pytest
from pydantic import ValidationError

from lokishipper.models import LogEntry, LogLevel


class TestLogLevel:
    """Tests for LogLevel enum."""

    def test_values_are_lowercase(self):
        """Levels serialize as lowercase strings."""
        assert [level.value for level in LogLevel] == ["debug", "info", "warn", "error", "critical"]

    def test_ordered_by_declaration(self):
        """Levels compare by declaration order."""
        assert LogLevel.DEBUG < LogLevel.INFO < LogLevel.WARN < LogLevel.ERROR < LogLevel.CRITICAL
        assert LogLevel.CRITICAL >= LogLevel.ERROR
        assert sorted([LogLevel.ERROR, LogLevel.DEBUG, LogLevel.WARN]) == [
            LogLevel.DEBUG,
            LogLevel.WARN,
            LogLevel.ERROR,
        ]

    def test_comparison_with_other_types_fails(self):
        """Ordering against non-levels raises TypeError."""
        with pytest.raises(TypeError):
            _ = LogLevel.INFO < "info"

    @pytest.mark.parametrize(
        ("levelno", "expected"),
        [
            (logging.DEBUG, LogLevel.DEBUG),
            (5, LogLevel.DEBUG),
            (logging.INFO, LogLevel.INFO),
            (logging.WARNING, LogLevel.WARN),
            (logging.ERROR, LogLevel.ERROR),
            (logging.CRITICAL, LogLevel.CRITICAL),
            (60, LogLevel.CRITICAL),
        ],
    )
    def test_from_logging(self, levelno, expected):
        """Stdlib levels map to the closest LogLevel."""
        assert LogLevel.from_logging(levelno) == expected


class TestLogEntry:
    """Tests for LogEntry model."""

    def test_timestamp_defaults_to_now(self):
        """Entries get a nanosecond timestamp at construction."""
        before = time.time_ns()
        entry = LogEntry(level=LogLevel.INFO, message="hello")
        after = time.time_ns()

        assert before <= entry.timestamp <= after
        assert entry.metadata == {}

    def test_explicit_timestamp(self):
        """Replayed entries keep their original timestamp."""
        entry = LogEntry(timestamp=42, level=LogLevel.ERROR, message="old")
        assert entry.timestamp == 42

    def test_structural_equality(self, sample_entry):
        """Entries with the same fields are equal."""
        copy = LogEntry(
            timestamp=sample_entry.timestamp,
            level=LogLevel.INFO,
            message="Order placed",
            metadata={"amount": "99.99", "currency": "USD"},
        )
        assert copy == sample_entry

    def test_is_immutable(self, sample_entry):
        """Fields cannot be reassigned."""
        with pytest.raises(ValidationError):
            sample_entry.message = "changed"

    def test_negative_timestamp_rejected(self):
        """Timestamps are unsigned."""
        with pytest.raises(ValidationError):
            LogEntry(timestamp=-1, level=LogLevel.INFO, message="x")

    def test_json_uses_persisted_field_names(self, sample_entry):
        """JSON form uses timestamp/level/message/metadata."""
        data = sample_entry.model_dump(mode="json")
        assert data == {
            "timestamp": 1_700_000_000_000_000_000,
            "level": "info",
            "message": "Order placed",
            "metadata": {"currency": "USD", "amount": "99.99"},
        }

    def test_metadata_is_immutable(self, sample_entry):
        """Metadata cannot be changed after construction."""
        with pytest.raises(TypeError):
            sample_entry.metadata["currency"] = "EUR"
        with pytest.raises(TypeError):
            sample_entry.metadata.update(extra="1")
        with pytest.raises(TypeError):
            sample_entry.metadata.pop("amount")

        assert sample_entry.metadata == {"currency": "USD", "amount": "99.99"}

    def test_default_metadata_is_immutable(self):
        entry = LogEntry(level=LogLevel.INFO, message="x")
        with pytest.raises(TypeError):
            entry.metadata["k"] = "v"

    def test_metadata_copy_is_independent(self):
        source = {"k": "v"}
        entry = LogEntry(level=LogLevel.INFO, message="x", metadata=source)
        source["k"] = "changed"
        assert entry.metadata == {"k": "v"}
        assert copy.deepcopy(entry) == entry

    def test_lone_surrogates_are_replaced(self):
        """Text that cannot be encoded as UTF-8 is made encodable."""
        entry = LogEntry(
            level=LogLevel.ERROR,
            message="bad \ud800 byte",
            metadata={"path": "/tmp/\udcff", "ok": "fine"},
        )

        assert entry.message == "bad ? byte"
        assert entry.metadata == {"path": "/tmp/?", "ok": "fine"}
        entry.model_dump_json().encode("utf-8")

    def test_valid_unicode_is_untouched(self):
        entry = LogEntry(level=LogLevel.INFO, message="café ☕ 日本", metadata={"emoji": "🚀"})
        assert entry.message == "café ☕ 日本"
        assert entry.metadata["emoji"] == "🚀"
