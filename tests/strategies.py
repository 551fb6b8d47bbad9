"""
Hypothesis strategies for lokishipper property-based testing.

These strategies generate test data for log entries and retry policies.
"""

from hypothesis import strategies as st

from lokishipper.models import LogEntry, LogLevel

# =============================================================================
# Log Strategies
# =============================================================================

# Log levels
log_levels = st.sampled_from(list(LogLevel))

# Nanosecond timestamps between 2000 and 2100
timestamps = st.integers(min_value=946_684_800_000_000_000, max_value=4_102_444_800_000_000_000)

# Printable text without surrogates
safe_text = st.text(
    alphabet=st.characters(blacklist_categories=("Cs",)),
    max_size=200,
)

# Metadata keys/values that survive "key=value" rendering
metadata_keys = st.from_regex(r"[a-z][a-z0-9_]{0,15}", fullmatch=True)
metadata_values = st.text(
    alphabet=st.characters(blacklist_categories=("Cs", "Cc")),
    max_size=40,
)
metadata = st.dictionaries(metadata_keys, metadata_values, max_size=6)

# Complete log entries
log_entries = st.builds(
    LogEntry,
    timestamp=timestamps,
    level=log_levels,
    message=safe_text,
    metadata=metadata,
)

# Batch of log entries
log_batches = st.lists(log_entries, min_size=1, max_size=50)

# =============================================================================
# Retry Strategies
# =============================================================================

attempts = st.integers(min_value=0, max_value=64)
base_delays = st.floats(min_value=0.001, max_value=60.0, allow_nan=False)
jitter_factors = st.floats(min_value=0.0, max_value=1.0, allow_nan=False)
