"""
Retry policy for lokishipper.

Computes exponential backoff delays with jitter for failed batches.
The policy is pure: it never sleeps and holds no per-attempt state.
LogBuffer records the computed delay on each retry item and skips the
item on later flushes until the delay has elapsed.

Usage:
    from lokishipper.resilience import RetryPolicy

    policy = RetryPolicy(max_retries=5, base_delay=2.0, max_delay=120.0)
    policy.delay(0)  # ~2.0s
    policy.delay(3)  # ~16.0s
"""

import logging
import random
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# 2.0 ** 1024 overflows a float
_MAX_EXPONENT = 1023


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with jitter for failed deliveries."""

    max_retries: int = 3  # Retries after the first attempt
    base_delay: float = 1.0  # Delay before the first retry, in seconds
    max_delay: float = 30.0  # Upper bound before jitter, in seconds
    jitter_factor: float = 0.1  # Random jitter factor (0-1)

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_delay < 0:
            raise ValueError("max_delay must be >= 0")
        object.__setattr__(self, "jitter_factor", min(max(self.jitter_factor, 0.0), 1.0))

    def delay(self, attempt: int) -> float:
        """
        Calculate the delay for a zero-indexed attempt number.

        Uses ``base_delay * 2**attempt`` capped at ``max_delay``, then
        scaled by a random factor in ``[1 - jitter, 1 + jitter]``.
        """
        exponential = self.base_delay * (2.0 ** min(max(attempt, 0), _MAX_EXPONENT))
        capped = min(exponential, self.max_delay)

        if self.jitter_factor > 0:
            capped *= 1.0 + random.uniform(-self.jitter_factor, self.jitter_factor)

        return max(0.0, capped)

    def should_retry(self, attempt: int) -> bool:
        """Whether a batch that has failed ``attempt`` times may be sent again."""
        return attempt <= self.max_retries


DEFAULT_RETRY_POLICY = RetryPolicy()
