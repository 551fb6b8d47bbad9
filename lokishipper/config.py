"""
Configuration for the Loki shipping pipeline.

LokiConfig is immutable and validated at construction. A legacy scalar
``max_retries`` is accepted and folded into ``retry_policy`` so the rest
of the package only ever reads the structured policy.
"""

from dataclasses import InitVar, dataclass, field, replace
from typing import TYPE_CHECKING

import httpx

from .auth import AuthMethod, NoAuth
from .device import DeviceInfoProvider
from .resilience import RetryPolicy

if TYPE_CHECKING:
    from .persistence import LogPersistence


@dataclass(frozen=True)
class LokiConfig:
    """Endpoint, labels and tuning parameters for LogBuffer and LokiTransport."""

    endpoint: str  # Loki push API URL, e.g. http://loki:3100/loki/api/v1/push
    app: str
    environment: str
    batch_size: int = 20  # Entries that trigger a flush
    flush_interval: float = 10.0  # Seconds between timer flushes
    max_buffer_size: int = 500  # Oldest entries are evicted beyond this
    extra_labels: dict[str, str] = field(default_factory=dict)
    authentication: AuthMethod = field(default_factory=NoAuth)
    compression_enabled: bool = False
    persistence: "LogPersistence | None" = None
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    device_info: DeviceInfoProvider | None = None
    timeout: float = 10.0  # HTTP request timeout in seconds
    max_retries: InitVar[int | None] = None

    def __post_init__(self, max_retries: int | None):
        try:
            url = httpx.URL(self.endpoint)
        except httpx.InvalidURL as e:
            raise ValueError(f"invalid endpoint {self.endpoint!r}: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"endpoint must be an http(s) URL, got {self.endpoint!r}")
        if not self.app:
            raise ValueError("app is required")
        if not self.environment:
            raise ValueError("environment is required")
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.flush_interval <= 0:
            raise ValueError("flush_interval must be > 0")
        if self.max_buffer_size < self.batch_size:
            raise ValueError("max_buffer_size must be >= batch_size")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if max_retries is not None:
            object.__setattr__(
                self, "retry_policy", replace(self.retry_policy, max_retries=max_retries)
            )
