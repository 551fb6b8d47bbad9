"""
lokishipper - Batched, resilient log shipping to Grafana Loki.

This package provides:
- LogBuffer: Thread-safe batching with retry, backoff and crash persistence
- LokiTransport: Loki push API client (stream grouping, gzip, auth)
- LokiLogger / LokiHandler: Producer façade and stdlib logging bridge

Usage:
    import lokishipper

    lokishipper.configure(
        endpoint="http://loki:3100/loki/api/v1/push",
        app="my-service",
        environment="production",
    )
    lokishipper.info("Service started", metadata={"version": "1.2.0"})

Example:
    # Ship stdlib logging
    from lokishipper import setup_logging

    setup_logging(
        endpoint="http://loki:3100/loki/api/v1/push",
        app="my-service",
        environment="production",
    )

    import logging
    logger = logging.getLogger(__name__)
    logger.info("Service started")
"""

from .auth import AuthMethod, BasicAuth, BearerAuth, CustomAuth, NoAuth
from .buffer import LogBuffer, RetryItem
from .compression import EmptyInputError, gzip_compress
from .config import LokiConfig
from .device import DeviceInfo, DeviceInfoProvider
from .errors import (
    CompressionError,
    EncodingError,
    InvalidResponseError,
    LokiError,
    NetworkError,
    NotConfiguredError,
    PersistenceError,
)
from .logshipper import (
    LokiHandler,
    LokiLogger,
    config_from_env,
    configure,
    critical,
    debug,
    error,
    flush,
    from_env,
    info,
    setup_logging,
    shared,
    stop,
    warn,
)
from .models import LogEntry, LogLevel
from .persistence import FileLogPersistence, InMemoryLogPersistence, LogPersistence
from .resilience import RetryPolicy
from .signals import FlushTrigger, LifecycleSignals
from .transport import LokiTransport, format_line

__all__ = [
    # Models
    "LogEntry",
    "LogLevel",
    # Configuration
    "LokiConfig",
    "RetryPolicy",
    "AuthMethod",
    "NoAuth",
    "BasicAuth",
    "BearerAuth",
    "CustomAuth",
    "DeviceInfo",
    "DeviceInfoProvider",
    # Pipeline
    "LogBuffer",
    "RetryItem",
    "LokiTransport",
    "format_line",
    "gzip_compress",
    "LogPersistence",
    "FileLogPersistence",
    "InMemoryLogPersistence",
    "FlushTrigger",
    "LifecycleSignals",
    # Façade
    "LokiLogger",
    "LokiHandler",
    "shared",
    "configure",
    "setup_logging",
    "config_from_env",
    "from_env",
    "debug",
    "info",
    "warn",
    "error",
    "critical",
    "flush",
    "stop",
    # Errors
    "LokiError",
    "NotConfiguredError",
    "InvalidResponseError",
    "NetworkError",
    "EncodingError",
    "CompressionError",
    "PersistenceError",
    "EmptyInputError",
]

__version__ = "1.0.0"
