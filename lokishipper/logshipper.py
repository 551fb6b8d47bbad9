"""
lokishipper façade - ship application logs to Grafana Loki.

Usage:
    import lokishipper

    # Option 1: As a logging handler (recommended)
    lokishipper.setup_logging(
        endpoint="http://loki:3100/loki/api/v1/push",
        app="billing",
        environment="production",
    )

    import logging
    logger = logging.getLogger(__name__)
    logger.info("Payment processed", extra={"user_id": "u123", "amount": 99.99})

    # Option 2: Direct API
    lokishipper.configure(
        endpoint="http://loki:3100/loki/api/v1/push",
        app="billing",
        environment="production",
        authentication=BearerAuth("glc_xxx"),
        compression_enabled=True,
        persistence=FileLogPersistence(),
    )
    lokishipper.info("Order placed", metadata={"amount": "99.99", "currency": "USD"})
    lokishipper.flush()  # Send buffered logs

    # Option 3: From environment variables
    lokishipper.from_env()
"""

import atexit
import json
import logging
import os
import threading
from collections.abc import Iterable, Mapping

import httpx
from pydantic import ValidationError

from .auth import AuthMethod, BasicAuth, BearerAuth, NoAuth
from .buffer import LogBuffer
from .config import LokiConfig
from .device import DeviceInfo, DeviceInfoProvider
from .errors import NotConfiguredError
from .models import LogEntry, LogLevel
from .persistence import FileLogPersistence, LogPersistence
from .resilience import RetryPolicy
from .signals import FlushTrigger
from .transport import LokiTransport

logger = logging.getLogger(__name__)

# Attributes every LogRecord carries; anything else came from ``extra=``
_RESERVED_RECORD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
        "asctime",
    }
)

_TRUTHY = ("1", "true", "yes", "on")

# Records from these loggers would loop back into the buffer
_IGNORED_LOGGERS = ("lokishipper", "httpx", "httpcore")


def _stringify(value: object) -> str | None:
    """Render a metadata value as a string, or None if it is not JSON-safe."""
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, bool | int | float):
        return json.dumps(value)
    if isinstance(value, list | dict | tuple):
        try:
            return json.dumps(value, sort_keys=True)
        except (TypeError, ValueError):
            return None
    return None


class LokiLogger:
    """
    Producer-facing logger.

    Builds LogEntry objects and appends them to a LogBuffer. Used before a
    buffer is installed, it logs a warning and drops the entry instead of
    raising, so logging can never break the host application.
    """

    def __init__(self, buffer: LogBuffer | None = None, config: LokiConfig | None = None):
        self.buffer = buffer
        self.config = config or (buffer.config if buffer is not None else None)
        self._lock = threading.Lock()
        self._atexit_registered = False

    @property
    def is_configured(self) -> bool:
        return self.buffer is not None

    def log(
        self,
        level: LogLevel,
        message: str,
        metadata: Mapping[str, object] | None = None,
        **fields,
    ):
        """
        Buffer a message.

        Metadata values and keyword fields are rendered as strings; values
        that cannot be rendered are skipped. An entry that still fails
        validation is dropped with a warning instead of raising.
        """
        buffer = self.buffer
        if buffer is None:
            logger.warning(str(NotConfiguredError()))
            return

        merged = {}
        for key, value in {**(metadata or {}), **fields}.items():
            rendered = _stringify(value)
            if rendered is not None:
                merged[str(key)] = rendered

        try:
            entry = LogEntry(level=level, message=message, metadata=merged)
        except ValidationError as e:
            logger.warning(f"Dropped invalid log entry: {e.error_count()} validation errors")
            return

        buffer.append(entry)

    def debug(self, message: str, metadata: Mapping[str, object] | None = None, **fields):
        """Log a DEBUG message."""
        self.log(LogLevel.DEBUG, message, metadata, **fields)

    def info(self, message: str, metadata: Mapping[str, object] | None = None, **fields):
        """Log an INFO message."""
        self.log(LogLevel.INFO, message, metadata, **fields)

    def warn(self, message: str, metadata: Mapping[str, object] | None = None, **fields):
        """Log a WARN message."""
        self.log(LogLevel.WARN, message, metadata, **fields)

    def error(self, message: str, metadata: Mapping[str, object] | None = None, **fields):
        """Log an ERROR message."""
        self.log(LogLevel.ERROR, message, metadata, **fields)

    def critical(self, message: str, metadata: Mapping[str, object] | None = None, **fields):
        """Log a CRITICAL message."""
        self.log(LogLevel.CRITICAL, message, metadata, **fields)

    def flush(self):
        """Send buffered entries now."""
        if self.buffer is not None:
            self.buffer.flush()

    def stop(self):
        """Stop the buffer, flush and persist what is left."""
        with self._lock:
            buffer = self.buffer
        if buffer is None:
            return
        buffer.stop()
        buffer.transport.close()

    def get_stats(self) -> dict:
        """Get delivery statistics, or an empty dict if not configured."""
        if self.buffer is None:
            return {}
        return self.buffer.get_stats()

    def install(self, buffer: LogBuffer):
        """Replace the buffer, stopping the previous one."""
        with self._lock:
            previous = self.buffer
            self.buffer = buffer
            self.config = buffer.config
            if not self._atexit_registered:
                atexit.register(self.stop)
                self._atexit_registered = True

        if previous is not None and previous is not buffer:
            previous.stop()
            previous.transport.close()


# Shared instance used by the module-level helpers
shared = LokiLogger()


def configure(
    endpoint: str,
    app: str,
    environment: str,
    *,
    batch_size: int = 20,
    flush_interval: float = 10.0,
    max_retries: int | None = None,
    retry_policy: RetryPolicy | None = None,
    max_buffer_size: int = 500,
    extra_labels: Mapping[str, str] | None = None,
    include_device_info: bool = True,
    device_info: DeviceInfoProvider | None = None,
    authentication: AuthMethod | None = None,
    compression_enabled: bool = False,
    persistence: LogPersistence | None = None,
    triggers: Iterable[FlushTrigger] = (),
    timeout: float = 10.0,
    client: httpx.Client | None = None,
    instance: LokiLogger | None = None,
) -> LokiLogger:
    """
    Configure and start a logger. Call once at startup.

    Args:
        endpoint: Loki push API URL
        app: Application name label
        environment: Environment label (e.g. "production")
        batch_size: Entries per batch
        flush_interval: Seconds between automatic flushes
        max_retries: Legacy retry count, folded into retry_policy
        retry_policy: Backoff settings for failed batches
        max_buffer_size: Buffered entries before the oldest is evicted
        extra_labels: Labels added to every stream
        include_device_info: Add device_model/os_version labels
        device_info: Custom device info provider (default: current host)
        authentication: Auth method (default: none)
        compression_enabled: Gzip request bodies
        persistence: Store for undelivered entries (default: none)
        triggers: External flush trigger sources
        timeout: HTTP request timeout in seconds
        client: httpx.Client to send with (default: a new client)
        instance: Logger to configure (default: the shared instance)

    Returns:
        The configured LokiLogger.
    """
    if include_device_info and device_info is None:
        device_info = DeviceInfo()

    options = {}
    if retry_policy is not None:
        options["retry_policy"] = retry_policy

    config = LokiConfig(
        endpoint=endpoint,
        app=app,
        environment=environment,
        batch_size=batch_size,
        flush_interval=flush_interval,
        max_buffer_size=max_buffer_size,
        extra_labels=dict(extra_labels or {}),
        authentication=authentication or NoAuth(),
        compression_enabled=compression_enabled,
        persistence=persistence,
        device_info=device_info if include_device_info else None,
        timeout=timeout,
        max_retries=max_retries,
        **options,
    )

    buffer = LogBuffer(LokiTransport(config, client=client), config, triggers=triggers)
    target = instance or shared
    target.install(buffer)
    buffer.start()
    return target


def debug(message: str, metadata: Mapping[str, object] | None = None, **fields):
    """Log a DEBUG message on the shared logger."""
    shared.debug(message, metadata, **fields)


def info(message: str, metadata: Mapping[str, object] | None = None, **fields):
    """Log an INFO message on the shared logger."""
    shared.info(message, metadata, **fields)


def warn(message: str, metadata: Mapping[str, object] | None = None, **fields):
    """Log a WARN message on the shared logger."""
    shared.warn(message, metadata, **fields)


def error(message: str, metadata: Mapping[str, object] | None = None, **fields):
    """Log an ERROR message on the shared logger."""
    shared.error(message, metadata, **fields)


def critical(message: str, metadata: Mapping[str, object] | None = None, **fields):
    """Log a CRITICAL message on the shared logger."""
    shared.critical(message, metadata, **fields)


def flush():
    """Flush the shared logger."""
    shared.flush()


def stop():
    """Stop the shared logger."""
    shared.stop()


class LokiHandler(logging.Handler):
    """
    Python logging handler that ships records to Loki.

    Integrates with standard Python logging so existing code
    works without modification.
    """

    def __init__(self, loki_logger: LokiLogger | None = None, min_level: int = logging.INFO):
        """
        Initialize the handler.

        Args:
            loki_logger: LokiLogger to ship through (default: the shared instance)
            min_level: Minimum log level to ship (default: INFO)
        """
        super().__init__(level=min_level)
        self.loki_logger = loki_logger or shared

    def emit(self, record: logging.LogRecord):
        """Emit a log record."""
        if record.name.split(".", 1)[0] in _IGNORED_LOGGERS:
            return

        try:
            metadata = {"logger": record.name}
            for key, value in record.__dict__.items():
                if key in _RESERVED_RECORD_ATTRS or key.startswith("_"):
                    continue
                rendered = _stringify(value)
                if rendered is not None:
                    metadata[key] = rendered

            self.loki_logger.log(
                LogLevel.from_logging(record.levelno),
                self.format(record),
                metadata,
            )

        except Exception:
            self.handleError(record)


def setup_logging(
    endpoint: str,
    app: str,
    environment: str,
    min_level: int = logging.INFO,
    also_console: bool = True,
    **options,
) -> LokiLogger:
    """
    Set up Python logging to ship logs to Loki.

    Call this once at startup and all existing logging calls are shipped.

    Args:
        endpoint: Loki push API URL
        app: Application name label
        environment: Environment label
        min_level: Minimum log level to ship
        also_console: Also log to console (default: True)
        **options: Additional args passed to configure()

    Returns:
        The configured LokiLogger (for stats/manual flush)
    """
    loki_logger = configure(endpoint, app, environment, **options)

    handler = LokiHandler(loki_logger, min_level=min_level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)

    if also_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root_logger.addHandler(console_handler)

    if root_logger.level == logging.NOTSET or root_logger.level > min_level:
        root_logger.setLevel(min_level)

    return loki_logger


def config_from_env(environ: Mapping[str, str] | None = None) -> dict:
    """
    Build configure() arguments from environment variables.

    Environment variables:
        LOKI_ENDPOINT: Push API URL (required)
        LOKI_APP: Application name (required)
        LOKI_ENVIRONMENT: Environment name (required)
        LOKI_USERNAME / LOKI_PASSWORD: Basic auth credentials
        LOKI_TOKEN: Bearer token (used when no username is set)
        LOKI_BATCH_SIZE: Entries per batch
        LOKI_FLUSH_INTERVAL: Seconds between flushes
        LOKI_MAX_RETRIES: Retries before persisting a batch
        LOKI_COMPRESSION: "true" to gzip request bodies
        LOKI_PERSISTENCE_PATH: File for undelivered entries
    """
    env = os.environ if environ is None else environ

    endpoint = env.get("LOKI_ENDPOINT")
    app = env.get("LOKI_APP")
    environment = env.get("LOKI_ENVIRONMENT")

    if not endpoint:
        raise ValueError("LOKI_ENDPOINT environment variable required")
    if not app:
        raise ValueError("LOKI_APP environment variable required")
    if not environment:
        raise ValueError("LOKI_ENVIRONMENT environment variable required")

    options: dict = {"endpoint": endpoint, "app": app, "environment": environment}

    username = env.get("LOKI_USERNAME")
    token = env.get("LOKI_TOKEN")
    if username:
        options["authentication"] = BasicAuth(username, env.get("LOKI_PASSWORD", ""))
    elif token:
        options["authentication"] = BearerAuth(token)

    if env.get("LOKI_BATCH_SIZE"):
        options["batch_size"] = int(env["LOKI_BATCH_SIZE"])
    if env.get("LOKI_FLUSH_INTERVAL"):
        options["flush_interval"] = float(env["LOKI_FLUSH_INTERVAL"])
    if env.get("LOKI_MAX_RETRIES"):
        options["max_retries"] = int(env["LOKI_MAX_RETRIES"])
    if env.get("LOKI_COMPRESSION"):
        options["compression_enabled"] = env["LOKI_COMPRESSION"].lower() in _TRUTHY
    if env.get("LOKI_PERSISTENCE_PATH"):
        options["persistence"] = FileLogPersistence(env["LOKI_PERSISTENCE_PATH"])

    return options


def from_env(**overrides) -> LokiLogger:
    """
    Configure the shared logger from environment variables.

    Args:
        **overrides: configure() arguments that take precedence over the environment

    Returns:
        Configured LokiLogger instance
    """
    options = config_from_env()
    options.update(overrides)
    return configure(**options)
