"""
Exceptions raised by lokishipper.

Delivery errors (InvalidResponseError, NetworkError, EncodingError,
CompressionError) are raised by the transport and absorbed by LogBuffer.
None of them reach code that only produces log entries.
"""


class LokiError(Exception):
    """Base error for lokishipper."""

    pass


class NotConfiguredError(LokiError):
    """Logger used before configure() was called."""

    def __init__(self, message: str = "LokiLogger not configured. Call configure() first."):
        super().__init__(message)


class InvalidResponseError(LokiError):
    """Loki answered with a non-2xx status code."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        detail = f": {body[:200]}" if body else ""
        super().__init__(f"HTTP {status_code}{detail}")


class _WrappedError(LokiError):
    """Error that carries the underlying exception as ``cause``."""

    prefix = "error"

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"{self.prefix}: {cause}")


class NetworkError(_WrappedError):
    """Connection, timeout, DNS or other transport-level failure."""

    prefix = "network error"


class EncodingError(_WrappedError):
    """Payload could not be encoded to JSON."""

    prefix = "encoding error"


class CompressionError(_WrappedError):
    """Request body could not be compressed."""

    prefix = "compression error"


class PersistenceError(_WrappedError):
    """Entries could not be persisted or recovered."""

    prefix = "persistence error"
