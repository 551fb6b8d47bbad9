"""
HTTP transport for the Loki push API.

Turns a batch of LogEntry objects into one JSON push request and
performs exactly one POST. Retry is LogBuffer's job; every failure here
is raised as a LokiError subclass.

Payload format:
    {"streams": [{"stream": {"app": ..., "level": ...},
                  "values": [["<ns timestamp>", "<line>"], ...]}]}
"""

import logging

import httpx
from pydantic import BaseModel

from .compression import gzip_compress
from .config import LokiConfig
from .errors import CompressionError, EncodingError, InvalidResponseError, NetworkError
from .models import LogEntry, LogLevel

logger = logging.getLogger(__name__)


class LokiStream(BaseModel):
    """One labeled stream and its (timestamp, line) pairs."""

    stream: dict[str, str]
    values: list[tuple[str, str]]


class LokiPushPayload(BaseModel):
    """Body of a Loki push request."""

    streams: list[LokiStream]


def encode_payload(payload: LokiPushPayload) -> bytes:
    """Serialize a push payload to UTF-8 JSON."""
    return payload.model_dump_json().encode("utf-8")


def format_line(entry: LogEntry) -> str:
    """Render an entry as a log line, with metadata sorted by key."""
    if not entry.metadata:
        return entry.message

    pairs = " ".join(f"{key}={value}" for key, value in sorted(entry.metadata.items()))
    return f"{entry.message} [{pairs}]"


class LokiTransport:
    """
    Stateless sender for log batches.

    Groups entries into streams by (app, environment, level), applies
    device and extra labels, optionally gzips the body and attaches the
    configured authentication headers.
    """

    def __init__(self, config: LokiConfig, client: httpx.Client | None = None):
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=config.timeout)

    def send(self, entries: list[LogEntry]) -> None:
        """
        Send a batch of entries to Loki.

        Raises:
            EncodingError: payload could not be serialized.
            CompressionError: body could not be gzipped.
            InvalidResponseError: Loki answered with a non-2xx status.
            NetworkError: the request failed before a response arrived.
        """
        if not entries:
            return

        payload = self.build_payload(entries)
        body, headers = self._build_request(payload)

        try:
            response = self._client.post(self.config.endpoint, content=body, headers=headers)
        except httpx.HTTPError as e:
            raise NetworkError(e) from e

        if not 200 <= response.status_code < 300:
            raise InvalidResponseError(response.status_code, response.text)

        logger.debug(
            f"Sent {len(entries)} entries in {len(payload.streams)} streams "
            f"(HTTP {response.status_code})"
        )

    def build_payload(self, entries: list[LogEntry]) -> LokiPushPayload:
        """Group entries into streams, keeping input order within each stream."""
        groups: dict[tuple[str, str, LogLevel], list[tuple[str, str]]] = {}

        for entry in entries:
            key = (self.config.app, self.config.environment, entry.level)
            groups.setdefault(key, []).append((str(entry.timestamp), format_line(entry)))

        return LokiPushPayload(
            streams=[
                LokiStream(stream=self.stream_labels(level), values=values)
                for (_app, _environment, level), values in groups.items()
            ]
        )

    def stream_labels(self, level: LogLevel) -> dict[str, str]:
        """Labels for one stream. Extra labels are applied last and win."""
        labels = {
            "app": self.config.app,
            "environment": self.config.environment,
            "level": level.value,
        }

        device_info = self.config.device_info
        if device_info is not None:
            labels["device_model"] = device_info.device_model
            labels["os_version"] = device_info.os_version

        labels.update(self.config.extra_labels)
        return labels

    def _build_request(self, payload: LokiPushPayload) -> tuple[bytes, dict[str, str]]:
        try:
            body = encode_payload(payload)
        except (ValueError, TypeError) as e:
            raise EncodingError(e) from e

        headers = {"Content-Type": "application/json"}

        if self.config.compression_enabled:
            try:
                body = gzip_compress(body)
            except Exception as e:
                raise CompressionError(e) from e
            headers["Content-Encoding"] = "gzip"

        headers.update(self.config.authentication.headers())
        return body, headers

    def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "LokiTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
