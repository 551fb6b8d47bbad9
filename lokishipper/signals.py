"""
External flush trigger sources.

The host application owns lifecycle hooks (backgrounding, SIGTERM,
request teardown...) and forwards them to a FlushTrigger. LogBuffer
subscribes on start() and unsubscribes on stop().

Usage:
    signals = LifecycleSignals()
    buffer = LogBuffer(transport, config, triggers=[signals])

    # wherever the host learns it is going to the background:
    signals.emit()
"""

import logging
import threading
from collections.abc import Callable
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

FlushCallback = Callable[[], None]


@runtime_checkable
class FlushTrigger(Protocol):
    """A source of flush requests."""

    def subscribe(self, callback: FlushCallback) -> None: ...

    def unsubscribe(self, callback: FlushCallback) -> None: ...


class LifecycleSignals:
    """Thread-safe callback registry fired by the host application."""

    def __init__(self, name: str = "lifecycle"):
        self.name = name
        self._callbacks: list[FlushCallback] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: FlushCallback) -> None:
        with self._lock:
            if callback not in self._callbacks:
                self._callbacks.append(callback)

    def unsubscribe(self, callback: FlushCallback) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def emit(self) -> None:
        """Invoke every subscribed callback. Callback errors are logged."""
        with self._lock:
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Flush trigger '{self.name}' callback error: {e}")
