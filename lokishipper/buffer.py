"""
Thread-safe log buffer with batching, retry and persistence.

LogBuffer owns the live buffer and the retry queue. Entries are flushed
when the batch size is reached, every ``flush_interval`` seconds, when a
FlushTrigger fires, or on an explicit flush(). Failed batches are retried
with exponential backoff and handed to the persistence store once the
retry policy gives up, so they can be recovered on the next start().
"""

import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .config import LokiConfig
from .models import LogEntry
from .signals import FlushTrigger
from .transport import LokiTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryItem:
    """A batch waiting to be sent again."""

    entries: list[LogEntry]
    attempt: int  # Failed deliveries so far
    not_before: float = 0.0  # Monotonic time before which it is not retried


class LogBuffer:
    """
    Batching buffer in front of a LokiTransport.

    All buffer state is guarded by one lock. A second lock is held for the
    whole flush sequence, network call included, so at most one flush is in
    flight and a concurrent flush() waits for it. The batch is detached
    from the live buffer before sending, so append() never waits on I/O.
    """

    def __init__(
        self,
        transport: LokiTransport,
        config: LokiConfig,
        triggers: Iterable[FlushTrigger] = (),
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the buffer.

        Args:
            transport: Sender for batches
            config: Batch size, capacity, interval, retry and persistence settings
            triggers: External flush trigger sources subscribed while running
            clock: Monotonic clock used for retry deadlines
        """
        self.transport = transport
        self.config = config
        self._triggers = list(triggers)
        self._clock = clock

        self._buffer: deque[LogEntry] = deque(maxlen=config.max_buffer_size)
        self._retry_queue: list[RetryItem] = []
        self._running = False
        self._recovered = False

        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        self._wake = threading.Event()
        self._shutdown = threading.Event()
        self._flush_thread: threading.Thread | None = None

        # Stats
        self._sent_count = 0
        self._failed_attempts = 0
        self._evicted_count = 0
        self._persisted_count = 0
        self._dropped_count = 0
        self._last_error: str | None = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def buffered_entries(self) -> list[LogEntry]:
        """Snapshot of the live buffer, oldest first."""
        with self._lock:
            return list(self._buffer)

    @property
    def retry_items(self) -> list[RetryItem]:
        """Snapshot of the retry queue."""
        with self._lock:
            return list(self._retry_queue)

    def start(self):
        """
        Start the flush thread and subscribe to flush triggers.

        On the first call, entries left in the persistence store by a
        previous session are placed ahead of anything already buffered.
        Calling start() on a running buffer does nothing.
        """
        with self._lifecycle_lock:
            with self._lock:
                if self._running:
                    return
                recover = not self._recovered
                self._recovered = True

            recovered = self._recover() if recover else []

            with self._lock:
                if recovered:
                    merged = recovered + list(self._buffer)
                    overflow = len(merged) - self.config.max_buffer_size
                    if overflow > 0:
                        self._evicted_count += overflow
                        logger.warning(f"Evicted {overflow} recovered log entries over buffer capacity")
                    self._buffer.clear()
                    self._buffer.extend(merged)

                self._running = True
                self._shutdown.clear()
                self._wake.clear()
                self._flush_thread = threading.Thread(
                    target=self._flush_loop, name="lokishipper-flush", daemon=True
                )
                self._flush_thread.start()
                batch_ready = len(self._buffer) >= self.config.batch_size

            for trigger in self._triggers:
                trigger.subscribe(self.request_flush)

            logger.info(
                f"LogBuffer started for {self.config.app}/{self.config.environment} "
                f"(batch_size={self.config.batch_size}, flush_interval={self.config.flush_interval}s)"
            )

            if batch_ready:
                self.request_flush()

    def stop(self):
        """
        Stop the flush thread, flush once more and persist what is left.

        Retry deadlines are ignored for the final flush. Entries that still
        could not be delivered are appended to the persistence store.
        Safe to call more than once.
        """
        with self._lifecycle_lock:
            with self._lock:
                was_running = self._running
                self._running = False
                thread = self._flush_thread
                self._flush_thread = None

            self._shutdown.set()
            self._wake.set()
            if thread is not None and thread is not threading.current_thread():
                thread.join()

            if was_running:
                for trigger in self._triggers:
                    trigger.unsubscribe(self.request_flush)

            self._flush(ignore_backoff=True)

            with self._lock:
                pending = [entry for item in self._retry_queue for entry in item.entries]
                pending.extend(self._buffer)
                self._retry_queue = []
                self._buffer.clear()

            if pending:
                self._persist(pending, reason="shutdown")

            if was_running:
                logger.info("LogBuffer stopped")

    def append(self, entry: LogEntry):
        """
        Add an entry, evicting the oldest one if the buffer is full.

        Reaching the batch size requests a flush from the flush thread. When
        the buffer is not running the flush happens on the calling thread.
        """
        with self._lock:
            if len(self._buffer) >= self.config.max_buffer_size:
                self._evicted_count += 1
            self._buffer.append(entry)
            batch_ready = len(self._buffer) >= self.config.batch_size
            running = self._running

        if batch_ready:
            if running:
                self.request_flush()
            else:
                self.flush()

    def request_flush(self):
        """Ask the flush thread to flush now. Never blocks."""
        self._wake.set()

    def flush(self):
        """
        Send the live buffer and every retry item whose backoff has elapsed.

        Waits for a flush already in progress. Never raises because of
        delivery or persistence failures.
        """
        self._flush()

    def get_stats(self) -> dict:
        """Get delivery statistics."""
        with self._lock:
            return {
                "running": self._running,
                "sent_count": self._sent_count,
                "failed_attempts": self._failed_attempts,
                "evicted_count": self._evicted_count,
                "persisted_count": self._persisted_count,
                "dropped_count": self._dropped_count,
                "buffer_size": len(self._buffer),
                "retry_queue_size": len(self._retry_queue),
                "retry_queue_entries": sum(len(item.entries) for item in self._retry_queue),
                "last_error": self._last_error,
            }

    def _flush_loop(self):
        """Background thread that flushes on the interval or on request."""
        while not self._shutdown.is_set():
            self._wake.wait(self.config.flush_interval)
            self._wake.clear()
            if self._shutdown.is_set():
                break
            self._flush(only_if_running=True)

    def _flush(self, ignore_backoff: bool = False, only_if_running: bool = False):
        with self._flush_lock:
            with self._lock:
                if only_if_running and not self._running:
                    return

                now = self._clock()
                due: list[RetryItem] = []
                waiting: list[RetryItem] = []
                for item in self._retry_queue:
                    if ignore_backoff or item.not_before <= now:
                        due.append(item)
                    else:
                        waiting.append(item)

                if not self._buffer and not due:
                    return

                batch = list(self._buffer)
                self._buffer.clear()
                self._retry_queue = waiting

            if batch:
                self._send_batch(batch, attempt=0)

            for item in due:
                self._send_batch(item.entries, attempt=item.attempt)

    def _send_batch(self, entries: list[LogEntry], attempt: int):
        try:
            self.transport.send(entries)
        except Exception as e:
            self._handle_failure(entries, attempt, e)
            return

        with self._lock:
            self._sent_count += len(entries)

    def _handle_failure(self, entries: list[LogEntry], attempt: int, error: Exception):
        next_attempt = attempt + 1
        policy = self.config.retry_policy

        with self._lock:
            self._failed_attempts += 1
            self._last_error = str(error)

        if policy.should_retry(next_attempt):
            delay = policy.delay(attempt)
            with self._lock:
                self._retry_queue.append(
                    RetryItem(entries=entries, attempt=next_attempt, not_before=self._clock() + delay)
                )
            logger.warning(
                f"Failed to send {len(entries)} log entries (attempt {next_attempt}): {error}; "
                f"retrying in {delay:.1f}s"
            )
            return

        logger.warning(
            f"Giving up on {len(entries)} log entries after {next_attempt} attempts: {error}"
        )
        self._persist(entries, reason="retries exhausted")

    def _persist(self, entries: list[LogEntry], reason: str) -> bool:
        persistence = self.config.persistence
        if persistence is None:
            with self._lock:
                self._dropped_count += len(entries)
            logger.warning(f"Dropped {len(entries)} log entries ({reason}): no persistence configured")
            return False

        try:
            persistence.append(entries)
        except Exception as e:
            with self._lock:
                self._dropped_count += len(entries)
            logger.error(f"Failed to persist {len(entries)} log entries ({reason}): {e}")
            return False

        with self._lock:
            self._persisted_count += len(entries)
        logger.info(f"Persisted {len(entries)} log entries ({reason})")
        return True

    def _recover(self) -> list[LogEntry]:
        persistence = self.config.persistence
        if persistence is None:
            return []

        try:
            entries = list(persistence.load_and_clear())
        except Exception as e:
            logger.error(f"Failed to recover persisted log entries: {e}")
            return []

        if entries:
            logger.info(f"Recovered {len(entries)} log entries from a previous session")
        return entries
