"""
Notice Channel and Background Reconciliation

Local state changes happen synchronously; the matching remote writes run
in the background through the Reconciler. When a remote write fails the
failure is published on the EventChannel as a Notice, which the UI shell
shows as a warning banner. Nothing here raises into the caller.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from encounters.errors import RemoteSyncFailed

logger = logging.getLogger(__name__)


@dataclass
class Notice:
    kind: str
    operation: str
    message: str
    detail: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_error(cls, error, operation=None):
        return cls(
            kind=error.kind,
            operation=operation or getattr(error, 'operation', ''),
            message=error.message,
            detail=error.detail,
        )

    def to_dict(self):
        return {
            'kind': self.kind,
            'operation': self.operation,
            'message': self.message,
            'detail': self.detail,
            'created_at': self.created_at.isoformat(),
        }


class EventChannel:
    """Thread-safe publish/subscribe list of advisory notices."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending = []
        self._subscribers = []

    def subscribe(self, callback):
        with self._lock:
            self._subscribers.append(callback)

    def publish(self, notice):
        with self._lock:
            self._pending.append(notice)
            subscribers = list(self._subscribers)
        logger.warning(f"[{notice.kind}] {notice.operation}: {notice.message} {notice.detail or ''}".rstrip())
        for callback in subscribers:
            try:
                callback(notice)
            except Exception as e:
                logger.error(f"Notice subscriber failed: {e}")

    def report(self, error, operation=None):
        """Publish an advisory error (RemoteSyncFailed, LocationUnavailable)."""
        self.publish(Notice.from_error(error, operation))

    @property
    def pending(self):
        with self._lock:
            return list(self._pending)

    def drain(self):
        """Return all pending notices and clear them."""
        with self._lock:
            notices, self._pending = self._pending, []
        return notices


class Reconciler:
    """
    Runs best-effort remote writes off the caller's thread.

    Args:
        events (EventChannel): where failures are reported
        timeout (float): per-call bound before a write is reported as failed,
            and the default wait for flush()
        max_workers (int): size of the background pool; 1 keeps remote writes
            in the order they were submitted
    """

    def __init__(self, events, timeout=10.0, max_workers=1):
        self.events = events
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='reconcile')
        self._lock = threading.Lock()
        self._in_flight = set()

    def submit(self, operation, fn, *args, **kwargs):
        """
        Schedule a remote call and return immediately.

        A call still unfinished `timeout` seconds after it was submitted is
        reported as RemoteSyncFailed; it keeps running and may still land.

        Returns:
            concurrent.futures.Future: resolves to the call's result, or None on failure
        """
        future = self._executor.submit(self._run, operation, fn, *args, **kwargs)
        watchdog = threading.Timer(self.timeout, self._overdue, args=(operation, future))
        watchdog.daemon = True
        with self._lock:
            self._in_flight.add(future)
        future.add_done_callback(lambda f: self._discard(f, watchdog))
        watchdog.start()
        return future

    def _discard(self, future, watchdog):
        watchdog.cancel()
        with self._lock:
            self._in_flight.discard(future)

    def _overdue(self, operation, future):
        if future.done():
            return
        self.events.report(RemoteSyncFailed(operation, detail=f"no response within {self.timeout}s"))

    def _run(self, operation, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except Exception as e:
            self.events.report(RemoteSyncFailed(operation, detail=str(e)))
            return None

    def flush(self, timeout=None):
        """
        Wait for in-flight writes, up to a bounded timeout.

        Returns:
            bool: True if everything finished in time
        """
        with self._lock:
            futures = list(self._in_flight)
        if not futures:
            return True
        done, not_done = wait(futures, timeout=self.timeout if timeout is None else timeout)
        if not_done:
            logger.warning(f"{len(not_done)} remote writes still pending after flush")
        return not not_done

    def shutdown(self, wait_for_pending=True):
        """Stop the pool. Without waiting, queued writes are dropped and a hung one is abandoned."""
        self._executor.shutdown(wait=wait_for_pending, cancel_futures=not wait_for_pending)
