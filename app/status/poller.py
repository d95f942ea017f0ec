"""Per-queue status polling.

Each configured status queue is STOPPED or RUNNING. A tick on a RUNNING queue
does one bounded receive, parses the body and fans the status out to both
legs of the pair. Receive errors count against the queue; after
``STATUS_MAX_FAILURES`` in a row the queue stops itself and stays stopped
until someone restarts it.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from app.core.config import settings
from app.correlation.store import CorrelationStore
from app.models.enums import ListenerState
from app.queue.gateway import QueueGateway
from app.status.parser import parse_status

log = logging.getLogger("status.poller")


class UnknownQueueError(LookupError):
    pass


class ListenerRegistry:
    """RUNNING/STOPPED flag and failure counter per queue, shared by the
    scheduler threads and the operator endpoints."""

    def __init__(self, queues: Iterable[str], *, disabled: Iterable[str] = ()):
        names = list(dict.fromkeys(queues))
        self._lock = threading.Lock()
        self._state: dict[str, ListenerState] = {q: ListenerState.STOPPED for q in names}
        self._failures: dict[str, int] = {q: 0 for q in names}
        self._disabled = set(disabled)

    def queues(self) -> list[str]:
        return list(self._state)

    def knows(self, queue_name: str) -> bool:
        return queue_name in self._state

    def is_enabled(self, queue_name: str) -> bool:
        return queue_name not in self._disabled

    def state(self, queue_name: str) -> ListenerState:
        with self._lock:
            return self._state[queue_name]

    def transition(self, queue_name: str, to: ListenerState, *, reset_failures: bool = False) -> bool:
        """Set the state; False if the queue was already there."""
        with self._lock:
            if self._state[queue_name] == to:
                return False
            self._state[queue_name] = to
            if reset_failures:
                self._failures[queue_name] = 0
            return True

    def record_failure(self, queue_name: str) -> int:
        with self._lock:
            self._failures[queue_name] += 1
            return self._failures[queue_name]

    def reset_failures(self, queue_name: str) -> None:
        with self._lock:
            self._failures[queue_name] = 0

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return {q: s.value for q, s in self._state.items()}

    def counters(self) -> dict[str, int]:
        with self._lock:
            return dict(self._failures)


@dataclass(frozen=True)
class PollOutcome:
    queue_name: str
    polled: bool
    received: bool = False
    matched: int = 0
    error: str | None = None
    stopped: bool = False


class StatusPoller:
    def __init__(
        self,
        *,
        gateway: QueueGateway,
        registry: ListenerRegistry,
        store: CorrelationStore,
        max_failures: int | None = None,
        receive_timeout_ms: int | None = None,
        restart_delay_s: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.gateway = gateway
        self.registry = registry
        self.store = store
        self.max_failures = max_failures or settings.STATUS_MAX_FAILURES
        self.receive_timeout_ms = receive_timeout_ms or settings.STATUS_RECEIVE_TIMEOUT_MS
        self.restart_delay_s = settings.STATUS_RESTART_DELAY_S if restart_delay_s is None else restart_delay_s
        self._sleep = sleep

    def _require(self, queue_name: str) -> None:
        if not self.registry.knows(queue_name):
            raise UnknownQueueError(f"Unknown status queue: {queue_name}")

    # ---------- lifecycle ----------

    def start(self, queue_name: str) -> bool:
        self._require(queue_name)
        if not self.registry.is_enabled(queue_name):
            log.info("Listener for %s is disabled; not starting", queue_name)
            return False
        changed = self.registry.transition(queue_name, ListenerState.RUNNING, reset_failures=True)
        if changed:
            log.info("Started status listener for %s", queue_name)
        else:
            log.info("Status listener for %s already running", queue_name)
        return changed

    def stop(self, queue_name: str) -> bool:
        self._require(queue_name)
        changed = self.registry.transition(queue_name, ListenerState.STOPPED)
        if changed:
            log.info("Stopped status listener for %s", queue_name)
        return changed

    def restart(self, queue_name: str) -> bool:
        self.stop(queue_name)
        if self.restart_delay_s:
            self._sleep(self.restart_delay_s)
        return self.start(queue_name)

    def start_all(self) -> dict[str, bool]:
        return {q: self.start(q) for q in self.registry.queues()}

    def stop_all(self) -> dict[str, bool]:
        return {q: self.stop(q) for q in self.registry.queues()}

    def is_running(self, queue_name: str) -> bool:
        self._require(queue_name)
        return self.registry.state(queue_name) == ListenerState.RUNNING

    def status(self) -> dict[str, str]:
        return self.registry.snapshot()

    def retry_counters(self) -> dict[str, int]:
        return self.registry.counters()

    # ---------- ticks ----------

    def poll_all(self) -> list[PollOutcome]:
        """Serial tick over every queue, for tests and one-off manual runs.

        Scheduled polling goes through ``PollerScheduler`` or the per-queue
        Celery task.
        """
        return [self.poll_queue(q) for q in self.registry.queues()]

    def poll_queue(self, queue_name: str) -> PollOutcome:
        if not self.is_running(queue_name):
            return PollOutcome(queue_name=queue_name, polled=False)

        try:
            body = self.gateway.receive(queue_name, self.receive_timeout_ms)
            self.registry.reset_failures(queue_name)
            if body is None:
                return PollOutcome(queue_name=queue_name, polled=True)
            matched = self._handle(body, queue_name)
            return PollOutcome(queue_name=queue_name, polled=True, received=True, matched=matched)
        except Exception as e:
            return self._failed(queue_name, e)

    def _handle(self, body: str, queue_name: str) -> int:
        record = parse_status(body, queue_name)
        if record is None:
            return 0
        # An empty key is logged as unmatched by the store.
        return self.store.apply_status(
            record.correlation_key,
            record.canonical_status,
            record.additional_reason_info,
            detail=record.summary(),
        )

    def _failed(self, queue_name: str, exc: Exception) -> PollOutcome:
        count = self.registry.record_failure(queue_name)
        error = f"{type(exc).__name__}: {str(exc)}"
        log.warning("Error polling %s (%s/%s): %s", queue_name, count, self.max_failures, error)

        stopped = False
        if count >= self.max_failures:
            stopped = self.registry.transition(queue_name, ListenerState.STOPPED)
            log.error("Stopping listener for %s after %s consecutive failures; restart required", queue_name, count)
        return PollOutcome(queue_name=queue_name, polled=True, error=error, stopped=stopped)


class PollerScheduler:
    """One daemon thread per queue, each ticking on its own interval."""

    def __init__(self, poller: StatusPoller, *, interval_s: float | None = None):
        self.poller = poller
        self.interval_s = interval_s or settings.STATUS_POLL_INTERVAL_S
        self._shutdown = threading.Event()
        self._threads: dict[str, threading.Thread] = {}

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads.values())

    def start(self, *, activate: bool = True) -> None:
        if self.running:
            return
        self._shutdown.clear()
        if activate:
            self.poller.start_all()
        for q in self.poller.registry.queues():
            t = threading.Thread(target=self._loop, args=(q,), name=f"status-poller-{q}", daemon=True)
            self._threads[q] = t
            t.start()
        log.info("Status poller scheduler started queues=%s interval=%ss", list(self._threads), self.interval_s)

    def _loop(self, queue_name: str) -> None:
        while not self._shutdown.is_set():
            try:
                self.poller.poll_queue(queue_name)
            except Exception:
                log.exception("Poller tick crashed for %s", queue_name)
            self._shutdown.wait(self.interval_s)

    def shutdown(self, timeout_s: float | None = 10.0) -> None:
        self.poller.stop_all()
        self._shutdown.set()
        for t in self._threads.values():
            t.join(timeout=timeout_s)
        self._threads.clear()
        log.info("Status poller scheduler stopped")
