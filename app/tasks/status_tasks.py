from __future__ import annotations

import logging

from app.core.celery_app import celery
from app.core.runtime import status_poller

log = logging.getLogger("app")

# Queues this worker process has already brought up.
_activated: set[str] = set()


@celery.task(name="poll_status_queue")
def poll_status_queue(queue_name: str, start_stopped: bool = False) -> dict:
    """One poll tick for a single status queue.

    Used when Celery beat drives polling instead of the in-process threads;
    beat schedules one of these per queue. A worker process has its own
    listener registry, so ``start_stopped`` starts the queue on the first tick
    this process runs for it. A queue that stops itself later stays stopped.
    """

    poller = status_poller()
    if start_stopped and queue_name not in _activated:
        poller.start(queue_name)
        _activated.add(queue_name)

    outcome = poller.poll_queue(queue_name)
    if outcome.stopped:
        log.error("poll_status_queue: %s stopped after repeated failures", queue_name)
    return {
        "ok": outcome.error is None,
        "queue_name": queue_name,
        "polled": outcome.polled,
        "received": outcome.received,
        "matched": outcome.matched,
        "error": outcome.error,
        "stopped": outcome.stopped,
    }
