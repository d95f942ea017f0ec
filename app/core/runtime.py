"""Process-wide components, built on first use.

The listener registry must be one object per process: the scheduler threads,
the operator endpoints and the Celery tick all read and flip the same flags.
"""

from __future__ import annotations

from functools import lru_cache

from app.core.config import settings, split_csv
from app.core.db import SessionLocal
from app.correlation.store import CorrelationStore
from app.queue.gateway import QueueGateway
from app.queue.registry import get_gateway
from app.settlement.dispatcher import OutboundDispatcher
from app.status.poller import ListenerRegistry, PollerScheduler, StatusPoller


@lru_cache(maxsize=1)
def queue_gateway() -> QueueGateway:
    return get_gateway()


@lru_cache(maxsize=1)
def correlation_store() -> CorrelationStore:
    return CorrelationStore(SessionLocal)


@lru_cache(maxsize=1)
def listener_registry() -> ListenerRegistry:
    return ListenerRegistry(split_csv(settings.STATUS_QUEUES), disabled=split_csv(settings.STATUS_QUEUES_DISABLED))


@lru_cache(maxsize=1)
def outbound_dispatcher() -> OutboundDispatcher:
    return OutboundDispatcher(gateway=queue_gateway(), store=correlation_store())


@lru_cache(maxsize=1)
def status_poller() -> StatusPoller:
    return StatusPoller(gateway=queue_gateway(), registry=listener_registry(), store=correlation_store())


@lru_cache(maxsize=1)
def poller_scheduler() -> PollerScheduler:
    return PollerScheduler(status_poller())
