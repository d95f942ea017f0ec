from __future__ import annotations

from app.core.runtime import correlation_store, outbound_dispatcher, status_poller
from app.correlation.store import CorrelationStore
from app.settlement.dispatcher import OutboundDispatcher
from app.status.poller import StatusPoller


def get_dispatcher() -> OutboundDispatcher:
    return outbound_dispatcher()


def get_store() -> CorrelationStore:
    return correlation_store()


def get_poller() -> StatusPoller:
    return status_poller()
