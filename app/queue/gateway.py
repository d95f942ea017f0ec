from __future__ import annotations

from typing import Protocol

REMOTE_PREFIX = "FORMATNAME:"


class QueueGatewayError(Exception):
    pass


class QueueGateway(Protocol):
    """Transport used by the dispatcher and the status poller.

    Sends report success as a bool; receive returns None when nothing
    arrived within ``timeout_ms``. Transport faults may raise
    ``QueueGatewayError``.
    """

    kind: str

    def send_local(self, queue_name: str, body: str) -> bool: ...

    def send_remote(self, remote_address: str, body: str) -> bool: ...

    def receive(self, queue_name: str, timeout_ms: int) -> str | None: ...


def is_remote_address(queue_name: str) -> bool:
    return queue_name.upper().startswith(REMOTE_PREFIX)


def remote_address(host: str, queue_name: str) -> str:
    """``FormatName:DIRECT=TCP:<host>\\private$\\<queue>``; full addresses pass through."""
    if is_remote_address(queue_name):
        return queue_name
    return f"FormatName:DIRECT=TCP:{host}\\private$\\{queue_name}"


def queue_from_address(address: str) -> str:
    """Last path segment of a remote address (the bare queue name)."""
    if not is_remote_address(address):
        return address
    return address.rsplit("\\", 1)[-1]
