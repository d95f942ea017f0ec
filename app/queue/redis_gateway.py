from __future__ import annotations

import logging
from dataclasses import dataclass, field

from redis import Redis
from redis.exceptions import RedisError

from app.queue.gateway import QueueGatewayError, queue_from_address

log = logging.getLogger("queue.redis")

KEY_PREFIX = "queue:"


def _key(queue_name: str) -> str:
    return f"{KEY_PREFIX}{queue_name}"


@dataclass
class RedisQueueGateway:
    """Queues as Redis lists: LPUSH to send, BRPOP to receive (FIFO)."""

    local: Redis
    remote: Redis | None = None
    kind: str = field(default="redis", init=False)

    @classmethod
    def from_urls(cls, local_url: str, remote_url: str | None = None, *, socket_timeout_s: float = 5.0) -> "RedisQueueGateway":
        local = Redis.from_url(local_url, socket_connect_timeout=2, socket_timeout=socket_timeout_s, decode_responses=True)
        remote = None
        if remote_url:
            remote = Redis.from_url(remote_url, socket_connect_timeout=2, socket_timeout=socket_timeout_s, decode_responses=True)
        return cls(local=local, remote=remote)

    def send_local(self, queue_name: str, body: str) -> bool:
        return self._push(self.local, queue_name, body)

    def send_remote(self, remote_address: str, body: str) -> bool:
        client = self.remote or self.local
        return self._push(client, queue_from_address(remote_address), body)

    def receive(self, queue_name: str, timeout_ms: int) -> str | None:
        # BRPOP takes seconds; 0 would block forever.
        timeout_s = max(timeout_ms, 1) / 1000.0
        try:
            item = self.local.brpop([_key(queue_name)], timeout=timeout_s)
        except RedisError as e:
            raise QueueGatewayError(f"receive from {queue_name} failed: {e}") from e
        if item is None:
            return None
        _, body = item
        return body

    def _push(self, client: Redis, queue_name: str, body: str) -> bool:
        try:
            client.lpush(_key(queue_name), body)
            return True
        except RedisError as e:
            log.error("Send to %s failed: %s", queue_name, str(e))
            return False
