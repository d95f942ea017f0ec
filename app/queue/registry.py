from __future__ import annotations

from app.core.config import settings
from app.queue.gateway import QueueGateway
from app.queue.redis_gateway import RedisQueueGateway


def get_gateway(kind: str | None = None) -> QueueGateway:
    kind = kind or settings.QUEUE_GATEWAY
    if kind == "redis":
        return RedisQueueGateway.from_urls(
            settings.QUEUE_REDIS_URL,
            settings.REMOTE_QUEUE_REDIS_URL,
            socket_timeout_s=max(settings.STATUS_RECEIVE_TIMEOUT_MS / 1000.0 + 2.0, 5.0),
        )
    raise ValueError(f"No queue gateway for kind={kind}")
