from __future__ import annotations

from celery import Celery

from app.core.config import settings, split_csv

celery = Celery(
    "settlement_relay",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.status_tasks"],
)

celery.conf.update(
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=True,
    task_default_queue="default",
)


def status_beat_schedule(queues: list[str], interval_s: float) -> dict:
    """One beat entry per status queue; a tick still queued when the next one
    is due expires."""
    return {
        f"poll-status-{q}": {
            "task": "poll_status_queue",
            "schedule": interval_s,
            "args": (q,),
            "kwargs": {"start_stopped": True},
            "options": {"expires": interval_s},
        }
        for q in queues
    }


# Beat only drives polling when the API is not running the in-process threads.
if settings.STATUS_LISTENER_ENABLED and not settings.STATUS_LISTENER_IN_PROCESS:
    celery.conf.beat_schedule = status_beat_schedule(split_csv(settings.STATUS_QUEUES), settings.STATUS_POLL_INTERVAL_S)
