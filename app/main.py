from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import FastAPI
from redis import Redis
from sqlalchemy import text

from app.api.routers.listeners import router as listeners_router
from app.api.routers.settlements import router as settlements_router
from app.core.config import settings
from app.core.db import engine
from app.core.logging import configure_logging
from app.core.runtime import poller_scheduler

configure_logging(settings.LOG_LEVEL)
log = logging.getLogger("app")

app = FastAPI(title=settings.APP_NAME)


def _retry_backoff(fn, *, attempts: int = 30, base_sleep_s: float = 1.0, max_sleep_s: float = 2.0, what: str) -> bool:
    sleep_s = base_sleep_s
    for i in range(1, attempts + 1):
        try:
            fn()
            return True
        except Exception as e:
            if i == attempts:
                log.error("Startup: %s still not ready after %s attempts: %s", what, attempts, str(e))
                return False
            log.warning("Startup: %s not ready (attempt %s/%s): %s", what, i, attempts, str(e))
            time.sleep(sleep_s)
            sleep_s = min(max_sleep_s, sleep_s * 2.0)
    return False


def _check_database() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


def _redis_ping(url: str) -> bool:
    r = Redis.from_url(url, socket_connect_timeout=1, socket_timeout=1)
    return bool(r.ping())


def _check_redis(url: str) -> bool:
    try:
        return _redis_ping(url)
    except Exception:
        return False


@app.on_event("startup")
def _startup() -> None:
    # Do not crash API if deps are temporarily unavailable.
    # In CI/unit tests we skip these to avoid slow retries/hangs.
    if settings.ENSURE_EXTERNAL_DEPS_ON_STARTUP:
        _retry_backoff(lambda: _redis_ping(settings.QUEUE_REDIS_URL), what="queue redis")
    else:
        log.info("Startup: ENSURE_EXTERNAL_DEPS_ON_STARTUP=false; skipping queue transport check")

    if not settings.STATUS_LISTENER_ENABLED:
        log.info("Startup: STATUS_LISTENER_ENABLED=false; status queues are not polled")
        return
    if not settings.STATUS_LISTENER_IN_PROCESS:
        log.info("Startup: status polling left to celery beat")
        return
    poller_scheduler().start()


@app.on_event("shutdown")
def _shutdown() -> None:
    scheduler = poller_scheduler()
    if scheduler.running:
        scheduler.shutdown()


@app.get("/health")
def health() -> dict[str, Any]:
    deps = {
        "database": _check_database(),
        "redis": _check_redis(settings.REDIS_URL),
        "queue": _check_redis(settings.QUEUE_REDIS_URL),
    }
    return {"ok": all(deps.values()), "deps": deps, "app": settings.APP_NAME}


app.include_router(settlements_router, prefix="/settlements", tags=["settlements"])
app.include_router(listeners_router, prefix="/listeners", tags=["listeners"])
