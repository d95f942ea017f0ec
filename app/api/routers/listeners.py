from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_poller
from app.core.security import require_admin_token
from app.status.poller import StatusPoller, UnknownQueueError

router = APIRouter(dependencies=[Depends(require_admin_token)])


def _queue_state(poller: StatusPoller, queue_name: str) -> dict:
    return {
        "queue_name": queue_name,
        "running": poller.is_running(queue_name),
        "enabled": poller.registry.is_enabled(queue_name),
        "retry_count": poller.retry_counters().get(queue_name, 0),
    }


@router.get("/status")
def listeners_status(poller: StatusPoller = Depends(get_poller)) -> dict:
    return {"listeners": poller.status()}


@router.get("/retry-counters")
def listeners_retry_counters(poller: StatusPoller = Depends(get_poller)) -> dict:
    return {"retry_counters": poller.retry_counters()}


@router.post("/start")
def start_all(poller: StatusPoller = Depends(get_poller)) -> dict:
    changed = poller.start_all()
    return {"ok": True, "started": [q for q, c in changed.items() if c], "listeners": poller.status()}


@router.post("/stop")
def stop_all(poller: StatusPoller = Depends(get_poller)) -> dict:
    changed = poller.stop_all()
    return {"ok": True, "stopped": [q for q, c in changed.items() if c], "listeners": poller.status()}


@router.post("/{queue_name}/start")
def start_one(queue_name: str, poller: StatusPoller = Depends(get_poller)) -> dict:
    try:
        changed = poller.start(queue_name)
        return {"ok": True, "changed": changed, **_queue_state(poller, queue_name)}
    except UnknownQueueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{queue_name}/stop")
def stop_one(queue_name: str, poller: StatusPoller = Depends(get_poller)) -> dict:
    try:
        changed = poller.stop(queue_name)
        return {"ok": True, "changed": changed, **_queue_state(poller, queue_name)}
    except UnknownQueueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{queue_name}/restart")
def restart_one(queue_name: str, poller: StatusPoller = Depends(get_poller)) -> dict:
    try:
        changed = poller.restart(queue_name)
        return {"ok": True, "changed": changed, **_queue_state(poller, queue_name)}
    except UnknownQueueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{queue_name}/status")
def status_one(queue_name: str, poller: StatusPoller = Depends(get_poller)) -> dict:
    try:
        return _queue_state(poller, queue_name)
    except UnknownQueueError as e:
        raise HTTPException(status_code=404, detail=str(e))
