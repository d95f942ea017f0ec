from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import get_dispatcher, get_store
from app.core.db import get_db
from app.core.security import require_admin_token
from app.correlation.store import CorrelationStore, DuplicateTransactionError
from app.schemas.settlement_v1 import PairDispatchResponse, PledgeInstructionRequest, SecuritiesSettlementRequest
from app.settlement.dispatcher import OutboundDispatcher
from app.settlement.service import send_pledge_instruction, send_securities_settlement
from app.templates.store import TemplateNotFoundError, upsert_template

router = APIRouter()


class TemplateIn(BaseModel):
    content: str = Field(min_length=1)
    description: str | None = None


@router.post("/securities", response_model=PairDispatchResponse)
def submit_securities_settlement(
    payload: SecuritiesSettlementRequest,
    db: Session = Depends(get_db),
    dispatcher: OutboundDispatcher = Depends(get_dispatcher),
) -> PairDispatchResponse:
    try:
        return send_securities_settlement(db=db, dispatcher=dispatcher, request=payload)
    except TemplateNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DuplicateTransactionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/pledges", response_model=PairDispatchResponse)
def submit_pledge_instruction(
    payload: PledgeInstructionRequest,
    db: Session = Depends(get_db),
    dispatcher: OutboundDispatcher = Depends(get_dispatcher),
) -> PairDispatchResponse:
    try:
        return send_pledge_instruction(db=db, dispatcher=dispatcher, request=payload)
    except TemplateNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DuplicateTransactionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{correlation_key}")
def get_pair(correlation_key: str, store: CorrelationStore = Depends(get_store)) -> dict:
    rows = store.find_by_correlation_key(correlation_key)
    if not rows:
        raise HTTPException(status_code=404, detail="Not found")
    return {
        "correlation_key": correlation_key,
        "legs": [
            {
                "transaction_id": r.transaction_id,
                "linked_transaction_id": r.linked_transaction_id,
                "movement_type": r.movement_type,
                "template_name": r.template_name,
                "queue_name": r.queue_name,
                "environment": r.environment,
                "destination": r.destination,
                "send_status": r.send_status,
                "processing_status": r.processing_status,
                "last_error": r.last_error,
                "created_at": r.created_at,
                "sent_at": r.sent_at,
                "processed_at": r.processed_at,
                "meta": r.meta,
            }
            for r in rows
        ],
    }


@router.put("/templates/{name}", dependencies=[Depends(require_admin_token)])
def put_template(name: str, payload: TemplateIn, db: Session = Depends(get_db)) -> dict:
    row = upsert_template(db, name=name, content=payload.content, description=payload.description)
    return {"ok": True, "name": row.name, "updated_at": row.updated_at}
