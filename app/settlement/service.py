from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.correlation.store import CorrelationStore
from app.schemas.settlement_v1 import (
    LegStatus,
    PairDispatchResponse,
    PledgeInstructionRequest,
    SecuritiesSettlementRequest,
)
from app.settlement.builder import LegPair, build_pledge_pair, build_settlement_pair
from app.settlement.dispatcher import OutboundDispatcher, PairDispatchResult, resolve_environment
from app.templates.store import PLEDGE_INSTRUCTION, SECURITIES_SETTLEMENT, get_template
from app.util.time import now_utc

log = logging.getLogger("settlement")


def send_securities_settlement(
    *, db: Session, dispatcher: OutboundDispatcher, request: SecuritiesSettlementRequest
) -> PairDispatchResponse:
    log.info("Paired settlement for %s quantity=%s", request.isin_code, request.quantity)
    pair = build_settlement_pair(request)
    return _dispatch(
        db=db,
        dispatcher=dispatcher,
        template_name=SECURITIES_SETTLEMENT,
        queue_name=request.queue_name,
        environment=request.environment,
        pair=pair,
    )


def send_pledge_instruction(
    *, db: Session, dispatcher: OutboundDispatcher, request: PledgeInstructionRequest
) -> PairDispatchResponse:
    log.info("Pledge pair for %s quantity=%s", request.security_isin, request.quantity)
    pair = build_pledge_pair(request)
    return _dispatch(
        db=db,
        dispatcher=dispatcher,
        template_name=PLEDGE_INSTRUCTION,
        queue_name=request.queue_name,
        environment=request.environment,
        pair=pair,
    )


def _dispatch(
    *,
    db: Session,
    dispatcher: OutboundDispatcher,
    template_name: str,
    queue_name: str,
    environment: str | None,
    pair: LegPair,
) -> PairDispatchResponse:
    env = resolve_environment(environment)
    template = get_template(db, template_name)
    result = dispatcher.dispatch_pair(
        template=template,
        template_name=template_name,
        queue_name=queue_name,
        environment=env.value,
        leg_a=pair.leg_a,
        leg_b=pair.leg_b,
    )
    return pair_response(dispatcher.store, pair=pair, result=result, queue_name=queue_name, environment=env.value)


def pair_response(
    store: CorrelationStore, *, pair: LegPair, result: PairDispatchResult, queue_name: str, environment: str
) -> PairDispatchResponse:
    rows = {r.transaction_id: r for r in store.find_by_correlation_key(pair.leg_a.correlation_key)}

    def _leg(leg, sent: bool) -> LegStatus:
        row = rows.get(leg.transaction_id)
        return LegStatus(
            transaction_id=leg.transaction_id,
            linked_transaction_id=leg.linked_transaction_id,
            movement_type=leg.movement_type.value,
            send_status=row.send_status if row else ("SENT" if sent else "SEND_FAILED"),
            processing_status=row.processing_status if row else "PENDING",
            sent_at=row.sent_at if row else None,
            processed_at=row.processed_at if row else None,
            last_error=row.last_error if row else None,
        )

    return PairDispatchResponse(
        success=result.success,
        outcome=result.outcome.value,
        correlation_key=pair.leg_a.correlation_key,
        base_transaction_id=pair.base_transaction_id,
        queue_name=queue_name,
        environment=environment,
        leg_a=_leg(pair.leg_a, result.leg_a.sent),
        leg_b=_leg(pair.leg_b, result.leg_b.sent),
        error_message=result.error_message(),
        processed_at=now_utc(),
    )
