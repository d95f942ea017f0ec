from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.correlation.store import CorrelationStore
from app.models.enums import DispatchOutcome, Environment, SendStatus
from app.models.tables import OutboundInstruction
from app.queue.gateway import QueueGateway, remote_address
from app.settlement.builder import LegParams
from app.templates.engine import render_with_warnings
from app.util.ids import new_uuid
from app.util.time import now_utc

log = logging.getLogger("dispatcher")


@dataclass(frozen=True)
class LegResult:
    transaction_id: str
    sent: bool
    error: str | None = None


@dataclass(frozen=True)
class PairDispatchResult:
    leg_a: LegResult
    leg_b: LegResult

    @property
    def outcome(self) -> DispatchOutcome:
        if self.leg_a.sent and self.leg_b.sent:
            return DispatchOutcome.SUCCESS
        if self.leg_a.sent or self.leg_b.sent:
            return DispatchOutcome.PARTIAL_FAILURE
        return DispatchOutcome.TOTAL_FAILURE

    @property
    def success(self) -> bool:
        return self.outcome == DispatchOutcome.SUCCESS

    def error_message(self) -> str | None:
        failed = [r for r in (self.leg_a, self.leg_b) if not r.sent]
        if not failed:
            return None
        return "; ".join(f"{r.transaction_id}: {r.error or 'send failed'}" for r in failed)


def resolve_environment(environment: str | None) -> Environment:
    value = (environment or settings.DISPATCH_DEFAULT_ENVIRONMENT or "").strip().lower()
    try:
        return Environment(value)
    except ValueError:
        raise ValueError(f"Invalid environment: {environment}") from None


class OutboundDispatcher:
    def __init__(self, *, gateway: QueueGateway, store: CorrelationStore, remote_host: str | None = None):
        self.gateway = gateway
        self.store = store
        self.remote_host = remote_host or settings.REMOTE_QUEUE_HOST

    def destination(self, queue_name: str, environment: Environment) -> str:
        if environment == Environment.LOCAL:
            return queue_name
        return remote_address(self.remote_host, queue_name)

    def dispatch_pair(
        self,
        *,
        template: str,
        template_name: str,
        queue_name: str,
        environment: str | None,
        leg_a: LegParams,
        leg_b: LegParams,
    ) -> PairDispatchResult:
        """Render, record both rows, then send each leg on its own.

        Rows exist for both legs before either send is attempted, so a
        partial failure is always visible as one SENT and one SEND_FAILED row.
        A leg id that is already recorded raises ``DuplicateTransactionError``
        and nothing is sent.
        """

        env = resolve_environment(environment)
        destination = self.destination(queue_name, env)

        rows = [
            self._instruction(leg, template=template, template_name=template_name, queue_name=queue_name, env=env, destination=destination)
            for leg in (leg_a, leg_b)
        ]
        self.store.record_pair(rows[0], rows[1])

        results = [self._send_leg(row, env) for row in rows]
        result = PairDispatchResult(leg_a=results[0], leg_b=results[1])

        if result.outcome == DispatchOutcome.SUCCESS:
            log.info(
                "Pair sent correlation_key=%s legs=%s/%s destination=%s",
                leg_a.correlation_key,
                leg_a.transaction_id,
                leg_b.transaction_id,
                destination,
            )
        elif result.outcome == DispatchOutcome.PARTIAL_FAILURE:
            log.error(
                "Pair PARTIAL_FAILURE correlation_key=%s %s=%s %s=%s: %s",
                leg_a.correlation_key,
                leg_a.transaction_id,
                results[0].sent,
                leg_b.transaction_id,
                results[1].sent,
                result.error_message(),
            )
        else:
            log.error("Pair TOTAL_FAILURE correlation_key=%s: %s", leg_a.correlation_key, result.error_message())
        return result

    def _instruction(
        self,
        leg: LegParams,
        *,
        template: str,
        template_name: str,
        queue_name: str,
        env: Environment,
        destination: str,
    ) -> OutboundInstruction:
        rendered = render_with_warnings(template, leg.params)
        meta: dict = {"canonical_xml": rendered.canonical}
        if rendered.missing:
            meta["missing_params"] = sorted(set(rendered.missing))
        return OutboundInstruction(
            id=new_uuid(),
            transaction_id=leg.transaction_id,
            linked_transaction_id=leg.linked_transaction_id,
            correlation_key=leg.correlation_key,
            movement_type=leg.movement_type.value,
            template_name=template_name,
            queue_name=queue_name,
            environment=env.value,
            destination=destination,
            payload=rendered.text,
            meta=meta,
            send_status=SendStatus.PENDING.value,
            processing_status="PENDING",
            last_error=None,
            created_at=now_utc(),
            sent_at=None,
            processed_at=None,
        )

    def _send_leg(self, row: OutboundInstruction, env: Environment) -> LegResult:
        try:
            if env == Environment.LOCAL:
                sent = self.gateway.send_local(row.destination, row.payload)
            else:
                sent = self.gateway.send_remote(row.destination, row.payload)
            error = None if sent else "transport refused send"
        except Exception as e:
            log.exception("Send raised for %s", row.transaction_id)
            sent, error = False, f"exception:{type(e).__name__}:{str(e)}"

        try:
            if sent:
                self.store.mark_sent(row.transaction_id)
            else:
                self.store.mark_send_failed(row.transaction_id, error)
        except SQLAlchemyError:
            # The send already happened (or not); the sibling still gets its attempt.
            log.exception("Could not record send outcome for %s", row.transaction_id)

        if sent:
            log.info("Leg %s (%s) sent", row.transaction_id, row.movement_type)
        else:
            log.error("Leg %s (%s) failed: %s", row.transaction_id, row.movement_type, error)
        return LegResult(transaction_id=row.transaction_id, sent=sent, error=error)
