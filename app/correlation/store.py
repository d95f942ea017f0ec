"""Outbound instruction rows indexed by transaction id and correlation key.

Status fan-out touches every row that shares a correlation key. Each row is
its own write: a failure on one leg is logged and the other leg is still
attempted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.enums import CanonicalStatus, SendStatus
from app.models.tables import OutboundInstruction
from app.util.time import now_utc

log = logging.getLogger("correlation")


class DuplicateTransactionError(Exception):
    """A transaction id that is already recorded; nothing was written."""

    def __init__(self, transaction_ids: list[str]):
        self.transaction_ids = transaction_ids
        super().__init__(f"Transaction id already recorded: {', '.join(transaction_ids)}")


class CorrelationStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    # ---------- writes ----------

    def record(self, instruction: OutboundInstruction) -> OutboundInstruction:
        self._commit([instruction])
        return instruction

    def record_pair(self, leg_a: OutboundInstruction, leg_b: OutboundInstruction) -> None:
        """Both rows in one commit so neither is visible without its sibling."""
        self._commit([leg_a, leg_b])
        log.info(
            "Recorded pair correlation_key=%s legs=%s/%s",
            leg_a.correlation_key,
            leg_a.transaction_id,
            leg_b.transaction_id,
        )

    def _commit(self, rows: list[OutboundInstruction]) -> None:
        ids = [r.transaction_id for r in rows]
        with self._session_factory() as db:
            db.add_all(rows)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                log.warning("Duplicate transaction id, nothing recorded: %s", ids)
                raise DuplicateTransactionError(ids) from None

    def mark_sent(self, transaction_id: str) -> None:
        self._update_send(transaction_id, SendStatus.SENT, error=None)

    def mark_send_failed(self, transaction_id: str, error: str | None) -> None:
        self._update_send(transaction_id, SendStatus.SEND_FAILED, error=error)

    def _update_send(self, transaction_id: str, status: SendStatus, *, error: str | None) -> None:
        with self._session_factory() as db:
            row = db.query(OutboundInstruction).filter(OutboundInstruction.transaction_id == transaction_id).one_or_none()
            if row is None:
                log.warning("Send outcome for unknown transaction_id=%s", transaction_id)
                return
            row.send_status = status.value
            if status == SendStatus.SENT:
                row.sent_at = now_utc()
                row.last_error = None
            else:
                row.last_error = error
            db.commit()

    def apply_status(
        self,
        correlation_key: str | None,
        canonical_status: CanonicalStatus | str,
        reason_info: str | None = None,
        *,
        detail: dict | None = None,
    ) -> int:
        """Set processing status on every leg with this key; returns rows updated.

        Zero matches is not an error: the status is logged and dropped.
        """

        status = canonical_status.value if isinstance(canonical_status, CanonicalStatus) else str(canonical_status)
        if not correlation_key:
            log.warning("Status %s has no correlation key; dropped", status)
            return 0

        with self._session_factory() as db:
            ids = [
                r.id
                for r in db.query(OutboundInstruction.id)
                .filter(OutboundInstruction.correlation_key == correlation_key)
                .order_by(OutboundInstruction.created_at.asc())
                .all()
            ]

        if not ids:
            log.warning("No match for status %s correlation_key=%s; dropped", status, correlation_key)
            return 0

        updated = 0
        for row_id in ids:
            try:
                with self._session_factory() as db:
                    row = db.get(OutboundInstruction, row_id)
                    if row is None:
                        continue
                    row.processing_status = status
                    row.processed_at = now_utc()
                    if reason_info:
                        row.last_error = reason_info
                    if detail:
                        meta = dict(row.meta or {})
                        meta["last_status"] = detail
                        row.meta = meta
                    db.commit()
                    updated += 1
            except SQLAlchemyError:
                log.exception("Status update failed for row %s (correlation_key=%s)", row_id, correlation_key)

        log.info("Applied status %s to %s/%s legs correlation_key=%s", status, updated, len(ids), correlation_key)
        return updated

    # ---------- reads ----------

    def find_by_correlation_key(self, correlation_key: str) -> list[OutboundInstruction]:
        with self._session_factory() as db:
            return (
                db.query(OutboundInstruction)
                .filter(OutboundInstruction.correlation_key == correlation_key)
                .order_by(OutboundInstruction.transaction_id.asc())
                .all()
            )

    def find_by_transaction_id(self, transaction_id: str) -> OutboundInstruction | None:
        with self._session_factory() as db:
            return db.query(OutboundInstruction).filter(OutboundInstruction.transaction_id == transaction_id).one_or_none()
