from __future__ import annotations

from sqlalchemy import Boolean, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

# Use JSONB on Postgres, fallback to JSON for SQLite/test environments.
JSONType = JSON().with_variant(JSONB, "postgresql")

from app.models.base import Base


class OutboundInstruction(Base):
    """One leg of a paired instruction, as sent to the counterparty queue."""

    __tablename__ = "outbound_instructions"
    __table_args__ = (
        Index("ix_outbound_instructions_correlation_key", "correlation_key"),
        Index("ix_outbound_instructions_processing_status", "processing_status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    transaction_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    linked_transaction_id: Mapped[str] = mapped_column(String(100), nullable=False)
    correlation_key: Mapped[str] = mapped_column(String(50), nullable=False)

    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)  # RECE/DELI/COLI/COLO
    template_name: Mapped[str] = mapped_column(String(100), nullable=False)
    queue_name: Mapped[str] = mapped_column(String(255), nullable=False)
    environment: Mapped[str] = mapped_column(String(20), nullable=False)  # local/remote
    destination: Mapped[str] = mapped_column(String(500), nullable=False)

    payload: Mapped[str] = mapped_column(Text, nullable=False)
    meta: Mapped[dict] = mapped_column("metadata", JSONType, nullable=False, default=dict)

    send_status: Mapped[str] = mapped_column(String(20), nullable=False)  # PENDING/SENT/SEND_FAILED
    processing_status: Mapped[str] = mapped_column(String(50), nullable=False, default="PENDING")
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), nullable=False)
    sent_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), nullable=True)


class MessageTemplate(Base):
    """Operator-supplied override of a built-in XML template."""

    __tablename__ = "message_templates"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    template_type: Mapped[str] = mapped_column(String(100), nullable=False, default="SWIFT")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), nullable=False)
