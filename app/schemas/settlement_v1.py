from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, PositiveInt


class SecuritiesSettlementRequest(BaseModel):
    """One securities transfer; produces a RECE leg and a DELI leg."""

    isin_code: str = Field(min_length=1)
    security_name: str = Field(min_length=1)
    quantity: PositiveInt
    seller_account_id: str = Field(min_length=1)
    buyer_account_id: str = Field(min_length=1)
    seller_name: str | None = None
    buyer_name: str | None = None
    trade_date: date
    settlement_date: date
    queue_name: str = Field(min_length=1)
    seller_broker_bic: str = Field(min_length=1)
    buyer_broker_bic: str = Field(min_length=1)
    seller_custodian_bic: str | None = None
    buyer_custodian_bic: str | None = None

    correlation_key: str | None = Field(default=None, alias="common_reference_id")
    environment: Literal["local", "remote"] | None = None

    model_config = {"populate_by_name": True}


class PledgeInstructionRequest(BaseModel):
    """One pledge; produces a balance (COLI) leg and a release (COLO) leg."""

    security_isin: str = Field(min_length=1)
    security_desc: str = Field(min_length=1)
    quantity: PositiveInt
    broker_code: str = Field(min_length=1)
    csd_account: str = Field(min_length=1)
    pledgee_bpid: str = Field(min_length=1)
    queue_name: str = Field(min_length=1)

    transaction_id: str | None = None
    processing_id: str | None = None
    trade_date: date | None = None
    settlement_date: date | None = None

    correlation_key: str | None = Field(default=None, alias="common_reference_id")
    environment: Literal["local", "remote"] | None = None

    model_config = {"populate_by_name": True}


class LegStatus(BaseModel):
    transaction_id: str
    linked_transaction_id: str
    movement_type: str
    send_status: str
    processing_status: str
    sent_at: datetime | None = None
    processed_at: datetime | None = None
    last_error: str | None = None


class PairDispatchResponse(BaseModel):
    success: bool
    outcome: Literal["SUCCESS", "PARTIAL_FAILURE", "TOTAL_FAILURE"]
    correlation_key: str
    base_transaction_id: str
    queue_name: str
    environment: str
    leg_a: LegStatus
    leg_b: LegStatus
    error_message: str | None = None
    processed_at: datetime
