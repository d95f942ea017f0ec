"""Builds the two linked parameter maps behind one business request.

Both legs of a pair share a correlation key (``COMMON_REFERENCE_ID``) and
point at each other through ``LINKED_TRANSACTION_ID``. Everything else is
the same except the movement type, the credit/debit indicator and which
side's party/account fields are used.

Only the correlation key and the transaction base are random; pass them in
(plus ``now``) to get reproducible maps.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import NamedTuple

from app.core.config import settings
from app.models.enums import MovementType
from app.schemas.settlement_v1 import PledgeInstructionRequest, SecuritiesSettlementRequest
from app.util.ids import new_correlation_key, new_transaction_base, random_alnum
from app.util.time import now_utc

# Legs are base + "A" / base + "B"; pledge ids must fit 13 chars on the wire.
PLEDGE_TX_BASE_LEN = 12
# Leading chars of a caller-supplied pledge id kept in the base.
PLEDGE_TX_PREFIX_LEN = 8


@dataclass(frozen=True)
class LegParams:
    movement_type: MovementType
    params: dict[str, str]

    @property
    def transaction_id(self) -> str:
        return self.params["TRANSACTION_ID"]

    @property
    def linked_transaction_id(self) -> str:
        return self.params["LINKED_TRANSACTION_ID"]

    @property
    def correlation_key(self) -> str:
        return self.params["COMMON_REFERENCE_ID"]


class LegPair(NamedTuple):
    leg_a: LegParams
    leg_b: LegParams
    base_transaction_id: str


# ---------- securities settlement (RECE / DELI) ----------


def build_settlement_pair(
    request: SecuritiesSettlementRequest,
    *,
    correlation_key: str | None = None,
    transaction_base: str | None = None,
    now: datetime | None = None,
) -> LegPair:
    now = now or now_utc()
    key = correlation_key or request.correlation_key or new_correlation_key()
    base = transaction_base or new_transaction_base(now)
    rece_id, deli_id = base + "A", base + "B"

    common = _settlement_common(request, key=key, now=now)

    rece = dict(common)
    rece.update(
        {
            "TRANSACTION_ID": rece_id,
            "LINKED_TRANSACTION_ID": deli_id,
            "PROCESSING_ID": rece_id,
            "MOVEMENT_TYPE": MovementType.RECEIVE.value,
            "CURRENT_INSTRUCTION_NUMBER": "001",
            "CREDIT_DEBIT_INDICATOR": "DBIT",  # RECE debits the seller
        }
    )
    rece.update(_settlement_side(request, side="seller"))

    deli = dict(common)
    deli.update(
        {
            "TRANSACTION_ID": deli_id,
            "LINKED_TRANSACTION_ID": rece_id,
            "PROCESSING_ID": deli_id,
            "MOVEMENT_TYPE": MovementType.DELIVER.value,
            "CURRENT_INSTRUCTION_NUMBER": "002",
            "CREDIT_DEBIT_INDICATOR": "CRDT",  # DELI credits the buyer
        }
    )
    deli.update(_settlement_side(request, side="buyer"))

    return LegPair(
        leg_a=LegParams(MovementType.RECEIVE, rece),
        leg_b=LegParams(MovementType.DELIVER, deli),
        base_transaction_id=base,
    )


def _settlement_common(request: SecuritiesSettlementRequest, *, key: str, now: datetime) -> dict[str, str]:
    trade_date = request.trade_date.isoformat()
    return {
        "FROM_BIC": settings.SETTLEMENT_FROM_BIC,
        "TO_BIC": settings.SETTLEMENT_TO_BIC,
        "MESSAGE_TYPE": "Matched Deal Report",
        "MSG_DEF_ID": "sese.023.001.11.xsd",
        "CREATION_DATE": now.isoformat(timespec="microseconds"),
        "PAYMENT_TYPE": "FREE",
        "COMMON_REFERENCE_ID": key,
        "TOTAL_LINKED_INSTRUCTIONS": "002",
        "MARKET_IDENTIFIER": settings.SETTLEMENT_MARKET_ID,
        "MARKET_TYPE": "OTCO",
        "TRADE_DATE_TIME": f"{trade_date}T15:59:37",
        "SETTLEMENT_DATE": request.settlement_date.isoformat(),
        "TRADE_TRANSACTION_CONDITION": "MAPR",
        "TRADE_ORIGINATOR_ROLE": "MNOn",
        "TRADE_ORIGINATOR_ISSUER": settings.SETTLEMENT_TO_BIC,
        "TRADE_ORIGINATOR_SCHEME": "ORDER PLACEMENT PLATFORM",
        "MATCHING_STATUS": "MACH",
        "ISIN_CODE": request.isin_code,
        "SECURITY_DESCRIPTION": request.security_name,
        "QUANTITY": str(request.quantity),
        "ACCOUNT_OWNER_ISSUER": "CSD",
        "ACCOUNT_OWNER_SCHEME": "SOR ACCOUNT",
        "SAFEKEEPING_PLACE_TYPE": "CUST",
        "SAFEKEEPING_PLACE_ID": settings.SETTLEMENT_TO_BIC,
        "SECURITIES_TRANSACTION_TYPE": "TRAD",
        "SETTLEMENT_SYSTEM_METHOD": "NSET",
        "DEPOSITORY_BIC": settings.SETTLEMENT_DEPOSITORY_BIC,
        "DELIVERING_PARTY1_ISSUER": "CSD",
        "DELIVERING_PARTY1_SCHEME": "TRADING PARTY",
        "DELIVERING_PARTY2_ISSUER": "CSD",
        "DELIVERING_PARTY2_SCHEME": "SOR ACCOUNT",
        "DELIVERING_PARTY3_ISSUER": "CSD",
        "DELIVERING_PARTY3_SCHEME": "MB SCA",
        "RECEIVING_DEPOSITORY_BIC": settings.SETTLEMENT_RECEIVING_DEPOSITORY_BIC,
        "RECEIVING_PARTY1_ID": f"{request.seller_broker_bic}/B",
        "RECEIVING_PARTY1_ISSUER": "CSD",
        "RECEIVING_PARTY1_SCHEME": "TRADING PARTY",
        "RECEIVING_PARTY2_ISSUER": "CSD",
        "RECEIVING_PARTY2_SCHEME": "SOR ACCOUNT",
        "RECEIVING_PARTY3_ID": f"{request.seller_broker_bic}/C",
        "RECEIVING_PARTY3_ISSUER": "CSD",
        "RECEIVING_PARTY3_SCHEME": "MB SCA",
        "TERMINATION_DATE": trade_date,
    }


def _settlement_side(request: SecuritiesSettlementRequest, *, side: str) -> dict[str, str]:
    if side == "seller":
        account, broker = request.seller_account_id, request.seller_broker_bic
        delivering_party1 = f"{request.buyer_broker_bic}B02/B"
    else:
        account, broker = request.buyer_account_id, request.buyer_broker_bic
        delivering_party1 = f"{request.buyer_broker_bic}/B"

    return {
        "ACCOUNT_OWNER_ID": account,
        "SAFEKEEPING_ACCOUNT_ID": f"{broker}/C",
        "DELIVERING_PARTY1_ID": delivering_party1,
        "DELIVERING_PARTY2_ID": account,
        "DELIVERING_PARTY3_ID": f"{request.buyer_broker_bic}/C",
        "RECEIVING_PARTY2_ID": account,
    }


# ---------- pledge (COLI balance / COLO release) ----------


def build_pledge_pair(
    request: PledgeInstructionRequest,
    *,
    correlation_key: str | None = None,
    transaction_base: str | None = None,
    processing_id: str | None = None,
    now: datetime | None = None,
) -> LegPair:
    now = now or now_utc()
    key = correlation_key or request.correlation_key or new_correlation_key()
    if transaction_base:
        base = transaction_base[:PLEDGE_TX_BASE_LEN]
    else:
        base = pledge_transaction_base(request.transaction_id, now=now)
    balance_id, release_id = base + "A", base + "B"

    common = _pledge_common(request, key=key, now=now, processing_id=processing_id)

    balance = dict(common)
    balance.update(
        {
            "TRANSACTION_ID": balance_id,
            "LINKED_TRANSACTION_ID": release_id,
            "MOVEMENT_TYPE": MovementType.DELIVER.value,
            "SECURITIES_TX_TYPE": MovementType.BALANCE.value,
            "CREDIT_DEBIT_INDICATOR": "DBIT",
        }
    )
    balance.update(_pledge_side(request, side="pledgor"))

    release = dict(common)
    release.update(
        {
            "TRANSACTION_ID": release_id,
            "LINKED_TRANSACTION_ID": balance_id,
            "MOVEMENT_TYPE": MovementType.RECEIVE.value,
            "SECURITIES_TX_TYPE": MovementType.RELEASE.value,
            "CREDIT_DEBIT_INDICATOR": "CRDT",
        }
    )
    release.update(_pledge_side(request, side="pledgee"))

    return LegPair(
        leg_a=LegParams(MovementType.BALANCE, balance),
        leg_b=LegParams(MovementType.RELEASE, release),
        base_transaction_id=base,
    )


def pledge_transaction_base(supplied: str | None, *, now: datetime | None = None) -> str:
    """A caller id keeps its first 8 chars and is padded with random ones to 12.

    Caller ids often share a long prefix (timestamps to the millisecond), and a
    re-sent pair reuses its id, so the prefix alone cannot be the base.
    """
    prefix = (supplied or "").strip()[:PLEDGE_TX_PREFIX_LEN]
    if prefix:
        return prefix + random_alnum(PLEDGE_TX_BASE_LEN - len(prefix))
    return new_transaction_base(now)


def short_processing_id(processing_id: str) -> str:
    """The depository expects one or two digits (e.g. ``21``)."""
    if len(processing_id) <= 2:
        return processing_id
    try:
        return str(int(processing_id) % 100)
    except ValueError:
        return processing_id[:2]


def _pledge_common(
    request: PledgeInstructionRequest, *, key: str, now: datetime, processing_id: str | None
) -> dict[str, str]:
    pid = processing_id or request.processing_id or f"{secrets.randbelow(10_000_000):07d}"
    trade_date = request.trade_date or now.date()
    settlement_date = request.settlement_date or now.date()
    return {
        "FROM_BIC": settings.PLEDGE_FROM_BIC,
        "TO_BIC": settings.PLEDGE_TO_BIC,
        "MESSAGE_TYPE": "Pledge Transaction",
        "MSG_DEF_ID": "sese.023.001.06.xsd",
        # 7 fractional digits, as the depository's own samples use.
        "CREATION_DATE": now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond:06d}0Z",
        "PAYMENT_TYPE": "FREE",
        "COMMON_REFERENCE_ID": key,
        "TRADE_DATE": trade_date.isoformat(),
        "SETTLEMENT_DATE": settlement_date.isoformat(),
        "MATCHING_STATUS": "MACH",
        "SECURITY_ISIN": request.security_isin,
        "SECURITY_DESC": request.security_desc,
        "QUANTITY": str(request.quantity),
        "BROKER_CODE": request.broker_code,
        "ACCOUNT_ISSUER": settings.PLEDGE_ACCOUNT_ISSUER,
        "ACCOUNT_SCHEME": "SOR ACCOUNT",
        "SAFEKEEPING_PLACE_TYPE": "NCSD",
        "SAFEKEEPING_PLACE_ID": settings.PLEDGE_FROM_BIC,
        "DEPOSITORY_BIC": settings.PLEDGE_FROM_BIC,
        "PLEDGEE_ISSUER": "CSD",
        "PLEDGEE_SCHEME": "PLEDGEE",
        "PROCESSING_ID": short_processing_id(pid),
    }


def _pledge_side(request: PledgeInstructionRequest, *, side: str) -> dict[str, str]:
    pledgor, pledgee = request.csd_account, request.pledgee_bpid
    owner, counterparty = (pledgor, pledgee) if side == "pledgor" else (pledgee, pledgor)
    return {
        "CSD_ACCOUNT": owner,
        "CLIENT_BPID": f"{owner}//{owner}",
        "PLEDGEE_BPID": f"{counterparty}//{counterparty}",
    }
