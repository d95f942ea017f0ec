from __future__ import annotations

import re
from datetime import datetime, timezone

NOW = datetime(2026, 3, 2, 9, 30, 0, 123456, tzinfo=timezone.utc)

# Fields that are allowed to differ between the two legs of a pair.
SETTLEMENT_LEG_FIELDS = {
    "TRANSACTION_ID",
    "LINKED_TRANSACTION_ID",
    "PROCESSING_ID",
    "MOVEMENT_TYPE",
    "CURRENT_INSTRUCTION_NUMBER",
    "CREDIT_DEBIT_INDICATOR",
    "ACCOUNT_OWNER_ID",
    "SAFEKEEPING_ACCOUNT_ID",
    "DELIVERING_PARTY1_ID",
    "DELIVERING_PARTY2_ID",
    "DELIVERING_PARTY3_ID",
    "RECEIVING_PARTY2_ID",
}


def _env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    monkeypatch.setenv("ADMIN_TOKEN", "change-me-admin-token")
    monkeypatch.setenv("ENSURE_EXTERNAL_DEPS_ON_STARTUP", "0")


def test_settlement_pair_is_linked(monkeypatch):
    _env(monkeypatch)
    from app.models.enums import MovementType
    from app.schemas.settlement_v1 import SecuritiesSettlementRequest
    from app.settlement.builder import build_settlement_pair
    from tests.utils_gateway import settlement_payload

    req = SecuritiesSettlementRequest(**settlement_payload())
    pair = build_settlement_pair(req, correlation_key="7ABCDEF12", transaction_base="260302XYZ123", now=NOW)
    a, b = pair.leg_a, pair.leg_b

    assert pair.base_transaction_id == "260302XYZ123"
    assert (a.transaction_id, b.transaction_id) == ("260302XYZ123A", "260302XYZ123B")
    assert a.linked_transaction_id == b.transaction_id
    assert b.linked_transaction_id == a.transaction_id
    assert a.correlation_key == b.correlation_key == "7ABCDEF12"

    assert a.movement_type == MovementType.RECEIVE
    assert b.movement_type == MovementType.DELIVER
    assert a.movement_type.opposite == b.movement_type
    assert a.params["CREDIT_DEBIT_INDICATOR"] == "DBIT"
    assert b.params["CREDIT_DEBIT_INDICATOR"] == "CRDT"

    assert a.params["ACCOUNT_OWNER_ID"] == "SOR-100234"
    assert b.params["ACCOUNT_OWNER_ID"] == "SOR-200871"
    assert a.params["SAFEKEEPING_ACCOUNT_ID"] == "ORBSTZTZ/C"
    assert b.params["SAFEKEEPING_ACCOUNT_ID"] == "VERTTZTZ/C"

    assert set(a.params) == set(b.params)
    for key in set(a.params) - SETTLEMENT_LEG_FIELDS:
        assert a.params[key] == b.params[key], key


def test_settlement_pair_is_reproducible(monkeypatch):
    _env(monkeypatch)
    from app.schemas.settlement_v1 import SecuritiesSettlementRequest
    from app.settlement.builder import build_settlement_pair
    from tests.utils_gateway import settlement_payload

    req = SecuritiesSettlementRequest(**settlement_payload())
    p1 = build_settlement_pair(req, correlation_key="1AAAAAAAA", transaction_base="260302AAAAAA", now=NOW)
    p2 = build_settlement_pair(req, correlation_key="1AAAAAAAA", transaction_base="260302AAAAAA", now=NOW)
    assert p1.leg_a.params == p2.leg_a.params
    assert p1.leg_b.params == p2.leg_b.params


def test_generated_identifiers(monkeypatch):
    _env(monkeypatch)
    from app.schemas.settlement_v1 import SecuritiesSettlementRequest
    from app.settlement.builder import build_settlement_pair
    from app.util.ids import new_correlation_key, new_transaction_id
    from tests.utils_gateway import settlement_payload

    for _ in range(50):
        assert re.fullmatch(r"[0-9][A-Z0-9]{8}", new_correlation_key())

    assert re.fullmatch(r"20260302093000123[A-Z0-9]{3}", new_transaction_id(NOW))

    pair = build_settlement_pair(SecuritiesSettlementRequest(**settlement_payload()), now=NOW)
    assert re.fullmatch(r"260302[A-Z0-9]{6}", pair.base_transaction_id)
    assert re.fullmatch(r"[0-9][A-Z0-9]{8}", pair.leg_a.correlation_key)


def test_caller_supplied_correlation_key_wins(monkeypatch):
    _env(monkeypatch)
    from app.schemas.settlement_v1 import SecuritiesSettlementRequest
    from app.settlement.builder import build_settlement_pair
    from tests.utils_gateway import settlement_payload

    req = SecuritiesSettlementRequest(**settlement_payload(common_reference_id="9CALLER01"))
    pair = build_settlement_pair(req, now=NOW)
    assert pair.leg_a.correlation_key == pair.leg_b.correlation_key == "9CALLER01"


def test_pledge_pair(monkeypatch):
    _env(monkeypatch)
    from app.models.enums import MovementType
    from app.schemas.settlement_v1 import PledgeInstructionRequest
    from app.settlement.builder import build_pledge_pair
    from tests.utils_gateway import pledge_payload

    req = PledgeInstructionRequest(**pledge_payload(transaction_id="PLG2026030200077", processing_id="1234567"))
    pair = build_pledge_pair(req, correlation_key="3PLEDGE01", now=NOW)
    a, b = pair.leg_a, pair.leg_b

    assert re.fullmatch(r"PLG20260[A-Z0-9]{4}", pair.base_transaction_id)
    assert a.transaction_id == pair.base_transaction_id + "A"
    assert b.transaction_id == pair.base_transaction_id + "B"
    assert len(a.transaction_id) == 13
    assert a.linked_transaction_id == b.transaction_id

    assert a.movement_type == MovementType.BALANCE
    assert b.movement_type == MovementType.RELEASE
    assert a.params["SECURITIES_TX_TYPE"] == "COLI"
    assert b.params["SECURITIES_TX_TYPE"] == "COLO"
    assert a.params["CREDIT_DEBIT_INDICATOR"] == "DBIT"
    assert b.params["CREDIT_DEBIT_INDICATOR"] == "CRDT"

    assert a.params["CLIENT_BPID"] == "SOR-300112//SOR-300112"
    assert a.params["PLEDGEE_BPID"] == "PLG-77//PLG-77"
    assert b.params["CLIENT_BPID"] == "PLG-77//PLG-77"

    assert a.params["PROCESSING_ID"] == b.params["PROCESSING_ID"] == "67"
    assert a.params["CREATION_DATE"] == "2026-03-02T09:30:00.1234560Z"
    assert a.params["TRADE_DATE"] == a.params["SETTLEMENT_DATE"] == "2026-03-02"


def test_short_processing_id(monkeypatch):
    _env(monkeypatch)
    from app.settlement.builder import short_processing_id

    assert short_processing_id("0000021") == "21"
    assert short_processing_id("1234500") == "0"
    assert short_processing_id("7") == "7"
    assert short_processing_id("AB123") == "AB"


def test_pledge_ids_sharing_a_prefix_stay_distinct(monkeypatch):
    _env(monkeypatch)
    from app.schemas.settlement_v1 import PledgeInstructionRequest
    from app.settlement.builder import build_pledge_pair
    from tests.utils_gateway import pledge_payload

    bases = set()
    for tx in ("202509261349501", "202509261349502", "202509261349501"):
        req = PledgeInstructionRequest(**pledge_payload(transaction_id=tx))
        base = build_pledge_pair(req, now=NOW).base_transaction_id
        assert base.startswith("20250926")
        assert len(base) == 12
        bases.add(base)
    assert len(bases) == 3


def test_pledge_injected_base_is_used_as_is(monkeypatch):
    _env(monkeypatch)
    from app.schemas.settlement_v1 import PledgeInstructionRequest
    from app.settlement.builder import build_pledge_pair
    from tests.utils_gateway import pledge_payload

    req = PledgeInstructionRequest(**pledge_payload(transaction_id="IGNORED-ID-123"))
    pair = build_pledge_pair(req, transaction_base="PLG202603020", now=NOW)
    assert pair.leg_a.transaction_id == "PLG202603020A"
    assert pair.leg_b.transaction_id == "PLG202603020B"
