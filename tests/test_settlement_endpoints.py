from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

ADMIN = {"X-Admin-Token": "change-me-admin-token"}


@pytest.fixture()
def ctx(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
    monkeypatch.setenv("ADMIN_TOKEN", "change-me-admin-token")
    monkeypatch.setenv("ENSURE_EXTERNAL_DEPS_ON_STARTUP", "0")

    from app.api.deps import get_dispatcher, get_poller, get_store
    from app.core.db import SessionLocal, engine
    from app.correlation.store import CorrelationStore
    from app.models.base import Base
    from app.settlement.dispatcher import OutboundDispatcher
    from app.status.poller import ListenerRegistry, StatusPoller
    from tests.utils_gateway import FakeGateway

    import app.main

    # Create schema (SQLite tests don't run Alembic).
    Base.metadata.create_all(bind=engine)

    gateway = FakeGateway()
    store = CorrelationStore(SessionLocal)
    dispatcher = OutboundDispatcher(gateway=gateway, store=store)
    poller = StatusPoller(
        gateway=gateway,
        registry=ListenerRegistry(["status_response_queue", "audit_logs_queue"]),
        store=store,
        max_failures=3,
        receive_timeout_ms=10,
        restart_delay_s=0,
    )

    api = app.main.app
    api.dependency_overrides[get_dispatcher] = lambda: dispatcher
    api.dependency_overrides[get_store] = lambda: store
    api.dependency_overrides[get_poller] = lambda: poller
    yield TestClient(api), gateway, poller
    api.dependency_overrides.clear()


def test_submit_securities_settlement(ctx):
    client, gateway, _ = ctx
    from tests.utils_gateway import settlement_payload

    r = client.post("/settlements/securities", json=settlement_payload())
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["outcome"] == "SUCCESS"
    assert data["leg_a"]["movement_type"] == "RECE"
    assert data["leg_b"]["movement_type"] == "DELI"
    assert data["leg_a"]["send_status"] == "SENT"
    assert data["leg_a"]["linked_transaction_id"] == data["leg_b"]["transaction_id"]
    assert len(gateway.queues["settlement_out"]) == 2

    r = client.get(f"/settlements/{data['correlation_key']}")
    assert r.status_code == 200
    legs = r.json()["legs"]
    assert [leg["transaction_id"] for leg in legs] == [data["leg_a"]["transaction_id"], data["leg_b"]["transaction_id"]]


def test_submit_pledge_partial_failure(ctx):
    client, gateway, _ = ctx
    from tests.utils_gateway import pledge_payload

    gateway.refuse_sends = {len(gateway.attempts) + 1}
    r = client.post("/settlements/pledges", json=pledge_payload(transaction_id="PLEDGE-REF-000123"))
    assert r.status_code == 200
    data = r.json()
    assert data["outcome"] == "PARTIAL_FAILURE"
    assert data["base_transaction_id"].startswith("PLEDGE-R")
    assert len(data["base_transaction_id"]) == 12
    assert data["leg_a"]["send_status"] == "SENT"
    assert data["leg_b"]["send_status"] == "SEND_FAILED"
    assert data["error_message"]


def test_pledge_id_collision_is_a_conflict(ctx, monkeypatch):
    client, gateway, _ = ctx
    import app.settlement.builder as builder
    from app.util.ids import new_correlation_key
    from tests.utils_gateway import pledge_payload

    monkeypatch.setattr(builder, "random_alnum", lambda n: "Z" * n)
    tx = new_correlation_key()[:8]

    r = client.post("/settlements/pledges", json=pledge_payload(transaction_id=tx))
    assert r.status_code == 200
    sent = len(gateway.attempts)

    r = client.post("/settlements/pledges", json=pledge_payload(transaction_id=tx))
    assert r.status_code == 409
    assert f"{tx}ZZZZA" in r.json()["detail"]
    assert len(gateway.attempts) == sent


def test_invalid_requests(ctx):
    client, _, _ = ctx
    from tests.utils_gateway import settlement_payload

    r = client.post("/settlements/securities", json=settlement_payload(quantity=0))
    assert r.status_code == 422

    r = client.post("/settlements/securities", json=settlement_payload(environment="staging"))
    assert r.status_code == 422

    r = client.get("/settlements/0MISSING0")
    assert r.status_code == 404


def test_status_reconciles_through_listener_endpoints(ctx):
    client, gateway, poller = ctx
    from tests.utils_gateway import settlement_payload, status_xml

    data = client.post("/settlements/securities", json=settlement_payload()).json()
    key = data["correlation_key"]

    r = client.post("/listeners/status_response_queue/start", headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["running"] is True

    gateway.push("status_response_queue", status_xml(key, "0201"))
    poller.poll_queue("status_response_queue")

    legs = client.get(f"/settlements/{key}").json()["legs"]
    assert {leg["processing_status"] for leg in legs} == {"MATCHED"}


def test_listener_endpoints(ctx):
    client, gateway, _ = ctx

    r = client.get("/listeners/status")
    assert r.status_code == 401
    assert r.json()["detail"] == "Admin token required for listener and template administration"

    r = client.post("/listeners/start", headers={"X-Admin-Token": "wrong"})
    assert r.status_code == 401
    assert "listener" in r.json()["detail"]

    r = client.post("/listeners/start", headers=ADMIN)
    assert r.status_code == 200
    assert set(r.json()["listeners"].values()) == {"RUNNING"}

    r = client.post("/listeners/audit_logs_queue/stop", headers=ADMIN)
    assert r.json()["running"] is False

    r = client.get("/listeners/status", headers=ADMIN)
    assert r.json()["listeners"] == {"status_response_queue": "RUNNING", "audit_logs_queue": "STOPPED"}

    r = client.post("/listeners/audit_logs_queue/restart", headers=ADMIN)
    assert r.json()["running"] is True
    assert r.json()["retry_count"] == 0

    r = client.get("/listeners/retry-counters", headers=ADMIN)
    assert r.json()["retry_counters"] == {"status_response_queue": 0, "audit_logs_queue": 0}

    r = client.get("/listeners/nope/status", headers=ADMIN)
    assert r.status_code == 404

    r = client.post("/listeners/stop", headers=ADMIN)
    assert set(r.json()["listeners"].values()) == {"STOPPED"}


def test_template_override(ctx):
    client, _, _ = ctx

    r = client.put("/settlements/templates/CUSTOM_NOTICE", json={"content": "<n>{{A}}</n>"})
    assert r.status_code == 401
    assert "template" in r.json()["detail"]

    r = client.put("/settlements/templates/CUSTOM_NOTICE", json={"content": "<n>{{A}}</n>"}, headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["name"] == "CUSTOM_NOTICE"
