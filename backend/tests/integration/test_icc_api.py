"""
Integration tests for the ICC store HTTP and WebSocket API
"""
import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from iccmirror.core.database import get_db
from iccmirror.models.icc_message import IccSlot, IccStatus
from iccmirror.services.icc_mirror_service import get_icc_service
from main import app


@pytest.fixture
def client(service, db):
    app.dependency_overrides[get_icc_service] = lambda: service
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def seeded(card, hw_message):
    card.seed(IccSlot.NONE, [
        hw_message(1, IccStatus.UNREAD, body="first", timestamp_millis=1000),
        hw_message(2, IccStatus.SENT, body="second", timestamp_millis=2000),
    ])
    return card


def test_list_store(client, seeded):
    response = client.get("/api/sms/icc")

    assert response.status_code == 200
    data = response.json()
    assert [m["body"] for m in data] == ["second", "first"]
    assert data[1]["read"] == 0
    assert data[1]["index_on_icc"] == 1
    assert "_id" in data[0]


def test_legacy_alias(client, seeded):
    assert len(client.get("/api/sms/sim").json()) == 2


def test_get_one(client, seeded):
    assert client.get("/api/sms/icc/2").json()["body"] == "second"
    assert client.get("/api/sms/icc/9").status_code == 404


def test_bad_index_touches_nothing(client, card):
    response = client.get("/api/sms/icc/abc")

    assert response.status_code == 400
    assert "Bad SMS ICC ID" in response.json()["detail"]
    assert sum(card.calls.values()) == 0

    assert client.delete("/api/sms/icc/abc").status_code == 400
    assert sum(card.calls.values()) == 0


def test_unknown_store_and_missing_slot(client):
    assert client.get("/api/sms/icc7").status_code == 404
    # single-card device
    assert client.get("/api/sms/icc2").status_code == 404


def test_insert_outcomes(client, card, seeded):
    card.set_capacity(IccSlot.NONE, 3)
    client.get("/api/sms/icc")
    message = {"address": "+15551234567", "body": "hello", "type": 2, "date": 1_700_000_000_000}

    last = client.post("/api/sms/icc", json=message)
    full = client.post("/api/sms/icc", json=message)

    assert last.status_code == 201
    assert last.json()["status"] == "written_last_slot"
    assert last.json()["uri"] == "content://sms/sim/full/success"
    assert full.status_code == 200
    assert full.json()["status"] == "slot_full"
    assert full.json()["uri"] == "content://sms/sim/full/failure"


def test_insert_rejections(client, seeded):
    unimported = client.post("/api/sms/icc", json={"address": "5551234", "body": "hi"})
    assert unimported.status_code == 422

    client.get("/api/sms/icc")
    bad_address = client.post("/api/sms/icc", json={"address": "nobody", "body": "hi"})
    assert bad_address.status_code == 422

    bad_type = client.post("/api/sms/icc", json={"address": "5551234", "body": "hi", "type": 9})
    assert bad_type.status_code == 422


def test_delete_one_and_all(client, seeded):
    client.get("/api/sms/icc")

    assert client.delete("/api/sms/icc/1").json() == {"deleted": 1}
    assert client.delete("/api/sms/icc/1").status_code == 422
    assert client.delete("/api/sms/icc").json() == {"deleted": 1}
    assert client.get("/api/sms/icc").json() == []


def test_resync(client, seeded, hw_message):
    client.get("/api/sms/icc")
    seeded.seed(IccSlot.NONE, [hw_message(3, body="third")])

    response = client.post("/api/sms/icc/resync")

    assert response.json() == {"imported": 3}
    assert len(client.get("/api/sms/icc").json()) == 3


def test_update_is_not_allowed(client, card):
    assert client.put("/api/sms/icc/1", json={}).status_code == 405
    assert client.patch("/api/sms/icc", json={}).status_code == 405
    assert client.post("/api/sms/icc/1", json={}).status_code == 405
    assert "not supported" in client.put("/api/sms/icc/1", json={}).json()["detail"]
    assert sum(card.calls.values()) == 0


def test_insert_with_unrepresentable_date(client, card, seeded):
    client.get("/api/sms/icc")
    card.calls.clear()
    message = {"address": "5551234", "body": "hi", "type": 1, "date": 10 ** 17}

    response = client.post("/api/sms/icc", json=message)

    assert response.status_code == 400
    assert "out of range" in response.json()["detail"]
    assert sum(card.calls.values()) == 0
    assert len(client.get("/api/sms/icc").json()) == 2


def test_websocket_streams_changes(client, service):
    with client.websocket_connect("/api/ws/icc?store=icc") as websocket:
        assert websocket.receive_json() == {"event": "subscribed", "channel": "content://sms/icc"}

        service.delete_all(IccSlot.NONE)

        event = websocket.receive_json()
        assert event["event"] == "changed"
        assert event["timestamp"].endswith("+00:00")
        assert event["channel"] == "content://sms/icc"


def test_websocket_aggregate_channel(client, service):
    with client.websocket_connect("/api/ws/icc") as websocket:
        assert websocket.receive_json()["channel"] == "content://mms-sms/"

        service.delete_all(IccSlot.NONE)

        assert websocket.receive_json()["channel"] == "content://mms-sms/"


def test_health(client):
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["timestamp"].endswith("+00:00")

    detailed = client.get("/health/detailed").json()
    assert detailed["components"]["database"]["status"] == "healthy"
    assert detailed["components"]["icc"]["topology"] == "single"


def test_metrics_exposes_icc_counters(client, seeded):
    client.get("/api/sms/icc")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "icc_hardware_calls_total" in response.text
    requests = REGISTRY.get_sample_value(
        "icc_api_requests_total", {"store": "icc", "method": "GET", "status": "200"}
    )
    assert requests >= 1
