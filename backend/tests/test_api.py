from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from backend.app.api.deps import get_db
from backend.app.api.v1.endpoints import ledger as ledger_endpoints
from backend.app.db.models.core_types import ApprovalStatus
from backend.app.db.models.models_v1 import ReceiveDetail
from backend.app.main import app
from backend.tests.factories import make_stock, make_receive


@pytest.fixture
def client(db_session):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def stocked(db_session):
    make_stock(db_session, "API-1", open_quantity=2, open_amount=10, current_balance=12)
    make_receive(db_session, "API-1", date(2024, 1, 1), 10, total_amount=100)
    db_session.commit()
    return "API-1"


def test_health(client):
    assert client.get("/v1/health").json() == {"status": "ok"}


def test_issue_lifecycle_over_http(client, stocked):
    r = client.post(
        "/v1/issues",
        json={"nac_code": stocked, "issue_date": "2024-01-02", "quantity": 3},
    )
    assert r.status_code == 201
    body = r.json()
    # 2 d'ouverture à 5 + 1 du lot à 10
    assert body["issue_cost"] == pytest.approx(20)
    assert body["remaining_balance"] == pytest.approx(9)

    r = client.post("/v1/issues/approve", json={"issue_ids": [body["id"]]})
    assert r.status_code == 200
    assert r.json() == {"approved_count": 1}

    r = client.post("/v1/issues/approve", json={"issue_ids": [body["id"]]})
    assert r.status_code == 400

    ledger = client.get(f"/v1/stock/{stocked}/ledger").json()
    assert ledger["stock"]["open_remaining_quantity"] == 0
    assert [i["approval_status"] for i in ledger["issues"]] == [ApprovalStatus.approved.value]
    assert ledger["receives"][0]["remaining_quantity"] == pytest.approx(9)

    r = client.post("/v1/issues/reject", json={"issue_ids": [body["id"]]})
    assert r.json() == {"rejected_count": 1}
    assert client.get(f"/v1/stock/{stocked}/ledger").json()["issues"] == []


def test_issue_validation_and_not_found(client, stocked):
    r = client.post("/v1/issues", json={"nac_code": "NOPE", "issue_date": "2024-01-02", "quantity": 1})
    assert r.status_code == 404

    r = client.post("/v1/issues", json={"nac_code": stocked, "issue_date": "2024-01-02", "quantity": 0})
    assert r.status_code == 422

    r = client.post("/v1/issues", json={"nac_code": stocked, "issue_date": "2024-01-02", "quantity": 50})
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Insufficient stock. Requested: 50")

    r = client.post("/v1/issues/approve", json={"issue_ids": []})
    assert r.status_code == 422

    assert client.get("/v1/stock/NOPE/ledger").status_code == 404


def test_receive_approval_and_transfer_over_http(client, db_session):
    receive = make_receive(db_session, "HTTP-SRC", date(2024, 1, 1), 8, total_amount=80, status=ApprovalStatus.pending)
    make_stock(db_session, "HTTP-DST")
    db_session.commit()

    r = client.post(f"/v1/receives/{receive.id}/approve")
    assert r.status_code == 200
    assert r.json()["nac_code"] == "HTTP-SRC"

    r = client.post(
        "/v1/balance-transfers",
        json={"source_receive_id": receive.id, "to_nac_code": "HTTP-DST", "quantity": 3, "transfer_date": "2024-01-02"},
    )
    assert r.status_code == 201

    codes = [s["nac_code"] for s in client.get("/v1/stock").json()]
    assert codes == ["HTTP-DST", "HTTP-SRC"]

    assert client.post("/v1/receives/987654/approve").status_code == 404


def test_rebuild_endpoints(client, stocked):
    assert client.post(f"/v1/ledger/rebuild/{stocked}").json() == {"nac_code": stocked, "rebuilt": True}
    assert client.post("/v1/ledger/rebuild/UNKNOWN").json() == {"nac_code": "UNKNOWN", "rebuilt": False}
    assert client.post("/v1/ledger/rebuild").json() == {"processed": 1}


def test_rebuild_storage_failure_returns_500(client, stocked, monkeypatch):
    def _boom(db, **kwargs):
        raise OperationalError("SELECT ... FOR UPDATE", {}, Exception("lock wait timeout"))

    monkeypatch.setattr(ledger_endpoints, "rebuild_all_nac_inventory_states", _boom)

    r = client.post("/v1/ledger/rebuild")
    assert r.status_code == 500
    assert r.json()["detail"] == "Failed to rebuild issue costs and balances"


def test_issue_edit_and_delete_over_http(client, stocked):
    issue_id = client.post(
        "/v1/issues",
        json={"nac_code": stocked, "issue_date": "2024-01-02", "quantity": 1},
    ).json()["id"]

    r = client.patch(f"/v1/issues/{issue_id}", json={"quantity": 4})
    assert r.status_code == 200
    # 2 d'ouverture à 5 + 2 du lot à 10
    assert r.json()["issue_cost"] == pytest.approx(30)
    assert r.json()["remaining_balance"] == pytest.approx(8)

    assert client.patch(f"/v1/issues/{issue_id}", json={"quantity": 100}).status_code == 400
    assert client.patch(f"/v1/issues/{issue_id}", json={"quantity": -1}).status_code == 422
    assert client.patch("/v1/issues/987654", json={"quantity": 1}).status_code == 404

    r = client.delete(f"/v1/issues/{issue_id}")
    assert r.json() == {"deleted": issue_id, "nac_code": stocked}
    assert client.delete(f"/v1/issues/{issue_id}").status_code == 404

    stock = client.get("/v1/stock", params={"nac_code": stocked}).json()[0]
    assert stock["current_balance"] == pytest.approx(12)


def test_transfer_refusal_and_revert_over_http(client, db_session):
    receive = make_receive(db_session, "HTTP-REV", date(2024, 1, 1), 5, total_amount=50, status=ApprovalStatus.pending)
    make_stock(db_session, "HTTP-REV-DST")
    db_session.commit()
    client.post(f"/v1/receives/{receive.id}/approve")

    body = {"source_receive_id": receive.id, "quantity": 2, "transfer_date": "2024-01-02"}
    r = client.post("/v1/balance-transfers", json={**body, "to_nac_code": "TYPO-CODE"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Destination NAC code does not exist"

    r = client.post("/v1/balance-transfers", json={**body, "to_nac_code": "HTTP-REV-DST"})
    assert r.status_code == 201
    rrp_fk = db_session.get(ReceiveDetail, r.json()["receive_id"]).rrp_fk

    r = client.post(f"/v1/balance-transfers/{rrp_fk}/revert")
    assert r.status_code == 200
    assert r.json() == {"from_nac_code": "HTTP-REV", "to_nac_code": "HTTP-REV-DST", "quantity": 2}

    assert client.post(f"/v1/balance-transfers/{rrp_fk}/revert").status_code == 404
    codes = [s["nac_code"] for s in client.get("/v1/stock").json()]
    assert codes == ["HTTP-REV", "HTTP-REV-DST"]
