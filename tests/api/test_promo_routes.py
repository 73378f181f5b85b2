from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app.api import deps
from app.api.routes import promo as promo_routes
from app.db.errors import StorageError
from app.economy.promo.registry import PromoCodeRegistry
from app.economy.promo.service import PromoService
from app.main import app
from app.services.tokens import issue_token
from tests.economy.promo_fakes import FakeLedger, FakeSchema, FakeSessionFactory, make_code, unique_violation

UTC = timezone.utc


@pytest.fixture
def schema() -> FakeSchema:
    return FakeSchema(codes={"WELCOME": make_code(code_id=1, keyword="WELCOME", quantity=100)})


@pytest.fixture
def client(schema: FakeSchema):
    factory = FakeSessionFactory()
    service = PromoService(factory, schema=schema, ledger=FakeLedger())
    app.dependency_overrides[deps.get_promo_service] = lambda: service
    app.dependency_overrides[deps.get_promo_registry] = lambda: PromoCodeRegistry(factory, schema=schema)
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(user_id: int = 42) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(user_id)}"}


def _as_admin(monkeypatch, is_admin: bool = True) -> None:
    async def _load_admin_status(session_factory, user_id: int) -> bool:
        return is_admin

    monkeypatch.setattr(promo_routes, "load_admin_status", _load_admin_status)


def test_activate_credits_balance(client: TestClient) -> None:
    response = client.post("/api/promocode/activate", json={"promocode": "WELCOME"}, headers=_auth())

    assert response.status_code == 200
    assert response.json() == {"message": "Promocode activated successfully", "balance": 100}


def test_activate_twice_is_rejected(client: TestClient) -> None:
    client.post("/api/promocode/activate", json={"promocode": "WELCOME"}, headers=_auth())
    response = client.post("/api/promocode/activate", json={"promocode": "WELCOME"}, headers=_auth())

    assert response.status_code == 400
    assert response.json() == {"error": "Promocode already activated by this user"}


def test_activate_accepts_token_from_query(client: TestClient) -> None:
    response = client.post(
        f"/api/promocode/activate?token={issue_token(43)}",
        json={"promocode": "WELCOME"},
    )

    assert response.status_code == 200


@pytest.mark.parametrize(
    ("keyword", "status_code", "error"),
    [
        ("", 400, "Promocode keyword is required"),
        ("MISSING", 404, "Promocode not found"),
    ],
)
def test_activate_maps_domain_errors(client: TestClient, keyword: str, status_code: int, error: str) -> None:
    response = client.post("/api/promocode/activate", json={"promocode": keyword}, headers=_auth())

    assert response.status_code == status_code
    assert response.json() == {"error": error}


def test_activate_inactive_code(client: TestClient, schema: FakeSchema) -> None:
    schema.codes["OLD"] = make_code(code_id=2, keyword="OLD", end_time=datetime.now(UTC) - timedelta(days=1))

    response = client.post("/api/promocode/activate", json={"promocode": "OLD"}, headers=_auth())

    assert response.status_code == 400
    assert response.json() == {"error": "Promocode is not active"}


def test_activate_requires_token(client: TestClient) -> None:
    response = client.post("/api/promocode/activate", json={"promocode": "WELCOME"})

    assert response.status_code == 401
    assert response.json()["error"] == "Missing authorization token"
    assert "details" in response.json()


def test_activate_rejects_expired_token(client: TestClient) -> None:
    expired = issue_token(42, now_utc=datetime.now(UTC) - timedelta(days=10))

    response = client.post(
        "/api/promocode/activate",
        json={"promocode": "WELCOME"},
        headers={"X-Auth-Token": expired},
    )

    assert response.status_code == 401
    assert response.json()["error"] == "Token expired"


def test_activate_storage_failure_returns_details(client: TestClient, monkeypatch) -> None:
    async def _broken_redeem(self, *, user_id: int, keyword: str | None, now_utc=None):
        raise StorageError("Failed to activate promocode", details="connection refused")

    monkeypatch.setattr(PromoService, "redeem", _broken_redeem)

    response = client.post("/api/promocode/activate", json={"promocode": "WELCOME"}, headers=_auth())

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to activate promocode", "details": "connection refused"}


def test_activate_rejects_malformed_body(client: TestClient) -> None:
    response = client.post(
        "/api/promocode/activate",
        content=b"not json",
        headers={**_auth(), "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid request payload"
    assert body["details"]


def test_history_lists_redemptions(client: TestClient) -> None:
    client.post("/api/promocode/activate", json={"promocode": "WELCOME"}, headers=_auth())

    response = client.get("/api/promocode/history", headers=_auth())

    assert response.status_code == 200
    activations = response.json()["activations"]
    assert len(activations) == 1
    assert activations[0]["promocode_id"] == 1
    assert activations[0]["keyword"] == "WELCOME"
    assert activations[0]["quantity"] == 100
    assert "start_time" not in activations[0]


def test_history_empty_for_new_user(client: TestClient) -> None:
    response = client.get("/api/promocode/history", headers=_auth(77))

    assert response.json() == {"activations": []}


def test_create_requires_admin(client: TestClient, monkeypatch) -> None:
    _as_admin(monkeypatch, is_admin=False)

    response = client.post("/api/promocode", json={"name": "Spring", "quantity": 10}, headers=_auth())

    assert response.status_code == 403
    assert response.json() == {"error": "Admin privileges required"}


def test_create_returns_stored_code(client: TestClient, monkeypatch, schema: FakeSchema) -> None:
    _as_admin(monkeypatch)

    response = client.post(
        "/api/promocode",
        json={
            "name": "Spring",
            "keyword": "SPRING",
            "quantity": "25",
            "start_time": "2020-01-01",
            "end_time": "2100-01-01T00:00:00Z",
        },
        headers=_auth(),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["keyword"] == "SPRING"
    assert body["quantity"] == 25
    assert body["active"] is True
    assert body["start_time"].startswith("2020-01-01T00:00:00")
    assert "SPRING" in schema.codes


def test_create_generates_keyword(client: TestClient, monkeypatch) -> None:
    _as_admin(monkeypatch)

    response = client.post("/api/promocode", json={"name": "Auto", "quantity": 5, "keyword": "none"}, headers=_auth())

    assert response.status_code == 200
    assert len(response.json()["keyword"]) == 8


@pytest.mark.parametrize(
    ("payload", "error"),
    [
        ({"quantity": 10}, "Name is required"),
        ({"name": "Bad", "quantity": 0}, "Quantity must be greater than zero"),
        ({"name": "Bad", "quantity": 10, "start_time": "tomorrow"}, "Invalid start or end time"),
    ],
)
def test_create_validation_errors(client: TestClient, monkeypatch, payload: dict, error: str) -> None:
    _as_admin(monkeypatch)

    response = client.post("/api/promocode", json=payload, headers=_auth())

    assert response.status_code == 400
    assert response.json() == {"error": error}


def test_create_duplicate_keyword_conflicts(client: TestClient, monkeypatch, schema: FakeSchema) -> None:
    _as_admin(monkeypatch)
    schema.insert_error = unique_violation()

    response = client.post("/api/promocode", json={"name": "Dup", "keyword": "WELCOME", "quantity": 5}, headers=_auth())

    assert response.status_code == 409
    assert response.json() == {"error": "Promocode keyword already exists"}
