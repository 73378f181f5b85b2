from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.api import deps
from app.db.errors import StorageError
from app.main import app
from app.services.tokens import issue_token


class _StubLedger:
    def __init__(self, balance: int = 0, error: Exception | None = None) -> None:
        self.balance = balance
        self.error = error

    async def read(self, user_id: int) -> int:
        if self.error is not None:
            raise self.error
        return self.balance


@pytest.fixture
def override_ledger():
    def _override(ledger: _StubLedger) -> TestClient:
        app.dependency_overrides[deps.get_balance_ledger] = lambda: ledger
        return TestClient(app)

    yield _override
    app.dependency_overrides.clear()


def test_balance_returns_quantity(override_ledger) -> None:
    client = override_ledger(_StubLedger(balance=150))

    response = client.get("/api/balance", headers={"Authorization": f"Bearer {issue_token(42)}"})

    assert response.status_code == 200
    assert response.json() == {"balance": 150}


def test_balance_requires_token(override_ledger) -> None:
    client = override_ledger(_StubLedger())

    response = client.get("/api/balance")

    assert response.status_code == 401
    assert response.json()["error"] == "Missing authorization token"


def test_balance_storage_error(override_ledger) -> None:
    client = override_ledger(_StubLedger(error=StorageError("Failed to fetch balance", details="timeout")))

    response = client.get("/api/balance", headers={"X-Auth-Token": issue_token(42)})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch balance", "details": "timeout"}
