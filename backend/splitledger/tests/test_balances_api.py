"""
Tests for the balances endpoint.
"""
import pytest
from fastapi.testclient import TestClient
from splitledger.main import app
from splitledger.core.errors import StoreAccessError
from splitledger.core.security import create_access_token
from splitledger.db.session import get_db, get_session_factory
from splitledger.services import ledger_store


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}


@pytest.fixture
def dinner(builder):
    """Alice pays $30 split equally with Bob; Carol is invited but owes nothing yet."""
    alice = builder.user("alice@example.com", full_name="Alice")
    bob = builder.user("bob@example.com", full_name="Bob")
    group = builder.group("Dinner")
    a, b = builder.member(group, alice), builder.member(group, bob)
    builder.expense(group, a, "30.00", "USD", {a: "15.00", b: "15.00"})
    return alice, bob, group, a


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_requires_authentication(client):
    assert client.get("/api/balances").status_code == 401


def test_rejects_invalid_token(client):
    response = client.get("/api/balances", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_rejects_token_for_unknown_user(client):
    token = create_access_token({"sub": "00000000-0000-0000-0000-000000000000"})
    response = client.get("/api/balances", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_balances_envelope(client, dinner):
    alice, bob, group, _ = dinner

    response = client.get("/api/balances", headers=auth_headers(alice))

    assert response.status_code == 200
    data = response.json()
    assert len(data["group_balances"]) == 1
    group_entry = data["group_balances"][0]
    assert group_entry["group_id"] == group.id
    assert group_entry["group_name"] == "Dinner"
    amounts = {b["user_id"]: b["amount"] for b in group_entry["balances"]}
    assert amounts == {alice.id: 15.0, bob.id: -15.0}
    bob_entry = next(b for b in group_entry["balances"] if b["user_id"] == bob.id)
    assert bob_entry["email"] == "bob@example.com"
    assert bob_entry["full_name"] == "Bob"
    assert bob_entry["currency"] == "USD"
    assert data["overall_balances"] == [{
        "user_id": alice.id,
        "email": "alice@example.com",
        "full_name": "Alice",
        "amount": 15.0,
        "currency": "USD",
    }]


def test_settled_group_has_no_entries(client, builder, dinner):
    alice, bob, group, alice_p = dinner
    bob_p = next(p for p in group.participants if p.user_id == bob.id)
    builder.settle(group, bob_p, alice_p, "15.00", "USD")

    data = client.get("/api/balances", headers=auth_headers(alice)).json()

    assert data["group_balances"][0]["balances"] == []
    assert data["overall_balances"] == []


def test_invited_participant_has_no_user_id(client, builder, dinner):
    alice, _, group, alice_p = dinner
    carol = builder.invite(group, "carol@example.com")
    builder.expense(group, alice_p, "8.00", "USD", {carol: "8.00"})

    data = client.get("/api/balances", headers=auth_headers(alice)).json()

    carol_entry = next(
        b for b in data["group_balances"][0]["balances"] if b["participant_id"] == carol.id
    )
    assert "user_id" not in carol_entry
    assert carol_entry["full_name"] == "carol@example.com"
    assert carol_entry["amount"] == -8.0


def test_group_scope(client, builder, dinner):
    alice, _, group, _ = dinner
    other = builder.group("Another")
    builder.member(other, alice)

    data = client.get(f"/api/balances?group_id={group.id}", headers=auth_headers(alice)).json()

    assert [g["group_id"] for g in data["group_balances"]] == [group.id]


def test_invalid_group_id(client, dinner):
    alice = dinner[0]

    response = client.get("/api/balances?group_id=abc", headers=auth_headers(alice))

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_group_outside_membership(client, builder, dinner):
    alice = dinner[0]
    private = builder.group("Private")

    response = client.get(f"/api/balances?group_id={private.id}", headers=auth_headers(alice))

    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"


def test_membership_store_failure(client, monkeypatch, dinner):
    alice = dinner[0]

    def unavailable(db, user_id):
        raise StoreAccessError("Failed to load memberships")

    monkeypatch.setattr(ledger_store, "fetch_memberships", unavailable)

    response = client.get("/api/balances", headers=auth_headers(alice))

    assert response.status_code == 503
    assert response.json()["code"] == "STORE_ERROR"
