from __future__ import annotations

import os
from collections.abc import Iterator
from typing import Any, cast
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine, select

import matchmaker.core.db as db_module
from matchmaker.main import app
from matchmaker.models.couple import Couple
from matchmaker.models.lock import Lock, LockOutcome

TEST_DB_FILENAME = "test_locks_flow.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILENAME}"


def _signup_login(client: TestClient, name: str) -> tuple[str, int]:
    email = f"{name.lower()}-{uuid4().hex[:8]}@example.com"
    password = "Aa!123456"
    response = client.post(
        "/api/v1/auth/signup",
        json={"email": email, "password": password, "name": name},
    )
    assert response.status_code == 200, response.text
    response = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    assert response.status_code == 200, response.text
    token = cast(str, response.json()["access_token"])
    me = client.get("/api/v1/users/me", headers=_auth_headers(token))
    assert me.status_code == 200, me.text
    return token, int(me.json()["id"])


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _me(client: TestClient, token: str) -> dict[str, Any]:
    response = client.get("/api/v1/users/me", headers=_auth_headers(token))
    assert response.status_code == 200, response.text
    return cast(dict[str, Any], response.json())


def _locked_pair(client: TestClient, a: str, b: str) -> tuple[str, int, str, int, int]:
    """Sign up two users and lock them: a asks, b accepts."""
    token_a, a_id = _signup_login(client, a)
    token_b, b_id = _signup_login(client, b)
    response = client.post(
        "/api/v1/requests",
        headers=_auth_headers(token_a),
        json={"from_id": a_id, "to_id": b_id},
    )
    assert response.json()["success"] is True, response.text
    response = client.post(
        "/api/v1/requests/accept",
        headers=_auth_headers(token_b),
        json={"from_id": a_id, "to_id": b_id},
    )
    assert response.json()["success"] is True, response.text
    lock_id = _me(client, token_a)["lock_id"]
    assert lock_id is not None
    return token_a, a_id, token_b, b_id, int(lock_id)


def _lock_action(client: TestClient, path: str, token: str, user_id: int):
    return client.post(
        f"/api/v1/locks{path}",
        headers=_auth_headers(token),
        json={"user_id": user_id},
    )


@pytest.fixture(scope="module")
def client() -> Iterator[TestClient]:
    previous_db_url = os.environ.get("DATABASE_URL")
    os.environ["DATABASE_URL"] = TEST_DB_URL
    original_engine = db_module.engine
    test_engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
    )
    db_module.engine = test_engine

    def override_get_session() -> Iterator[Session]:
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[db_module.get_session] = override_get_session
    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(db_module.get_session, None)
    SQLModel.metadata.drop_all(test_engine)
    test_engine.dispose()
    if previous_db_url is not None:
        os.environ["DATABASE_URL"] = previous_db_url
    else:
        os.environ.pop("DATABASE_URL", None)
    db_module.engine = original_engine
    if os.path.exists(TEST_DB_FILENAME):
        os.remove(TEST_DB_FILENAME)


def test_full_path_to_marriage(client: TestClient) -> None:
    token_a, a_id, token_b, b_id, lock_id = _locked_pair(client, "Ana", "Bo")

    response = _lock_action(client, "/confirm-request", token_a, a_id)
    assert response.status_code == 200, response.text
    assert response.json() == {
        "success": True,
        "message": "Bo has been asked to confirm your marriage.",
    }
    assert _me(client, token_a)["status"] == "mark_married"
    assert _me(client, token_b)["status"] == "locked"

    notes = client.get("/api/v1/notifications", headers=_auth_headers(token_b)).json()
    assert notes[0]["kind"] == "confirm_success_requested"
    assert notes[0]["lock_id"] == lock_id

    response = _lock_action(client, "/confirm", token_b, b_id)
    assert response.json() == {
        "success": True,
        "message": "Congratulations! You and Ana are now married.",
    }

    for token in (token_a, token_b):
        me = _me(client, token)
        assert me["status"] == "married"
        assert me["lock_id"] is None
        assert me["locked_with"] is None

    couple = client.get("/api/v1/couples/me", headers=_auth_headers(token_a))
    assert couple.status_code == 200
    assert couple.json()["partner_id"] == b_id
    assert couple.json()["married_date"]

    with Session(db_module.engine) as session:
        lock = session.get(Lock, lock_id)
        assert lock is not None
        assert lock.is_active is False
        assert lock.outcome == LockOutcome.married
        couples = session.exec(select(Couple).where(Couple.lock_id == lock_id)).all()
        assert len(couples) == 1

    response = client.post(
        f"/api/v1/locks/{lock_id}/withdraw",
        headers=_auth_headers(token_a),
        json={"user_id": a_id},
    )
    assert response.status_code == 200
    assert response.json()["success"] is False

    # confirming again has no lock to work on
    response = _lock_action(client, "/confirm", token_b, b_id)
    assert response.status_code == 404


def test_confirm_requires_pending_counterpart(client: TestClient) -> None:
    token_a, a_id, token_b, b_id, _ = _locked_pair(client, "Cy", "Di")

    # nobody asked yet
    response = _lock_action(client, "/confirm", token_b, b_id)
    assert response.json()["success"] is False

    assert _lock_action(client, "/confirm-request", token_a, a_id).json()["success"]
    # the notifier cannot confirm their own request, nor ask twice
    assert _lock_action(client, "/confirm", token_a, a_id).json()["success"] is False
    response = _lock_action(client, "/confirm-request", token_b, b_id)
    assert response.json()["success"] is False

    assert _me(client, token_a)["status"] == "mark_married"
    assert _me(client, token_b)["status"] == "locked"


def test_decline_success_returns_notifier_to_locked(client: TestClient) -> None:
    token_a, a_id, token_b, b_id, lock_id = _locked_pair(client, "Ed", "Fay")

    assert _lock_action(client, "/confirm-request", token_a, a_id).json()["success"]
    response = _lock_action(client, "/confirm/decline", token_b, b_id)
    assert response.json() == {
        "success": True,
        "message": "You declined the marriage confirmation from Ed.",
    }
    me_a = _me(client, token_a)
    assert me_a["status"] == "locked"
    assert me_a["lock_id"] == lock_id
    assert me_a["locked_with"] == b_id


def test_withdraw_lock_releases_both(client: TestClient) -> None:
    token_a, a_id, token_b, b_id, lock_id = _locked_pair(client, "Gus", "Hana")
    token_c, c_id = _signup_login(client, "Ike")

    # only a party may withdraw
    response = client.post(
        f"/api/v1/locks/{lock_id}/withdraw",
        headers=_auth_headers(token_c),
        json={"user_id": c_id},
    )
    assert response.status_code == 403

    response = client.post(
        f"/api/v1/locks/{lock_id}/withdraw",
        headers=_auth_headers(token_b),
        json={"user_id": b_id},
    )
    assert response.json() == {
        "success": True,
        "message": "Your lock with Gus has been withdrawn.",
    }
    for token in (token_a, token_b):
        me = _me(client, token)
        assert me["status"] == "available"
        assert me["lock_id"] is None

    with Session(db_module.engine) as session:
        lock = session.get(Lock, lock_id)
        assert lock is not None
        assert lock.is_active is False
        assert lock.outcome == LockOutcome.withdrawn
        assert lock.withdrawn_by_id == b_id
        assert lock.withdrawn_at is not None

    response = client.post(
        f"/api/v1/locks/{lock_id}/withdraw",
        headers=_auth_headers(token_a),
        json={"user_id": a_id},
    )
    assert response.json()["success"] is False

    response = client.get("/api/v1/locks/current", headers=_auth_headers(token_a))
    assert response.status_code == 404

    # both are free to court again
    response = client.post(
        "/api/v1/requests",
        headers=_auth_headers(token_a),
        json={"from_id": a_id, "to_id": c_id},
    )
    assert response.json()["success"] is True


def test_withdraw_beats_confirm(client: TestClient) -> None:
    token_a, a_id, token_b, b_id, lock_id = _locked_pair(client, "Jo", "Kai")
    assert _lock_action(client, "/confirm-request", token_a, a_id).json()["success"]

    response = client.post(
        f"/api/v1/locks/{lock_id}/withdraw",
        headers=_auth_headers(token_a),
        json={"user_id": a_id},
    )
    assert response.json()["success"] is True

    response = _lock_action(client, "/confirm", token_b, b_id)
    assert response.status_code == 404
    assert _me(client, token_b)["status"] == "available"
    assert client.get(
        "/api/v1/couples/me", headers=_auth_headers(token_b)
    ).status_code == 404


def test_reject_handshake(client: TestClient) -> None:
    token_a, a_id, token_b, b_id, lock_id = _locked_pair(client, "Liv", "Moe")

    # no reject pending yet
    assert _lock_action(client, "/reject", token_b, b_id).json()["success"] is False

    response = _lock_action(client, "/reject-request", token_a, a_id)
    assert response.json() == {
        "success": True,
        "message": "Moe has been asked to confirm ending the lock.",
    }
    # phase 1 leaves both statuses alone
    assert _me(client, token_a)["status"] == "locked"
    assert _me(client, token_b)["status"] == "locked"

    current = client.get("/api/v1/locks/current", headers=_auth_headers(token_b))
    assert current.json()["reject_requested_by_id"] == a_id

    # the rejector cannot confirm their own reject, nor ask twice
    assert _lock_action(client, "/reject", token_a, a_id).json()["success"] is False
    assert (
        _lock_action(client, "/reject-request", token_a, a_id).json()["success"]
        is False
    )
    # no marriage prompt while a reject is pending
    assert (
        _lock_action(client, "/confirm-request", token_b, b_id).json()["success"]
        is False
    )

    response = _lock_action(client, "/reject", token_b, b_id)
    assert response.json() == {
        "success": True,
        "message": "Your lock with Liv has ended. You are both available again.",
    }
    for token in (token_a, token_b):
        me = _me(client, token)
        assert me["status"] == "available"
        assert me["lock_id"] is None

    with Session(db_module.engine) as session:
        lock = session.get(Lock, lock_id)
        assert lock is not None
        assert lock.is_active is False
        assert lock.outcome == LockOutcome.rejected

    notes = client.get("/api/v1/notifications", headers=_auth_headers(token_a)).json()
    assert notes[0]["kind"] == "lock_rejected"
    response = client.post(
        f"/api/v1/notifications/{notes[0]['id']}/read",
        headers=_auth_headers(token_a),
    )
    assert response.json()["is_read"] is True
    response = client.post(
        f"/api/v1/notifications/{notes[0]['id']}/read",
        headers=_auth_headers(token_b),
    )
    assert response.status_code == 403


def test_lock_actions_check_identity(client: TestClient) -> None:
    token_a, a_id, _, b_id, _ = _locked_pair(client, "Nia", "Oz")
    for path in ("/confirm-request", "/confirm", "/reject-request", "/reject"):
        assert _lock_action(client, path, token_a, b_id).status_code == 403

    token_c, c_id = _signup_login(client, "Pax")
    # not locked at all
    assert _lock_action(client, "/confirm-request", token_c, c_id).status_code == 404
    response = client.post(
        "/api/v1/locks/999999/withdraw",
        headers=_auth_headers(token_c),
        json={"user_id": c_id},
    )
    assert response.status_code == 404
