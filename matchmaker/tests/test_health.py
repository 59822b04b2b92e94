from fastapi.testclient import TestClient

from matchmaker.main import app

client = TestClient(app)


def test_healthz() -> None:
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_root_redirects_to_docs() -> None:
    r = client.get("/", follow_redirects=False)
    assert r.status_code == 307
    assert r.headers["location"] == "/docs"


def test_manager_routes_require_a_token() -> None:
    r = client.post("/api/v1/locks/confirm", json={"user_id": 1})
    assert r.status_code in (401, 403)
