"""
HTTP tests for the Flask API – login, sessions and the RPC envelope.
"""

import json
from datetime import timedelta

import pytest
from flask import request
from sqlalchemy import update

from smartclinic.api.app import create_app
from smartclinic.api.auth import SessionStore, extract_token, generate_token, verify_token
from smartclinic.router import Router
from smartclinic.schema import users


@pytest.fixture
def sessions():
    return SessionStore()


@pytest.fixture
def client(engine, accounts, sessions):
    app = create_app(engine=engine, sessions=sessions)
    app.config["TESTING"] = True
    return app.test_client()


def login(client, key):
    response = client.post("/api/auth/login", json={"api_key": f"key-{key}"})
    assert response.status_code == 200
    return response.get_json()["token"]


def auth(token):
    return {"Authorization": f"Bearer {token}"}


# ── Tests: tokens ────────────────────────────────────────────────────

def test_token_roundtrip_and_expiry(accounts):
    token = generate_token(accounts["doctor"])
    assert verify_token(token)["user_id"] == accounts["doctor"].id
    assert verify_token(generate_token(accounts["doctor"], expiry_hours=-1)) is None
    assert verify_token("not-a-token") is None


def test_extract_token_sources(client):
    app = client.application
    with app.test_request_context("/", headers={"Authorization": "Bearer abc"}):
        assert extract_token(request) == "abc"
    with app.test_request_context("/?token=xyz"):
        assert extract_token(request) == "xyz"
    with app.test_request_context("/", headers={"Authorization": "Basic abc"}):
        assert extract_token(request) is None


# ── Tests: info / auth ───────────────────────────────────────────────

def test_index_and_health(client, sessions):
    assert client.get("/").get_json()["status"] == "running"
    health = client.get("/health")
    assert health.status_code == 200
    assert health.get_json()["checks"] == {"database": True}


def test_login_invalid(client):
    response = client.post("/api/auth/login", json={"api_key": "nope"})
    assert response.status_code == 401
    body = response.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "UNAUTHORIZED"
    assert "Invalid key" in body["error"]["message"]


@pytest.mark.parametrize("kwargs", [
    {"json": {}},
    {"json": {"api_key": "   "}},
    {"json": {"api_key": 42}},
    {"json": ["key-doctor"]},
    {"data": "api_key=x"},
])
def test_login_malformed_body_uses_error_envelope(client, kwargs):
    response = client.post("/api/auth/login", **kwargs)
    assert response.status_code == 400
    body = response.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "VALIDATION_ERROR"


def test_login_returns_user_and_permissions(client, sessions):
    body = client.post("/api/auth/login", json={"api_key": "key-doctor"}).get_json()
    assert body["user"]["role"] == "doctor"
    assert body["permissions"]["records"] == ["create", "read", "update"]
    assert body["token"] in sessions


def test_login_sweeps_idle_sessions(client, accounts, sessions):
    stale = sessions.add("abandoned", accounts["member"])
    stale["last_activity"] -= timedelta(days=8)
    sessions.add("recent", accounts["nurse"])

    token = login(client, "doctor")
    assert "abandoned" not in sessions
    assert "recent" in sessions
    assert token in sessions
    assert len(sessions) == 2


def test_profile_and_logout(client):
    token = login(client, "nurse")
    profile = client.get("/api/user/profile", headers=auth(token))
    assert profile.status_code == 200
    assert profile.get_json()["user"]["role"] == "nurse"

    assert client.post("/api/auth/logout", headers=auth(token)).status_code == 200
    assert client.get("/api/user/profile", headers=auth(token)).status_code == 401
    assert client.post("/api/auth/logout", headers=auth(token)).status_code == 401


# ── Tests: RPC ───────────────────────────────────────────────────────

def test_public_procedure_needs_no_session(client):
    response = client.get("/api/rpc/healthCheck")
    assert response.get_json() == {"success": True, "data": "OK"}


def test_unauthenticated_procedure(client):
    response = client.get("/api/rpc/appointment.list")
    assert response.status_code == 401
    assert response.get_json() == {
        "success": False,
        "error": {"code": "UNAUTHORIZED", "message": "Authentication required"},
    }


def test_forbidden_procedure(client):
    token = login(client, "member")
    response = client.post("/api/rpc/patient.delete", headers=auth(token),
                           json={"id": "00000000-0000-4000-8000-000000000000"})
    assert response.status_code == 403
    assert response.get_json()["error"]["code"] == "FORBIDDEN"


def test_query_over_get_with_json_input(client, make_patient):
    make_patient(first_name="Zoe")
    make_patient(first_name="Eli")
    token = login(client, "member")

    response = client.get("/api/rpc/patient.list", headers=auth(token),
                          query_string={"input": json.dumps({"search": "Zoe"})})
    body = response.get_json()
    assert response.status_code == 200
    assert body["data"]["pagination"]["total"] == 1
    assert body["data"]["data"][0]["date_of_birth"] == "2019-04-02"


def test_query_token_from_query_string(client):
    token = login(client, "member")
    assert client.get(f"/api/rpc/privateData?token={token}").status_code == 200


def test_mutation_over_get_not_supported(client):
    token = login(client, "admin")
    response = client.get("/api/rpc/patient.delete", headers=auth(token))
    assert response.status_code == 405
    assert response.get_json()["error"]["code"] == "METHOD_NOT_SUPPORTED"


def test_bad_json_and_invalid_input(client):
    token = login(client, "doctor")
    response = client.get("/api/rpc/patient.list", headers=auth(token), query_string={"input": "{oops"})
    assert response.status_code == 400

    response = client.post("/api/rpc/patient.create", headers=auth(token), json={"first_name": "A"})
    error = response.get_json()["error"]
    assert response.status_code == 400
    assert error["code"] == "VALIDATION_ERROR"
    assert {d["field"] for d in error["details"]} >= {"medical_record_number", "last_name"}


def test_unknown_procedure_and_endpoint(client):
    response = client.get("/api/rpc/nothing.here")
    assert response.status_code == 404
    assert response.get_json()["error"]["code"] == "NOT_FOUND"
    assert client.get("/api/missing").status_code == 404


def test_mutation_result_is_json_encoded(client, make_patient):
    patient = make_patient()
    token = login(client, "doctor")
    response = client.post("/api/rpc/appointment.create", headers=auth(token), json={
        "patient_id": patient["id"],
        "date": "2099-01-05T10:00:00Z",
        "type": "vaccination",
        "reason": "4-year shots",
    })
    data = response.get_json()["data"]
    assert response.status_code == 200
    assert data["date"].startswith("2099-01-05T10:00:00")
    assert data["type"] == "vaccination"


def test_banned_user_loses_session(client, engine, accounts, sessions):
    token = login(client, "nurse")
    with engine.begin() as conn:
        conn.execute(update(users).where(users.c.id == accounts["nurse"].id).values(banned=True))

    response = client.get("/api/rpc/privateData", headers=auth(token))
    assert response.status_code == 401
    assert token not in sessions


def test_unexpected_error_is_opaque(engine, sessions):
    router = Router("demo")

    @router.query("boom", tier="public")
    def boom(ctx, data):
        raise RuntimeError("secret detail")

    client = create_app(engine=engine, router=router, sessions=sessions).test_client()
    response = client.get("/api/rpc/demo.boom")
    assert response.status_code == 500
    assert response.get_json()["error"] == {
        "code": "INTERNAL_SERVER_ERROR",
        "message": "Internal server error",
    }


# ── Tests: session store ─────────────────────────────────────────────

def test_session_store_expires_idle_sessions(accounts):
    store = SessionStore(expiry_hours=1)
    store.add("fresh", accounts["doctor"])
    stale = store.add("stale", accounts["nurse"])
    stale["last_activity"] -= timedelta(hours=2)

    assert store.cleanup_expired() == 1
    assert "stale" not in store
    assert store.get("fresh")["user_id"] == accounts["doctor"].id
    assert len(store) == 1


def test_session_store_get_drops_expired(accounts):
    store = SessionStore(expiry_hours=1)
    store.add("t", accounts["member"])
    store.get("t")["last_activity"] -= timedelta(hours=3)
    assert store.get("t") is None
    assert len(store) == 0
