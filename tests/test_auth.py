"""
Tests for bearer-token sessions.

Covers:
  - Missing, malformed, expired and foreign tokens → 401
  - Logout ends the session; the same token is refused afterwards
  - Only admins issue sessions
  - /auth/me reports the caller and their operator profile
  - API_AUTH_ENABLED=false runs every request as the dev admin
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from fieldops.models.auth import UserSession

BASE = "/api/v1/auth"


def _secret(app):
    return app.config.get("JWT_SECRET_KEY") or app.config["SECRET_KEY"]


def _token(app, **overrides):
    now = datetime.now(timezone.utc)
    payload = {
        "sub": "admin-1",
        "role": "admin",
        "type": "access",
        "iat": now,
        "exp": now + timedelta(hours=1),
        "jti": "not-a-session",
    }
    payload.update(overrides)
    return jwt.encode(payload, _secret(app), algorithm="HS256")


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


# ── Rejections ───────────────────────────────────────────────────────────────


def test_missing_token(client):
    res = client.get(f"{BASE}/me")

    assert res.status_code == 401
    assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"


def test_non_bearer_header(client):
    res = client.get(f"{BASE}/me", headers={"Authorization": "Basic YWRtaW46YWRtaW4="})

    assert res.status_code == 401


def test_garbage_token(client):
    res = client.get(f"{BASE}/me", headers=_bearer("not.a.jwt"))

    assert res.status_code == 401
    assert res.get_json()["error"] == "Invalid token"


def test_expired_token(app, client):
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = _token(app, iat=past, exp=past + timedelta(minutes=5))

    res = client.get(f"{BASE}/me", headers=_bearer(token))

    assert res.status_code == 401
    assert res.get_json()["error"] == "Session expired"


def test_wrong_secret(client):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": "admin-1", "role": "admin", "type": "access", "exp": now + timedelta(hours=1), "jti": "x"},
        "some-other-secret-that-is-long-enough",
        algorithm="HS256",
    )

    res = client.get(f"{BASE}/me", headers=_bearer(token))

    assert res.get_json()["error"] == "Invalid token"


@pytest.mark.parametrize("overrides", [{"type": "refresh"}, {"role": "superuser"}])
def test_token_claims_checked(app, client, overrides):
    res = client.get(f"{BASE}/me", headers=_bearer(_token(app, **overrides)))

    assert res.status_code == 401
    assert res.get_json()["error"] == "Invalid token"


def test_unknown_session_id(app, client):
    res = client.get(f"{BASE}/me", headers=_bearer(_token(app)))

    assert res.status_code == 401
    assert res.get_json()["error"] == "Session has ended"


# ── Lifecycle ────────────────────────────────────────────────────────────────


def test_logout_ends_session(client, operator_headers):
    assert client.get(f"{BASE}/me", headers=operator_headers).status_code == 200

    res = client.delete(f"{BASE}/sessions/current", headers=operator_headers)
    assert res.status_code == 200
    assert res.get_json() == {"closed": True}

    res = client.get(f"{BASE}/me", headers=operator_headers)
    assert res.status_code == 401
    assert res.get_json()["error"] == "Session has ended"


def test_admin_issues_session(client, admin_headers):
    res = client.post(f"{BASE}/sessions", json={"user_id": "op-7", "role": "operator"}, headers=admin_headers)

    assert res.status_code == 201
    data = res.get_json()
    assert data["token_type"] == "Bearer"
    assert data["expires_in"] > 0
    assert data["session"]["user_id"] == "op-7"

    row = UserSession.query.filter_by(user_id="op-7").one()
    assert row.issued_by == "admin-1"

    me = client.get(f"{BASE}/me", headers=_bearer(data["access_token"])).get_json()
    assert me["user_id"] == "op-7"
    assert me["role"] == "operator"
    assert me["session_id"] == row.jti
    assert me["operator_profile_id"] is None


def test_issue_session_validation(client, admin_headers):
    res = client.post(f"{BASE}/sessions", json={"user_id": "op-7", "role": "owner"}, headers=admin_headers)
    assert res.status_code == 422
    assert res.get_json()["details"] == {"role": "invalid"}

    res = client.post(f"{BASE}/sessions", json={"role": "operator"}, headers=admin_headers)
    assert res.status_code == 422
    assert res.get_json()["details"] == {"user_id": "required"}


def test_operator_cannot_issue_sessions(client, operator_headers):
    res = client.post(f"{BASE}/sessions", json={"user_id": "op-8", "role": "admin"}, headers=operator_headers)

    assert res.status_code == 403
    assert res.get_json()["required_role"] == "admin"


def test_me_links_operator_profile(client, operator, operator_headers):
    res = client.get(f"{BASE}/me", headers=operator_headers)

    assert res.get_json()["operator_profile_id"] == operator.id


def test_auth_disabled_runs_as_admin(app, client, monkeypatch):
    monkeypatch.setitem(app.config, "API_AUTH_ENABLED", "false")

    res = client.get(f"{BASE}/me")

    assert res.status_code == 200
    assert res.get_json()["role"] == "admin"
