"""Tests for the global request access guard, through the real app."""

import pytest

from projecthub.security.config import AccessConfig
from projecthub.security.roles import Perm


@pytest.fixture
def probe(app):
    """A counting route plus an access table that only knows about it."""
    calls = {"n": 0}

    @app.get("/probe/open")
    def probe_open():
        calls["n"] += 1
        return {"ok": True}

    @app.get("/probe/admin")
    def probe_admin():
        calls["n"] += 1
        return {"ok": True}

    app.state.access_config = AccessConfig.from_mapping(
        {
            "routes": [
                {"path": "/probe/admin", "methods": ["GET"], "roles": ["SUPER_ADMIN", "ADMIN"]},
            ]
        }
    )
    return calls


def test_no_cookie_is_401_and_handler_never_runs(client, probe):
    resp = client.get("/probe/open")

    assert resp.status_code == 401
    body = resp.json()
    assert body["status"] == "error"
    assert body["error"]["code"] == "NO_CREDENTIAL"
    assert body["path"] == "/probe/open"
    assert probe["n"] == 0


def test_invalid_cookie_is_401(client, probe):
    client.cookies.set("auth_token", "forged")

    resp = client.get("/probe/open")

    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "INVALID_CREDENTIAL"
    assert probe["n"] == 0


def test_cookie_for_deleted_user_is_401(app, client, probe):
    client.cookies.set("auth_token", app.state.session_tokens.issue(987654))

    resp = client.get("/probe/open")

    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "ACTOR_NOT_FOUND"


def test_authenticated_route_without_requirement_runs_handler(make_user, login_as, probe):
    client = login_as(make_user("WORKER"))

    assert client.get("/probe/open").status_code == 200
    assert probe["n"] == 1


def test_worker_on_admin_route_is_403_insufficient_role(make_user, login_as, probe):
    client = login_as(make_user("WORKER"))

    resp = client.get("/probe/admin")

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "INSUFFICIENT_ROLE"
    assert probe["n"] == 0


def test_admin_on_admin_route_passes(make_user, login_as, probe):
    client = login_as(make_user("ADMIN"))

    assert client.get("/probe/admin").status_code == 200
    assert probe["n"] == 1


def test_public_routes_skip_the_guard(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_admin_without_permission_is_403_insufficient_permission(seeded_db, make_user, login_as):
    from sqlalchemy import select

    from projecthub.models.security import Role

    admin_role = seeded_db.scalars(select(Role).where(Role.name == "ADMIN")).one()
    admin_role.permissions = [p for p in admin_role.permissions if p.action != Perm.DELETE_PROJECT]
    seeded_db.commit()
    client = login_as(make_user("ADMIN"))

    resp = client.delete("/api/v1/project/1")

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "INSUFFICIENT_PERMISSION"


def test_direct_grant_does_not_bypass_role_check(make_user, login_as):
    client = login_as(make_user("WORKER", direct=(Perm.MANAGE_USERS,)))

    assert client.post("/api/v1/user", json={"email": "x@example.com", "role_id": 1}).status_code == 403


def test_actor_is_exposed_to_handlers(make_user, login_as):
    user = make_user("ADMIN", email="admin@example.com")
    client = login_as(user)

    resp = client.get("/api/v1/user/me")

    assert resp.status_code == 200
    assert resp.json()["email"] == "admin@example.com"
    assert resp.json()["role"]["name"] == "ADMIN"
