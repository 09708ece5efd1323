"""API tests for the Azure sign-in routes with the identity client mocked."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from projecthub.identity import IdentityAssertion, IdentityError
from projecthub.models.security import User
from projecthub.security.roles import ALL_PERMISSIONS


@pytest.fixture
def signin(app):
    client = MagicMock()
    client.authorization_url.return_value = "https://login.example/authorize?state=x"
    app.state.signin_client = client
    return client


def _redirect(client, state="abc", cookie_state="abc", code="code-1"):
    if cookie_state is not None:
        client.cookies.set("login_state", cookie_state)
    return client.get(
        "/api/v1/user/azure/redirect",
        params={"code": code, "state": state},
        follow_redirects=False,
    )


def test_login_returns_authorize_url_and_sets_state_cookie(client, signin):
    resp = client.get("/api/v1/user/azure/login")

    assert resp.status_code == 200
    assert resp.json()["url"] == "https://login.example/authorize?state=x"
    state = signin.authorization_url.call_args.args[0]
    assert resp.cookies.get("login_state") == state


def test_login_without_azure_configuration_is_503(client):
    assert client.get("/api/v1/user/azure/login").status_code == 503


def test_first_sign_in_creates_worker_and_sets_session_cookie(client, signin, seeded_db):
    signin.exchange_code.return_value = IdentityAssertion("oid-1", "new@example.com", "New Person")

    resp = _redirect(client)

    assert resp.status_code == 302
    assert resp.headers["location"] == "http://frontend.test"
    assert "auth_token" in resp.cookies
    seeded_db.expire_all()
    user = seeded_db.scalars(select(User).where(User.email == "new@example.com")).one()
    assert user.role.name == "WORKER"
    assert user.azure_id == "oid-1"
    assert user.permissions == []

    me = client.get("/api/v1/user/me")
    assert me.status_code == 200
    assert me.json()["email"] == "new@example.com"


def test_super_admin_email_gets_role_and_every_permission(client, signin, seeded_db, settings):
    settings.super_admin_emails = ["boss@example.com"]
    signin.exchange_code.return_value = IdentityAssertion("oid-2", "boss@example.com", "Boss")

    assert _redirect(client).status_code == 302

    seeded_db.expire_all()
    user = seeded_db.scalars(select(User).where(User.email == "boss@example.com")).one()
    assert user.role.name == "SUPER_ADMIN"
    assert {p.action for p in user.permissions} == ALL_PERMISSIONS


def test_existing_user_is_reused(client, signin, seeded_db, make_user):
    existing = make_user("ADMIN", email="known@example.com")
    signin.exchange_code.return_value = IdentityAssertion("oid-3", "known@example.com", "Known")

    assert _redirect(client).status_code == 302

    seeded_db.expire_all()
    users = seeded_db.scalars(select(User).where(User.email == "known@example.com")).all()
    assert [u.id for u in users] == [existing.id]
    assert users[0].role.name == "ADMIN"
    assert users[0].azure_id == "oid-3"


@pytest.mark.parametrize(("state", "cookie_state"), [("abc", None), ("abc", "other")])
def test_state_mismatch_is_401(client, signin, state, cookie_state):
    resp = _redirect(client, state=state, cookie_state=cookie_state)

    assert resp.status_code == 401
    signin.exchange_code.assert_not_called()


def test_failed_code_exchange_is_401(client, signin):
    signin.exchange_code.side_effect = IdentityError("bad code")

    resp = _redirect(client)

    assert resp.status_code == 401
    assert resp.json()["error"]["message"] == "Invalid or expired Azure token"


def test_logout_clears_cookie(make_user, login_as):
    client = login_as(make_user())

    resp = client.post("/api/v1/user/logout")

    assert resp.status_code == 200
    set_cookie = resp.headers["set-cookie"]
    assert set_cookie.startswith("auth_token=")
    assert "Max-Age=0" in set_cookie
