"""Tests for the Microsoft Graph directory client (mocked)."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from projecthub.identity.config import EntraConfig
from projecthub.identity.graph_client import GraphDirectory, request_app_token
from projecthub.identity.token_cache import AppTokenCache
from projecthub.identity.validator import IdentityError


def _config(*, secret: str | None = "secret") -> EntraConfig:
    return EntraConfig(
        tenant_id="t",
        client_id="c",
        client_secret=secret,
        redirect_uri=None,
        clock_skew_seconds=60,
        jwks_cache_ttl_seconds=3600,
        graph_enabled=True,
    )


def _directory() -> GraphDirectory:
    return GraphDirectory(_config(), token_cache=AppTokenCache(lambda: ("graph-token", 3600)))


def test_app_token_requires_secret():
    with pytest.raises(IdentityError):
        request_app_token(_config(secret=None))


@patch("projecthub.identity.graph_client.requests.post")
def test_app_token_uses_client_credentials(mock_post):
    mock_post.return_value.json.return_value = {"access_token": "t", "expires_in": 1800}

    assert request_app_token(_config()) == ("t", 1800)
    data = mock_post.call_args.kwargs["data"]
    assert data["grant_type"] == "client_credentials"
    assert data["scope"] == "https://graph.microsoft.com/.default"


@patch("projecthub.identity.graph_client.requests.post")
def test_app_token_network_failure(mock_post):
    mock_post.side_effect = requests.RequestException("network error")

    with pytest.raises(IdentityError):
        request_app_token(_config())


@patch("projecthub.identity.graph_client.requests.post")
def test_token_is_fetched_once_for_several_calls(mock_post):
    token_resp = MagicMock()
    token_resp.json.return_value = {"access_token": "graph-token", "expires_in": 3600}
    invite_resp = MagicMock()
    invite_resp.json.return_value = {"invitedUser": {"id": "oid-1"}}
    mock_post.side_effect = [token_resp, invite_resp, invite_resp]

    directory = GraphDirectory(_config())
    directory.invite_user("a@example.com", "A", "https://app")
    directory.invite_user("b@example.com", "B", "https://app")

    assert mock_post.call_count == 3


@patch("projecthub.identity.graph_client.requests.post")
def test_invite_user_returns_directory_id(mock_post):
    mock_post.return_value.json.return_value = {"invitedUser": {"id": "oid-42"}}

    assert _directory().invite_user("a@example.com", None, "https://app") == "oid-42"
    payload = mock_post.call_args.kwargs["json"]
    assert payload["invitedUserEmailAddress"] == "a@example.com"
    assert payload["invitedUserDisplayName"] == "a@example.com"
    assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer graph-token"


@patch("projecthub.identity.graph_client.requests.post")
def test_invite_user_failure_raises(mock_post):
    mock_post.return_value.raise_for_status.side_effect = requests.HTTPError("403")

    with pytest.raises(IdentityError):
        _directory().invite_user("a@example.com", "A", "https://app")


@pytest.mark.parametrize("status_code", [204, 404])
@patch("projecthub.identity.graph_client.requests.delete")
def test_delete_user_accepts_deleted_or_absent(mock_delete, status_code):
    mock_delete.return_value.status_code = status_code

    _directory().delete_user("oid-1")

    assert mock_delete.call_args.args[0].endswith("/users/oid-1")


@patch("projecthub.identity.graph_client.requests.delete")
def test_delete_user_failure_raises(mock_delete):
    mock_delete.return_value.status_code = 500

    with pytest.raises(IdentityError):
        _directory().delete_user("oid-1")
