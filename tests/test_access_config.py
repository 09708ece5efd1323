"""Tests for the route access table (YAML -> AccessConfig)."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from projecthub.security.config import AccessConfig, load_access_config

CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "access_control.yaml"


def _config(routes, default=None) -> AccessConfig:
    raw = {"routes": routes}
    if default is not None:
        raw["default"] = default
    return AccessConfig.from_mapping(raw)


def test_shipped_config_loads_and_marks_sign_in_public():
    config = load_access_config(CONFIG_PATH)

    assert config.match("/api/v1/user/azure/login", "GET").public
    assert config.match("/api/v1/user/azure/redirect", "GET").public
    assert config.match("/health", "GET").public


def test_shipped_config_requires_session_for_me_without_restriction():
    access = load_access_config(CONFIG_PATH).match("/api/v1/user/me", "GET", "/api/v1/user/me")

    assert not access.public
    assert access.requirement is None


def test_shipped_config_project_edit_requires_role_and_permission():
    access = load_access_config(CONFIG_PATH).match("/api/v1/project/7", "PUT", "/api/v1/project/{project_id}")

    assert access.requirement.roles == frozenset({"SUPER_ADMIN", "ADMIN"})
    assert access.requirement.permissions == frozenset({"EDIT_PROJECT"})


def test_template_lookup_beats_regex():
    config = _config(
        [
            {"path": "/x/{id}", "methods": ["GET"], "roles": ["ADMIN"]},
            {"path": "/x/list", "methods": ["GET"], "roles": ["WORKER"]},
        ]
    )

    assert config.match("/x/list", "GET", "/x/list").requirement.roles == frozenset({"WORKER"})
    assert config.match("/x/5", "GET", "/x/{id}").requirement.roles == frozenset({"ADMIN"})


def test_regex_fallback_without_route_template():
    config = _config([{"path": "/x/{id}/files", "methods": ["POST"], "permissions": ["EDIT_PROJECT"]}])

    access = config.match("/x/12/files", "post")

    assert access.requirement.permissions == frozenset({"EDIT_PROJECT"})


def test_unmatched_route_uses_default():
    assert _config([]).match("/nowhere", "GET").public is False
    assert _config([], default={"public": True}).match("/nowhere", "GET").public is True


def test_method_is_part_of_the_key():
    config = _config([{"path": "/x", "methods": ["POST"], "roles": ["ADMIN"]}])

    assert config.match("/x", "GET", "/x").requirement is None


def test_unknown_role_is_rejected():
    with pytest.raises(ValidationError):
        _config([{"path": "/x", "roles": ["OWNER"]}])


def test_unknown_permission_is_rejected():
    with pytest.raises(ValidationError):
        _config([{"path": "/x", "permissions": ["LAUNCH_ROCKETS"]}])


def test_duplicate_rule_is_rejected():
    with pytest.raises(ValueError):
        _config([{"path": "/x", "methods": ["GET"]}, {"path": "/x", "methods": ["get", "POST"]}])


def test_missing_access_key_is_rejected(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("routes: []\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_access_config(path)
