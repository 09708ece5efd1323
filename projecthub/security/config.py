from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from projecthub.security.context import AccessRequirement
from projecthub.security.roles import ALL_PERMISSIONS, is_known_role


class DefaultRule(BaseModel):
    public: bool = False


class RouteRule(BaseModel):
    path: str
    methods: list[str] = Field(default_factory=lambda: ["GET"])

    public: bool = False
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)

    @field_validator("roles")
    @classmethod
    def _known_roles(cls, value: list[str]) -> list[str]:
        unknown = sorted(r for r in value if not is_known_role(r))
        if unknown:
            raise ValueError(f"unknown roles: {unknown}")
        return value

    @field_validator("permissions")
    @classmethod
    def _known_permissions(cls, value: list[str]) -> list[str]:
        unknown = sorted(set(value) - ALL_PERMISSIONS)
        if unknown:
            raise ValueError(f"unknown permissions: {unknown}")
        return value

    def normalized_methods(self) -> set[str]:
        return {m.upper() for m in self.methods}


class AccessConfigModel(BaseModel):
    default: DefaultRule = Field(default_factory=DefaultRule)
    routes: list[RouteRule] = Field(default_factory=list)


@dataclass(frozen=True)
class RouteAccess:
    """
    Resolved access rule for one request.

    `requirement` is None when the route only needs an authenticated caller.
    """

    public: bool
    requirement: AccessRequirement | None


def _path_template_to_regex(path_template: str) -> re.Pattern[str]:
    # "/api/v1/project/{id}" -> r"^/api/v1/project/[^/]+$"
    regex = re.sub(r"\{[^/]+\}", r"[^/]+", path_template)
    return re.compile(rf"^{regex}$")


class AccessConfig:
    """
    Route registration table: (method, path template) -> access rule.

    Consulted by the request guard before a handler runs. Lookup order is the
    matched route template, then the exact request path, then template regexes in
    file order; no match falls back to the default rule.
    """

    def __init__(self, model: AccessConfigModel):
        self.model = model

        self._exact_rules: dict[tuple[str, str], RouteRule] = {}
        for rule in self.model.routes:
            for method in rule.normalized_methods():
                key = (method, rule.path)
                if key in self._exact_rules:
                    raise ValueError(f"duplicate access rule for {method} {rule.path}")
                self._exact_rules[key] = rule

        self._compiled_rules = [(_path_template_to_regex(r.path), r) for r in self.model.routes]

    @classmethod
    def from_mapping(cls, raw: dict[str, Any]) -> AccessConfig:
        return cls(AccessConfigModel.model_validate(raw))

    @property
    def rules(self) -> list[RouteRule]:
        return list(self.model.routes)

    def match(self, path: str, method: str, route_template: str | None = None) -> RouteAccess:
        method = method.upper()

        # 1) the template FastAPI routed to, then the literal path
        for candidate_path in (route_template, path):
            if candidate_path is None:
                continue
            rule = self._exact_rules.get((method, candidate_path))
            if rule is not None:
                return _resolve(rule)

        # 2) template regex match
        for regex, rule in self._compiled_rules:
            if method in rule.normalized_methods() and regex.match(path):
                return _resolve(rule)

        # 3) no match -> defaults (authenticated, unrestricted)
        return RouteAccess(public=self.model.default.public, requirement=None)


def _resolve(rule: RouteRule) -> RouteAccess:
    if rule.public:
        return RouteAccess(public=True, requirement=None)

    requirement = AccessRequirement(roles=frozenset(rule.roles), permissions=frozenset(rule.permissions))
    return RouteAccess(public=False, requirement=None if requirement.is_unrestricted else requirement)


def load_access_config(path: Path) -> AccessConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "access" not in raw:
        raise ValueError(f"Missing top-level 'access' key in config: {path}")

    return AccessConfig.from_mapping(raw["access"] or {})
