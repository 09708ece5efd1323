from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SESSION_SECRET = "jwt-secret"


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic so the service runs without setup.
    - Every field can be overridden with an `APP_` prefixed environment variable.
    - Azure Entra settings live in `projecthub.identity.config.EntraConfig`.
    """

    model_config = SettingsConfigDict(env_prefix="APP_", extra="ignore")

    db_url: str | None = None
    access_config_path: str | None = None
    upload_root: str | None = None
    log_level: str = "INFO"
    environment: str = "development"

    # Session cookie
    session_secret: str = DEFAULT_SESSION_SECRET
    session_ttl_days: int = 7
    session_cookie_name: str = "auth_token"

    frontend_url: str = "http://localhost:5173"
    super_admin_emails: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _require_session_secret_in_production(self) -> Settings:
        if self.is_production and self.session_secret.strip() in ("", DEFAULT_SESSION_SECRET):
            raise ValueError("APP_SESSION_SECRET must be set to a non-default value in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "projecthub.db"
        return f"sqlite:///{db_path}"

    def resolved_access_config_path(self) -> Path:
        if self.access_config_path:
            return Path(self.access_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "access_control.yaml"

    def resolved_upload_root(self) -> Path:
        if self.upload_root:
            return Path(self.upload_root)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "uploads"


@lru_cache
def get_settings() -> Settings:
    return Settings()
