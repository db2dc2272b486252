from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Service settings.

    Notes:
    - Defaults are local and deterministic (SQLite file next to the repo).
    - Everything can be overridden with ``FIELDGUARD_*`` environment variables.
    """

    model_config = SettingsConfigDict(env_prefix="FIELDGUARD_", extra="ignore")

    db_url: str | None = None
    schema_config_path: str | None = None
    log_level: str = "INFO"

    # Required. Startup refuses to run without it; see main.create_app.
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    bearer_prefix: str = "Bearer"

    # Filtering serializer hardening
    serialize_max_depth: int = 16
    serialize_timeout_seconds: float | None = None

    reconcile_on_startup: bool = True

    # Role types allowed to manage attribute permissions.
    admin_role_types: list[str] = ["admin"]

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "fieldguard.db"
        return f"sqlite+aiosqlite:///{db_path}"

    def resolved_schema_config_path(self) -> Path:
        if self.schema_config_path:
            return Path(self.schema_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "content_schema.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
