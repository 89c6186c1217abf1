"""Adapter configuration via pydantic-settings + .env."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Names fixed by the SAP platform; read verbatim, without the settings prefix.
SERVICE_KEY_ENV_NAME = "AICORE_SERVICE_KEY"
BAS_URL_ENV_NAME = "H2O_URL"

DEFAULT_CREDENTIALS_PATH = Path.home() / ".aicore" / "service-key.json"


class Settings(BaseSettings):
    """Tunables, loaded from ``SAP_AI_CORE_*`` environment variables or .env."""

    model_config = SettingsConfigDict(
        env_prefix="SAP_AI_CORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    model: str = "anthropic--claude-3.5-sonnet"
    model_version: str | None = None
    credentials_path: Path = DEFAULT_CREDENTIALS_PATH
    resource_group: str = "default"
    use_orchestration: bool = True

    request_timeout_s: float = 120.0
    max_tokens: int | None = None

    max_attempts: int = 3
    retry_min_wait_s: float = 1.0
    retry_max_wait_s: float = 10.0


def get_settings() -> Settings:
    return Settings()
