"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the CRM client and the
credential store share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class CRMSettings(BaseSettings):
    """Configuration required for talking to the CRM's OAuth and REST API."""

    client_id: str = Field(..., validation_alias="CRM_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="CRM_CLIENT_SECRET")
    redirect_uri: str = Field(
        ...,
        validation_alias="CRM_REDIRECT_URI",
        description="Must match the redirect URI registered for the integration.",
    )
    request_timeout_seconds: float = Field(5.0, validation_alias="CRM_REQUEST_TIMEOUT")
    lead_name: str = Field(
        "",
        validation_alias="CRM_LEAD_NAME",
        description="Name given to leads created for resolved contacts.",
    )

    @field_validator("request_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("CRM request timeout must be positive.")
        return value


class StoreSettings(BaseSettings):
    """Settings for the SQLite credential store."""

    db_path: str = Field("data/credentials.db", validation_alias="CREDENTIALS_DB_PATH")
    timeout_seconds: float = Field(5.0, validation_alias="CREDENTIALS_DB_TIMEOUT")


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    host: str = Field("0.0.0.0", validation_alias="HOST")
    port: int = Field(3000, validation_alias="PORT")
    tenant_mode: Literal["single", "referer"] = Field(
        "single",
        validation_alias="TENANT_MODE",
        description=(
            "'single' resolves contacts against the only stored integration; "
            "'referer' requires the request to name its tenant domain."
        ),
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    crm: CRMSettings = Field(default_factory=CRMSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)

    @field_validator("tenant_mode", mode="before")
    @classmethod
    def _normalize_tenant_mode(cls, value: str) -> str:
        """Accept TENANT_MODE values regardless of case or padding."""
        if isinstance(value, str):
            return value.strip().lower()
        return value


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "CRMSettings",
    "SecuritySettings",
    "StoreSettings",
    "get_settings",
]
