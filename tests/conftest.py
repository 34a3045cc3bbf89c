"""Pytest configuration shared across the suite."""

from __future__ import annotations

import sqlite3
import time
from contextlib import closing

import pytest
from jose import jwt

try:
    from . import _bootstrap  # noqa: F401
except ImportError:  # pragma: no cover - tests/ is not a package
    import _bootstrap  # type: ignore # noqa: F401

from lead_bridge.models.credential import CredentialRecord, TokenSet
from lead_bridge.services.token_cipher import TokenCipherService


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


def count_integrations(db_path) -> int:
    """Count stored integration rows straight from the SQLite file."""
    with closing(sqlite3.connect(db_path)) as conn:
        return conn.execute("SELECT COUNT(*) FROM integrations").fetchone()[0]


def make_access_token(expires_in_seconds: float, *, now: float | None = None) -> str:
    """Build an HS256 JWT whose ``exp`` lies ``expires_in_seconds`` from ``now``."""
    issued = time.time() if now is None else now
    return jwt.encode({"exp": int(issued + expires_in_seconds)}, "crm-secret", algorithm="HS256")


def make_record(
    referer: str = "example.com",
    *,
    access_token: str | None = None,
    refresh_token: str = "refresh-1",
    expires_in: int = 3600,
) -> CredentialRecord:
    return CredentialRecord(
        referer=referer,
        tokens=TokenSet(
            token_type="Bearer",
            access_token=access_token or make_access_token(expires_in),
            refresh_token=refresh_token,
            expires_in=expires_in,
        ),
    )


@pytest.fixture
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="store-secret")
