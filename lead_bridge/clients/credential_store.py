"""SQLite-backed store holding one CRM integration record per tenant domain."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

from lead_bridge.core.errors import (
    CredentialAlreadyExistsError,
    CredentialNotFoundError,
    PersistenceError,
)
from lead_bridge.models.credential import CredentialRecord, TokenSet

if TYPE_CHECKING:
    from lead_bridge.services.token_cipher import TokenCipherService

_COLUMNS = (
    "referer, token_type, access_token_encrypted, refresh_token_encrypted, "
    "expires_in, created_at, updated_at"
)


class SQLiteCredentialStore:
    """Persist integration credentials keyed by referer, with tokens encrypted at rest.

    Every operation opens its own connection and closes it on the way out,
    whatever the outcome. Blocking SQLite calls run in a worker thread.
    """

    def __init__(
        self,
        db_path: str,
        *,
        cipher: TokenCipherService,
        timeout_seconds: float = 5.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self._db_path = Path(db_path)
        self._cipher = cipher
        self._timeout = timeout_seconds
        self._logger = logger or logging.getLogger(__name__)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._session() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS integrations (
                    referer TEXT PRIMARY KEY,
                    token_type TEXT NOT NULL,
                    access_token_encrypted TEXT NOT NULL,
                    refresh_token_encrypted TEXT NOT NULL,
                    expires_in INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        try:
            with closing(
                sqlite3.connect(self._db_path, timeout=self._timeout, check_same_thread=False)
            ) as conn:
                conn.row_factory = sqlite3.Row
                with conn:
                    yield conn
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as exc:
            self._logger.error("Credential store operation failed: %s", exc)
            raise PersistenceError(f"Credential store operation failed: {exc}") from exc

    def _to_row(self, record: CredentialRecord) -> tuple:
        return (
            record.referer,
            record.tokens.token_type,
            self._cipher.encrypt(record.tokens.access_token),
            self._cipher.encrypt(record.tokens.refresh_token),
            record.tokens.expires_in,
            record.created_at.isoformat(),
            record.updated_at.isoformat(),
        )

    def _from_row(self, row: sqlite3.Row) -> CredentialRecord:
        try:
            access_token = self._cipher.decrypt(row["access_token_encrypted"])
            refresh_token = self._cipher.decrypt(row["refresh_token_encrypted"])
        except ValueError as exc:
            raise PersistenceError(
                f"Stored tokens for '{row['referer']}' cannot be decrypted."
            ) from exc
        return CredentialRecord(
            referer=row["referer"],
            tokens=TokenSet(
                token_type=row["token_type"],
                access_token=access_token,
                refresh_token=refresh_token,
                expires_in=row["expires_in"],
            ),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _insert(self, record: CredentialRecord) -> None:
        try:
            with self._session() as conn:
                conn.execute(
                    f"INSERT INTO integrations ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    self._to_row(record),
                )
        except sqlite3.IntegrityError as exc:
            self._logger.info("Integration with referer '%s' already exists", record.referer)
            raise CredentialAlreadyExistsError(record.referer) from exc
        self._logger.info("Integration with referer '%s' added", record.referer)

    def _replace(self, record: CredentialRecord) -> None:
        updated_at = datetime.now(timezone.utc)
        row = self._to_row(record.model_copy(update={"updated_at": updated_at}))
        with self._session() as conn:
            existed = conn.execute(
                "SELECT 1 FROM integrations WHERE referer = ?", (record.referer,)
            ).fetchone()
            conn.execute(
                f"""
                INSERT INTO integrations ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(referer) DO UPDATE SET
                    token_type = excluded.token_type,
                    access_token_encrypted = excluded.access_token_encrypted,
                    refresh_token_encrypted = excluded.refresh_token_encrypted,
                    expires_in = excluded.expires_in,
                    updated_at = excluded.updated_at
                """,
                row,
            )
        action = "replaced" if existed else "added"
        self._logger.info("Integration with referer '%s' %s", record.referer, action)

    def _find_any(self) -> CredentialRecord:
        with self._session() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM integrations ORDER BY created_at, referer LIMIT 2"
            ).fetchall()
        if not rows:
            self._logger.info("No integration stored")
            raise CredentialNotFoundError("No integration has been authorized yet.")
        if len(rows) > 1:
            self._logger.warning(
                "Several integrations stored; using the earliest one (%s)", rows[0]["referer"]
            )
        return self._from_row(rows[0])

    def _get(self, referer: str) -> CredentialRecord:
        with self._session() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM integrations WHERE referer = ?", (referer,)
            ).fetchone()
        if row is None:
            raise CredentialNotFoundError(f"No integration stored for referer '{referer}'.")
        return self._from_row(row)

    async def insert(self, record: CredentialRecord) -> None:
        """Store a new integration; raises if the referer is already present."""
        await asyncio.to_thread(self._insert, record)

    async def replace(self, record: CredentialRecord) -> None:
        """Create or overwrite the integration stored for ``record.referer``."""
        await asyncio.to_thread(self._replace, record)

    async def find_any(self) -> CredentialRecord:
        """Return the earliest stored integration."""
        return await asyncio.to_thread(self._find_any)

    async def get(self, referer: str) -> CredentialRecord:
        return await asyncio.to_thread(self._get, referer)


__all__ = ["SQLiteCredentialStore"]
