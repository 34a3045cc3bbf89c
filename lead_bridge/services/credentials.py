"""
Helpers for loading stored CRM credentials and refreshing them before use.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Literal, Optional

from lead_bridge.clients.credential_store import SQLiteCredentialStore
from lead_bridge.clients.crm import KommoClient
from lead_bridge.core.errors import InvalidRequestError
from lead_bridge.models.credential import CredentialRecord
from lead_bridge.services.token_validity import TokenValidityChecker

TenantMode = Literal["single", "referer"]


class CredentialService:
    """Resolve the tenant's integration and keep its access token fresh.

    Refreshes are serialized per referer: a request that waited on the lock
    re-reads the record and reuses a token another request just refreshed,
    so rotated refresh tokens are never spent twice.
    """

    def __init__(
        self,
        store: SQLiteCredentialStore,
        crm_client: KommoClient,
        *,
        validity_checker: TokenValidityChecker | None = None,
        tenant_mode: TenantMode = "single",
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._crm = crm_client
        self._checker = validity_checker or TokenValidityChecker()
        self._tenant_mode = tenant_mode
        self._logger = logger or logging.getLogger(__name__)
        self._refresh_locks: Dict[str, asyncio.Lock] = {}

    def _refresh_lock(self, referer: str) -> asyncio.Lock:
        lock = self._refresh_locks.get(referer)
        if lock is None:
            lock = asyncio.Lock()
            self._refresh_locks[referer] = lock
        return lock

    async def load(self, referer: Optional[str] = None) -> CredentialRecord:
        """Return the integration the request should act on."""
        if self._tenant_mode == "referer":
            if not referer:
                raise InvalidRequestError('Parameter "referer" is missing or invalid.')
            return await self._store.get(referer)
        return await self._store.find_any()

    async def ensure_fresh(self, record: CredentialRecord) -> CredentialRecord:
        """Return ``record`` with a usable access token, refreshing it if needed."""
        tokens = record.tokens
        if self._checker.is_valid(tokens.expires_in, tokens.access_token):
            return record

        async with self._refresh_lock(record.referer):
            current = await self._store.get(record.referer)
            tokens = current.tokens
            if self._checker.is_valid(tokens.expires_in, tokens.access_token):
                self._logger.info("Token for %s was refreshed concurrently", record.referer)
                return current

            new_tokens = await self._crm.refresh_token(tokens.refresh_token, current.referer)
            refreshed = current.with_tokens(new_tokens)
            await self._store.replace(refreshed)
            self._logger.info("Stored refreshed token for %s", current.referer)
            return refreshed


__all__ = ["CredentialService", "TenantMode"]
