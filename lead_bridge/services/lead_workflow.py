"""
Business logic behind the bridge endpoint.

Two flows share the service: completing the OAuth authorization for a tenant,
and turning a website lead into an updated or new CRM contact with a lead
attached to it.
"""

from __future__ import annotations

import logging
from typing import Optional

from lead_bridge.clients.credential_store import SQLiteCredentialStore
from lead_bridge.clients.crm import ContactField, KommoClient
from lead_bridge.models.credential import CredentialRecord
from lead_bridge.schemas.lead import ContactResolution, LeadRequest
from lead_bridge.services.credentials import CredentialService


class LeadWorkflowService:
    """Coordinate the credential store and CRM client for each request."""

    def __init__(
        self,
        crm_client: KommoClient,
        store: SQLiteCredentialStore,
        credential_service: CredentialService,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._crm = crm_client
        self._store = store
        self._credentials = credential_service
        self._logger = logger or logging.getLogger(__name__)

    async def complete_authorization(self, *, code: str, referer: str) -> CredentialRecord:
        """Exchange ``code`` for tokens and persist them as the tenant's integration."""
        self._logger.info("Authorization code received for %s", referer)
        tokens = await self._crm.exchange_code(code, referer)
        record = CredentialRecord(referer=referer, tokens=tokens)
        await self._store.insert(record)
        return record

    async def resolve_contact(
        self, request: LeadRequest, *, referer: Optional[str] = None
    ) -> ContactResolution:
        """Update the matching contact, or create one, and attach a new lead."""
        record = await self._credentials.load(referer)
        record = await self._credentials.ensure_fresh(record)
        tenant, tokens = record.referer, record.tokens

        id_by_phone = await self._crm.search_contact(
            request.phone, ContactField.PHONE, tenant, tokens
        )
        id_by_email = await self._crm.search_contact(
            request.email, ContactField.EMAIL, tenant, tokens
        )

        existing_id = id_by_email if id_by_email is not None else id_by_phone
        if existing_id is not None:
            await self._crm.update_contact(
                tenant, existing_id, request.name, request.phone, request.email, tokens
            )
            await self._crm.attach_lead(tenant, existing_id, tokens)
            return ContactResolution(
                referer=tenant, contact_id=existing_id, action="updated", lead_attached=True
            )

        self._logger.info("Contact not found on %s; creating one", tenant)
        new_id = await self._crm.create_contact(
            tenant, request.name, request.phone, request.email, tokens
        )
        if new_id is None:
            return ContactResolution(
                referer=tenant, contact_id=None, action="created", lead_attached=False
            )
        await self._crm.attach_lead(tenant, new_id, tokens)
        return ContactResolution(
            referer=tenant, contact_id=new_id, action="created", lead_attached=True
        )


__all__ = ["LeadWorkflowService"]
