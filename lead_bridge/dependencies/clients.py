"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from lead_bridge.clients import KommoClient, SQLiteCredentialStore
from lead_bridge.core.config import get_settings
from lead_bridge.services import (
    CredentialService,
    LeadWorkflowService,
    TokenCipherService,
)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = get_settings()
    secret = settings.security.token_encryption_secret or settings.crm.client_secret
    return TokenCipherService(secret=secret)


@lru_cache()
def get_crm_client() -> KommoClient:
    """Create a singleton CRM client."""
    return KommoClient(get_settings().crm)


@lru_cache()
def get_credential_store() -> SQLiteCredentialStore:
    """Provide the shared SQLite credential store."""
    settings = get_settings()
    return SQLiteCredentialStore(
        settings.store.db_path,
        cipher=get_token_cipher_service(),
        timeout_seconds=settings.store.timeout_seconds,
    )


@lru_cache()
def get_credential_service() -> CredentialService:
    """Provide the process-wide credential service; it owns the refresh locks."""
    return CredentialService(
        store=get_credential_store(),
        crm_client=get_crm_client(),
        tenant_mode=get_settings().tenant_mode,
    )


def get_lead_workflow_service() -> LeadWorkflowService:
    """Build the workflow service from the shared clients."""
    return LeadWorkflowService(
        crm_client=get_crm_client(),
        store=get_credential_store(),
        credential_service=get_credential_service(),
    )


__all__ = [
    "get_credential_service",
    "get_credential_store",
    "get_crm_client",
    "get_lead_workflow_service",
    "get_token_cipher_service",
]
