"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_credential_service,
    get_credential_store,
    get_crm_client,
    get_lead_workflow_service,
    get_token_cipher_service,
)
from .config import get_app_settings

__all__ = [
    "get_app_settings",
    "get_credential_service",
    "get_credential_store",
    "get_crm_client",
    "get_lead_workflow_service",
    "get_token_cipher_service",
]
