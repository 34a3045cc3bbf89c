"""Expose constructed client wrappers."""

from .credential_store import SQLiteCredentialStore
from .crm import ContactField, KommoClient

__all__ = [
    "ContactField",
    "KommoClient",
    "SQLiteCredentialStore",
]
