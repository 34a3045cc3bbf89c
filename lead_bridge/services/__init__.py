"""Service layer exports."""

from .credentials import CredentialService
from .lead_workflow import LeadWorkflowService
from .token_cipher import TokenCipherService
from .token_validity import TokenValidityChecker

__all__ = [
    "CredentialService",
    "LeadWorkflowService",
    "TokenCipherService",
    "TokenValidityChecker",
]
