"""
Domain models for CRM credential persistence.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenSet(BaseModel):
    """Token bundle returned by the CRM's OAuth token endpoint."""

    token_type: str
    access_token: str
    refresh_token: str
    expires_in: int = Field(..., gt=0, description="Token lifetime in seconds at issuance.")

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"


class CredentialRecord(BaseModel):
    """Represents the stored integration for a single tenant domain."""

    referer: str = Field(..., min_length=1, description="Tenant domain; unique key.")
    tokens: TokenSet
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def with_tokens(self, tokens: TokenSet, *, at: Optional[datetime] = None) -> "CredentialRecord":
        """Return a copy of the record carrying a new token set."""
        return self.model_copy(update={"tokens": tokens, "updated_at": at or _utcnow()})


__all__ = ["CredentialRecord", "TokenSet"]
