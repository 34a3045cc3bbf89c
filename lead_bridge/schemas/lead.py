"""Schemas for the bridge endpoint and the contact-resolution workflow."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class LeadRequest(BaseModel):
    """Contact details received from the website form."""

    phone: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)


class ContactResolution(BaseModel):
    """Outcome of resolving a lead request against the CRM."""

    referer: str
    contact_id: int | None
    action: Literal["updated", "created"]
    lead_attached: bool


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str


__all__ = ["ContactResolution", "ErrorResponse", "LeadRequest", "MessageResponse"]
