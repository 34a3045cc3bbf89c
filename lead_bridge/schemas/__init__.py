"""Public schema exports."""

from .lead import ContactResolution, ErrorResponse, LeadRequest, MessageResponse

__all__ = [
    "ContactResolution",
    "ErrorResponse",
    "LeadRequest",
    "MessageResponse",
]
