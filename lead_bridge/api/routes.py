"""
FastAPI routes for the CRM lead bridge.
"""

from __future__ import annotations

import logging
import re
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from lead_bridge.core.errors import (
    CredentialAlreadyExistsError,
    InvalidRequestError,
    LeadBridgeError,
)
from lead_bridge.dependencies import get_app_settings, get_lead_workflow_service
from lead_bridge.schemas import ErrorResponse, LeadRequest, MessageResponse

router = APIRouter()
logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "GET request successfully processed"
REFERER_ERROR = 'Parameter "referer" is missing or invalid.'

_HOSTNAME_LABEL = r"[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
_HOSTNAME_RE = re.compile(rf"{_HOSTNAME_LABEL}(?:\.{_HOSTNAME_LABEL})*")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content=ErrorResponse(error=message).model_dump()
    )


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok", "environment": settings.environment}


@router.get(
    "/",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def handle_bridge_request(
    workflow: Annotated[Any, Depends(get_lead_workflow_service)],
    code: str | None = Query(default=None, description="OAuth authorization code."),
    referer: str | None = Query(default=None, description="Tenant CRM domain."),
    phone: str | None = Query(default=None, description="Contact phone number."),
    email: str | None = Query(default=None, description="Contact email address."),
    name: str | None = Query(default=None, description="Contact display name."),
) -> Any:
    """
    Complete an OAuth authorization when ``code`` is present, otherwise resolve
    the contact described by ``phone``, ``email`` and ``name``.

    Only the authorization path answers 409, when the referer is already stored.
    """
    code, referer = _clean(code), _clean(referer)
    phone, email, name = _clean(phone), _clean(email), _clean(name)

    if code:
        return await _handle_code_request(workflow, code=code, referer=referer)
    if phone or email or name:
        return await _handle_contact_request(
            workflow, phone=phone, email=email, name=name, referer=referer
        )
    return _error(
        HTTPStatus.BAD_REQUEST,
        "Provide either code and referer, or phone, email and name.",
    )


async def _handle_code_request(
    workflow: Any, *, code: str, referer: str | None
) -> JSONResponse | MessageResponse:
    if not referer or not _HOSTNAME_RE.fullmatch(referer):
        logger.error("Authorization code received without a valid referer: %r", referer)
        return _error(HTTPStatus.BAD_REQUEST, REFERER_ERROR)

    try:
        await workflow.complete_authorization(code=code, referer=referer)
    except CredentialAlreadyExistsError as exc:
        logger.warning("Rejected re-authorization: %s", exc)
        return _error(exc.status_code, str(exc))
    except LeadBridgeError:
        logger.exception("Error processing authorization code for %s", referer)
        return _error(
            HTTPStatus.INTERNAL_SERVER_ERROR, "An error occurred while processing code."
        )

    return MessageResponse(message=SUCCESS_MESSAGE)


async def _handle_contact_request(
    workflow: Any,
    *,
    phone: str | None,
    email: str | None,
    name: str | None,
    referer: str | None,
) -> JSONResponse | MessageResponse:
    if not phone or not email or not name:
        return _error(
            HTTPStatus.BAD_REQUEST,
            "Invalid parameters: phone, email, and name must be provided.",
        )

    logger.info("Received contact parameters")
    try:
        resolution = await workflow.resolve_contact(
            LeadRequest(phone=phone, email=email, name=name), referer=referer
        )
    except InvalidRequestError as exc:
        return _error(exc.status_code, str(exc))
    except LeadBridgeError:
        logger.exception("Error processing contact parameters")
        return _error(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            "An error occurred while processing parameters.",
        )

    logger.info(
        "Contact %s %s on %s (lead attached: %s)",
        resolution.contact_id,
        resolution.action,
        resolution.referer,
        resolution.lead_attached,
    )
    return MessageResponse(message=SUCCESS_MESSAGE)


__all__ = ["router"]
