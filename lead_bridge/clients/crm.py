"""
Kommo (amoCRM) API v4 client.

Covers the OAuth token endpoint plus the handful of contact and lead calls the
bridge needs. Every failure is raised as :class:`RemoteError`; ``None`` is only
returned where the CRM answered successfully without a match.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from lead_bridge.core.config import CRMSettings
from lead_bridge.core.errors import RemoteError
from lead_bridge.models.credential import TokenSet


class ContactField(str, Enum):
    """Contact attributes the CRM search endpoint can filter on."""

    PHONE = "phone"
    EMAIL = "email"
    NAME = "name"


def _contact_payload(name: str, phone: str, email: str) -> Dict[str, Any]:
    return {
        "name": name,
        "custom_fields_values": [
            {"field_code": "PHONE", "values": [{"value": phone}]},
            {"field_code": "EMAIL", "values": [{"value": email}]},
        ],
    }


def _first_embedded_contact_id(payload: Any) -> Optional[int]:
    if not isinstance(payload, dict):
        raise RemoteError("CRM returned a non-object contacts payload.")
    embedded = payload.get("_embedded")
    contacts = embedded.get("contacts") if isinstance(embedded, dict) else None
    if not isinstance(contacts, list) or not contacts:
        return None
    first = contacts[0]
    contact_id = first.get("id") if isinstance(first, dict) else None
    if isinstance(contact_id, bool) or not isinstance(contact_id, (int, str)):
        raise RemoteError("CRM returned a contact without a usable id.")
    try:
        return int(contact_id)
    except ValueError as exc:
        raise RemoteError(f"CRM returned a malformed contact id: {contact_id!r}") from exc


class KommoClient:
    """Talk to a tenant's CRM account on behalf of the integration."""

    TOKEN_PATH = "/oauth2/access_token"
    CONTACTS_PATH = "/api/v4/contacts"
    LEADS_PATH = "/api/v4/leads"

    def __init__(
        self,
        settings: CRMSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._logger = logger or logging.getLogger(__name__)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.request_timeout_seconds,
            transport=self._transport,
        )

    @staticmethod
    def token_url(referer: str) -> str:
        return f"https://www.{referer}{KommoClient.TOKEN_PATH}"

    @staticmethod
    def api_url(referer: str, path: str) -> str:
        return f"https://{referer}{path}"

    async def _send(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: Dict[str, str] | None = None,
        headers: Dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(
                    method, url, json=json, params=params, headers=headers
                )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self._logger.error("Error sending %s request to %s: %s", method, url, exc)
            raise RemoteError(f"{method} {url} failed: {exc}") from exc

        if not response.is_success:
            self._logger.error(
                "%s %s returned %s: %s", method, url, response.status_code, response.text[:500]
            )
            raise RemoteError(
                f"{method} {url} returned HTTP {response.status_code}",
                http_status=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(
                f"CRM returned a non-JSON body (HTTP {response.status_code}).",
                http_status=response.status_code,
            ) from exc

    @staticmethod
    def _auth_headers(tokens: TokenSet) -> Dict[str, str]:
        return {"Authorization": tokens.authorization_header}

    async def _request_tokens(
        self, referer: str, grant: Dict[str, str], *, fallback_refresh_token: str | None = None
    ) -> TokenSet:
        payload = {
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "redirect_uri": self._settings.redirect_uri,
            **grant,
        }
        response = await self._send("POST", self.token_url(referer), json=payload)
        token_payload = self._json(response)
        if not isinstance(token_payload, dict):
            raise RemoteError("Token endpoint returned a non-object payload.")
        if fallback_refresh_token and not token_payload.get("refresh_token"):
            token_payload = {**token_payload, "refresh_token": fallback_refresh_token}
        try:
            return TokenSet.model_validate(token_payload)
        except ValidationError as exc:
            raise RemoteError(f"Incomplete token payload returned by {referer}.") from exc

    async def exchange_code(self, code: str, referer: str) -> TokenSet:
        """Exchange an authorization code for the tenant's first token set."""
        tokens = await self._request_tokens(
            referer, {"grant_type": "authorization_code", "code": code}
        )
        self._logger.info("Authorization code exchanged for %s", referer)
        return tokens

    async def refresh_token(self, refresh_token: str, referer: str) -> TokenSet:
        """Trade a refresh token for a new token set.

        The CRM rotates refresh tokens; if a response ever omits one, the
        previous token is carried over so the record stays usable.
        """
        tokens = await self._request_tokens(
            referer,
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            fallback_refresh_token=refresh_token,
        )
        self._logger.info("Access token refreshed for %s", referer)
        return tokens

    async def search_contact(
        self, query: str, field: ContactField, referer: str, tokens: TokenSet
    ) -> Optional[int]:
        """Return the id of the first contact matching ``query`` on ``field``."""
        response = await self._send(
            "GET",
            self.api_url(referer, self.CONTACTS_PATH),
            params={"query": query, "field": ContactField(field).value},
            headers=self._auth_headers(tokens),
        )
        # The CRM answers an empty search with 204 and no body.
        if response.status_code == httpx.codes.NO_CONTENT or not response.content:
            return None
        return _first_embedded_contact_id(self._json(response))

    async def update_contact(
        self,
        referer: str,
        contact_id: int,
        name: str,
        phone: str,
        email: str,
        tokens: TokenSet,
    ) -> None:
        await self._send(
            "PATCH",
            self.api_url(referer, f"{self.CONTACTS_PATH}/{contact_id}"),
            json=_contact_payload(name, phone, email),
            headers=self._auth_headers(tokens),
        )
        self._logger.info("Contact %s updated", contact_id)

    async def create_contact(
        self, referer: str, name: str, phone: str, email: str, tokens: TokenSet
    ) -> Optional[int]:
        """Create a contact and return its id, or ``None`` if the CRM echoed none."""
        payload: List[Dict[str, Any]] = [_contact_payload(name, phone, email)]
        response = await self._send(
            "POST",
            self.api_url(referer, self.CONTACTS_PATH),
            json=payload,
            headers=self._auth_headers(tokens),
        )
        contact_id = _first_embedded_contact_id(self._json(response))
        if contact_id is None:
            self._logger.warning("Contact created on %s but no id was returned", referer)
        else:
            self._logger.info("New contact %s created", contact_id)
        return contact_id

    async def attach_lead(self, referer: str, contact_id: int, tokens: TokenSet) -> None:
        payload = [
            {
                "name": self._settings.lead_name,
                "_embedded": {"contacts": [{"id": contact_id}]},
            }
        ]
        await self._send(
            "POST",
            self.api_url(referer, self.LEADS_PATH),
            json=payload,
            headers=self._auth_headers(tokens),
        )
        self._logger.info("New lead created for contact %s", contact_id)


__all__ = ["ContactField", "KommoClient"]
