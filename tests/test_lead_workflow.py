from __future__ import annotations

import pytest

from conftest import make_record
from fakes import FakeCRMClient, FakeCredentialStore
from lead_bridge.core.errors import (
    CredentialAlreadyExistsError,
    CredentialNotFoundError,
    RemoteError,
)
from lead_bridge.models.credential import TokenSet
from lead_bridge.schemas import LeadRequest
from lead_bridge.services.credentials import CredentialService
from lead_bridge.services.lead_workflow import LeadWorkflowService

pytestmark = pytest.mark.anyio

LEAD = LeadRequest(phone="555-1234", email="a@b.com", name="Jane")


def _workflow(crm: FakeCRMClient, store: FakeCredentialStore) -> LeadWorkflowService:
    return LeadWorkflowService(crm, store, CredentialService(store, crm))


async def test_email_match_is_preferred_over_phone_match() -> None:
    crm = FakeCRMClient(phone_match=11, email_match=22)
    workflow = _workflow(crm, FakeCredentialStore(make_record()))

    resolution = await workflow.resolve_contact(LEAD)

    assert resolution.action == "updated"
    assert resolution.contact_id == 22
    assert crm.named("update_contact") == [
        ("update_contact", 22, "Jane", "555-1234", "a@b.com")
    ]
    assert crm.named("attach_lead") == [("attach_lead", "example.com", 22)]
    assert crm.named("create_contact") == []


async def test_both_searches_run_before_deciding() -> None:
    crm = FakeCRMClient(phone_match=11)
    workflow = _workflow(crm, FakeCredentialStore(make_record()))

    resolution = await workflow.resolve_contact(LEAD)

    assert [call[2] for call in crm.named("search_contact")] == ["phone", "email"]
    assert resolution.contact_id == 11
    assert crm.named("attach_lead") == [("attach_lead", "example.com", 11)]


async def test_no_match_creates_contact_once_and_attaches_lead() -> None:
    crm = FakeCRMClient(created_id=501)
    workflow = _workflow(crm, FakeCredentialStore(make_record()))

    resolution = await workflow.resolve_contact(LEAD)

    assert len(crm.named("create_contact")) == 1
    assert crm.named("attach_lead") == [("attach_lead", "example.com", 501)]
    assert resolution.action == "created"
    assert resolution.lead_attached is True


async def test_created_contact_without_id_gets_no_lead() -> None:
    crm = FakeCRMClient(created_id=None)
    workflow = _workflow(crm, FakeCredentialStore(make_record()))

    resolution = await workflow.resolve_contact(LEAD)

    assert len(crm.named("create_contact")) == 1
    assert crm.named("attach_lead") == []
    assert resolution.lead_attached is False


async def test_expired_token_is_refreshed_before_searching() -> None:
    crm = FakeCRMClient(email_match=22)
    store = FakeCredentialStore(make_record(access_token="expired-opaque-token"))
    workflow = _workflow(crm, store)

    await workflow.resolve_contact(LEAD)

    assert crm.calls[0][0] == "refresh_token"
    searched_with = {call[4] for call in crm.named("search_contact")}
    assert searched_with == {store.records["example.com"].tokens.access_token}
    assert "expired-opaque-token" not in searched_with


async def test_missing_credentials_raise_not_found() -> None:
    crm = FakeCRMClient()
    workflow = _workflow(crm, FakeCredentialStore())

    with pytest.raises(CredentialNotFoundError):
        await workflow.resolve_contact(LEAD)

    assert crm.calls == []


async def test_search_failure_stops_the_workflow() -> None:
    crm = FakeCRMClient(fail_on="search_contact")
    workflow = _workflow(crm, FakeCredentialStore(make_record()))

    with pytest.raises(RemoteError):
        await workflow.resolve_contact(LEAD)

    assert crm.named("create_contact") == []
    assert crm.named("attach_lead") == []


async def test_complete_authorization_stores_exchanged_tokens() -> None:
    tokens = TokenSet(
        token_type="Bearer", access_token="tok", refresh_token="ref", expires_in=3600
    )
    store = FakeCredentialStore()
    workflow = _workflow(FakeCRMClient(exchange_tokens=tokens), store)

    record = await workflow.complete_authorization(code="abc123", referer="example.com")

    assert record.referer == "example.com"
    assert store.records["example.com"].tokens == tokens


async def test_complete_authorization_refuses_second_insert() -> None:
    tokens = TokenSet(
        token_type="Bearer", access_token="tok", refresh_token="ref", expires_in=3600
    )
    store = FakeCredentialStore(make_record("example.com"))
    workflow = _workflow(FakeCRMClient(exchange_tokens=tokens), store)

    with pytest.raises(CredentialAlreadyExistsError):
        await workflow.complete_authorization(code="abc123", referer="example.com")

    assert store.records["example.com"].tokens != tokens
