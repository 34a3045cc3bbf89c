from __future__ import annotations

import asyncio

import pytest

from conftest import make_access_token, make_record
from fakes import FakeCRMClient, FakeCredentialStore
from lead_bridge.core.errors import (
    CredentialNotFoundError,
    InvalidRequestError,
    RemoteError,
)
from lead_bridge.services.credentials import CredentialService


@pytest.mark.asyncio
async def test_valid_token_is_used_without_refresh() -> None:
    record = make_record(access_token=make_access_token(3000), expires_in=3600)
    store, crm = FakeCredentialStore(record), FakeCRMClient()
    service = CredentialService(store, crm)

    result = await service.ensure_fresh(record)

    assert result is record
    assert crm.named("refresh_token") == []
    assert store.replaced == []


@pytest.mark.asyncio
async def test_refresh_persists_new_token_set() -> None:
    record = make_record(access_token=make_access_token(60), expires_in=3600)
    store, crm = FakeCredentialStore(record), FakeCRMClient()
    service = CredentialService(store, crm)

    result = await service.ensure_fresh(record)

    assert crm.named("refresh_token") == [("refresh_token", "refresh-1", "example.com")]
    assert result.tokens.refresh_token == "rotated-1"
    assert result.tokens.access_token != record.tokens.access_token
    stored = await store.get("example.com")
    assert stored.tokens == result.tokens
    assert stored.created_at == record.created_at


@pytest.mark.asyncio
async def test_concurrent_requests_refresh_once() -> None:
    record = make_record(access_token="not-a-jwt")
    store, crm = FakeCredentialStore(record), FakeCRMClient()
    service = CredentialService(store, crm)

    results = await asyncio.gather(*(service.ensure_fresh(record) for _ in range(3)))

    assert len(crm.named("refresh_token")) == 1
    assert len(store.replaced) == 1
    assert {r.tokens.refresh_token for r in results} == {"rotated-1"}


@pytest.mark.asyncio
async def test_refresh_failure_propagates_and_keeps_record() -> None:
    record = make_record(access_token="not-a-jwt")
    store, crm = FakeCredentialStore(record), FakeCRMClient(fail_on="refresh_token")
    service = CredentialService(store, crm)

    with pytest.raises(RemoteError):
        await service.ensure_fresh(record)

    assert store.replaced == []
    assert (await store.get("example.com")).tokens.access_token == "not-a-jwt"


@pytest.mark.asyncio
async def test_single_tenant_mode_loads_any_record() -> None:
    store = FakeCredentialStore(make_record("crm.example.com"))
    service = CredentialService(store, FakeCRMClient())

    record = await service.load(referer="ignored.example.com")

    assert record.referer == "crm.example.com"


@pytest.mark.asyncio
async def test_referer_tenant_mode_requires_and_uses_referer() -> None:
    store = FakeCredentialStore(make_record("a.example.com"), make_record("b.example.com"))
    service = CredentialService(store, FakeCRMClient(), tenant_mode="referer")

    assert (await service.load("b.example.com")).referer == "b.example.com"
    with pytest.raises(InvalidRequestError):
        await service.load(None)
    with pytest.raises(CredentialNotFoundError):
        await service.load("c.example.com")
