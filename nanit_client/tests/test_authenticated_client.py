import asyncio

import httpx
import pytest

from nanit_client.authenticated import AuthenticatedClient
from nanit_client.errors import NotAuthenticated, SessionExpired, Unauthorized, UpstreamError, requires_login
from nanit_client.models import Authenticated
from nanit_client.session_store import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY


class FakeVendor:
    def __init__(self, refresh_result=None, refresh_error=None):
        self.refresh_result = refresh_result
        self.refresh_error = refresh_error
        self.refresh_calls = []

    async def refresh(self, access_token, refresh_token):
        self.refresh_calls.append((access_token, refresh_token))
        await asyncio.sleep(0)
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.refresh_result


class ScriptedCall:
    """Awaitable vendor call that plays back one outcome per invocation."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.tokens = []

    async def __call__(self, token):
        self.tokens.append(token)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _signed_in(store, access="old", refresh="r1"):
    store.set_access_token(access)
    if refresh:
        store.set_refresh_token(refresh)
    return store


def test_no_token_fails_without_network(store):
    vendor = FakeVendor()
    call = ScriptedCall({"unused": True})

    with pytest.raises(NotAuthenticated):
        asyncio.run(AuthenticatedClient(store, vendor).request(call))

    assert call.tokens == []
    assert vendor.refresh_calls == []


def test_success_is_returned_unmodified(store):
    _signed_in(store)
    vendor = FakeVendor()
    body = {"babies": [{"uid": "b1"}]}
    call = ScriptedCall(body)

    result = asyncio.run(AuthenticatedClient(store, vendor).request(call))

    assert result is body
    assert call.tokens == ["old"]
    assert vendor.refresh_calls == []


def test_non_auth_error_propagates_without_refresh(store):
    _signed_in(store)
    vendor = FakeVendor()
    error = UpstreamError("Failed to fetch babies", 500)

    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(AuthenticatedClient(store, vendor).request(ScriptedCall(error)))

    assert excinfo.value is error
    assert not requires_login(excinfo.value)
    assert vendor.refresh_calls == []
    assert store.get_access_token() == "old"


def test_401_refreshes_once_and_retries_with_new_token(store):
    _signed_in(store)
    vendor = FakeVendor(refresh_result=Authenticated(access_token="new"))
    call = ScriptedCall(Unauthorized(), "ok")

    result = asyncio.run(AuthenticatedClient(store, vendor).request(call))

    assert result == "ok"
    assert vendor.refresh_calls == [("old", "r1")]
    assert call.tokens == ["old", "new"]
    assert store.get_access_token() == "new"
    assert store.get_refresh_token() == "r1"


def test_401_after_refresh_clears_session(store, storage):
    _signed_in(store)
    vendor = FakeVendor(refresh_result=Authenticated(access_token="new", refresh_token="r2"))
    call = ScriptedCall(Unauthorized(), Unauthorized())

    with pytest.raises(SessionExpired) as excinfo:
        asyncio.run(AuthenticatedClient(store, vendor).request(call))

    assert requires_login(excinfo.value)
    assert len(vendor.refresh_calls) == 1
    assert call.tokens == ["old", "new"]
    assert store.get_access_token() is None
    assert store.get_refresh_token() is None
    assert storage.get(ACCESS_TOKEN_KEY) is None


def test_401_without_refresh_token_expires_session(store):
    _signed_in(store, refresh=None)
    vendor = FakeVendor()

    with pytest.raises(SessionExpired):
        asyncio.run(AuthenticatedClient(store, vendor).request(ScriptedCall(Unauthorized())))

    assert vendor.refresh_calls == []
    assert store.get_access_token() is None


def test_scenario_refresh_then_retry_against_vendor(store, storage, make_vendor):
    _signed_in(store, "old", "r1")

    def upstream(request):
        if request.url.path == "/tokens/refresh":
            return httpx.Response(200, json={"access_token": "new", "refresh_token": "r2"})
        if request.headers["authorization"] == "token old":
            return httpx.Response(401, json={"message": "token expired"})
        return httpx.Response(200, json={"babies": [{"uid": "b1", "first_name": "Ada"}]})

    vendor, transport = make_vendor(upstream)

    babies = asyncio.run(AuthenticatedClient(store, vendor).get_babies())

    assert [(baby.uid, baby.first_name) for baby in babies] == [("b1", "Ada")]
    assert [r.url.path for r in transport.requests] == ["/babies", "/tokens/refresh", "/babies"]
    assert store.get_access_token() == "new"
    assert store.get_refresh_token() == "r2"
    assert storage.get(ACCESS_TOKEN_KEY) == "new"
    assert storage.get(REFRESH_TOKEN_KEY) == "r2"


def test_scenario_failed_refresh_expires_session(store, storage, make_vendor):
    _signed_in(store, "old", "r1")

    def upstream(request):
        if request.url.path == "/tokens/refresh":
            return httpx.Response(500, json={"message": "boom"})
        return httpx.Response(401, json={"message": "token expired"})

    vendor, transport = make_vendor(upstream)

    with pytest.raises(SessionExpired):
        asyncio.run(AuthenticatedClient(store, vendor).get_calendar("b1", 1, 2))

    assert [r.url.path for r in transport.requests] == ["/babies/b1/calendar", "/tokens/refresh"]
    assert store.get_access_token() is None
    assert store.get_refresh_token() is None
    assert storage.get(REFRESH_TOKEN_KEY) is None


def test_concurrent_401s_share_one_refresh(store):
    _signed_in(store)
    vendor = FakeVendor(refresh_result=Authenticated(access_token="new"))

    async def call(token):
        await asyncio.sleep(0)
        if token == "old":
            raise Unauthorized()
        return token

    async def run_both():
        client = AuthenticatedClient(store, vendor)
        return await asyncio.gather(client.request(call), client.request(call))

    results = asyncio.run(run_both())

    assert results == ["new", "new"]
    assert len(vendor.refresh_calls) == 1


def test_network_error_during_refresh_expires_session(store, storage):
    _signed_in(store)
    vendor = FakeVendor(refresh_error=UpstreamError("Could not connect to Nanit API"))
    call = ScriptedCall(Unauthorized())

    with pytest.raises(SessionExpired):
        asyncio.run(AuthenticatedClient(store, vendor).request(call))

    assert vendor.refresh_calls == [("old", "r1")]
    assert call.tokens == ["old"]
    assert store.get_access_token() is None
    assert store.get_refresh_token() is None
    assert storage.get(REFRESH_TOKEN_KEY) is None


def test_non_auth_error_on_retry_propagates_and_keeps_new_tokens(store):
    _signed_in(store)
    vendor = FakeVendor(refresh_result=Authenticated(access_token="new", refresh_token="r2"))
    error = UpstreamError("Failed to fetch calendar", 500)
    call = ScriptedCall(Unauthorized(), error)

    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(AuthenticatedClient(store, vendor).request(call))

    assert excinfo.value is error
    assert call.tokens == ["old", "new"]
    assert store.get_access_token() == "new"
    assert store.get_refresh_token() == "r2"
