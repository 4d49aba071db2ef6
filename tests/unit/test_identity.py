from __future__ import annotations

import asyncio

import httpx
import pytest

from loan_portal.auth.capabilities import Capability
from loan_portal.auth.identity import IdentityContext, IdentityState
from loan_portal.auth.models import Role
from loan_portal.errors import AppError, NetworkError, SessionSupersededError, ValidationError
from loan_portal.webclient.SessionClient import SessionClient

BASE_URL = "http://api.test/api"


@pytest.fixture
def identity(client, store) -> IdentityContext:
    return IdentityContext(client, store)


async def test_no_token_goes_straight_to_anonymous(identity, api) -> None:
    assert identity.state == IdentityState.UNKNOWN
    assert await identity.ensure_started() == IdentityState.ANONYMOUS
    assert api.calls == []


async def test_valid_token_authenticates(identity, api, store) -> None:
    store.set(api.issue_token("a@b.com"))
    assert await identity.ensure_started() == IdentityState.AUTHENTICATED
    assert identity.principal.email == "a@b.com"
    assert identity.principal.role == Role.APPLICANT
    assert identity.is_applicant and not identity.is_admin
    assert api.count("GET", "/auth/me") == 1


async def test_unauthorized_check_clears_token(identity, store) -> None:
    store.set("stale-token")
    assert await identity.ensure_started() == IdentityState.ANONYMOUS
    assert store.get() is None


async def test_network_error_check_keeps_token(identity, api, store) -> None:
    store.set("maybe-valid")
    api.fail[("GET", "/auth/me")] = httpx.ConnectError("down")
    assert await identity.ensure_started() == IdentityState.ANONYMOUS
    assert store.get() == "maybe-valid"


async def test_server_error_check_keeps_token(identity, api, store) -> None:
    store.set("maybe-valid")
    api.fail[("GET", "/auth/me")] = httpx.Response(500, json={"message": "boom"})
    assert await identity.ensure_started() == IdentityState.ANONYMOUS
    assert store.get() == "maybe-valid"


async def test_transient_check_failure_is_retried_on_next_call(identity, api, store) -> None:
    store.set(api.issue_token("a@b.com"))
    api.fail[("GET", "/auth/me")] = httpx.ConnectError("down")
    assert await identity.ensure_started() == IdentityState.ANONYMOUS

    del api.fail[("GET", "/auth/me")]
    assert await identity.ensure_started() == IdentityState.AUTHENTICATED
    assert identity.principal.email == "a@b.com"
    assert api.count("GET", "/auth/me") == 2

    # settled: no further checks
    await identity.ensure_started()
    assert api.count("GET", "/auth/me") == 2


async def test_no_retry_after_logout(identity, api, store) -> None:
    store.set(api.issue_token("a@b.com"))
    api.fail[("GET", "/auth/me")] = httpx.Response(502, json={"message": "bad gateway"})
    await identity.ensure_started()
    identity.logout()
    del api.fail[("GET", "/auth/me")]

    assert await identity.ensure_started() == IdentityState.ANONYMOUS
    assert api.count("GET", "/auth/me") == 1


async def test_concurrent_callers_share_one_check(identity, api, store) -> None:
    store.set(api.issue_token("a@b.com"))
    states = await asyncio.gather(*(identity.ensure_started() for _ in range(5)))
    assert set(states) == {IdentityState.AUTHENTICATED}
    assert api.count("GET", "/auth/me") == 1


async def test_login_failure_leaves_no_trace(identity, store) -> None:
    await identity.ensure_started()
    with pytest.raises(ValidationError) as info:
        await identity.login("a@b.com", "wrong")
    assert info.value.message == "Credenciales inválidas"
    assert identity.state == IdentityState.ANONYMOUS
    assert identity.principal is None
    assert identity.error == "Credenciales inválidas"
    assert store.get() is None


async def test_login_network_failure_leaves_no_trace(identity, api, store) -> None:
    await identity.ensure_started()
    api.fail[("POST", "/auth/login")] = httpx.ConnectError("down")
    with pytest.raises(NetworkError):
        await identity.login("a@b.com", "secret")
    assert identity.state == IdentityState.ANONYMOUS
    assert store.get() is None


async def test_login_401_is_reported_as_bad_credentials(identity, api, store) -> None:
    await identity.ensure_started()
    api.fail[("POST", "/auth/login")] = httpx.Response(401, json={"message": "Usuario o contraseña incorrectos"})
    with pytest.raises(ValidationError):
        await identity.login("a@b.com", "secret")
    assert identity.error == "Usuario o contraseña incorrectos"
    assert store.get() is None


async def test_login_without_token_in_response_is_rejected(identity, api, store) -> None:
    await identity.ensure_started()
    api.fail[("POST", "/auth/login")] = httpx.Response(200, json={"user": {"id": "u1", "role": "applicant"}})
    with pytest.raises(AppError):
        await identity.login("a@b.com", "secret")
    assert identity.state == IdentityState.ANONYMOUS
    assert store.get() is None


async def test_login_success_stores_token_and_principal(identity, api, store) -> None:
    await identity.ensure_started()
    principal = await identity.login("a@b.com", "secret")
    assert principal.user_id == "u1"
    assert identity.state == IdentityState.AUTHENTICATED
    assert store.get() in api.tokens
    assert identity.error is None


async def test_register_authenticates(identity, store) -> None:
    await identity.ensure_started()
    principal = await identity.register({"email": "new@b.com", "password": "pw", "profile": {"first_name": "N"}})
    assert principal.email == "new@b.com"
    assert principal.display_name == "N"
    assert store.get() is not None


async def test_logout_is_synchronous_and_total(identity, api, store) -> None:
    await identity.ensure_started()
    await identity.login("admin@b.com", "admin-pass")
    identity.logout()
    assert identity.state == IdentityState.ANONYMOUS
    assert identity.principal is None
    assert identity.capabilities == frozenset()
    assert store.get() is None


async def test_logout_during_check_wins(identity, api, store) -> None:
    store.set(api.issue_token("a@b.com"))
    task = asyncio.ensure_future(identity.ensure_started())
    await asyncio.sleep(0)
    assert identity.state == IdentityState.CHECKING
    identity.logout()
    await task
    assert identity.state == IdentityState.ANONYMOUS
    assert identity.principal is None


async def test_role_change_replaces_all_flags(identity, api) -> None:
    await identity.ensure_started()
    await identity.login("a@b.com", "secret")
    assert identity.is_applicant
    assert Capability.MANAGE_OWN_CREDENTIALS in identity.capabilities

    identity.logout()
    await identity.login("admin@b.com", "admin-pass")
    assert identity.is_admin
    assert not identity.is_applicant
    assert Capability.MANAGE_OWN_CREDENTIALS not in identity.capabilities
    assert Capability.REVEAL_CREDENTIALS in identity.capabilities


async def test_update_principal_replaces_wholesale(identity) -> None:
    await identity.ensure_started()
    await identity.login("a@b.com", "secret")
    identity.update_principal({"id": "u1", "email": "a@b.com", "role": "promoter", "profile": {}})
    assert identity.is_promoter
    assert not identity.is_applicant
    assert identity.principal.profile == {}


def _held_client(api, store, path: str, release: asyncio.Event) -> SessionClient:
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith(path):
            await release.wait()
        return api.handler(request)

    return SessionClient(BASE_URL, store, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


async def test_logout_during_login_wins(api, store) -> None:
    release = asyncio.Event()
    identity = IdentityContext(_held_client(api, store, "/auth/login", release), store)
    await identity.ensure_started()

    pending = asyncio.ensure_future(identity.login("a@b.com", "secret"))
    await asyncio.sleep(0)
    identity.logout()
    release.set()

    with pytest.raises(SessionSupersededError):
        await pending
    assert identity.state == IdentityState.ANONYMOUS
    assert identity.principal is None
    assert identity.error is None
    assert store.get() is None


async def test_logout_during_register_wins(api, store) -> None:
    release = asyncio.Event()
    identity = IdentityContext(_held_client(api, store, "/auth/register", release), store)
    await identity.ensure_started()

    pending = asyncio.ensure_future(identity.register({"email": "new@b.com", "password": "pw"}))
    await asyncio.sleep(0)
    identity.logout()
    release.set()

    with pytest.raises(SessionSupersededError):
        await pending
    assert identity.state == IdentityState.ANONYMOUS
    assert store.get() is None
