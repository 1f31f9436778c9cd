"""Authorization gate tests, calling get_current_account directly."""

import uuid
from datetime import timedelta
from types import SimpleNamespace

import pytest
from starlette.requests import Request

from vidtube.auth.dependencies import get_current_account
from vidtube.auth.jwt import TokenService
from vidtube.errors import AuthError

from helpers import PASSWORD


def make_request(cookie: str = "") -> Request:
    headers = [(b"cookie", cookie.encode())] if cookie else []
    return Request({"type": "http", "headers": headers})


async def registered(store):
    return await store.create(
        username="alice",
        email="a@x.com",
        full_name="Alice A",
        password_hash=f"hash-of-{PASSWORD}",
        avatar="https://media.test/a.png",
    )


@pytest.mark.asyncio
async def test_gate_accepts_bearer_and_sets_request_state(store, tokens, db_session):
    account = await registered(store)
    token = tokens.issue_access_token(account).token
    request = make_request()

    current = await get_current_account(request, f"Bearer {token}", db_session, tokens)
    assert current.id == account.id
    assert request.state.account == current


@pytest.mark.asyncio
async def test_gate_reads_cookie(store, tokens, db_session):
    account = await registered(store)
    token = tokens.issue_access_token(account).token
    current = await get_current_account(
        make_request(f"accessToken={token}"), None, db_session, tokens
    )
    assert current.username == "alice"


@pytest.mark.asyncio
async def test_gate_rejects_expired_token(store, tokens, db_session):
    account = await registered(store)
    short_lived = TokenService(
        tokens.access_secret, tokens.refresh_secret, timedelta(seconds=-5), timedelta(days=1)
    )
    token = short_lived.issue_access_token(account).token

    with pytest.raises(AuthError) as exc:
        await get_current_account(make_request(), f"Bearer {token}", db_session, tokens)
    assert exc.value.reason == "expired"


@pytest.mark.asyncio
async def test_gate_rejects_deleted_account(tokens, db_session):
    ghost = SimpleNamespace(id=uuid.uuid4(), email="g@x.com", username="ghost", full_name="G")
    token = tokens.issue_access_token(ghost).token

    with pytest.raises(AuthError) as exc:
        await get_current_account(make_request(), f"Bearer {token}", db_session, tokens)
    assert exc.value.reason == "account_missing"


@pytest.mark.asyncio
async def test_gate_rejects_missing_token(tokens, db_session):
    with pytest.raises(AuthError) as exc:
        await get_current_account(make_request(), None, db_session, tokens)
    assert exc.value.reason == "missing_token"
