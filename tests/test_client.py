# ABOUTME: Tests for session caching and the auth retry decorator
# ABOUTME: Auth failures invalidate the session and retry exactly once

import pytest

from ledgerizer import client
from ledgerizer.client import _is_auth_error, with_auth_retry
from ledgerizer.exceptions import (
    APIError,
    EntityUnresolvableError,
    ReportFetchError,
    SessionExpiredError,
)


@pytest.fixture
def invalidations(monkeypatch):
    calls = []

    async def fake_invalidate():
        calls.append(True)

    monkeypatch.setattr(client, "invalidate_client", fake_invalidate)
    return calls


@pytest.mark.parametrize(
    "exc,expected",
    [
        (SessionExpiredError("expired"), True),
        (APIError("Xero rejected the request", status_code=401), True),
        (APIError("Xero API error", status_code=403), True),
        (APIError("Xero API error 401 on /Accounts", status_code=500), False),
        (ReportFetchError("t1", "BalanceSheet", "2025-06-30", "HTTP 500"), False),
        (
            ReportFetchError("a401b-403c", "BalanceSheet", "2025-06-30", "unauthorized proxy"),
            False,
        ),
        (EntityUnresolvableError("Tenant t1 not found or token expired"), False),
    ],
)
def test_is_auth_error(exc, expected):
    assert _is_auth_error(exc) is expected


async def test_retries_once_after_auth_failure(invalidations):
    attempts = []

    @with_auth_retry
    async def tool():
        attempts.append(True)
        if len(attempts) == 1:
            raise SessionExpiredError("expired")
        return "ok"

    assert await tool() == "ok"
    assert len(attempts) == 2
    assert invalidations == [True]


async def test_does_not_retry_other_errors(invalidations):
    @with_auth_retry
    async def tool():
        raise EntityUnresolvableError("not found")

    with pytest.raises(EntityUnresolvableError):
        await tool()
    assert invalidations == []


async def test_second_auth_failure_propagates(invalidations):
    @with_auth_retry
    async def tool():
        raise SessionExpiredError("still expired")

    with pytest.raises(SessionExpiredError):
        await tool()
    assert invalidations == [True]


async def test_get_client_caches_session(monkeypatch, tmp_path):
    monkeypatch.setenv("LEDGERIZER_TOKEN_FILE", str(tmp_path / "tokens.json"))
    monkeypatch.setattr(client, "_session", None)

    first = await client.get_client()
    second = await client.get_client()
    assert first is second

    await client.invalidate_client()
    assert client._session is None
