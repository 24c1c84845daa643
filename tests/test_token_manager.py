"""Tests for qwen_oauth/token_manager.py: expiry, refresh, persistence hook."""
import asyncio

import httpx
import pytest

from conftest import START, form_of
from exceptions import TokenRefreshFailed, Unauthenticated
from qwen_oauth import TokenLease, TokenLeaseManager, is_token_expired
from settings import CLIENT_ID, DEFAULT_TOKEN_LIFETIME, OAUTH_TOKEN_ENDPOINT


def refresh_handler(requests, response=None):
    def handler(request):
        requests.append(request)
        return response or httpx.Response(200, json={
            "access_token": "at-new",
            "refresh_token": "rt-new",
            "expires_in": 3600,
        })
    return handler


# ── Expiry detection ─────────────────────────────────────────────────

def test_token_valid_until_margin():
    lease = TokenLease("at", "rt", expires_at=START + 3600)

    assert not is_token_expired(lease, now=START + 3600 - 61)
    assert is_token_expired(lease, now=START + 3600 - 60)
    assert is_token_expired(lease, now=START + 4000)


def test_set_tokens_assumes_default_lifetime(clock):
    manager = TokenLeaseManager(clock=clock)

    manager.set_tokens("at", "rt")

    lease = manager.get_token_lease()
    assert lease.expires_at == START + DEFAULT_TOKEN_LIFETIME
    assert lease.refresh_token == "rt"


def test_get_token_lease_returns_copy(clock):
    manager = TokenLeaseManager(lease=TokenLease("at", "rt", START + 3600), clock=clock)

    lease = manager.get_token_lease()
    lease.access_token = "tampered"

    assert manager.get_token_lease().access_token == "at"


def test_set_token_lease_none_clears(clock):
    manager = TokenLeaseManager(lease=TokenLease("at", "rt", START + 3600), clock=clock)

    manager.set_token_lease(None)

    assert manager.get_token_lease() is None
    assert not manager.has_lease


# ── ensure_valid ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_no_lease_raises_unauthenticated(mock_http, clock):
    requests = []
    manager = TokenLeaseManager(http_client=mock_http(refresh_handler(requests)), clock=clock)

    with pytest.raises(Unauthenticated):
        await manager.ensure_valid()

    assert requests == []


@pytest.mark.asyncio
async def test_valid_lease_is_not_refreshed(mock_http, clock):
    requests = []
    manager = TokenLeaseManager(
        lease=TokenLease("at", "rt", START + 3600),
        http_client=mock_http(refresh_handler(requests)),
        clock=clock,
    )

    clock.advance(3600 - 61)
    assert await manager.ensure_valid() == "at"
    assert requests == []


@pytest.mark.asyncio
async def test_expiring_lease_is_refreshed_once(mock_http, clock):
    requests = []
    manager = TokenLeaseManager(
        lease=TokenLease("at", "rt", START + 3600),
        http_client=mock_http(refresh_handler(requests)),
        clock=clock,
    )

    clock.advance(3600 - 60)
    assert await manager.ensure_valid() == "at-new"
    assert await manager.ensure_valid() == "at-new"

    assert len(requests) == 1
    assert requests[0].url == OAUTH_TOKEN_ENDPOINT
    assert form_of(requests[0]) == {
        "grant_type": "refresh_token",
        "refresh_token": "rt",
        "client_id": CLIENT_ID,
    }

    lease = manager.get_token_lease()
    assert lease.refresh_token == "rt-new"
    assert lease.expires_at == clock() + 3600


@pytest.mark.asyncio
async def test_refresh_keeps_refresh_token_when_not_reissued(mock_http, clock):
    requests = []
    response = httpx.Response(200, json={"access_token": "at-new", "expires_in": 7200})
    manager = TokenLeaseManager(
        lease=TokenLease("at", "rt", START),
        http_client=mock_http(refresh_handler(requests, response)),
        clock=clock,
    )

    await manager.ensure_valid()

    assert manager.get_token_lease().refresh_token == "rt"
    assert manager.get_token_lease().expires_at == START + 7200


@pytest.mark.asyncio
async def test_refresh_failure_raises_with_status(mock_http, clock):
    requests = []
    response = httpx.Response(400, json={"error": "invalid_grant"})
    manager = TokenLeaseManager(
        lease=TokenLease("at", "rt", START),
        http_client=mock_http(refresh_handler(requests, response)),
        clock=clock,
    )

    with pytest.raises(TokenRefreshFailed) as exc_info:
        await manager.ensure_valid()

    assert exc_info.value.status == 400
    assert manager.get_token_lease().access_token == "at"


@pytest.mark.asyncio
async def test_expired_lease_without_refresh_token_is_returned_stale(mock_http, clock):
    requests = []
    manager = TokenLeaseManager(
        lease=TokenLease("at", "", START - 10),
        http_client=mock_http(refresh_handler(requests)),
        clock=clock,
    )

    assert await manager.ensure_valid() == "at"
    assert requests == []


@pytest.mark.asyncio
async def test_manager_without_token_url_never_refreshes(mock_http, clock):
    requests = []
    manager = TokenLeaseManager(
        lease=TokenLease("at", "rt", START - 10),
        http_client=mock_http(refresh_handler(requests)),
        clock=clock,
        token_url=None,
    )

    assert await manager.ensure_valid() == "at"
    assert requests == []


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_refresh(mock_http, clock):
    requests = []
    manager = TokenLeaseManager(
        lease=TokenLease("at", "rt", START),
        http_client=mock_http(refresh_handler(requests)),
        clock=clock,
    )

    tokens = await asyncio.gather(*(manager.ensure_valid() for _ in range(5)))

    assert tokens == ["at-new"] * 5
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_lease_changes_are_reported(mock_http, clock):
    seen = []
    manager = TokenLeaseManager(
        lease=TokenLease("at", "rt", START),
        http_client=mock_http(refresh_handler([])),
        clock=clock,
        on_lease_changed=seen.append,
    )

    await manager.ensure_valid()
    manager.set_tokens("manual")

    assert [lease.access_token for lease in seen] == ["at-new", "manual"]


def test_manager_built_before_event_loop_refreshes_once(mock_http, clock):
    requests = []
    manager = TokenLeaseManager(
        lease=TokenLease("at", "rt", START),
        http_client=mock_http(refresh_handler(requests)),
        clock=clock,
    )

    async def many_callers():
        return await asyncio.gather(*(manager.ensure_valid() for _ in range(3)))

    assert asyncio.run(many_callers()) == ["at-new"] * 3
    assert len(requests) == 1
