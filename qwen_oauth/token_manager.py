"""Token lease manager with transparent refresh"""

import asyncio
import logging
import time
from typing import Callable, Optional

import httpx
from pydantic import ValidationError

from exceptions import TokenRefreshFailed, Unauthenticated
from settings import CLIENT_ID, DEFAULT_TOKEN_LIFETIME, OAUTH_TOKEN_ENDPOINT, TOKEN_EXPIRY_MARGIN
from utils.http import borrow_client
from .models import TokenLease, TokenResponse

logger = logging.getLogger(__name__)


def is_token_expired(
    lease: TokenLease,
    now: Optional[float] = None,
    margin: float = TOKEN_EXPIRY_MARGIN
) -> bool:
    """Check whether a lease is expired or about to be

    Args:
        lease: Lease to check
        now: Current epoch seconds (defaults to time.time())
        margin: Seconds before expires_at at which the lease counts as expired

    Returns:
        True if the access token should no longer be used as is
    """
    if now is None:
        now = time.time()
    return now >= lease.expires_at - margin


class TokenLeaseManager:
    """Holds at most one TokenLease and renews it when it runs out"""

    def __init__(
        self,
        lease: Optional[TokenLease] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
        client_id: str = CLIENT_ID,
        token_url: Optional[str] = OAUTH_TOKEN_ENDPOINT,
        on_lease_changed: Optional[Callable[[TokenLease], None]] = None,
    ):
        """Initialize the manager

        Args:
            lease: Initial lease, e.g. restored from storage
            http_client: Client used for refresh calls (short-lived one if None)
            clock: Source of epoch seconds
            client_id: OAuth client id sent with refresh requests
            token_url: Refresh endpoint; None disables refresh entirely
            on_lease_changed: Called with every newly installed lease
        """
        self._lease = lease
        self.http_client = http_client
        self.clock = clock
        self.client_id = client_id
        self.token_url = token_url
        self.on_lease_changed = on_lease_changed
        self._lock = asyncio.Lock()

    def set_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        """Install tokens obtained out of band, assuming the default lifetime"""
        self._install(TokenLease(
            access_token=access_token,
            refresh_token=refresh_token or "",
            expires_at=self.clock() + DEFAULT_TOKEN_LIFETIME,
        ))

    def set_token_lease(self, lease: Optional[TokenLease]) -> None:
        """Replace the current lease (None clears it)"""
        if lease is None:
            self._lease = None
            return
        self._install(lease.copy())

    def get_token_lease(self) -> Optional[TokenLease]:
        """Return a copy of the current lease, or None"""
        return self._lease.copy() if self._lease else None

    @property
    def has_lease(self) -> bool:
        return self._lease is not None

    async def ensure_valid(self) -> str:
        """Return an access token, refreshing the lease first if it is due

        An expired lease without a refresh token is returned as is; the
        request it authorizes will fail with the server's own 401.

        Raises:
            Unauthenticated: If no lease is installed
            TokenRefreshFailed: If the refresh endpoint answers non-2xx
        """
        async with self._lock:
            lease = self._lease
            if lease is None:
                raise Unauthenticated()

            if not is_token_expired(lease, self.clock()):
                return lease.access_token

            if not lease.can_refresh or not self.token_url:
                logger.warning("Access token expired and no refresh token available")
                return lease.access_token

            logger.info("Access token expired, attempting automatic refresh...")
            self._install(await self._refresh(lease))
            logger.info("Successfully refreshed OAuth tokens")
            return self._lease.access_token

    async def _refresh(self, lease: TokenLease) -> TokenLease:
        async with borrow_client(self.http_client) as client:
            response = await client.post(
                self.token_url,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": lease.refresh_token,
                    "client_id": self.client_id,
                },
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Accept": "application/json",
                },
            )
        received_at = self.clock()

        if not response.is_success:
            logger.error(f"Token refresh failed with status {response.status_code}: {response.text}")
            raise TokenRefreshFailed(response.status_code, response.text)

        try:
            token = TokenResponse.model_validate_json(response.content)
        except ValidationError as e:
            logger.error(f"Token refresh response missing required fields: {e}")
            raise TokenRefreshFailed(response.status_code, response.text) from e

        return TokenLease.from_token_response(token, received_at, lease.refresh_token)

    def _install(self, lease: TokenLease) -> None:
        self._lease = lease
        if self.on_lease_changed:
            self.on_lease_changed(lease.copy())
