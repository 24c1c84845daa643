"""OAuth2 device authorization grant (RFC 8628) with PKCE for Qwen"""

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx
from pydantic import ValidationError

from exceptions import (
    AuthorizationDenied,
    AuthorizationProtocolError,
    AuthorizationTimeout,
    DeviceCodeExpired,
    DeviceCodeRequestFailed,
    NotStarted,
)
from settings import (
    CLIENT_ID,
    DEVICE_CODE_GRANT_TYPE,
    OAUTH_DEVICE_CODE_ENDPOINT,
    OAUTH_TOKEN_ENDPOINT,
    SCOPES,
)
from utils.http import borrow_client
from .models import (
    DeviceAuthorization,
    DeviceCodeResponse,
    TokenLease,
    TokenResponse,
    VerificationPrompt,
)
from .pkce import generate_pkce

logger = logging.getLogger(__name__)

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


class DeviceFlowState(str, Enum):
    IDLE = "idle"
    AWAITING_USER_ACTION = "awaiting_user_action"
    POLLING = "polling"
    AUTHORIZED = "authorized"
    DENIED = "denied"
    EXPIRED = "expired"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class DeviceAuthorizationFlow:
    """Drives device-code request, token polling and the terminal outcome

    The pending DeviceAuthorization lives only between login() and the end of
    wait_for_authorization(); every terminal state discards it.
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        client_id: str = CLIENT_ID,
        scope: str = SCOPES,
        device_code_url: str = OAUTH_DEVICE_CODE_ENDPOINT,
        token_url: str = OAUTH_TOKEN_ENDPOINT,
    ):
        self.http_client = http_client
        self.clock = clock
        self.sleep = sleep
        self.client_id = client_id
        self.scope = scope
        self.device_code_url = device_code_url
        self.token_url = token_url

        self.state = DeviceFlowState.IDLE
        self.pending: Optional[DeviceAuthorization] = None

    async def login(self) -> VerificationPrompt:
        """Request a device code and return what the user must see

        Returns:
            VerificationPrompt with the verification URL and user code

        Raises:
            DeviceCodeRequestFailed: If the endpoint answers non-2xx
            AuthorizationProtocolError: If the success body is not a device-code response
        """
        pkce = generate_pkce()

        logger.info("Requesting device code...")
        async with borrow_client(self.http_client) as client:
            response = await client.post(
                self.device_code_url,
                data={
                    "client_id": self.client_id,
                    "scope": self.scope,
                    "code_challenge": pkce.challenge,
                    "code_challenge_method": "S256",
                },
                headers=FORM_HEADERS,
            )

        if not response.is_success:
            logger.error(f"Device code request failed with status {response.status_code}: {response.text}")
            raise DeviceCodeRequestFailed(response.status_code, response.text)

        try:
            device = DeviceCodeResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise AuthorizationProtocolError(response.text) from e

        self.pending = DeviceAuthorization(
            device_code=device.device_code,
            verifier=pkce.verifier,
            poll_interval_seconds=device.interval,
            user_code=device.user_code,
            verification_url=device.verification_uri_complete or device.verification_uri,
            expires_in=device.expires_in,
        )
        self.state = DeviceFlowState.AWAITING_USER_ACTION

        logger.debug(f"Device code issued, polling every {device.interval}s")
        return VerificationPrompt(
            verification_url=self.pending.verification_url,
            user_code=device.user_code,
        )

    async def wait_for_authorization(self, max_attempts: Optional[int] = None) -> TokenLease:
        """Poll the token endpoint until the user approves or the flow ends

        Args:
            max_attempts: Give up after this many token requests (None polls forever)

        Returns:
            TokenLease issued for the approved device code

        Raises:
            NotStarted: If login() has not been called
            AuthorizationDenied: If the user declined
            DeviceCodeExpired: If the device code expired
            AuthorizationProtocolError: On any other response shape
            AuthorizationTimeout: If max_attempts ran out
        """
        if self.pending is None:
            raise NotStarted("Call login() first")

        self.state = DeviceFlowState.POLLING
        pending = self.pending
        attempts = 0

        while max_attempts is None or attempts < max_attempts:
            await self.sleep(pending.poll_interval_seconds)
            attempts += 1

            async with borrow_client(self.http_client) as client:
                response = await client.post(
                    self.token_url,
                    data={
                        "grant_type": DEVICE_CODE_GRANT_TYPE,
                        "client_id": self.client_id,
                        "device_code": pending.device_code,
                        "code_verifier": pending.verifier,
                    },
                    headers=FORM_HEADERS,
                )
            received_at = self.clock()

            try:
                payload = response.json()
            except ValueError:
                # Covers non-JSON bodies and bodies that are not valid UTF-8
                self._finish(DeviceFlowState.FAILED)
                raise AuthorizationProtocolError(response.text)

            if not isinstance(payload, dict):
                self._finish(DeviceFlowState.FAILED)
                raise AuthorizationProtocolError(response.text)

            if payload.get("access_token"):
                try:
                    token = TokenResponse.model_validate(payload)
                except ValidationError as e:
                    self._finish(DeviceFlowState.FAILED)
                    raise AuthorizationProtocolError(response.text) from e
                self._finish(DeviceFlowState.AUTHORIZED)
                logger.info("Device authorization complete")
                return TokenLease.from_token_response(token, received_at)

            error = payload.get("error")
            if error == "authorization_pending":
                logger.debug(f"Authorization pending (attempt {attempts})")
                continue
            if error == "slow_down":
                pending.poll_interval_seconds += 1
                logger.debug(f"Server asked to slow down, interval now {pending.poll_interval_seconds}s")
                continue
            if error == "access_denied":
                self._finish(DeviceFlowState.DENIED)
                raise AuthorizationDenied(payload.get("error_description"))
            if error == "expired_token":
                self._finish(DeviceFlowState.EXPIRED)
                raise DeviceCodeExpired()

            self._finish(DeviceFlowState.FAILED)
            raise AuthorizationProtocolError(response.text)

        self._finish(DeviceFlowState.TIMED_OUT)
        raise AuthorizationTimeout(attempts)

    def abandon(self) -> None:
        """Drop a pending authorization and return to idle"""
        self.pending = None
        self.state = DeviceFlowState.IDLE

    def _finish(self, state: DeviceFlowState) -> None:
        self.pending = None
        self.state = state
