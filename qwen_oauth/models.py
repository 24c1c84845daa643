"""Data models for Qwen OAuth authentication"""

from dataclasses import dataclass, replace
from typing import Optional

from pydantic import BaseModel


@dataclass(frozen=True)
class PKCEPair:
    """PKCE (Proof Key for Code Exchange) codes for one authorization attempt

    Attributes:
        verifier: 43 url-safe characters kept secret until the token exchange
        challenge: base64url SHA-256 of the verifier, sent with the device-code request
    """
    verifier: str
    challenge: str


@dataclass
class DeviceAuthorization:
    """Pending device authorization between login() and the end of polling

    Attributes:
        device_code: Opaque code identifying this authorization on the server
        verifier: PKCE verifier proving this client started the flow
        poll_interval_seconds: Seconds to wait between token requests
        user_code: Code the user types on the verification page
        verification_url: Page the user opens to approve the request
        expires_in: Seconds until the device code expires
    """
    device_code: str
    verifier: str
    poll_interval_seconds: float
    user_code: str = ""
    verification_url: str = ""
    expires_in: Optional[int] = None


@dataclass(frozen=True)
class VerificationPrompt:
    """What the user needs to see to approve a device authorization"""
    verification_url: str
    user_code: str


@dataclass
class TokenLease:
    """Access/refresh token pair and the moment the access token stops being usable

    Attributes:
        access_token: Bearer token for API requests
        refresh_token: Token for renewing the lease ("" when none was issued)
        expires_at: Expiry as epoch seconds
    """
    access_token: str
    refresh_token: str
    expires_at: float

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    def copy(self) -> "TokenLease":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TokenLease":
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or "",
            expires_at=float(data["expires_at"]),
        )

    @classmethod
    def from_token_response(
        cls,
        response: "TokenResponse",
        now: float,
        previous_refresh_token: str = ""
    ) -> "TokenLease":
        """Build a lease from an issuance or refresh response received at `now`"""
        return cls(
            access_token=response.access_token,
            refresh_token=response.refresh_token or previous_refresh_token,
            expires_at=now + response.expires_in,
        )


class DeviceCodeResponse(BaseModel):
    """Device-code endpoint response"""
    device_code: str
    user_code: str
    verification_uri: str
    verification_uri_complete: Optional[str] = None
    expires_in: Optional[int] = None
    interval: float = 5


class TokenResponse(BaseModel):
    """Token endpoint response for device-code and refresh grants"""
    access_token: str
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: int = 3600
    resource_url: Optional[str] = None
