"""Qwen OAuth authentication module

Device-code authorization with PKCE and a refreshable token lease.
"""

from .models import (
    PKCEPair,
    DeviceAuthorization,
    VerificationPrompt,
    TokenLease,
    DeviceCodeResponse,
    TokenResponse,
)
from .pkce import generate_pkce
from .device_flow import DeviceAuthorizationFlow, DeviceFlowState
from .token_manager import TokenLeaseManager, is_token_expired
from .storage import TokenStorage

__all__ = [
    "PKCEPair",
    "DeviceAuthorization",
    "VerificationPrompt",
    "TokenLease",
    "DeviceCodeResponse",
    "TokenResponse",
    "generate_pkce",
    "DeviceAuthorizationFlow",
    "DeviceFlowState",
    "TokenLeaseManager",
    "is_token_expired",
    "TokenStorage",
]
