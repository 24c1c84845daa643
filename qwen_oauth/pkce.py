"""PKCE (Proof Key for Code Exchange) generation for the device flow"""

import base64
import hashlib
import secrets

from exceptions import CryptoUnavailable
from .models import PKCEPair

# RFC 7636 minimum code verifier length
VERIFIER_LENGTH = 43


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode('utf-8').rstrip('=')


def generate_pkce() -> PKCEPair:
    """Generate a fresh PKCE verifier and its S256 challenge

    Returns:
        PKCEPair with a 43 character verifier and its challenge

    Raises:
        CryptoUnavailable: If the secure random source or SHA-256 is missing
    """
    try:
        entropy = secrets.token_bytes(32)
    except (NotImplementedError, OSError) as e:
        raise CryptoUnavailable(f"Secure random source unavailable: {e}") from e

    verifier = _b64url(entropy)[:VERIFIER_LENGTH]

    try:
        digest = hashlib.sha256(verifier.encode('utf-8')).digest()
    except (AttributeError, ValueError) as e:
        raise CryptoUnavailable(f"SHA-256 unavailable: {e}") from e

    return PKCEPair(verifier=verifier, challenge=_b64url(digest))
