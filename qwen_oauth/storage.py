"""Token storage for Qwen OAuth leases"""

import datetime
import json
import logging
import os
import platform
import time
from pathlib import Path
from typing import Any, Dict, Optional

from settings import QWEN_TOKEN_FILE
from .models import TokenLease
from .token_manager import is_token_expired


logger = logging.getLogger(__name__)


class TokenStorage:
    """Persists one TokenLease as JSON with owner-only permissions"""

    def __init__(self, token_file: Optional[Path] = None):
        """Initialize token storage

        Args:
            token_file: Path to token file (default: QWEN_TOKEN_FILE setting)
        """
        self.token_file = Path(token_file if token_file else QWEN_TOKEN_FILE)

    def _ensure_directory(self) -> None:
        """Create parent directory with secure permissions"""
        parent_dir = self.token_file.parent
        if not parent_dir.exists():
            parent_dir.mkdir(parents=True, exist_ok=True)
            if platform.system() != "Windows":
                os.chmod(parent_dir, 0o700)

    def save_lease(self, lease: TokenLease, profile: str = "portal") -> bool:
        """Save a lease to disk

        Args:
            lease: Lease to persist
            profile: Protocol profile the lease belongs to

        Returns:
            True if save was successful
        """
        data = lease.to_dict()
        data["profile"] = profile

        try:
            self._ensure_directory()
            self.token_file.write_text(json.dumps(data, indent=2))
            if platform.system() != "Windows":
                os.chmod(self.token_file, 0o600)

            logger.debug(f"Saved tokens to {self.token_file}")
            return True

        except OSError as e:
            logger.error(f"Failed to save tokens: {e}")
            return False

    def load_tokens(self) -> Optional[Dict[str, Any]]:
        """Load the raw token file

        Returns:
            Stored dictionary, or None if missing or unreadable
        """
        if not self.token_file.exists():
            logger.debug("No token file found")
            return None

        try:
            data = json.loads(self.token_file.read_text())
        except (ValueError, OSError) as e:
            logger.error(f"Failed to load tokens: {e}")
            return None

        if not isinstance(data, dict):
            logger.error(f"Token file does not hold an object: {type(data).__name__}")
            return None
        return data

    def load_lease(self, profile: Optional[str] = None) -> Optional[TokenLease]:
        """Load the stored lease

        Args:
            profile: Only return the lease if it was saved for this profile

        Returns:
            TokenLease, or None if missing, unreadable or for another profile
        """
        data = self.load_tokens()
        if not data:
            return None

        if profile and data.get("profile", "portal") != profile:
            logger.debug(f"Stored tokens belong to profile {data.get('profile')}, not {profile}")
            return None

        try:
            return TokenLease.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Stored tokens are malformed: {e}")
            return None

    def clear_tokens(self) -> bool:
        """Clear stored tokens

        Returns:
            True if tokens were cleared successfully
        """
        try:
            if self.token_file.exists():
                self.token_file.unlink()
                logger.info("Cleared stored tokens")
            return True

        except OSError as e:
            logger.error(f"Failed to clear tokens: {e}")
            return False

    def get_status(self, now: Optional[float] = None) -> Dict[str, Any]:
        """Get authentication status information

        Returns:
            Dictionary with status information
        """
        if now is None:
            now = time.time()

        data = self.load_tokens() or {}
        lease = self.load_lease()

        if not lease:
            return {
                "has_tokens": False,
                "is_expired": True,
                "can_refresh": False,
                "profile": None,
                "expires_at": None,
                "time_until_expiry": None,
            }

        expires_at = datetime.datetime.fromtimestamp(lease.expires_at, datetime.timezone.utc)
        remaining = lease.expires_at - now

        if remaining > 0:
            hours = int(remaining // 3600)
            minutes = int((remaining % 3600) // 60)
            time_until_expiry = f"{hours}h {minutes}m"
        else:
            time_until_expiry = "expired"

        return {
            "has_tokens": True,
            "is_expired": is_token_expired(lease, now),
            "can_refresh": lease.can_refresh,
            "profile": data.get("profile", "portal"),
            "expires_at": expires_at.isoformat(),
            "time_until_expiry": time_until_expiry,
        }
