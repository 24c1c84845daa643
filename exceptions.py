"""Error taxonomy for the Qwen chat client

Every failure the client surfaces is a subclass of QwenClientError so callers
can catch the whole family or a single kind.
"""

from typing import Optional


class QwenClientError(Exception):
    """Base class for all client errors"""


class CryptoUnavailable(QwenClientError):
    """Secure random source or SHA-256 digest is not available"""


class NotStarted(QwenClientError):
    """An operation was called before its precondition was met"""


class DeviceCodeRequestFailed(QwenClientError):
    """The device-code endpoint answered with a non-2xx status"""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"Device code request failed: {status}")


class AuthorizationDenied(QwenClientError):
    """The user declined the authorization request"""

    def __init__(self, description: Optional[str] = None):
        self.description = description
        super().__init__(f"Authorization denied: {description or 'access_denied'}")


class DeviceCodeExpired(QwenClientError):
    """The device code expired before the user finished authorizing"""

    def __init__(self):
        super().__init__("Device code expired (expired_token). Start login again")


class AuthorizationProtocolError(QwenClientError):
    """The token endpoint returned a response the device flow does not understand"""

    def __init__(self, raw: str):
        self.raw = raw
        super().__init__(f"Unexpected authorization response: {raw}")


class AuthorizationTimeout(QwenClientError):
    """Polling gave up after the maximum number of attempts"""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Authorization not completed after {attempts} attempts")


class Unauthenticated(QwenClientError):
    """No token lease is installed"""

    def __init__(self):
        super().__init__("Not authenticated. Call login() or set_tokens() first")


class TokenRefreshFailed(QwenClientError):
    """The refresh endpoint answered with a non-2xx status"""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"Token refresh failed: {status}")


class ChatRequestFailed(QwenClientError):
    """The chat endpoint answered with a non-2xx status

    A 401 here is what an expired lease without a refresh token turns into,
    so callers may treat it like Unauthenticated.
    """

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"Request failed: {status} - {body}")

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401


class ThreadCreationFailed(QwenClientError):
    """The service refused to create a new chat thread"""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"Thread creation failed: {status} - {body}")


class NoResponseBody(QwenClientError):
    """A streaming response arrived without a body"""

    def __init__(self):
        super().__init__("No response body")


class UnsupportedOperation(QwenClientError):
    """The protocol profile does not offer the requested operation"""

    def __init__(self, profile: str, operation: str):
        self.profile = profile
        self.operation = operation
        super().__init__(f"The {profile} profile does not support {operation}")
