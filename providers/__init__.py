"""
Protocol profiles for the Qwen service variants.
Each profile bundles the auth flow shape, the request envelope builder and
the response-event classifier used by the chat client.
"""
from typing import Any

from providers.base_provider import BaseProvider
from providers.portal_provider import PortalProvider
from providers.web_provider import WebChatProvider, build_cookie_string, extract_token

PROVIDERS = {
    PortalProvider.name: PortalProvider,
    WebChatProvider.name: WebChatProvider,
}

__all__ = [
    'BaseProvider',
    'PortalProvider',
    'WebChatProvider',
    'PROVIDERS',
    'get_provider',
    'build_cookie_string',
    'extract_token',
]


def get_provider(name: str, **kwargs: Any) -> BaseProvider:
    """Instantiate a protocol profile by name

    Args:
        name: "portal" or "web"
        **kwargs: Passed to the provider constructor

    Raises:
        ValueError: If the name is unknown
    """
    try:
        provider_cls = PROVIDERS[name]
    except KeyError:
        raise ValueError(f"Unknown provider '{name}', expected one of: {', '.join(PROVIDERS)}")
    return provider_cls(**kwargs)
