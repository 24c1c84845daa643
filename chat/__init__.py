"""Chat session controller package"""

from .session import ChatSession
from .client import QwenClient, create_client

__all__ = [
    "ChatSession",
    "QwenClient",
    "create_client",
]
