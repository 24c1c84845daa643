"""
Base protocol profile interface.
Defines the contract each Qwen service variant must follow: how it
authenticates, how it shapes requests and how it classifies stream frames.
"""
import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from chat.session import ChatSession
from exceptions import UnsupportedOperation
from qwen_oauth import DeviceAuthorizationFlow
from streaming import StreamEvent, classify_frame


class BaseProvider(ABC):
    """Abstract base class for protocol profiles"""

    name: str = "base"
    default_model: str = ""
    # Legacy duplicate-first-chunk suppression in the stream decoder
    dedupe_first_text: bool = False
    # Refresh endpoint for the token lease; None when leases cannot be renewed
    token_url: Optional[str] = None
    # Offers a non-streaming completion endpoint at chat_url
    supports_completion: bool = False

    def __init__(self, base_url: str, clock: Callable[[], float] = time.time):
        """
        Initialize provider with its endpoint

        Args:
            base_url: The service's base URL
            clock: Source of epoch seconds for request timestamps
        """
        self.base_url = base_url.rstrip("/")
        self.clock = clock

    @abstractmethod
    def get_headers(self, access_token: str, stream: bool = True) -> Dict[str, str]:
        """Build request headers for an authorized chat request"""

    @abstractmethod
    async def create_thread(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        model: str
    ) -> str:
        """Open a new conversation thread and return its id"""

    @abstractmethod
    def build_request(
        self,
        session: ChatSession,
        content: Any,
        tools: Optional[List[Dict[str, Any]]] = None,
        thinking: bool = False,
        **options: Any,
    ) -> Tuple[str, Dict[str, Any]]:
        """Build the streaming chat request

        Args:
            session: Thread the message belongs to
            content: User message (string, or provider-specific message list)
            tools: Tool definitions to offer the model
            thinking: Whether to request thinking mode
            **options: Provider-specific extras (temperature, tool_choice, ...)

        Returns:
            Tuple of (url, json payload)
        """

    def classify(self, frame: Any) -> List[StreamEvent]:
        """Map one parsed stream frame to events"""
        return classify_frame(frame)

    def create_device_flow(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> Optional[DeviceAuthorizationFlow]:
        """Device authorization flow for this service, or None if it has none"""
        return None

    def build_completion_payload(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        stream: bool,
        tools: Optional[List[Dict[str, Any]]] = None,
        thinking: bool = False,
        temperature: Optional[float] = None,
        tool_choice: Optional[Any] = None,
    ) -> Dict[str, Any]:
        """Build a chat completion body; only profiles with supports_completion override this"""
        raise UnsupportedOperation(self.name, "non-streaming completion")
