"""
Portal provider implementation for the OpenAI-compatible Qwen API.
Authorized with OAuth device-code tokens; threads are client-side only.
"""
import asyncio
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from chat.session import ChatSession
from qwen_oauth import DeviceAuthorizationFlow
from settings import OAUTH_TOKEN_ENDPOINT, PORTAL_API_BASE, PORTAL_DEFAULT_MODEL
from providers.base_provider import BaseProvider

logger = logging.getLogger(__name__)


class PortalProvider(BaseProvider):
    """Provider implementation for portal.qwen.ai chat completions"""

    name = "portal"
    default_model = PORTAL_DEFAULT_MODEL
    token_url = OAUTH_TOKEN_ENDPOINT
    supports_completion = True

    def __init__(self, base_url: str = PORTAL_API_BASE, clock: Callable[[], float] = time.time):
        super().__init__(base_url, clock)

    @property
    def chat_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def get_headers(self, access_token: str, stream: bool = True) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {access_token}",
            "Accept": "text/event-stream" if stream else "application/json",
        }

    async def create_thread(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        model: str
    ) -> str:
        # The portal API is stateless; the thread only exists on this side
        thread_id = str(uuid.uuid4())
        logger.debug(f"Opened local thread {thread_id}")
        return thread_id

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
        """Build an OpenAI chat completion payload

        Optional fields are omitted when unset.
        """
        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
        }
        if temperature is not None:
            payload["temperature"] = temperature
        payload["stream"] = stream
        if tools:
            payload["tools"] = tools
        if tool_choice is not None:
            payload["tool_choice"] = tool_choice
        if thinking:
            payload["enable_thinking"] = True
        return payload

    def build_request(
        self,
        session: ChatSession,
        content: Any,
        tools: Optional[List[Dict[str, Any]]] = None,
        thinking: bool = False,
        **options: Any,
    ) -> Tuple[str, Dict[str, Any]]:
        if isinstance(content, str):
            messages = [{"role": "user", "content": content}]
        else:
            messages = list(content)

        payload = self.build_completion_payload(
            messages,
            model=session.model,
            stream=True,
            tools=tools,
            thinking=thinking,
            temperature=options.get("temperature"),
            tool_choice=options.get("tool_choice"),
        )
        return self.chat_url, payload

    def create_device_flow(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> Optional[DeviceAuthorizationFlow]:
        return DeviceAuthorizationFlow(http_client=http_client, clock=clock, sleep=sleep)
