"""Chat session controller for the Qwen service"""

import asyncio
import json
import logging
import time
import uuid
from contextlib import aclosing
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, TYPE_CHECKING

import httpx

from exceptions import ChatRequestFailed, NoResponseBody, NotStarted, UnsupportedOperation
from qwen_oauth import TokenLease, TokenLeaseManager, VerificationPrompt
from settings import (
    QWEN_PROFILE,
    STREAM_TRACE_DIR,
    STREAM_TRACE_ENABLED,
    STREAM_TRACE_MAX_BYTES,
)
from stream_debug import maybe_create_stream_tracer
from streaming import ChatOutput, Terminal, TextDelta, ThreadCreated, decode_stream
from utils.http import borrow_client, stream_timeout
from .session import ChatSession

if TYPE_CHECKING:
    from providers.base_provider import BaseProvider

logger = logging.getLogger(__name__)


class QwenClient:
    """Sends chat turns through one protocol profile and streams the answers back

    One client is one conversation: calls must not overlap on the same
    instance. Token refresh is serialized by the TokenLeaseManager.
    """

    def __init__(
        self,
        provider: "BaseProvider",
        token_manager: Optional[TokenLeaseManager] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        model: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        stream_trace_enabled: bool = STREAM_TRACE_ENABLED,
    ):
        """Initialize the client

        Args:
            provider: Protocol profile for the target service variant
            token_manager: Lease manager (a new one bound to the profile's refresh endpoint if None)
            http_client: Shared transport; short-lived clients are used if None
            model: Model name (profile default if None)
            access_token: Out-of-band access token to install
            refresh_token: Refresh token accompanying access_token
            clock: Source of epoch seconds
            sleep: Coroutine used between device-flow polls
            stream_trace_enabled: Write raw stream traces to STREAM_TRACE_DIR
        """
        self.provider = provider
        self.http_client = http_client
        self.stream_trace_enabled = stream_trace_enabled

        self.tokens = token_manager or TokenLeaseManager(
            http_client=http_client,
            clock=clock,
            token_url=provider.token_url,
        )
        if access_token:
            self.tokens.set_tokens(access_token, refresh_token)

        self._model = model if model is not None else provider.default_model
        self.session: Optional[ChatSession] = None
        self.device_flow = provider.create_device_flow(http_client=http_client, clock=clock, sleep=sleep)

    # Model selection
    @property
    def model(self) -> str:
        return self._model

    def set_model(self, model: str) -> None:
        """Use a different model; takes effect with the next thread"""
        self._model = model

    # Authorization
    async def login(self) -> VerificationPrompt:
        """Start device authorization

        Returns:
            VerificationPrompt for the user to act on

        Raises:
            NotStarted: If the profile has no device flow
        """
        if self.device_flow is None:
            raise NotStarted(f"The {self.provider.name} profile has no device login; use set_tokens()")
        return await self.device_flow.login()

    async def wait_for_authorization(self, max_attempts: Optional[int] = None) -> TokenLease:
        """Finish device authorization and install the issued lease"""
        if self.device_flow is None:
            raise NotStarted(f"The {self.provider.name} profile has no device login; use set_tokens()")

        lease = await self.device_flow.wait_for_authorization(max_attempts=max_attempts)
        self.tokens.set_token_lease(lease)
        return lease

    def set_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        self.tokens.set_tokens(access_token, refresh_token)

    def get_token_lease(self) -> Optional[TokenLease]:
        return self.tokens.get_token_lease()

    def set_token_lease(self, lease: Optional[TokenLease]) -> None:
        self.tokens.set_token_lease(lease)

    # Conversation
    def new_thread(self) -> None:
        """Forget the current thread; the next send opens a new one"""
        self.session = None

    async def send(
        self,
        content: Any,
        tools: Optional[List[Dict[str, Any]]] = None,
        thinking: bool = False,
        **options: Any,
    ) -> AsyncIterator[ChatOutput]:
        """Send one turn and stream the answer

        Args:
            content: User message
            tools: Tool definitions to offer the model
            thinking: Request thinking mode
            **options: Profile-specific extras (temperature, tool_choice, ...)

        Yields:
            TextDelta and ToolCallDelta units in arrival order

        Raises:
            Unauthenticated: If no token lease is installed
            TokenRefreshFailed: If an expired lease could not be renewed
            ChatRequestFailed: If the service answers non-2xx
            NoResponseBody: If the response carries no body at all
        """
        access_token = await self.tokens.ensure_valid()
        request_id = uuid.uuid4().hex[:12]

        async with borrow_client(self.http_client, stream_timeout()) as client:
            if self.session is None:
                thread_id = await self.provider.create_thread(client, access_token, self._model)
                self.session = ChatSession(thread_id=thread_id, model=self._model)
            session = self.session

            url, payload = self.provider.build_request(session, content, tools=tools, thinking=thinking, **options)
            headers = self.provider.get_headers(access_token)

            logger.debug(f"[{request_id}] Streaming from {self.provider.name}: {url}")
            logger.debug(f"[{request_id}] Request payload: {json.dumps(payload, ensure_ascii=False)}")

            tracer = maybe_create_stream_tracer(
                self.stream_trace_enabled,
                request_id=request_id,
                route=self.provider.name,
                base_dir=STREAM_TRACE_DIR,
                max_bytes=STREAM_TRACE_MAX_BYTES,
            )

            try:
                async with client.stream("POST", url, json=payload, headers=headers) as response:
                    if tracer:
                        tracer.log_note(f"responded with status={response.status_code}")

                    if not response.is_success:
                        body = (await response.aread()).decode("utf-8", "replace")
                        logger.error(f"[{request_id}] Chat request failed {response.status_code}: {body}")
                        if tracer:
                            tracer.log_error(f"status={response.status_code} body={body}")
                        raise ChatRequestFailed(response.status_code, body)

                    received = 0

                    async def body_chunks() -> AsyncIterator[bytes]:
                        nonlocal received
                        async for chunk in response.aiter_bytes():
                            if chunk:
                                received += len(chunk)
                                yield chunk

                    continuity_seen = False
                    events = decode_stream(
                        body_chunks(),
                        classifier=self.provider.classify,
                        dedupe_first_text=self.provider.dedupe_first_text,
                        tracer=tracer,
                    )
                    async with aclosing(events):
                        async for event in events:
                            if isinstance(event, ThreadCreated):
                                # Only the first announcement of an exchange names the new parent
                                if not continuity_seen and event.parent_message_id:
                                    session.last_parent_message_id = event.parent_message_id
                                continuity_seen = True
                                continue
                            # The decoder stops by itself after the terminal event
                            if isinstance(event, Terminal):
                                continue
                            yield event

                    if received == 0:
                        raise NoResponseBody()
            finally:
                if tracer:
                    tracer.close()

    async def ask(
        self,
        content: Any,
        tools: Optional[List[Dict[str, Any]]] = None,
        thinking: bool = False,
        **options: Any,
    ) -> str:
        """Send one turn and return the whole text answer (tool calls are dropped)"""
        parts: List[str] = []
        async for output in self.send(content, tools=tools, thinking=thinking, **options):
            if isinstance(output, TextDelta):
                parts.append(output.content)
        return "".join(parts)

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[Any] = None,
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Non-streaming chat completion

        Returns:
            The parsed chat completion body

        Raises:
            UnsupportedOperation: If the profile has no completion endpoint
            ChatRequestFailed: If the service answers non-2xx
        """
        if not self.provider.supports_completion:
            raise UnsupportedOperation(self.provider.name, "non-streaming completion")

        access_token = await self.tokens.ensure_valid()
        payload = self.provider.build_completion_payload(
            messages,
            model=model or self._model,
            stream=False,
            tools=tools,
            temperature=temperature,
            tool_choice=tool_choice,
        )

        async with borrow_client(self.http_client) as client:
            response = await client.post(
                self.provider.chat_url,
                json=payload,
                headers=self.provider.get_headers(access_token, stream=False),
            )

        if not response.is_success:
            logger.error(f"Chat request failed {response.status_code}: {response.text}")
            raise ChatRequestFailed(response.status_code, response.text)

        return response.json()

    @staticmethod
    def create_tool_result(tool_call_id: str, content: str) -> Dict[str, Any]:
        """Build the message that hands a tool's output back to the model"""
        return {
            "role": "tool",
            "content": content,
            "tool_call_id": tool_call_id,
        }


def create_client(profile: str = QWEN_PROFILE, **kwargs: Any) -> QwenClient:
    """Create a client for the named protocol profile

    Args:
        profile: "portal" or "web"
        **kwargs: Passed to QwenClient
    """
    from providers import get_provider

    return QwenClient(get_provider(profile), **kwargs)
