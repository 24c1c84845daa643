"""
Web chat provider implementation for chat.qwen.ai.
Authorized with the session token from the site's "token" cookie; threads
live on the server and every turn names the message it replies to.
"""
import logging
import re
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from chat.session import ChatSession
from exceptions import ThreadCreationFailed
from settings import QWEN_LEGACY_DEDUPE_FIRST_CHUNK, WEB_API_BASE, WEB_DEFAULT_MODEL
from providers.base_provider import BaseProvider

logger = logging.getLogger(__name__)

_TOKEN_COOKIE = re.compile(r"token=([^;]+)")


def extract_token(cookies: str) -> Optional[str]:
    """Pull the session token out of a Cookie header value

    Args:
        cookies: Raw cookie string, e.g. copied from the browser

    Returns:
        Token value, or None if there is no token cookie
    """
    match = _TOKEN_COOKIE.search(cookies)
    if not match:
        return None
    return match.group(1)


def build_cookie_string(token: str, extras: Optional[Dict[str, str]] = None) -> str:
    """Render a Cookie header carrying the session token and any extra cookies"""
    cookie = f"token={token}"
    if extras:
        for key, value in extras.items():
            cookie += f"; {key}={value}"
    return cookie


class WebChatProvider(BaseProvider):
    """Provider implementation for the chat.qwen.ai web API"""

    name = "web"
    default_model = WEB_DEFAULT_MODEL
    token_url = None

    def __init__(
        self,
        base_url: str = WEB_API_BASE,
        clock: Callable[[], float] = time.time,
        dedupe_first_text: bool = QWEN_LEGACY_DEDUPE_FIRST_CHUNK,
        extra_cookies: Optional[Dict[str, str]] = None,
    ):
        """Initialize web chat provider

        Args:
            base_url: API base (default: https://chat.qwen.ai/api/v2)
            clock: Source of epoch seconds for request timestamps
            dedupe_first_text: Suppress a replayed first text chunk
            extra_cookies: Cookies sent alongside the token cookie
        """
        super().__init__(base_url, clock)
        self.dedupe_first_text = dedupe_first_text
        self.extra_cookies = extra_cookies or {}

    def get_headers(self, access_token: str, stream: bool = True) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {access_token}",
            "Cookie": build_cookie_string(access_token, self.extra_cookies),
            "Accept": "text/event-stream" if stream else "application/json",
            "source": "web",
        }

    async def create_thread(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        model: str
    ) -> str:
        """Create a server-side chat and return its id

        Raises:
            ThreadCreationFailed: If the service refuses or returns no id
        """
        response = await client.post(
            f"{self.base_url}/chats/new",
            json={
                "title": "New Chat",
                "models": [model],
                "chat_mode": "normal",
                "chat_type": "t2t",
                "timestamp": int(self.clock() * 1000),
            },
            headers=self.get_headers(access_token, stream=False),
        )

        if not response.is_success:
            logger.error(f"Thread creation failed with status {response.status_code}: {response.text}")
            raise ThreadCreationFailed(response.status_code, response.text)

        try:
            body = response.json()
        except ValueError:
            raise ThreadCreationFailed(response.status_code, response.text)

        data = body.get("data") if isinstance(body, dict) else None
        thread_id = data.get("id") if isinstance(data, dict) else None
        if not isinstance(thread_id, str) or not thread_id:
            raise ThreadCreationFailed(response.status_code, response.text)

        logger.debug(f"Created chat thread {thread_id}")
        return thread_id

    def build_request(
        self,
        session: ChatSession,
        content: Any,
        tools: Optional[List[Dict[str, Any]]] = None,
        thinking: bool = False,
        **options: Any,
    ) -> Tuple[str, Dict[str, Any]]:
        now = self.clock()
        parent_id = session.last_parent_message_id

        message = {
            "fid": str(uuid.uuid4()),
            "parentId": parent_id,
            "childrenIds": [],
            "role": "user",
            "content": content,
            "user_action": "chat",
            "files": [],
            "timestamp": int(now),
            "models": [session.model],
            "chat_type": "t2t",
            "feature_config": {
                "thinking_enabled": thinking,
                "output_schema": "phase",
            },
        }

        payload: Dict[str, Any] = {
            "stream": True,
            "incremental_output": True,
            "chat_id": session.thread_id,
            "chat_mode": "normal",
            "model": session.model,
            "parent_id": parent_id,
            "messages": [message],
            "timestamp": int(now * 1000),
        }
        if tools:
            payload["tools"] = tools

        url = f"{self.base_url}/chat/completions?chat_id={session.thread_id}"
        return url, payload
