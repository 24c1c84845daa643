"""Tests for providers/: request envelopes, headers, thread creation."""
import httpx
import pytest

from chat import ChatSession
from conftest import START, json_of
from exceptions import ThreadCreationFailed, UnsupportedOperation
from providers import PortalProvider, WebChatProvider, build_cookie_string, extract_token, get_provider
from qwen_oauth import DeviceAuthorizationFlow


def test_get_provider_by_name():
    assert isinstance(get_provider("portal"), PortalProvider)
    assert isinstance(get_provider("web"), WebChatProvider)


def test_get_provider_unknown_name():
    with pytest.raises(ValueError, match="Unknown provider"):
        get_provider("desktop")


# ── Portal ───────────────────────────────────────────────────────────

def test_portal_request_envelope():
    provider = PortalProvider()
    session = ChatSession(thread_id="t1", model="qwen-plus")

    url, payload = provider.build_request(session, "Hello")

    assert url == "https://portal.qwen.ai/v1/chat/completions"
    assert payload == {
        "model": "qwen-plus",
        "messages": [{"role": "user", "content": "Hello"}],
        "stream": True,
    }


def test_portal_request_carries_options_tools_and_thinking():
    provider = PortalProvider()
    session = ChatSession(thread_id="t1", model="qwen3-coder-plus")
    tools = [{"type": "function", "function": {"name": "get_time", "parameters": {"type": "object"}}}]

    _, payload = provider.build_request(
        session, "What time is it?", tools=tools, thinking=True, temperature=0.2, tool_choice="auto",
    )

    assert payload["model"] == "qwen3-coder-plus"
    assert payload["tools"] == tools
    assert payload["tool_choice"] == "auto"
    assert payload["temperature"] == 0.2
    assert payload["enable_thinking"] is True


def test_portal_request_accepts_message_list():
    provider = PortalProvider()
    messages = [
        {"role": "system", "content": "Be brief"},
        {"role": "user", "content": "Hi"},
    ]

    _, payload = provider.build_request(ChatSession("t1", "qwen-plus"), messages)

    assert payload["messages"] == messages


def test_portal_headers():
    headers = PortalProvider().get_headers("at-1")

    assert headers["Authorization"] == "Bearer at-1"
    assert headers["Accept"] == "text/event-stream"
    assert PortalProvider().get_headers("at-1", stream=False)["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_portal_thread_is_local(mock_http):
    def handler(request):
        raise AssertionError(f"unexpected request to {request.url}")

    first = await PortalProvider().create_thread(mock_http(handler), "at", "qwen-plus")
    second = await PortalProvider().create_thread(mock_http(handler), "at", "qwen-plus")

    assert first and second and first != second


def test_portal_has_device_flow():
    assert isinstance(PortalProvider().create_device_flow(), DeviceAuthorizationFlow)


# ── Web chat ─────────────────────────────────────────────────────────

def test_web_headers_carry_token_cookie():
    provider = WebChatProvider(extra_cookies={"ssxmod_itna": "abc"})

    headers = provider.get_headers("tok")

    assert headers["Cookie"] == "token=tok; ssxmod_itna=abc"
    assert headers["Authorization"] == "Bearer tok"
    assert headers["source"] == "web"


@pytest.mark.asyncio
async def test_web_create_thread_posts_new_chat(mock_http, clock):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"success": True, "data": {"id": "chat-42"}})

    thread_id = await WebChatProvider(clock=clock).create_thread(mock_http(handler), "tok", "qwen3-max")

    assert thread_id == "chat-42"
    assert requests[0].url == "https://chat.qwen.ai/api/v2/chats/new"
    assert json_of(requests[0]) == {
        "title": "New Chat",
        "models": ["qwen3-max"],
        "chat_mode": "normal",
        "chat_type": "t2t",
        "timestamp": int(START * 1000),
    }


@pytest.mark.asyncio
async def test_web_create_thread_failure(mock_http):
    def handler(request):
        return httpx.Response(403, text="forbidden")

    with pytest.raises(ThreadCreationFailed) as exc_info:
        await WebChatProvider().create_thread(mock_http(handler), "tok", "qwen3-max")

    assert exc_info.value.status == 403


@pytest.mark.asyncio
async def test_web_create_thread_without_id(mock_http):
    def handler(request):
        return httpx.Response(200, json={"success": False, "data": {}})

    with pytest.raises(ThreadCreationFailed):
        await WebChatProvider().create_thread(mock_http(handler), "tok", "qwen3-max")


def test_web_request_envelope_references_parent(clock):
    provider = WebChatProvider(clock=clock)
    session = ChatSession(thread_id="chat-42", model="qwen3-max", last_parent_message_id="msg-7")

    url, payload = provider.build_request(session, "Next question", thinking=True)

    assert url == "https://chat.qwen.ai/api/v2/chat/completions?chat_id=chat-42"
    assert payload["chat_id"] == "chat-42"
    assert payload["parent_id"] == "msg-7"
    assert payload["stream"] is True
    assert payload["incremental_output"] is True
    assert payload["timestamp"] == int(START * 1000)

    (message,) = payload["messages"]
    assert message["role"] == "user"
    assert message["content"] == "Next question"
    assert message["parentId"] == "msg-7"
    assert message["models"] == ["qwen3-max"]
    assert message["feature_config"] == {"thinking_enabled": True, "output_schema": "phase"}


def test_web_first_turn_has_no_parent(clock):
    _, payload = WebChatProvider(clock=clock).build_request(ChatSession("chat-42", "qwen3-max"), "Hi")

    assert payload["parent_id"] is None
    assert "tools" not in payload


def test_web_has_no_device_flow_or_refresh():
    provider = WebChatProvider()

    assert provider.create_device_flow() is None
    assert provider.token_url is None


def test_web_dedupe_is_off_by_default():
    assert WebChatProvider().dedupe_first_text is False
    assert WebChatProvider(dedupe_first_text=True).dedupe_first_text is True


def test_extract_token_from_cookie_header():
    assert extract_token("ssxmod=1; token=eyJhbGci.abc; other=2") == "eyJhbGci.abc"
    assert extract_token("ssxmod=1") is None


def test_build_cookie_string():
    assert build_cookie_string("tok") == "token=tok"
    assert build_cookie_string("tok", {"a": "1", "b": "2"}) == "token=tok; a=1; b=2"


def test_only_portal_offers_non_streaming_completion():
    assert PortalProvider().supports_completion is True
    assert WebChatProvider().supports_completion is False

    with pytest.raises(UnsupportedOperation):
        WebChatProvider().build_completion_payload([], model="qwen3-max", stream=False)
