"""Shared fixtures for the qwen-chat test suite."""
import json
from typing import Any, Callable, Iterable, List
from urllib.parse import parse_qs

import httpx
import pytest

START = 1_700_000_000.0


class FakeClock:
    """Settable stand-in for time.time."""

    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stand-in for asyncio.sleep that returns at once and remembers the delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered in exactly the given chunks."""

    def __init__(self, chunks: Iterable[bytes]):
        self.chunks = list(chunks)
        self.consumed = 0
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            self.consumed += 1
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


def sse(*frames: Any) -> bytes:
    """Render frames as `data:` lines; strings are sent verbatim."""
    lines = []
    for frame in frames:
        payload = frame if isinstance(frame, str) else json.dumps(frame)
        lines.append(f"data: {payload}\n")
    return "".join(lines).encode("utf-8")


def text_frame(content: str) -> dict:
    return {"choices": [{"delta": {"content": content}}]}


def form_of(request: httpx.Request) -> dict:
    """Decode a form-encoded request body into single values."""
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def json_of(request: httpx.Request) -> dict:
    return json.loads(request.content)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Factory for an AsyncClient answering through the given handler."""

    def factory(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory
