"""Streaming response decoding for Qwen chat responses"""

from .events import (
    TextDelta,
    ToolCallDelta,
    ThreadCreated,
    Terminal,
    StreamEvent,
    ChatOutput,
    ToolCall,
    classify_frame,
    accumulate_tool_calls,
)
from .decoder import StreamDecoder, decode_stream, DATA_PREFIX, DONE_SENTINEL

__all__ = [
    "TextDelta",
    "ToolCallDelta",
    "ThreadCreated",
    "Terminal",
    "StreamEvent",
    "ChatOutput",
    "ToolCall",
    "classify_frame",
    "accumulate_tool_calls",
    "StreamDecoder",
    "decode_stream",
    "DATA_PREFIX",
    "DONE_SENTINEL",
]
