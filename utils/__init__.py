"""Shared utilities package for qwen-chat"""

from .debug_console import (
    DebugCapturingConsole,
    create_debug_console,
    setup_debug_logger,
)
from .http import borrow_client, request_timeout, stream_timeout

__all__ = [
    "DebugCapturingConsole",
    "create_debug_console",
    "setup_debug_logger",
    "borrow_client",
    "request_timeout",
    "stream_timeout",
]
