from pathlib import Path
from config.loader import get_config_loader

# Get the config loader instance
config = get_config_loader()

# General
LOG_LEVEL = config.get("LOG_LEVEL", "info")

# Which service variant the client talks to: "portal" (OAuth device flow,
# OpenAI-compatible API) or "web" (chat.qwen.ai session token, threaded chats)
QWEN_PROFILE = config.get("QWEN_PROFILE", "portal")
QWEN_MODEL = config.get("QWEN_MODEL", "")

# Portal API + OAuth device flow (hardcoded - not user configurable)
PORTAL_API_BASE = "https://portal.qwen.ai/v1"
PORTAL_DEFAULT_MODEL = "qwen-plus"
OAUTH_BASE = "https://chat.qwen.ai"
OAUTH_DEVICE_CODE_ENDPOINT = f"{OAUTH_BASE}/api/v1/oauth2/device/code"
OAUTH_TOKEN_ENDPOINT = f"{OAUTH_BASE}/api/v1/oauth2/token"
CLIENT_ID = "f0304373b74a44d2b584a3fb70ca9e56"
SCOPES = "openid profile email model.completion"
DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"

# Web chat API (hardcoded - not user configurable)
WEB_API_BASE = "https://chat.qwen.ai/api/v2"
WEB_DEFAULT_MODEL = "qwen3-max"
# Session token copied from the chat.qwen.ai "token" cookie
QWEN_WEB_TOKEN = config.get("QWEN_WEB_TOKEN", "")
# Suppress the replayed first chunk some web-chat deployments send twice
QWEN_LEGACY_DEDUPE_FIRST_CHUNK = config.get("QWEN_LEGACY_DEDUPE_FIRST_CHUNK", False)

# Token lifecycle
# Refresh this many seconds before the lease actually expires
TOKEN_EXPIRY_MARGIN = 60
# Lifetime assumed for tokens supplied without an expiry (6 hours)
DEFAULT_TOKEN_LIFETIME = 6 * 60 * 60
# 0 means poll until the server ends the flow
POLL_MAX_ATTEMPTS = config.get("POLL_MAX_ATTEMPTS", 0)

# Timeout configuration
CONNECT_TIMEOUT = config.get("CONNECT_TIMEOUT", 10.0)
# Read timeout: Time between receiving data chunks, important for detecting stalled streams
READ_TIMEOUT = config.get("READ_TIMEOUT", 60.0)
REQUEST_TIMEOUT = config.get("REQUEST_TIMEOUT", 120.0)
STREAM_TIMEOUT = config.get("STREAM_TIMEOUT", 600.0)

# Stream tracing / debugging
STREAM_TRACE_ENABLED = config.get("STREAM_TRACE_ENABLED", False)
STREAM_TRACE_DIR = config.get("STREAM_TRACE_DIR", "stream_traces")
STREAM_TRACE_MAX_BYTES = config.get("STREAM_TRACE_MAX_BYTES", 262144)

# Token storage
QWEN_TOKEN_FILE = config.get("QWEN_TOKEN_FILE", str(Path.home() / ".qwen-chat" / "tokens.json"))
