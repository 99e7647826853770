"""Constants used across the WebUI core.

How to use the most important parts:
- `StateEvent`: the event names emitted by `PrinterStateTracker`. Subscribe with
  `tracker.on(StateEvent.CONNECTED, handler)` instead of hardcoding strings.
- `ErrorCode`: stable error codes attached to every `WebUIError`.
"""

import enum
import re

APP_NAME = "flashforge-webui"
APP_AUTHOR = "FlashForgeUI"

# WebUI defaults
DEFAULT_WEBUI_PORT = 3000
DEFAULT_WEBUI_PASSWORD = "changeme"
DEFAULT_TOKEN_SALT = "ffui-webui-2025"
DEFAULT_SESSION_TIMEOUT_HOURS = 24
DEFAULT_TEMP_SESSION_TIMEOUT_MINUTES = 60
DEFAULT_LOGIN_MAX_ATTEMPTS = 5
DEFAULT_LOGIN_WINDOW_MINUTES = 15
SESSION_CLEANUP_INTERVAL_SECONDS = 5 * 60

# Token shape: base64 data segment, a single dot, hex signature segment (use fullmatch)
AUTH_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9\-_=+/]+\.[A-Fa-f0-9]+")
BEARER_PATTERN = re.compile(r"Bearer (.+)", re.DOTALL)

# Temperature bounds (degrees Celsius, inclusive)
MIN_TEMPERATURE = 0
MAX_TEMPERATURE = 300

# Reasons recorded by the tracker convenience transitions
REASON_CONNECTED = "connection established"
REASON_DISCONNECTED = "connection lost"


class StateEvent(enum.StrEnum):
    """Event names emitted by the printer state tracker."""

    CHANGED = "state-changed"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    PRINTING_STARTED = "printing-started"
    PRINTING_STOPPED = "printing-stopped"


class ErrorCode(enum.StrEnum):
    """Error codes surfaced to WebUI clients."""

    AUTH_FAILED = "WEB_AUTH_FAILED"
    INVALID_TOKEN = "WEB_INVALID_TOKEN"
    SERVER_ERROR = "WEB_SERVER_ERROR"
    PRINTER_NOT_CONNECTED = "WEB_PRINTER_NOT_CONNECTED"
    COMMAND_FAILED = "WEB_COMMAND_FAILED"
    INVALID_REQUEST = "WEB_INVALID_REQUEST"
