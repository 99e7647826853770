"""FlashForge WebUI core.

Printer state tracking and the WebUI command and authentication protocol layer.

How to use the most important parts:
- `PrinterStateTracker`: mirrors the printer's connection/printing state and emits
  `state-changed`, `connected`, `disconnected`, `printing-started` and `printing-stopped`.
- `validate_command`, `validate_websocket_command`, `validate_printer_command`: gates
  for untrusted client input. They return None on rejection.
- `validate_auth_token`, `extract_bearer_token`: token shape gates.
- `WebUIApplication`: composition root wiring the tracker, session store and router.
"""

import logging

import structlog

# Set default library logging level to WARNING if the user hasn't configured structlog
if not structlog.is_configured():
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING))

from flashforge.webui.__version__ import __version__
from flashforge.webui.app import WebUIApplication
from flashforge.webui.auth import AuthManager, extract_bearer_token, validate_auth_token
from flashforge.webui.command_models import PrinterCommand, validate_command, validate_printer_command
from flashforge.webui.events import EventEmitter
from flashforge.webui.router import CommandResult, PrinterDriver, ProtocolRouter
from flashforge.webui.schemas import validate_websocket_command
from flashforge.webui.state import PrinterState, PrinterStateTracker, StateChangeEvent

__all__ = [
    "AuthManager",
    "CommandResult",
    "EventEmitter",
    "PrinterCommand",
    "PrinterDriver",
    "PrinterState",
    "PrinterStateTracker",
    "ProtocolRouter",
    "StateChangeEvent",
    "WebUIApplication",
    "__version__",
    "extract_bearer_token",
    "validate_auth_token",
    "validate_command",
    "validate_printer_command",
    "validate_websocket_command",
]
