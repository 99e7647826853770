"""Exceptions for the WebUI core.

Validators in this package never raise; they return `None` for rejected input.
These exceptions are raised by the `parse_*` helpers, the session store and the
protocol router, and each one carries a stable `code` the transport can forward.

How to use the most important parts:
- `WebUIError`: Catch this base exception to handle all errors from this package.
- `WebUIValidationError`: Inspect `issues` for field-level (path, message) details.
- `MissingResponseChannelError`: Raised when a request has no way to deliver its reply.
"""

from __future__ import annotations

import typing

from flashforge.webui.consts import ErrorCode

if typing.TYPE_CHECKING:
    from flashforge.webui.schemas import ValidationIssue


class WebUIError(Exception):
    """Base exception for all WebUI core errors."""

    code: ErrorCode = ErrorCode.SERVER_ERROR


class WebUIAuthError(WebUIError):
    """Raised when a request is not authenticated (missing, malformed or revoked token)."""

    code = ErrorCode.AUTH_FAILED


class WebUIInvalidTokenError(WebUIAuthError):
    """Raised when a well-formed request carries a token that is forged, expired or revoked."""

    code = ErrorCode.INVALID_TOKEN


class WebUIValidationError(WebUIError):
    """Raised when a request body fails schema validation."""

    code = ErrorCode.INVALID_REQUEST

    def __init__(self, message: str, issues: list[ValidationIssue] | None = None) -> None:
        """Initialize the error.

        Args:
            message: Error description.
            issues: Field-level validation issues.
        """
        super().__init__(message)
        self.issues = issues or []


class PrinterNotConnectedError(WebUIError):
    """Raised when a command needs a connected printer and there is none."""

    code = ErrorCode.PRINTER_NOT_CONNECTED


class CommandFailedError(WebUIError):
    """Raised when the printer driver reports a failed command."""

    code = ErrorCode.COMMAND_FAILED

    def __init__(self, command: str, reason: str | None = None) -> None:
        """Initialize the error."""
        super().__init__(f"Command '{command}' failed: {reason or 'unknown error'}")
        self.command = command
        self.reason = reason


class MissingResponseChannelError(WebUIError):
    """Raised when a request arrives without a channel to send its reply on."""
