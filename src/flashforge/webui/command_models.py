"""Printer commands accepted on the authenticated WebUI surface.

Each command is its own typed variant, discriminated on `command`. Commands with a
registered payload schema carry the parsed payload in `data`; the rest carry
whatever the client sent, unvalidated. Anything that does not map onto a variant
becomes a `RejectedCommand` listing the field-level issues.

How to use the most important parts:
- `parse_printer_command(raw)`: returns a variant or a `RejectedCommand`. Branch with
  `isinstance(result, RejectedCommand)` or `match`.
- `validate_printer_command(raw)`: same, but returns None on rejection.
- `validate_command(raw)`: single entry point for both printer commands and
  WebSocket envelopes.
"""

import enum
import typing

import pydantic
import structlog

from flashforge.webui import exceptions, schemas

logger = structlog.get_logger(__name__)


class PrinterCommand(enum.StrEnum):
    """Closed set of printer commands."""

    # Basic controls
    HOME_AXES = "home-axes"
    CLEAR_STATUS = "clear-status"
    LED_ON = "led-on"
    LED_OFF = "led-off"

    # Temperature controls
    SET_BED_TEMP = "set-bed-temp"
    BED_TEMP_OFF = "bed-temp-off"
    SET_EXTRUDER_TEMP = "set-extruder-temp"
    EXTRUDER_TEMP_OFF = "extruder-temp-off"

    # Job controls
    PAUSE_PRINT = "pause-print"
    RESUME_PRINT = "resume-print"
    CANCEL_PRINT = "cancel-print"

    # Filtration controls
    EXTERNAL_FILTRATION = "external-filtration"
    INTERNAL_FILTRATION = "internal-filtration"
    NO_FILTRATION = "no-filtration"

    # Data requests
    REQUEST_PRINTER_DATA = "request-printer-data"
    GET_RECENT_FILES = "get-recent-files"
    GET_LOCAL_FILES = "get-local-files"

    # Job operations
    PRINT_FILE = "print-file"
    REQUEST_MODEL_PREVIEW = "request-model-preview"


class _CommandBase(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="ignore", frozen=True)

    @property
    def name(self) -> PrinterCommand:
        return PrinterCommand(self.command)  # type: ignore[attr-defined]


class BasicCommand(_CommandBase):
    """A command without a payload schema."""

    command: typing.Literal[
        "home-axes",
        "clear-status",
        "led-on",
        "led-off",
        "bed-temp-off",
        "extruder-temp-off",
        "pause-print",
        "resume-print",
        "cancel-print",
        "external-filtration",
        "internal-filtration",
        "no-filtration",
        "request-printer-data",
        "get-recent-files",
        "get-local-files",
    ]
    data: typing.Any = None


class SetBedTemperature(_CommandBase):
    command: typing.Literal["set-bed-temp"]
    data: schemas.TemperatureData


class SetExtruderTemperature(_CommandBase):
    command: typing.Literal["set-extruder-temp"]
    data: schemas.TemperatureData


class PrintFile(_CommandBase):
    command: typing.Literal["print-file"]
    data: schemas.JobStartData


class RequestModelPreview(_CommandBase):
    command: typing.Literal["request-model-preview"]
    data: schemas.ModelPreviewRequest


PrinterCommandRequest = typing.Annotated[
    BasicCommand | SetBedTemperature | SetExtruderTemperature | PrintFile | RequestModelPreview,
    pydantic.Field(discriminator="command"),
]

_printer_command_adapter: pydantic.TypeAdapter[PrinterCommandRequest] = pydantic.TypeAdapter(PrinterCommandRequest)


class RejectedCommand(pydantic.BaseModel):
    """Input that did not map onto any printer command."""

    error: str = "Validation failed"
    issues: list[schemas.ValidationIssue] = pydantic.Field(default_factory=list)

    def to_wire(self) -> dict[str, typing.Any]:
        return schemas.create_validation_error(self.issues)


def parse_printer_command(raw: typing.Any) -> PrinterCommandRequest | RejectedCommand:
    """Map an untyped `{command, data?}` body onto its typed command variant.

    The whole request is rejected if either the command name or its payload is
    invalid; there is no partial acceptance.
    """
    try:
        return _printer_command_adapter.validate_python(raw)
    except pydantic.ValidationError as e:
        # Variant errors are located under the tag ("set-bed-temp", "data", ...)
        tag = raw.get("command") if isinstance(raw, dict) else None
        first_locs = {issue["loc"][0] for issue in e.errors() if issue["loc"]}
        drop = 1 if isinstance(tag, str) and first_locs == {tag} else 0
        rejected = RejectedCommand(issues=schemas.issues_from_error(e, drop_prefix=drop))
        logger.debug("Rejected printer command", command=tag, issues=rejected.issues)
        return rejected


def validate_printer_command(raw: typing.Any) -> PrinterCommandRequest | None:
    """Validate a printer command. Returns None if it is rejected."""
    result = parse_printer_command(raw)
    if isinstance(result, RejectedCommand):
        return None
    return result


def require_printer_command(raw: typing.Any) -> PrinterCommandRequest:
    """Validate a printer command.

    Raises:
        WebUIValidationError: With the field-level issues if the command is rejected.
    """
    result = parse_printer_command(raw)
    if isinstance(result, RejectedCommand):
        raise exceptions.WebUIValidationError(result.error, result.issues)
    return result


def is_printer_command(value: typing.Any) -> bool:
    return isinstance(value, str) and value in PrinterCommand


def validate_command(raw: typing.Any) -> PrinterCommandRequest | schemas.WebSocketCommand | None:
    """Validate either a printer command or a WebSocket envelope.

    Bodies whose `command` names a printer command go through the printer command
    variants; everything else is treated as a WebSocket envelope.
    """
    if isinstance(raw, dict) and is_printer_command(raw.get("command")):
        return validate_printer_command(raw)
    return schemas.validate_websocket_command(raw)
