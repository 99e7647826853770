"""Validation schemas for data coming from WebUI clients.

Everything a browser or WebSocket client sends is untrusted. The models here turn
parsed JSON into typed, defaulted structures, and the `validate_*` helpers return
`None` instead of raising so the transport can branch on the result.

How to use the most important parts:
- `validate_websocket_command`: gate for `{command, gcode?, data?}` envelopes.
- `TemperatureData`, `JobStartData`, `ModelPreviewRequest`: per-command payloads,
  registered in `COMMAND_DATA_VALIDATORS`.
- `create_validation_error`: turn a `pydantic.ValidationError` into the
  `{"error", "details": [{"path", "message"}]}` body clients expect.
"""

import datetime
import enum
import typing

import pydantic
import structlog
from pydantic.alias_generators import to_camel

from flashforge.webui import consts, exceptions

logger = structlog.get_logger(__name__)

StrictStr = typing.Annotated[str, pydantic.Field(strict=True)]
StrictBool = typing.Annotated[bool, pydantic.Field(strict=True)]
NonEmptyStr = typing.Annotated[str, pydantic.Field(strict=True, min_length=1)]
Temperature = typing.Annotated[
    float,
    pydantic.Field(strict=True, ge=consts.MIN_TEMPERATURE, le=consts.MAX_TEMPERATURE),
]


class WebUIModel(pydantic.BaseModel):
    """Base model: camelCase on the wire, snake_case in Python, unknown keys dropped."""

    model_config = pydantic.ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, typing.Any]:
        """Serialize with wire (camelCase) names, omitting unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# -- Validation issues ------------------------------------------------------


class ValidationIssue(pydantic.BaseModel):
    """A single field-level validation failure."""

    path: str
    message: str


def issues_from_error(error: pydantic.ValidationError, drop_prefix: int = 0) -> list[ValidationIssue]:
    """Flatten a pydantic error into (path, message) pairs.

    Args:
        error: The validation error.
        drop_prefix: Number of leading location parts to drop (e.g. a union tag).
    """
    return [
        ValidationIssue(path=".".join(str(part) for part in issue["loc"][drop_prefix:]), message=issue["msg"])
        for issue in error.errors()
    ]


def create_validation_error(error: pydantic.ValidationError | list[ValidationIssue]) -> dict[str, typing.Any]:
    """Build the standard validation failure body."""
    issues = issues_from_error(error) if isinstance(error, pydantic.ValidationError) else error
    return {
        "error": "Validation failed",
        "details": [issue.model_dump() for issue in issues],
    }


# -- Authentication ---------------------------------------------------------


class WebUILoginRequest(WebUIModel):
    """Login form."""

    password: NonEmptyStr
    remember_me: StrictBool = False


class WebUIAuthStatus(WebUIModel):
    has_password: bool
    default_password: bool
    auth_required: bool = True


class WebUILoginResponse(WebUIModel):
    success: bool
    token: str | None = None
    message: str | None = None


# -- Command payloads -------------------------------------------------------


class TemperatureData(WebUIModel):
    """Target temperature in degrees Celsius, 0 to 300 inclusive."""

    temperature: Temperature


class MaterialMapping(WebUIModel):
    """Assigns a slicer tool to a material station slot."""

    tool_id: typing.Annotated[int, pydantic.Field(strict=True, ge=0)]
    slot_id: typing.Annotated[int, pydantic.Field(strict=True, ge=1)]
    material_name: NonEmptyStr
    tool_material_color: NonEmptyStr
    slot_material_color: NonEmptyStr


class JobStartData(WebUIModel):
    """Start a print from a file already on the printer."""

    filename: NonEmptyStr
    leveling: StrictBool = False
    start_now: StrictBool = True
    material_mappings: typing.Annotated[list[MaterialMapping], pydantic.Field(min_length=1)] | None = None


class ModelPreviewRequest(WebUIModel):
    filename: NonEmptyStr
    request_id: StrictStr | None = None


class GCodeCommandRequest(WebUIModel):
    """Raw G-code line sent from the WebUI console."""

    command: typing.Annotated[str, pydantic.Field(strict=True, min_length=1, pattern=r"^[A-Z]")]


# Command name -> payload schema. Commands not listed take no payload.
COMMAND_DATA_VALIDATORS: dict[str, type[WebUIModel]] = {
    "set-bed-temp": TemperatureData,
    "set-extruder-temp": TemperatureData,
    "print-file": JobStartData,
    "request-model-preview": ModelPreviewRequest,
}


def validate_command_data(command: str, data: typing.Any) -> WebUIModel | None:
    """Validate `data` against the schema registered for `command`.

    Raises:
        pydantic.ValidationError: If a schema is registered and `data` does not match it.

    Returns:
        The parsed payload, or None when `command` has no registered schema.
    """
    schema = COMMAND_DATA_VALIDATORS.get(command)
    if schema is None:
        return None
    return schema.model_validate(data)


# -- WebSocket envelope -----------------------------------------------------


class WebSocketCommandType(enum.StrEnum):
    REQUEST_STATUS = "request-status"
    EXECUTE_GCODE = "execute-gcode"
    PING = "ping"


class WebSocketCommand(WebUIModel):
    """Client-to-server WebSocket envelope."""

    command: WebSocketCommandType
    gcode: StrictStr | None = None
    data: typing.Any = None

    @pydantic.field_validator("command", mode="before")
    @classmethod
    def normalize_command(cls, value: typing.Any) -> typing.Any:
        """Accept the legacy upper-case spelling (`REQUEST_STATUS`) as well."""
        if isinstance(value, str) and value.isupper():
            return value.lower().replace("_", "-")
        return value


def validate_websocket_command(raw: typing.Any) -> WebSocketCommand | None:
    """Validate a WebSocket envelope and, where registered, its payload.

    Returns:
        The envelope with `data` replaced by its parsed, defaulted payload, or None
        if either the envelope or the payload is invalid.
    """
    try:
        command = WebSocketCommand.model_validate(raw)
    except pydantic.ValidationError as e:
        logger.debug("Rejected WebSocket envelope", issues=issues_from_error(e))
        return None

    try:
        payload = validate_command_data(command.command, command.data)
    except pydantic.ValidationError as e:
        logger.debug("Rejected WebSocket payload", command=str(command.command), issues=issues_from_error(e))
        return None

    if payload is None:
        return command
    return command.model_copy(update={"data": payload})


def parse_websocket_command(raw: typing.Any) -> WebSocketCommand:
    """Like `validate_websocket_command`, but raise with field-level details.

    Raises:
        WebUIValidationError: If the envelope or payload is invalid.
    """
    try:
        command = WebSocketCommand.model_validate(raw)
        payload = validate_command_data(command.command, command.data)
    except pydantic.ValidationError as e:
        raise exceptions.WebUIValidationError("Validation failed", issues_from_error(e)) from e
    return command if payload is None else command.model_copy(update={"data": payload})


# -- Responses --------------------------------------------------------------


class WebSocketMessageType(enum.StrEnum):
    AUTH_SUCCESS = "AUTH_SUCCESS"
    STATUS_UPDATE = "STATUS_UPDATE"
    ERROR = "ERROR"
    COMMAND_RESULT = "COMMAND_RESULT"
    PONG = "PONG"


class PrinterStatusData(WebUIModel):
    """Printer status snapshot shared by WebSocket updates and the REST API."""

    printer_state: str
    bed_temperature: float = 0.0
    bed_target_temperature: float = 0.0
    nozzle_temperature: float = 0.0
    nozzle_target_temperature: float = 0.0
    progress: float = 0.0
    current_layer: int | None = None
    total_layers: int | None = None
    job_name: str | None = None
    time_elapsed: int | None = None
    time_remaining: int | None = None
    filtration_mode: typing.Literal["external", "internal", "none"] = "none"
    estimated_weight: float | None = None
    estimated_length: float | None = None
    thumbnail_data: str | None = None
    cumulative_filament: float | None = None
    cumulative_print_time: float | None = None


class WebSocketMessage(WebUIModel):
    """Server-to-client WebSocket message."""

    type: WebSocketMessageType
    timestamp: str = pydantic.Field(default_factory=lambda: datetime.datetime.now(datetime.UTC).isoformat())
    status: PrinterStatusData | None = None
    error: str | None = None
    details: list[ValidationIssue] | None = None
    client_id: str | None = None
    command: str | None = None
    success: bool | None = None


class StandardAPIResponse(WebUIModel):
    success: bool
    message: str | None = None
    error: str | None = None
    details: list[ValidationIssue] | None = None
    data: typing.Any = None


class PrinterFeatures(WebUIModel):
    has_camera: bool
    has_led: bool = pydantic.Field(alias="hasLED")
    has_filtration: bool
    has_material_station: bool
    can_pause: bool
    can_resume: bool
    can_cancel: bool
    led_uses_legacy_api: bool | None = pydantic.Field(default=None, alias="ledUsesLegacyAPI")
