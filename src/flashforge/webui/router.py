"""Request dispatch between WebUI transports, the validators and the printer driver.

The router owns no sockets. An HTTP or WebSocket server hands it raw header values
and parsed bodies, and gets back a status code and response body (HTTP) or has
messages pushed through the client's `ResponseChannel` (WebSocket).

How to use the most important parts:
- `PrinterDriver`: the protocol your printer integration implements.
- `ProtocolRouter.handle_request(authorization, body)`: authenticated printer commands.
- `ProtocolRouter.register_client` / `handle_websocket_message`: WebSocket sessions.
- `ProtocolRouter.handle_login` / `handle_logout`: session management.
"""

from __future__ import annotations

import collections.abc
import json
import typing

import pydantic
import structlog

from flashforge.webui import auth, command_models, consts, exceptions, schemas

if typing.TYPE_CHECKING:
    from flashforge.webui.state import PrinterStateTracker, StateChangeEvent

logger = structlog.get_logger(__name__)


class CommandResult(pydantic.BaseModel):
    """Outcome reported by the printer driver."""

    success: bool
    error: str | None = None
    data: typing.Any = None


class PrinterDriver(typing.Protocol):
    """Printer-side collaborator. Implementations talk to the actual device."""

    def get_status(self) -> schemas.PrinterStatusData | None: ...

    def execute_gcode(self, gcode: str) -> CommandResult: ...

    def home_axes(self) -> CommandResult: ...

    def clear_status(self) -> CommandResult: ...

    def set_led_enabled(self, enabled: bool) -> CommandResult: ...

    def set_bed_temperature(self, temperature: int) -> CommandResult: ...

    def set_extruder_temperature(self, temperature: int) -> CommandResult: ...

    def pause_print(self) -> CommandResult: ...

    def resume_print(self) -> CommandResult: ...

    def cancel_print(self) -> CommandResult: ...

    def set_filtration(self, mode: typing.Literal["external", "internal", "none"]) -> CommandResult: ...

    def get_printer_data(self) -> CommandResult: ...

    def get_recent_files(self) -> CommandResult: ...

    def get_local_files(self) -> CommandResult: ...

    def start_job(
        self,
        filename: str,
        leveling: bool,
        start_now: bool,
        material_mappings: list[schemas.MaterialMapping] | None = None,
    ) -> CommandResult: ...

    def get_model_preview(self, filename: str) -> CommandResult: ...


class ResponseChannel(typing.Protocol):
    """Reply path for a WebSocket client."""

    def send(self, message: schemas.WebSocketMessage) -> None: ...


class WebSocketClient(pydantic.BaseModel):
    client_id: str
    session_id: str
    channel: typing.Any


class RouterResponse(typing.NamedTuple):
    status_code: int
    body: schemas.StandardAPIResponse


def _error_response(status_code: int, error: str, **kwargs: typing.Any) -> RouterResponse:
    return RouterResponse(status_code, schemas.StandardAPIResponse(success=False, error=error, **kwargs))


class ProtocolRouter:
    """Forwards validated requests to the printer driver and session store.

    On construction the router subscribes to the tracker's `state-changed` event and
    pushes a STATUS_UPDATE to every registered WebSocket client on each transition.
    """

    def __init__(
        self,
        tracker: PrinterStateTracker,
        driver: PrinterDriver,
        auth_manager: auth.AuthManager,
        rate_limiter: auth.LoginRateLimiter | None = None,
    ):
        self._tracker = tracker
        self._driver = driver
        self._auth = auth_manager
        self._rate_limiter = rate_limiter
        self._clients: dict[str, WebSocketClient] = {}
        self._tracker.on(consts.StateEvent.CHANGED, self._on_state_changed)

    # -- Session endpoints ---------------------------------------------------

    def handle_login(self, client_address: str, body: typing.Any) -> RouterResponse:
        """Log in with the WebUI password. Rate limited per `client_address`."""
        try:
            if self._rate_limiter is not None:
                self._rate_limiter.check(client_address)
            result = self._auth.validate_login(body)
        except exceptions.WebUIValidationError as e:
            return _error_response(400, str(e), details=e.issues)
        except exceptions.WebUIAuthError as e:
            return _error_response(429, str(e))

        if not result.success:
            return _error_response(401, result.message or "Invalid password")
        if self._rate_limiter is not None:
            self._rate_limiter.reset(client_address)
        return RouterResponse(
            200, schemas.StandardAPIResponse(success=True, message=result.message, data={"token": result.token})
        )

    def handle_logout(self, authorization: typing.Any) -> RouterResponse:
        token = auth.extract_bearer_token(authorization)
        if token is None:
            return _error_response(401, "Missing authentication token")
        session = self._auth.validate_token(token)
        self._auth.revoke_token(token)
        if session.session_id is not None:
            self.disconnect_session(session.session_id)
        return RouterResponse(200, schemas.StandardAPIResponse(success=True, message="Logged out"))

    # -- REST-style commands -------------------------------------------------

    def handle_request(self, authorization: typing.Any, body: typing.Any) -> RouterResponse:
        """Authenticate, validate and dispatch a printer command body `{command, data?}`."""
        try:
            self._auth.require_token(authorization)
        except exceptions.WebUIAuthError as e:
            logger.debug("Rejected unauthenticated request", reason=str(e))
            return _error_response(401, str(e))

        try:
            command = command_models.require_printer_command(body)
        except exceptions.WebUIValidationError as e:
            return _error_response(400, str(e), details=e.issues)

        if not self._tracker.is_connected():
            return _error_response(503, "Printer not connected")

        try:
            result = self._dispatch(command)
        except exceptions.WebUIError as e:
            logger.warning("Command failed", command=str(command.command), code=str(e.code), error=str(e))
            return _error_response(503 if isinstance(e, exceptions.PrinterNotConnectedError) else 500, str(e))
        except Exception as e:
            logger.exception("Unexpected driver error", command=str(command.command))
            return _error_response(500, f"Command failed: {e}")

        if not result.success:
            failure = exceptions.CommandFailedError(str(command.command), result.error)
            logger.warning("Printer rejected command", command=str(command.command), error=result.error)
            return _error_response(500, str(failure), data=result.data)
        return RouterResponse(
            200,
            schemas.StandardAPIResponse(
                success=True, message=f"Command '{command.command}' executed", data=result.data
            ),
        )

    def _dispatch(self, command: command_models.PrinterCommandRequest) -> CommandResult:
        logger.info("Dispatching printer command", command=str(command.command))
        match command:
            case command_models.SetBedTemperature(data=data):
                return self._driver.set_bed_temperature(round(data.temperature))
            case command_models.SetExtruderTemperature(data=data):
                return self._driver.set_extruder_temperature(round(data.temperature))
            case command_models.PrintFile(data=data):
                return self._driver.start_job(data.filename, data.leveling, data.start_now, data.material_mappings)
            case command_models.RequestModelPreview(data=data):
                return self._driver.get_model_preview(data.filename)
            case command_models.BasicCommand():
                return self._basic_handlers()[command_models.PrinterCommand(command.command)]()
        raise exceptions.WebUIValidationError(f"Unknown command: {command.command}")

    def _basic_handlers(self) -> dict[command_models.PrinterCommand, collections.abc.Callable[[], CommandResult]]:
        d = self._driver
        cmd = command_models.PrinterCommand
        return {
            cmd.HOME_AXES: d.home_axes,
            cmd.CLEAR_STATUS: d.clear_status,
            cmd.LED_ON: lambda: d.set_led_enabled(True),
            cmd.LED_OFF: lambda: d.set_led_enabled(False),
            cmd.BED_TEMP_OFF: lambda: d.set_bed_temperature(0),
            cmd.EXTRUDER_TEMP_OFF: lambda: d.set_extruder_temperature(0),
            cmd.PAUSE_PRINT: d.pause_print,
            cmd.RESUME_PRINT: d.resume_print,
            cmd.CANCEL_PRINT: d.cancel_print,
            cmd.EXTERNAL_FILTRATION: lambda: d.set_filtration("external"),
            cmd.INTERNAL_FILTRATION: lambda: d.set_filtration("internal"),
            cmd.NO_FILTRATION: lambda: d.set_filtration("none"),
            cmd.REQUEST_PRINTER_DATA: d.get_printer_data,
            cmd.GET_RECENT_FILES: d.get_recent_files,
            cmd.GET_LOCAL_FILES: d.get_local_files,
        }

    # -- WebSocket -----------------------------------------------------------

    def register_client(self, client_id: str, token: typing.Any, channel: ResponseChannel | None) -> WebSocketClient:
        """Attach an authenticated WebSocket client and greet it with AUTH_SUCCESS.

        Raises:
            MissingResponseChannelError: If `channel` is None.
            WebUIAuthError: If `token` is not a valid session token.
        """
        if channel is None:
            raise exceptions.MissingResponseChannelError(f"Client {client_id} has no response channel")
        result = self._auth.validate_token(token)
        if not result.is_valid or result.session_id is None:
            raise exceptions.WebUIInvalidTokenError("Invalid or expired token")

        client = WebSocketClient(client_id=client_id, session_id=result.session_id, channel=channel)
        self._clients[client_id] = client
        logger.info("WebSocket client connected", client_id=client_id, clients=len(self._clients))
        self._send(client, schemas.WebSocketMessage(type=schemas.WebSocketMessageType.AUTH_SUCCESS, client_id=client_id))
        return client

    def unregister_client(self, client_id: str) -> None:
        if self._clients.pop(client_id, None) is not None:
            logger.info("WebSocket client disconnected", client_id=client_id)

    def disconnect_session(self, session_id: str) -> int:
        """Notify and drop every WebSocket client bound to `session_id`. Returns how many were dropped."""
        bound = [client for client in self._clients.values() if client.session_id == session_id]
        for client in bound:
            self._send_error(client, "Session ended")
            del self._clients[client.client_id]
        if bound:
            logger.info("Disconnected WebSocket clients for ended session", count=len(bound))
        return len(bound)

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def handle_websocket_message(self, client_id: str, raw: str | bytes) -> None:
        """Decode, validate and answer one WebSocket message.

        Raises:
            MissingResponseChannelError: If `client_id` is not registered, since the
                reply would have nowhere to go.
        """
        client = self._clients.get(client_id)
        if client is None:
            raise exceptions.MissingResponseChannelError(f"Message from unknown client {client_id}")

        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.debug("Failed to parse WebSocket message", client_id=client_id)
            self._send_error(client, "Invalid JSON format")
            return

        try:
            command = schemas.parse_websocket_command(parsed)
        except exceptions.WebUIValidationError as e:
            self._send_error(client, str(e), details=e.issues)
            return

        try:
            self._handle_websocket_command(client, command)
        except exceptions.WebUIValidationError as e:
            self._send_error(client, str(e), details=e.issues or None)
        except exceptions.WebUIError as e:
            self._send_error(client, str(e))
        except Exception:
            logger.exception("Error handling WebSocket message", client_id=client_id)
            self._send_error(client, "Failed to process message")

    def _handle_websocket_command(self, client: WebSocketClient, command: schemas.WebSocketCommand) -> None:
        match command.command:
            case schemas.WebSocketCommandType.REQUEST_STATUS:
                self._send(client, self._status_message())
            case schemas.WebSocketCommandType.EXECUTE_GCODE:
                if not command.gcode:
                    raise exceptions.WebUIValidationError("G-code command required")
                try:
                    gcode = schemas.GCodeCommandRequest(command=command.gcode)
                except pydantic.ValidationError as e:
                    raise exceptions.WebUIValidationError("Invalid G-code command", schemas.issues_from_error(e)) from e
                if not self._tracker.is_connected():
                    raise exceptions.PrinterNotConnectedError("Printer not connected")
                result = self._driver.execute_gcode(gcode.command)
                self._send(
                    client,
                    schemas.WebSocketMessage(
                        type=schemas.WebSocketMessageType.COMMAND_RESULT,
                        command=str(command.command),
                        success=result.success,
                        error=result.error,
                    ),
                )
            case schemas.WebSocketCommandType.PING:
                self._send(client, schemas.WebSocketMessage(type=schemas.WebSocketMessageType.PONG))

    def _status_message(self) -> schemas.WebSocketMessage:
        status = self._driver.get_status()
        if status is None:
            status = schemas.PrinterStatusData(printer_state=str(self._tracker.get_current_state()))
        return schemas.WebSocketMessage(type=schemas.WebSocketMessageType.STATUS_UPDATE, status=status)

    def broadcast(self, message: schemas.WebSocketMessage) -> None:
        for client in list(self._clients.values()):
            self._send(client, message)

    def _on_state_changed(self, event: StateChangeEvent) -> None:
        if not self._clients:
            return
        logger.debug("Broadcasting status", previous=str(event.previous_state), current=str(event.current_state))
        self.broadcast(self._status_message())

    def _send(self, client: WebSocketClient, message: schemas.WebSocketMessage) -> None:
        try:
            client.channel.send(message)
        except Exception:
            logger.exception("Failed to send WebSocket message", client_id=client.client_id)

    def _send_error(self, client: WebSocketClient, error: str, **kwargs: typing.Any) -> None:
        self._send(client, schemas.WebSocketMessage(type=schemas.WebSocketMessageType.ERROR, error=error, **kwargs))

    def dispose(self) -> None:
        """Unsubscribe from the tracker and drop all WebSocket clients."""
        self._tracker.off(consts.StateEvent.CHANGED, self._on_state_changed)
        self._clients.clear()
