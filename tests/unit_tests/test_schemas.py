"""Tests for client input schemas and WebSocket envelope validation."""

import pydantic
import pytest

from flashforge.webui import exceptions, schemas


def test_temperature_accepts_bounds():
    assert schemas.TemperatureData.model_validate({"temperature": 0}).temperature == 0
    assert schemas.TemperatureData.model_validate({"temperature": 300}).temperature == 300
    assert schemas.TemperatureData.model_validate({"temperature": 215.5}).temperature == 215.5


@pytest.mark.parametrize("value", [-1, 300.5, 400, "200", True, None])
def test_temperature_rejects(value):
    with pytest.raises(pydantic.ValidationError):
        schemas.TemperatureData.model_validate({"temperature": value})


def test_job_start_defaults():
    job = schemas.JobStartData.model_validate({"filename": "a.gcode"})
    assert job.filename == "a.gcode"
    assert job.leveling is False
    assert job.start_now is True
    assert job.to_wire() == {"filename": "a.gcode", "leveling": False, "startNow": True}


def test_job_start_reads_camel_case():
    job = schemas.JobStartData.model_validate({"filename": "b.gx", "leveling": True, "startNow": False})
    assert job.leveling is True
    assert job.start_now is False


@pytest.mark.parametrize("data", [{}, {"filename": ""}, {"filename": 42}, {"filename": "a", "leveling": "yes"}])
def test_job_start_rejects(data):
    with pytest.raises(pydantic.ValidationError):
        schemas.JobStartData.model_validate(data)


def test_model_preview_request():
    preview = schemas.ModelPreviewRequest.model_validate({"filename": "cube.3mf", "requestId": "r1"})
    assert preview.request_id == "r1"
    assert schemas.ModelPreviewRequest.model_validate({"filename": "cube.3mf"}).request_id is None


def test_gcode_command_request():
    assert schemas.GCodeCommandRequest(command="G28").command == "G28"
    with pytest.raises(pydantic.ValidationError):
        schemas.GCodeCommandRequest(command="g28")
    with pytest.raises(pydantic.ValidationError):
        schemas.GCodeCommandRequest(command="")


def test_login_request():
    login = schemas.WebUILoginRequest.model_validate({"password": "pw", "rememberMe": True})
    assert login.remember_me is True
    assert schemas.WebUILoginRequest.model_validate({"password": "pw"}).remember_me is False
    with pytest.raises(pydantic.ValidationError):
        schemas.WebUILoginRequest.model_validate({"password": ""})


def test_create_validation_error_reports_paths():
    with pytest.raises(pydantic.ValidationError) as exc_info:
        schemas.TemperatureData.model_validate({"temperature": 400})

    body = schemas.create_validation_error(exc_info.value)

    assert body["error"] == "Validation failed"
    assert len(body["details"]) == 1
    assert body["details"][0]["path"] == "temperature"
    assert "300" in body["details"][0]["message"]


def test_validate_command_data_unregistered_command():
    assert schemas.validate_command_data("home-axes", {"anything": 1}) is None


# -- WebSocket envelope -----------------------------------------------------


def test_ping_accepted_without_payload():
    command = schemas.validate_websocket_command({"command": "ping"})
    assert command is not None
    assert command.command == schemas.WebSocketCommandType.PING
    assert command.data is None


def test_execute_gcode_envelope():
    command = schemas.validate_websocket_command({"command": "execute-gcode", "gcode": "G28"})
    assert command is not None
    assert command.gcode == "G28"


def test_legacy_upper_case_command_is_normalized():
    command = schemas.validate_websocket_command({"command": "REQUEST_STATUS"})
    assert command is not None
    assert command.command == schemas.WebSocketCommandType.REQUEST_STATUS


@pytest.mark.parametrize(
    "raw",
    [
        {"command": "jump"},
        {"command": "execute-gcode", "gcode": 28},
        {},
        "ping",
        None,
        ["ping"],
    ],
)
def test_invalid_envelopes_return_none(raw):
    assert schemas.validate_websocket_command(raw) is None


def test_parse_websocket_command_raises_with_issues():
    with pytest.raises(exceptions.WebUIValidationError) as exc_info:
        schemas.parse_websocket_command({"command": "jump"})

    assert exc_info.value.code == "WEB_INVALID_REQUEST"
    assert exc_info.value.issues[0].path == "command"


# -- Responses --------------------------------------------------------------


def test_websocket_message_wire_format():
    message = schemas.WebSocketMessage(type=schemas.WebSocketMessageType.AUTH_SUCCESS, client_id="c1")
    wire = message.to_wire()

    assert wire["type"] == "AUTH_SUCCESS"
    assert wire["clientId"] == "c1"
    assert "timestamp" in wire
    assert "error" not in wire


def test_status_update_wire_format():
    status = schemas.PrinterStatusData(printer_state="Printing", progress=42.5, job_name="cube")
    wire = schemas.WebSocketMessage(type=schemas.WebSocketMessageType.STATUS_UPDATE, status=status).to_wire()

    assert wire["status"]["printerState"] == "Printing"
    assert wire["status"]["jobName"] == "cube"
    assert wire["status"]["filtrationMode"] == "none"


def test_printer_features_aliases():
    features = schemas.PrinterFeatures.model_validate(
        {
            "hasCamera": True,
            "hasLED": True,
            "hasFiltration": False,
            "hasMaterialStation": False,
            "canPause": True,
            "canResume": True,
            "canCancel": True,
            "ledUsesLegacyAPI": True,
        }
    )
    assert features.has_led is True
    wire = features.to_wire()
    assert wire["hasLED"] is True
    assert wire["ledUsesLegacyAPI"] is True


def test_job_start_material_mappings_wire_format():
    job = schemas.JobStartData.model_validate(
        {
            "filename": "a.3mf",
            "materialMappings": [
                {
                    "toolId": 1,
                    "slotId": 4,
                    "materialName": "PETG",
                    "toolMaterialColor": "#000000",
                    "slotMaterialColor": "#111111",
                }
            ],
        }
    )
    assert job.to_wire()["materialMappings"] == [
        {
            "toolId": 1,
            "slotId": 4,
            "materialName": "PETG",
            "toolMaterialColor": "#000000",
            "slotMaterialColor": "#111111",
        }
    ]
    assert "materialMappings" not in schemas.JobStartData.model_validate({"filename": "a.3mf"}).to_wire()
