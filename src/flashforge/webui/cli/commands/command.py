"""Command validation commands."""

import json
import sys

import cyclopts

from flashforge.webui import command_models, exceptions, schemas
from flashforge.webui.cli import common

command_app = cyclopts.App(name="command", help="Validate WebUI command bodies")


def _print_issues(issues: list[schemas.ValidationIssue]) -> None:
    common.output_table(
        "Validation failed",
        ["Path", "Message"],
        [[issue.path or "(root)", issue.message] for issue in issues],
    )


@command_app.command(name="validate")
def validate_body_command(body: str):
    """Validate a printer command body such as '{"command": "set-bed-temp", "data": {"temperature": 60}}'.

    Args:
        body: JSON request body.
    """
    result = command_models.parse_printer_command(common.load_json_argument(body))
    if isinstance(result, command_models.RejectedCommand):
        _print_issues(result.issues)
        sys.exit(1)
    print(result.model_dump_json(by_alias=True, exclude_none=True))


@command_app.command(name="ws")
def websocket_command(body: str):
    """Validate a WebSocket envelope such as '{"command": "execute-gcode", "gcode": "G28"}'.

    Args:
        body: JSON message.
    """
    raw = common.load_json_argument(body)
    try:
        command = schemas.parse_websocket_command(raw)
    except exceptions.WebUIValidationError as e:
        _print_issues(e.issues)
        sys.exit(1)
    data = command.data.to_wire() if isinstance(command.data, schemas.WebUIModel) else command.data
    print(json.dumps({"command": str(command.command), "gcode": command.gcode, "data": data}))
