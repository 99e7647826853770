"""Authentication commands."""

import json
import sys

import cyclopts
from rich.prompt import Prompt

from flashforge.webui import auth, config
from flashforge.webui.cli import common

auth_app = cyclopts.App(name="auth", help="WebUI password and token tools")


@auth_app.command(name="login")
def login_command(*, remember: bool = False):
    """Check the WebUI password and print a freshly issued token.

    Args:
        remember: Issue a persistent (long-lived) token.
    """
    # Always use rich console for interactive prompts regardless of format
    password = Prompt.ask("WebUI password", password=True, console=common.err_console)

    manager = auth.AuthManager(config.settings)
    response = manager.validate_login({"password": password, "rememberMe": remember})
    if not response.success:
        common.output_message(f"[red]Login failed:[/red] {response.message}", error=True)
        sys.exit(1)
    print(response.token)


@auth_app.command(name="status")
def status_command():
    """Show how WebUI authentication is configured."""
    manager = auth.AuthManager(config.settings)
    status = manager.auth_status()
    settings = config.settings

    if common.get_output_format() == common.OutputFormat.JSON:
        print(json.dumps(status.to_wire()))
        return

    rows = [
        ["Password set", "yes" if status.has_password else "no"],
        ["Default password", "[yellow]yes[/yellow]" if status.default_password else "no"],
        ["Session timeout", f"{settings.session_timeout_hours:g} h"],
        ["Temporary session timeout", f"{settings.temp_session_timeout_minutes:g} min"],
        ["Config file", str(config.get_config_file())],
    ]
    common.output_table("WebUI authentication", ["Setting", "Value"], rows)
