"""Token shape commands."""

import sys

import cyclopts

from flashforge.webui import auth
from flashforge.webui.cli import common

token_app = cyclopts.App(name="token", help="Check WebUI token and header shapes")


@token_app.command(name="check")
def check_command(token: str):
    """Check that a token looks like `<base64 data>.<hex signature>`.

    The signature is not verified.

    Args:
        token: Token string to check.
    """
    if auth.validate_auth_token(token) is None:
        common.output_message("[red]Malformed token[/red]", error=True)
        sys.exit(1)
    common.output_message("[green]Token shape is valid[/green]")


@token_app.command(name="bearer")
def bearer_command(header: str):
    """Extract the token from an `Authorization` header value.

    Args:
        header: Full header value, e.g. "Bearer abc.123".
    """
    token = auth.extract_bearer_token(header)
    if token is None:
        common.output_message("[red]No valid bearer token in header[/red]", error=True)
        sys.exit(1)
    print(token)
