"""Main entry point for the CLI."""

import sys
import typing

import cyclopts

from flashforge.webui import __version__
from flashforge.webui.cli import common
from flashforge.webui.cli.commands import auth, command, state, token

# Define the App
app = cyclopts.App(
    name="ffui-core",
    help="FlashForge WebUI core tools: tokens, command validation and printer state",
    version=__version__,
    version_flags=["--version"],
    help_flags=["--help"],
)

# Mount Sub-Apps
app.command(token.token_app)
app.command(command.command_app)
app.command(state.state_app)
app.command(auth.auth_app)


@app.meta.default
def entry_point(
    tokens: typing.Annotated[list[str] | None, cyclopts.Parameter(show=False, allow_leading_hyphen=True)] = None,
    verbose: typing.Annotated[
        bool, cyclopts.Parameter(name=["--verbose", "-v"], help="Enable verbose logging")
    ] = False,
    debug: typing.Annotated[bool, cyclopts.Parameter(name=["--debug"], help="Enable debug logging")] = False,
    output_format: typing.Annotated[
        str | None, cyclopts.Parameter(name=["--format"], help="Output format: rich, plain or json")
    ] = None,
):
    """Main entry point handling global flags."""
    common.configure_logging(verbose, debug)
    common.set_output_format(output_format)

    if tokens is None:
        tokens = []
    try:
        app(tokens)
    except cyclopts.exceptions.CycloptsError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def main(args: list[str] | None = None):
    """Main entry point."""
    if args is None:
        args = sys.argv[1:]

    try:
        app.meta(args)
    except cyclopts.exceptions.CycloptsError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        from flashforge.webui import exceptions

        if isinstance(e, exceptions.WebUIError):
            print(f"{e.code}: {e}", file=sys.stderr)
        else:
            print(f"Unexpected Error: {e}", file=sys.stderr)
            common.logger.exception("An unexpected error occurred")
        sys.exit(1)


if __name__ == "__main__":
    main()
