"""Shared CLI helpers."""

import enum
import json as _json
import logging
import sys
import typing

import better_exceptions
import structlog
from rich import console as rich_console
from rich.text import Text

from flashforge.webui import consts

if typing.TYPE_CHECKING:
    from structlog.typing import Processor

# Setup
better_exceptions.hook()
console = rich_console.Console()
err_console = rich_console.Console(stderr=True)
logger = structlog.get_logger(consts.APP_NAME)


class OutputFormat(enum.StrEnum):
    RICH = "rich"
    PLAIN = "plain"
    JSON = "json"


# -- Output format ----------------------------------------------------------

_output_format: OutputFormat | None = None  # None means "resolve from TTY"


def set_output_format(fmt: str | None) -> None:
    """Set the output format (called from --format CLI flag).

    Calls `sys.exit` if an invalid format is specified.
    """
    global _output_format
    try:
        _output_format = OutputFormat(fmt) if fmt is not None else None
    except ValueError:
        output_message(
            (
                f"[bold][red]Error[/red][/bold]: `{fmt}` is not a valid output "
                f"format. Valid formats are: {', '.join(OutputFormat.__members__.values())}"
            ),
            error=True,
        )
        sys.exit(1)


def get_output_format() -> OutputFormat:
    """Resolve the active output format: CLI flag > TTY auto-detect."""
    if _output_format is not None:
        return _output_format
    return OutputFormat.RICH if sys.stdout.isatty() else OutputFormat.PLAIN


def _strip_markup(text: str) -> str:
    """Remove Rich markup tags from a string."""
    return Text.from_markup(str(text)).plain


def output_message(msg: str, *, error: bool = False) -> None:
    """Print a status/error message respecting the current output format.

    - rich: renders markup with color to stdout (or stderr for errors)
    - plain: strips markup, writes to stdout (errors to stderr)
    - json: strips markup, always writes to stderr (stdout reserved for JSON)
    """
    fmt = get_output_format()
    if fmt in (OutputFormat.PLAIN, OutputFormat.JSON):
        plain = _strip_markup(msg)
        to_stderr = error or fmt == OutputFormat.JSON
        print(plain, file=sys.stderr if to_stderr else sys.stdout)
    else:
        target = err_console if error else console
        target.print(msg)


def output_table(title: str, columns: list[str], rows: list[list[str]]) -> None:
    """Print tabular data respecting the current output format.

    Args:
        title: Table title (used as rich title; as ``# title`` comment in plain).
        columns: Column header names.
        rows: Row data as lists of strings (may contain Rich markup; stripped in
            plain/json modes).
    """
    from rich.table import Table as _RichTable

    fmt = get_output_format()

    if fmt == OutputFormat.JSON:
        keys = [c.lower().replace(" ", "_") for c in columns]
        data = [dict(zip(keys, [_strip_markup(c) for c in row], strict=False)) for row in rows]
        print(_json.dumps(data))
    elif fmt == OutputFormat.PLAIN:
        print(f"# {title}")
        print("\t".join(columns))
        for row in rows:
            print("\t".join(_strip_markup(c) for c in row))
    else:
        table = _RichTable(title=title)
        for col in columns:
            table.add_column(col)
        for row in rows:
            table.add_row(*[str(c) for c in row])
        console.print(table)


_LOGGING_INITIALIZED = False


def configure_logging(verbose: bool | None, debug: bool | None):
    """Sets up structlog/logging based on verbosity."""
    global _LOGGING_INITIALIZED
    global logger

    # If no flags provided and we are already initialized, do nothing (inherit state)
    if verbose is None and debug is None:
        if _LOGGING_INITIALIZED:
            return
        verbose = False
        debug = False

    _LOGGING_INITIALIZED = True

    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
    ]

    if not sys.stderr.isatty():
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )
    logger = structlog.get_logger(consts.APP_NAME)


def load_json_argument(raw: str) -> typing.Any:
    """Parse a JSON command-line argument, exiting with a message on malformed input."""
    try:
        return _json.loads(raw)
    except _json.JSONDecodeError as e:
        output_message(f"[red]Invalid JSON:[/red] {e}", error=True)
        sys.exit(1)
