"""FlashForge WebUI core CLI package.

This module provides a command-line tool `ffui-core` for checking tokens, validating
command bodies and replaying printer state sequences.
"""

from flashforge.webui.cli.common import console, logger
from flashforge.webui.cli.main import app, main

__all__ = [
    "app",
    "console",
    "logger",
    "main",
]
