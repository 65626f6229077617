from __future__ import annotations

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from releasegate.env import get_logging_env


def build_console() -> Console:
    # stdout so the CI host interleaves it with collaborator output
    return Console(file=sys.stdout, soft_wrap=True)


class ConsoleGateFilter(logging.Filter):
    """Drop console output entirely when quiet mode is requested."""

    def filter(self, record: logging.LogRecord) -> bool:
        return not get_logging_env().quiet


def build_console_handler(level: int) -> logging.Handler:
    handler = RichHandler(
        console=build_console(),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
    )
    handler.setLevel(level)

    # RichHandler renders the level column itself.
    handler.setFormatter(logging.Formatter("%(message)s"))

    handler.addFilter(ConsoleGateFilter())
    return handler
