"""Logging setup.

library modules only ever call logging.getLogger(__name__). handlers are
installed here, once, by whoever owns the process (the cli, a script).
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_NAME = "notelens-rich"


def configure_logging(level: str | int = "WARNING", console: Console | None = None) -> None:
    """Route notelens logs through rich. Safe to call more than once.

    logs go to stderr so they never mix with json/csv output on stdout.
    """
    package_logger = logging.getLogger("notelens")
    package_logger.setLevel(level.upper() if isinstance(level, str) else level)

    if any(handler.get_name() == _HANDLER_NAME for handler in package_logger.handlers):
        return

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    package_logger.addHandler(handler)
