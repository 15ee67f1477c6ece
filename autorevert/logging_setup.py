from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_CONFIGURED = False


def configure_logging(level: str = "INFO", *, console: Console | None = None) -> None:
    """Configure process-wide logging.

    Status lines go to stderr through rich. Safe to call multiple times; it
    will not duplicate handlers, but a later call still updates the level.
    """

    global _CONFIGURED
    resolved = getattr(logging, level.upper().strip(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(resolved)

    if _CONFIGURED:
        return

    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            log_time_format="%Y-%m-%dT%H:%M:%S",
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        root.addHandler(handler)

    # GitPython logs every command at DEBUG; keep it quiet unless asked.
    if resolved > logging.DEBUG:
        logging.getLogger("git").setLevel(logging.WARNING)

    _CONFIGURED = True
