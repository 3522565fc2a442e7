"""Terminal logging for the bot, rendered with rich."""

import logging
import os

from rich.logging import RichHandler

_DEFAULT_LEVEL = "INFO"


def configure(level: str | None = None) -> None:
    """Route the root logger through rich. level falls back to BUGSYNC_LOG_LEVEL, then INFO."""
    name = (level or os.environ.get("BUGSYNC_LOG_LEVEL") or _DEFAULT_LEVEL).strip().upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, name, logging.INFO))
    if any(isinstance(handler, RichHandler) for handler in root.handlers):
        return
    root.addHandler(RichHandler(rich_tracebacks=True, show_path=False))
