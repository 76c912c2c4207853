"""Logging utilities."""

import logging
import os
from pathlib import Path

DEFAULT_LEVEL = "WARNING"


def setup_logging(level: str | None = None, file: Path | None = None) -> None:
    """Setup application logging.

    Args:
        level: Level name; falls back to ``SPOTCUT_LOG`` then WARNING.
        file: Optional log file written next to the console output.
    """
    name = (level or os.environ.get("SPOTCUT_LOG") or DEFAULT_LEVEL).upper()
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if file is not None:
        handlers.append(logging.FileHandler(file))

    logging.basicConfig(
        level=getattr(logging, name, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )
