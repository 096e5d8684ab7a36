"""Logging configuration."""
import logging
import os

from rich.logging import RichHandler


def setup_logging(level: str | None = None) -> logging.Logger:
    """Route log records through rich so they don't break the prompt layout."""
    level = (level or os.environ.get("EXAM_TUTOR_LOG_LEVEL", "WARNING")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    return logging.getLogger("exam_tutor")
