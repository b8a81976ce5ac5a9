"""Logging setup shared by scripts and embedding applications."""

import logging

from clinic_scheduling.core.config import LOG_LEVEL


def configure_logging(level: str | int | None = None) -> None:
    """
    Configure root logging with the standard scheduling log format.

    Args:
        level: Log level name or number; defaults to LOG_LEVEL from the environment
    """
    logging.basicConfig(
        level=level if level is not None else LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
