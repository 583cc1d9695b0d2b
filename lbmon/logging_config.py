"""Logging setup shared by the lbmon entry points."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    component_name: str,
    level: int | str = logging.INFO,
    log_file: str | Path | None = None,
    format_string: str | None = None,
) -> logging.Logger:
    """Configure the root logger for an lbmon component.

    Args:
        component_name: Short identifier shown in every line (e.g. 'dashboard').
        level: Logging level, as a number or a name such as "DEBUG".
        log_file: Optional file that receives the same lines as stdout.
        format_string: Custom format string (default provided).
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    if format_string is None:
        format_string = f"[%(asctime)s] [{component_name.upper()}] %(levelname)s - %(message)s"

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=level,
        format=format_string,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    logger = logging.getLogger(f"lbmon.{component_name}")
    logger.info(
        "%s logging initialized (level=%s)",
        component_name.upper(),
        logging.getLevelName(level),
    )
    return logger
