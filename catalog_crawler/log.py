"""Logging configuration shared by the CLI and library code."""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Optional


def setup_logging(level: Optional[str] = None, format_string: Optional[str] = None) -> None:
    """Configure the root logger with a console handler.

    Args:
        level: Logging level name. If None, reads LOG_LEVEL or defaults to INFO.
        format_string: Custom format string. If None, uses the default format.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    level = level.upper()

    if format_string is None:
        format_string = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=format_string,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )

    # Third-party loggers are noisy at INFO
    for logger_name in ["urllib3", "requests", "curl_cffi"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def event(message: str, **fields: Any) -> str:
    """Render a structured log line: the message followed by its fields as JSON."""
    return f"{message} {json.dumps(fields, ensure_ascii=False, default=str)}"
