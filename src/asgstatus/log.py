# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Logging helpers for aws-asg-status."""

from __future__ import annotations

import logging
import os
import sys

from .config import LOG_LEVEL_ENV, debug_enabled

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(message)s"
DEBUG_FORMAT = "%(asctime)s %(levelname)s %(pathname)s:%(lineno)d %(funcName)s: %(message)s"


def _stream():
    # PowerShell treats any stderr output as an error record when redirected.
    if sys.platform == "win32" and not sys.stdout.isatty():
        return sys.stdout
    return sys.stderr


def setup_logging(level: str | None = None, *, debug: bool | None = None) -> None:
    """Configure standard logging for CLI/library use."""
    if debug is None:
        debug = debug_enabled()
    if debug:
        effective_level = "DEBUG"
    else:
        effective_level = (level or os.getenv(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, effective_level, logging.INFO),
        format=DEBUG_FORMAT if debug else DEFAULT_FORMAT,
        stream=_stream(),
        force=True,
    )
    # botocore INFO output stays hidden unless debugging.
    if not debug:
        logging.getLogger("botocore").setLevel(logging.WARNING)


__all__ = ["setup_logging"]
