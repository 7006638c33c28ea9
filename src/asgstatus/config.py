# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Configuration helpers for aws-asg-status."""

from __future__ import annotations

import math
import os
import re
from dataclasses import dataclass

from .version import __version__

DEBUG_ENV = "AWS_ASG_STATUS_DEBUG"
LOG_LEVEL_ENV = "AWS_ASG_STATUS_LOG_LEVEL"
# Historical name: its presence *disables* certificate verification.
SKIP_VERIFY_ENV = "CFN_SIGNAL_SSL_VERIFY"

DEFAULT_USER_AGENT = f"aws-asg-status/{__version__}"
DEFAULT_HEALTHCHECK_TIMEOUT = 5 * 60.0

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def _flag_env(name: str) -> bool:
    """Presence toggle: any value, even empty, switches the flag on."""
    return name in os.environ


def parse_duration(value: str) -> float:
    """
    Parse a compact duration string ("5m", "1m30s", "500ms") into seconds.

    A bare number is taken as seconds.
    """
    text = (value or "").strip()
    if not text:
        raise ValueError("empty duration")
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            raise ValueError(f"invalid duration: {value!r}")
        if seconds < 0:
            raise ValueError(f"negative duration: {value!r}")
        return seconds

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART_RE.match(text, pos)
        if not match:
            raise ValueError(f"invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos == 0:
        raise ValueError(f"invalid duration: {value!r}")
    if sign < 0 and total:
        raise ValueError(f"negative duration: {value!r}")
    return total


def format_duration(seconds: float) -> str:
    """Render seconds as a compact duration string (30s, 5m0s, 1h2m3s, 500ms)."""
    if seconds == 0:
        return "0s"
    if seconds < 1:
        millis = seconds * 1000
        return f"{millis:g}ms"

    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    secs_text = f"{round(secs, 6):g}s"
    if hours:
        return f"{int(hours)}h{int(minutes)}m{secs_text}"
    if minutes:
        return f"{int(minutes)}m{secs_text}"
    return secs_text


@dataclass(frozen=True)
class HealthcheckSettings:
    """Health-wait loop configuration, fixed once the loop starts."""

    url: str = ""
    timeout: float = DEFAULT_HEALTHCHECK_TIMEOUT
    request_timeout: float = 30.0
    retry_delay: float = 5.0
    verify_ssl: bool = True
    connect_timeout: float = 30.0
    tls_handshake_timeout: float = 10.0
    tcp_keepalive: float = 30.0
    max_connections: int = 100
    keepalive_expiry: float = 90.0
    max_body_bytes: int = 1024 * 1024

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    @classmethod
    def from_env(cls, url: str = "", timeout: float | None = None) -> HealthcheckSettings:
        """Create settings from environment toggles (evaluated at call time)."""
        return cls(
            url=url,
            timeout=timeout if timeout is not None else DEFAULT_HEALTHCHECK_TIMEOUT,
            verify_ssl=not _flag_env(SKIP_VERIFY_ENV),
        )


def load_healthcheck_settings(url: str = "", timeout: float | None = None) -> HealthcheckSettings:
    """Load healthcheck settings from the environment with CLI-supplied values."""
    return HealthcheckSettings.from_env(url=url, timeout=timeout)


def debug_enabled() -> bool:
    return _flag_env(DEBUG_ENV)
