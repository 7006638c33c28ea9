# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""HTTP probe client exports."""

from .client import build_probe_client
from .models import (
    NonSuccessStatus,
    OverallTimeout,
    ProbeOutcome,
    ProbeState,
    RequestTimeout,
    Success,
    TransportError,
)

__all__ = [
    "NonSuccessStatus",
    "OverallTimeout",
    "ProbeOutcome",
    "ProbeState",
    "RequestTimeout",
    "Success",
    "TransportError",
    "build_probe_client",
]
