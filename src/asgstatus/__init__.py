# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
aws-asg-status package entrypoint.

Lets an EC2 instance report itself into its Auto Scaling Group's lifecycle:
healthy/unhealthy, enter/exit standby, or status. The `healthy` report can be
gated on an HTTP healthcheck polled under an overall deadline.
"""

from .config import HealthcheckSettings, load_healthcheck_settings, parse_duration
from .errors import AsgStatusError, HealthcheckTimedOut
from .healthcheck import HealthWaiter, wait_until_healthy
from .http import ProbeState, build_probe_client
from .log import setup_logging
from .runtime import AsgStatus
from .version import __version__

__all__ = [
    "AsgStatus",
    "AsgStatusError",
    "HealthWaiter",
    "HealthcheckSettings",
    "HealthcheckTimedOut",
    "ProbeState",
    "build_probe_client",
    "load_healthcheck_settings",
    "parse_duration",
    "setup_logging",
    "wait_until_healthy",
    "__version__",
]
