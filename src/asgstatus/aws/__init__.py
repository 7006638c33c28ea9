# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""AWS collaborators: instance metadata and Auto Scaling calls."""

from .autoscaling import (
    ASG_NAME_TAG,
    HEALTHY,
    UNHEALTHY,
    describe_group,
    enter_standby,
    exit_standby,
    find_asg_name,
    set_instance_health,
)
from .metadata import InstanceIdentity, MetadataClient

__all__ = [
    "ASG_NAME_TAG",
    "HEALTHY",
    "UNHEALTHY",
    "InstanceIdentity",
    "MetadataClient",
    "describe_group",
    "enter_standby",
    "exit_standby",
    "find_asg_name",
    "set_instance_health",
]
