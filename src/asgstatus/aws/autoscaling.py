# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Thin wrappers over the EC2 and Auto Scaling APIs used by the CLI commands."""

from __future__ import annotations

import logging
from typing import Any

from ..errors import MissingAsgTagError

logger = logging.getLogger(__name__)

ASG_NAME_TAG = "aws:autoscaling:groupName"
HEALTHY = "Healthy"
UNHEALTHY = "Unhealthy"


def _strip_metadata(response: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in response.items() if key != "ResponseMetadata"}


def instance_tags(ec2_client: Any, instance_id: str) -> list[dict[str, str]]:
    """All tags on the instance, across every describe_tags page."""
    paginator = ec2_client.get_paginator("describe_tags")
    tags: list[dict[str, str]] = []
    for page in paginator.paginate(Filters=[{"Name": "resource-id", "Values": [instance_id]}]):
        tags.extend(page.get("Tags", []))
    return tags


def find_asg_name(ec2_client: Any, instance_id: str) -> str:
    asg_name = None
    for tag in instance_tags(ec2_client, instance_id):
        if tag.get("Key") == ASG_NAME_TAG:
            asg_name = tag.get("Value")
    if not asg_name:
        raise MissingAsgTagError(ASG_NAME_TAG)
    logger.debug("instance %s belongs to auto scaling group %s", instance_id, asg_name)
    return asg_name


def set_instance_health(as_client: Any, instance_id: str, status: str) -> dict[str, Any]:
    logger.info("setting instance %s health to %s", instance_id, status)
    response = as_client.set_instance_health(
        InstanceId=instance_id,
        HealthStatus=status,
        ShouldRespectGracePeriod=False,
    )
    return _strip_metadata(response)


def enter_standby(as_client: Any, asg_name: str, instance_id: str) -> dict[str, Any]:
    response = as_client.enter_standby(
        AutoScalingGroupName=asg_name,
        InstanceIds=[instance_id],
        ShouldDecrementDesiredCapacity=True,
    )
    return _strip_metadata(response)


def exit_standby(as_client: Any, asg_name: str, instance_id: str) -> dict[str, Any]:
    response = as_client.exit_standby(
        AutoScalingGroupName=asg_name,
        InstanceIds=[instance_id],
    )
    return _strip_metadata(response)


def describe_group(as_client: Any, asg_name: str) -> dict[str, Any]:
    response = as_client.describe_auto_scaling_groups(AutoScalingGroupNames=[asg_name])
    return _strip_metadata(response)
