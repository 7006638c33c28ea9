# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""High-level facade tying instance identity, AWS clients and the health-wait loop together."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import suppress
from typing import Any

import boto3

from .aws import autoscaling
from .aws.metadata import InstanceIdentity, MetadataClient
from .config import HealthcheckSettings, load_healthcheck_settings
from .errors import HealthcheckTimedOut, UnknownCommandError
from .healthcheck import wait_until_healthy

logger = logging.getLogger(__name__)

COMMANDS = ("enter-standby", "exit-standby", "healthy", "unhealthy", "status")


class AsgStatus:
    """
    Convenience wrapper that resolves "who am I" once and runs lifecycle commands.

    The instance identity comes from the metadata service, the region-bound boto3
    session from that identity, and the owning group from the instance's
    `aws:autoscaling:groupName` tag.
    """

    def __init__(
        self,
        session: Any | None = None,
        metadata: MetadataClient | None = None,
        *,
        identity: InstanceIdentity | None = None,
        asg_name: str | None = None,
    ):
        self.metadata = metadata or MetadataClient()
        self.identity = identity or self.metadata.instance_identity()
        self.session = session or boto3.session.Session(region_name=self.identity.region)
        self.ec2 = self.session.client("ec2")
        self.autoscaling = self.session.client("autoscaling")
        self.asg_name = asg_name or autoscaling.find_asg_name(self.ec2, self.identity.instance_id)

    @property
    def instance_id(self) -> str:
        return self.identity.instance_id

    def healthy(self, settings: HealthcheckSettings | None = None) -> dict[str, Any]:
        """Report Healthy, or Unhealthy when a configured healthcheck never passes."""
        settings = settings or load_healthcheck_settings()
        status = autoscaling.HEALTHY
        if settings.enabled:
            try:
                wait_until_healthy(settings)
            except HealthcheckTimedOut as exc:
                logger.error("%s", exc)
                status = autoscaling.UNHEALTHY
        return autoscaling.set_instance_health(self.autoscaling, self.instance_id, status)

    def unhealthy(self) -> dict[str, Any]:
        return autoscaling.set_instance_health(self.autoscaling, self.instance_id, autoscaling.UNHEALTHY)

    def enter_standby(self) -> dict[str, Any]:
        return autoscaling.enter_standby(self.autoscaling, self.asg_name, self.instance_id)

    def exit_standby(self) -> dict[str, Any]:
        return autoscaling.exit_standby(self.autoscaling, self.asg_name, self.instance_id)

    def status(self) -> dict[str, Any]:
        return autoscaling.describe_group(self.autoscaling, self.asg_name)

    def run(self, command: str, settings: HealthcheckSettings | None = None) -> dict[str, Any]:
        handlers: dict[str, Callable[[], dict[str, Any]]] = {
            "healthy": lambda: self.healthy(settings),
            "unhealthy": self.unhealthy,
            "enter-standby": self.enter_standby,
            "exit-standby": self.exit_standby,
            "status": self.status,
        }
        handler = handlers.get(command)
        if handler is None:
            raise UnknownCommandError(command)
        return handler()

    def close(self) -> None:
        with suppress(Exception):
            self.metadata.close()

    def __enter__(self) -> AsgStatus:
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:  # noqa: ANN001
        self.close()
