# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""EC2 instance metadata access (IMDSv2 with IMDSv1 fallback)."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..config import DEFAULT_USER_AGENT
from ..errors import AsgStatusError, MetadataUnavailableError, describe_exception

logger = logging.getLogger(__name__)

METADATA_BASE_URL = "http://169.254.169.254"
TOKEN_PATH = "/latest/api/token"
IDENTITY_PATH = "/latest/dynamic/instance-identity/document"
TOKEN_TTL_SECONDS = 21600
AVAILABILITY_TIMEOUT = 5.0


@dataclass(frozen=True)
class InstanceIdentity:
    instance_id: str
    region: str
    availability_zone: str = ""
    account_id: str = ""
    instance_type: str = ""
    document: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> InstanceIdentity:
        if not isinstance(document, dict):
            raise AsgStatusError(f"instance identity document is not a JSON object: {type(document).__name__}")
        try:
            return cls(
                instance_id=document["instanceId"],
                region=document["region"],
                availability_zone=document.get("availabilityZone", ""),
                account_id=document.get("accountId", ""),
                instance_type=document.get("instanceType", ""),
                document=document,
            )
        except KeyError as exc:
            raise AsgStatusError(f"instance identity document is missing {exc.args[0]}") from exc


class MetadataClient:
    """Small client for the link-local instance metadata service."""

    def __init__(self, client: httpx.Client | None = None, base_url: str = METADATA_BASE_URL):
        self._owns_client = client is None
        # Metadata requests must never go through a proxy.
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=AVAILABILITY_TIMEOUT,
            trust_env=False,
            headers={"User-Agent": DEFAULT_USER_AGENT},
        )
        self._token: str | None = None

    def token(self) -> str | None:
        """Fetch an IMDSv2 session token; None means fall back to IMDSv1."""
        if self._token is not None:
            return self._token
        try:
            response = self._client.put(
                TOKEN_PATH,
                headers={"X-aws-ec2-metadata-token-ttl-seconds": str(TOKEN_TTL_SECONDS)},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.debug("IMDSv2 token request failed, using IMDSv1: %s", describe_exception(exc))
            return None
        self._token = response.text
        return self._token

    def get(self, path: str) -> str:
        headers = {}
        token = self.token()
        if token:
            headers["X-aws-ec2-metadata-token"] = token
        response = self._client.get(path, headers=headers)
        response.raise_for_status()
        return response.text

    def available(self) -> bool:
        try:
            self.get("/latest/meta-data/instance-id")
        except httpx.HTTPError as exc:
            logger.debug("instance metadata unavailable: %s", describe_exception(exc))
            return False
        return True

    def instance_identity(self) -> InstanceIdentity:
        if not self.available():
            raise MetadataUnavailableError()
        try:
            document = json.loads(self.get(IDENTITY_PATH))
        except httpx.HTTPError as exc:
            raise AsgStatusError(f"failed to read instance identity document: {describe_exception(exc)}") from exc
        except ValueError as exc:
            raise AsgStatusError(f"invalid instance identity document: {exc}") from exc
        return InstanceIdentity.from_document(document)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> MetadataClient:
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:  # noqa: ANN001
        self.close()
