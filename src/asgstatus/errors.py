# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy and exception helpers."""

from __future__ import annotations

import socket
import ssl as ssl_module
from enum import Enum

import httpx

from .config import format_duration


class ErrorCategory(str, Enum):
    TIMEOUT = "TIMEOUT"
    SSL_ERROR = "SSL_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DNS_ERROR = "DNS_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class AsgStatusError(Exception):
    """Base class for unrecoverable errors reported by the CLI."""


class DeadlineExceeded(AsgStatusError):
    """Raised in place of a request that would start after the overall deadline."""

    def __init__(self, message: str = "overall deadline exceeded"):
        super().__init__(message)


class HealthcheckTimedOut(AsgStatusError):
    """The health-wait loop gave up after its overall timeout."""

    def __init__(self, timeout: float, cause: BaseException | None = None):
        self.timeout = timeout
        self.cause = cause
        super().__init__(f"healthcheck exceeded timeout({format_duration(timeout)}): {describe_exception(cause)}")


class MetadataUnavailableError(AsgStatusError):
    def __init__(self, message: str = "EC2 Metadata is not available... Are we running on an EC2 instance?"):
        super().__init__(message)


class MissingAsgTagError(AsgStatusError):
    def __init__(self, tag_key: str):
        self.tag_key = tag_key
        super().__init__(f"Required tag: {tag_key} was not present on EC2 Instance!")


class UnknownCommandError(AsgStatusError):
    def __init__(self, command: str):
        self.command = command
        super().__init__(f"Unknown argument: {command}")


def categorize_exception(exc: BaseException) -> ErrorCategory:
    """
    Map Python/httpx exceptions to ErrorCategory.
    """
    if isinstance(exc, (httpx.TimeoutException, DeadlineExceeded)):
        return ErrorCategory.TIMEOUT

    # httpx wraps the low-level cause; look through the chain for TLS/DNS specifics.
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, (ssl_module.SSLError, ssl_module.CertificateError)):
            return ErrorCategory.SSL_ERROR
        if isinstance(current, (socket.gaierror, socket.herror)):
            return ErrorCategory.DNS_ERROR
        current = current.__cause__ or current.__context__

    if isinstance(exc, (httpx.ConnectError, httpx.RemoteProtocolError, httpx.NetworkError, httpx.ProxyError)):
        return ErrorCategory.CONNECTION_ERROR

    if isinstance(exc, ConnectionError):
        return ErrorCategory.CONNECTION_ERROR

    return ErrorCategory.UNKNOWN_ERROR


def describe_exception(exc: BaseException | None) -> str:
    """Readable one-line cause; some httpx errors carry an empty message."""
    if exc is None:
        return "unknown error"
    message = str(exc)
    return message if message else type(exc).__name__
