# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Probe outcome data models produced by the health-wait loop."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Union

from ..errors import ErrorCategory


class ProbeState(str, Enum):
    PROBING = "PROBING"
    RETRYING = "RETRYING"
    SUCCEEDED = "SUCCEEDED"
    TIMED_OUT = "TIMED_OUT"


@dataclass(frozen=True)
class Success:
    """HTTP 200 from the healthcheck endpoint."""

    status_code: int = 200
    terminal: ClassVar[bool] = True


@dataclass(frozen=True)
class NonSuccessStatus:
    """Any response other than 200; the body is kept for later diagnostics."""

    status_code: int
    reason_phrase: str
    body: bytes = b""
    terminal: ClassVar[bool] = False

    @property
    def status(self) -> str:
        return f"{self.status_code} {self.reason_phrase}".strip()


@dataclass(frozen=True)
class RequestTimeout:
    """The per-attempt deadline elapsed while the overall deadline was still open."""

    elapsed: float
    cause: BaseException
    terminal: ClassVar[bool] = False


@dataclass(frozen=True)
class TransportError:
    cause: BaseException
    category: ErrorCategory = ErrorCategory.UNKNOWN_ERROR
    terminal: ClassVar[bool] = False


@dataclass(frozen=True)
class OverallTimeout:
    """A transport failure after the overall deadline; ends the loop."""

    cause: BaseException
    last_body: bytes = b""
    terminal: ClassVar[bool] = True


ProbeOutcome = Union[Success, NonSuccessStatus, RequestTimeout, TransportError, OverallTimeout]
