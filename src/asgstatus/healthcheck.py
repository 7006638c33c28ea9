# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Health-wait loop gating the `healthy` report.

The loop probes the configured URL one request at a time until it answers 200 or
the overall timeout runs out. Every attempt is bounded by its own deadline,
clipped to the overall one. Non-200 answers, per-attempt timeouts and other
transport failures are logged and retried after a constant delay; only a
transport failure once the overall deadline has passed ends the loop with a
failure. Bodies of non-200 answers are kept so the last one can be shown when
that happens.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from .config import HealthcheckSettings, format_duration
from .errors import DeadlineExceeded, HealthcheckTimedOut, categorize_exception, describe_exception
from .http.client import build_probe_client
from .http.deadline import attempt_deadline as bounded_by
from .http.models import (
    NonSuccessStatus,
    OverallTimeout,
    ProbeOutcome,
    ProbeState,
    RequestTimeout,
    Success,
    TransportError,
)

logger = logging.getLogger(__name__)


@dataclass
class LoopState:
    """Per-run state: the fixed overall deadline and the last non-200 body."""

    deadline: float
    last_body: bytes = b""


class HealthWaiter:
    """Sequential healthcheck poller built around a single reusable client."""

    def __init__(
        self,
        settings: HealthcheckSettings,
        client: httpx.Client | None = None,
        *,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        self.settings = settings
        self._owns_client = client is None
        self.client = client or build_probe_client(settings)
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self.state = ProbeState.PROBING
        self.attempts = 0

    def probe_once(self, loop: LoopState) -> ProbeOutcome:
        """Issue one GET bounded by min(overall deadline, now + request timeout) and classify it."""
        started = self._clock()
        if started >= loop.deadline:
            # A request cannot start once the overall deadline has passed.
            return OverallTimeout(cause=DeadlineExceeded(), last_body=loop.last_body)

        attempt_deadline = min(loop.deadline, started + self.settings.request_timeout)
        budget = attempt_deadline - started
        self.attempts += 1
        logger.debug("healthcheck attempt %d: GET %s (budget %s)", self.attempts, self.settings.url, format_duration(budget))

        try:
            with bounded_by(time.monotonic() + budget), self.client.stream(
                "GET", self.settings.url, timeout=self._attempt_timeout(budget)
            ) as response:
                if response.status_code == 200:
                    return Success(status_code=response.status_code)
                return NonSuccessStatus(
                    status_code=response.status_code,
                    reason_phrase=response.reason_phrase,
                    body=self._drain(response, attempt_deadline),
                )
        except httpx.RequestError as exc:
            now = self._clock()
            timed_out = isinstance(exc, httpx.TimeoutException)
            if now >= loop.deadline or (timed_out and attempt_deadline >= loop.deadline):
                return OverallTimeout(cause=exc, last_body=loop.last_body)
            if timed_out or now >= attempt_deadline:
                return RequestTimeout(elapsed=now - started, cause=exc)
            return TransportError(cause=exc, category=categorize_exception(exc))

    def run(self) -> ProbeOutcome:
        """Poll until Success or OverallTimeout; both are returned, never raised."""
        loop = LoopState(deadline=self._clock() + self.settings.timeout)
        self.state = ProbeState.PROBING
        outcome = self.probe_once(loop)
        while not outcome.terminal:
            self.state = ProbeState.RETRYING
            self._report(outcome, loop)
            self._pause(loop)
            self.state = ProbeState.PROBING
            outcome = self.probe_once(loop)

        if isinstance(outcome, Success):
            self.state = ProbeState.SUCCEEDED
            logger.debug("healthcheck %s healthy after %d attempt(s)", self.settings.url, self.attempts)
        else:
            self.state = ProbeState.TIMED_OUT
            self._log_last_body(outcome.last_body)
        return outcome

    def _attempt_timeout(self, budget: float) -> httpx.Timeout:
        return httpx.Timeout(budget, connect=min(self.settings.connect_timeout, budget))

    def _drain(self, response: httpx.Response, deadline: float) -> bytes:
        body = bytearray()
        limit = self.settings.max_body_bytes
        try:
            for chunk in response.iter_bytes():
                remaining = limit - len(body)
                if remaining <= 0:
                    break
                body.extend(chunk[:remaining])
                if self._clock() >= deadline:
                    logger.debug("healthcheck body read cut off at the attempt deadline after %d bytes", len(body))
                    break
        except httpx.HTTPError as exc:
            # Keep whatever arrived before the failure.
            logger.debug("healthcheck body read stopped after %d bytes: %s", len(body), describe_exception(exc))
        return bytes(body)

    def _report(self, outcome: ProbeOutcome, loop: LoopState) -> None:
        if isinstance(outcome, NonSuccessStatus):
            logger.warning("%s :: (%d) %s", self.settings.url, outcome.status_code, outcome.status)
            loop.last_body = outcome.body
        elif isinstance(outcome, RequestTimeout):
            logger.warning(
                "healthcheck request timeout(%s): %s",
                format_duration(self.settings.request_timeout),
                describe_exception(outcome.cause),
            )
        elif isinstance(outcome, TransportError):
            logger.error("%s [%s]", describe_exception(outcome.cause), outcome.category.value)

    def _pause(self, loop: LoopState) -> None:
        # Never sleeps past the overall deadline.
        remaining = loop.deadline - self._clock()
        delay = min(self.settings.retry_delay, max(0.0, remaining))
        if delay > 0:
            self._sleep(delay)

    def _log_last_body(self, body: bytes) -> None:
        if not body:
            return
        try:
            logger.error(json.dumps(json.loads(body), indent=2))
        except ValueError:
            logger.error(body.decode("utf-8", errors="replace"))

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> HealthWaiter:
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:  # noqa: ANN001
        self.close()


def wait_until_healthy(settings: HealthcheckSettings, client: httpx.Client | None = None) -> None:
    """Block until the healthcheck answers 200; raise HealthcheckTimedOut otherwise."""
    with HealthWaiter(settings, client) as waiter:
        outcome = waiter.run()
    if isinstance(outcome, OverallTimeout):
        raise HealthcheckTimedOut(settings.timeout, outcome.cause) from outcome.cause
