# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Factory for the reusable healthcheck probe client."""

from __future__ import annotations

import socket

import httpcore
import httpx

from ..config import DEFAULT_USER_AGENT, HealthcheckSettings, load_healthcheck_settings
from .deadline import DeadlineBackend


def _keepalive_socket_options(idle_seconds: float) -> list[tuple[int, int, int]]:
    idle = max(1, int(idle_seconds))
    options = [(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)]
    if hasattr(socket, "TCP_KEEPIDLE"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, idle))
    elif hasattr(socket, "TCP_KEEPALIVE"):  # macOS spelling
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPALIVE, idle))
    if hasattr(socket, "TCP_KEEPINTVL"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, idle))
    return options


class ProbeTransport(httpx.HTTPTransport):
    """HTTPTransport whose connection pool dials through a `DeadlineBackend`."""

    def __init__(
        self,
        *,
        verify: bool = True,
        http2: bool = True,
        limits: httpx.Limits = httpx.Limits(),
        socket_options: list[tuple[int, int, int]] | None = None,
        tls_handshake_timeout: float | None = None,
    ):
        super().__init__(verify=verify, http2=http2, limits=limits, socket_options=socket_options)
        self.network_backend = DeadlineBackend(tls_handshake_timeout)
        self._pool.close()
        self._pool = httpcore.ConnectionPool(
            ssl_context=httpx.create_ssl_context(verify=verify),
            max_connections=limits.max_connections,
            max_keepalive_connections=limits.max_keepalive_connections,
            keepalive_expiry=limits.keepalive_expiry,
            http1=True,
            http2=http2,
            socket_options=socket_options,
            network_backend=self.network_backend,
        )


def build_probe_client(settings: HealthcheckSettings | None = None) -> httpx.Client:
    """
    Build the single httpx client used for every healthcheck probe.

    Only the connect phase is bounded here; read/write/pool limits come from the
    per-attempt deadline the health-wait loop passes with each request, and the
    transport's network backend clips every socket operation to that deadline.
    TLS handshakes are capped separately at `tls_handshake_timeout`. Environment
    proxies still apply because the keep-alive transport is mounted beneath them.
    """
    settings = settings or load_healthcheck_settings()
    limits = httpx.Limits(
        max_connections=None,
        max_keepalive_connections=settings.max_connections,
        keepalive_expiry=settings.keepalive_expiry,
    )
    transport = ProbeTransport(
        verify=settings.verify_ssl,
        http2=True,
        limits=limits,
        socket_options=_keepalive_socket_options(settings.tcp_keepalive),
        tls_handshake_timeout=settings.tls_handshake_timeout,
    )
    return httpx.Client(
        verify=settings.verify_ssl,
        http2=True,
        limits=limits,
        timeout=httpx.Timeout(None, connect=settings.connect_timeout),
        headers={"User-Agent": DEFAULT_USER_AGENT},
        follow_redirects=True,
        trust_env=True,
        mounts={"all://": transport},
    )
