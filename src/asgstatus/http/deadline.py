# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Whole-attempt deadlines for probe requests.

httpx timeouts bound each socket operation separately, so a server trickling
headers or a body one byte at a time never trips them. The network backend
below clips every connect, TLS handshake, read and write to the deadline of the
attempt in progress, held in a ContextVar set by `attempt_deadline()`. Once the
deadline has passed the next socket operation fails with the matching httpcore
timeout, which httpx surfaces as its own TimeoutException.
"""

from __future__ import annotations

import ssl
import time
import typing
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar

import httpcore

SocketOption = typing.Union[tuple[int, int, int], tuple[int, int, typing.Union[bytes, bytearray]], tuple[int, int, None, int]]

_current_deadline: ContextVar[float | None] = ContextVar("asgstatus_attempt_deadline", default=None)


@contextmanager
def attempt_deadline(deadline: float) -> Iterator[None]:
    """Bound every socket operation inside the block by `deadline` (time.monotonic())."""
    token = _current_deadline.set(deadline)
    try:
        yield
    finally:
        _current_deadline.reset(token)


def clip_timeout(timeout: float | None, exc_type: type[Exception], limit: float | None = None) -> float | None:
    """Shrink `timeout` to what is left of the current deadline; raise `exc_type` when nothing is."""
    if limit is not None:
        timeout = limit if timeout is None else min(timeout, limit)
    deadline = _current_deadline.get()
    if deadline is None:
        return timeout
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise exc_type("attempt deadline exceeded")
    return remaining if timeout is None else min(timeout, remaining)


class DeadlineStream(httpcore.NetworkStream):
    def __init__(self, stream: httpcore.NetworkStream, tls_handshake_timeout: float | None = None):
        self._stream = stream
        self._tls_handshake_timeout = tls_handshake_timeout

    def read(self, max_bytes: int, timeout: float | None = None) -> bytes:
        return self._stream.read(max_bytes, clip_timeout(timeout, httpcore.ReadTimeout))

    def write(self, buffer: bytes, timeout: float | None = None) -> None:
        self._stream.write(buffer, clip_timeout(timeout, httpcore.WriteTimeout))

    def close(self) -> None:
        self._stream.close()

    def start_tls(
        self,
        ssl_context: ssl.SSLContext,
        server_hostname: str | None = None,
        timeout: float | None = None,
    ) -> httpcore.NetworkStream:
        timeout = clip_timeout(timeout, httpcore.ConnectTimeout, limit=self._tls_handshake_timeout)
        stream = self._stream.start_tls(ssl_context, server_hostname, timeout)
        return DeadlineStream(stream, self._tls_handshake_timeout)

    def get_extra_info(self, info: str) -> typing.Any:
        return self._stream.get_extra_info(info)


class DeadlineBackend(httpcore.NetworkBackend):
    """httpcore's sync backend with every stream bound to the current attempt deadline."""

    def __init__(self, tls_handshake_timeout: float | None = None, backend: httpcore.NetworkBackend | None = None):
        self._backend = backend or httpcore.SyncBackend()
        self._tls_handshake_timeout = tls_handshake_timeout

    def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: float | None = None,
        local_address: str | None = None,
        socket_options: Iterable[SocketOption] | None = None,
    ) -> httpcore.NetworkStream:
        stream = self._backend.connect_tcp(
            host,
            port,
            timeout=clip_timeout(timeout, httpcore.ConnectTimeout),
            local_address=local_address,
            socket_options=socket_options,
        )
        return DeadlineStream(stream, self._tls_handshake_timeout)

    def connect_unix_socket(
        self,
        path: str,
        timeout: float | None = None,
        socket_options: Iterable[SocketOption] | None = None,
    ) -> httpcore.NetworkStream:
        stream = self._backend.connect_unix_socket(
            path,
            timeout=clip_timeout(timeout, httpcore.ConnectTimeout),
            socket_options=socket_options,
        )
        return DeadlineStream(stream, self._tls_handshake_timeout)

    def sleep(self, seconds: float) -> None:
        self._backend.sleep(seconds)
