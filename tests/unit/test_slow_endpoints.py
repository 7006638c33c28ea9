# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
import socket
import threading
import time

import httpx
import pytest

from asgstatus.config import HealthcheckSettings
from asgstatus.errors import DeadlineExceeded, HealthcheckTimedOut
from asgstatus.healthcheck import wait_until_healthy

PROXY_VARS = ("HTTP_PROXY", "http_proxy", "HTTPS_PROXY", "https_proxy", "ALL_PROXY", "all_proxy")


class TricklingServer:
    """Local HTTP server that writes `head` at once, then one `drip` every `interval` seconds."""

    def __init__(self, head: bytes, drip, interval: float = 0.2):
        self.head = head
        self.drip = drip
        self.interval = interval
        self.stopped = threading.Event()
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.bind(("127.0.0.1", 0))
        self.listener.listen(8)
        self.listener.settimeout(0.1)
        self.url = f"http://127.0.0.1:{self.listener.getsockname()[1]}/health"
        self.thread = threading.Thread(target=self._accept, daemon=True)

    def __enter__(self):
        self.thread.start()
        return self

    def __exit__(self, *_):
        self.stopped.set()
        self.thread.join(timeout=2)
        self.listener.close()

    def _accept(self):
        while not self.stopped.is_set():
            try:
                conn, _ = self.listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            threading.Thread(target=self._serve, args=(conn,), daemon=True).start()

    def _serve(self, conn: socket.socket):
        with conn:
            try:
                request = b""
                while b"\r\n\r\n" not in request:
                    data = conn.recv(4096)
                    if not data:
                        return
                    request += data
                conn.sendall(self.head)
                count = 0
                while not self.stopped.wait(self.interval):
                    conn.sendall(self.drip(count))
                    count += 1
            except OSError:
                return


@pytest.fixture(autouse=True)
def no_proxies(monkeypatch):
    for name in PROXY_VARS:
        monkeypatch.delenv(name, raising=False)


def test_slow_body_cannot_hold_the_loop_past_its_deadline(caplog):
    caplog.set_level(logging.WARNING)
    head = b"HTTP/1.1 503 Service Unavailable\r\nContent-Type: text/plain\r\nContent-Length: 1000000\r\n\r\n"
    with TricklingServer(head, lambda _: b"x") as server:
        settings = HealthcheckSettings(url=server.url, timeout=1.0)
        started = time.monotonic()
        with pytest.raises(HealthcheckTimedOut) as excinfo:
            wait_until_healthy(settings)
        elapsed = time.monotonic() - started

    assert elapsed < settings.timeout + settings.retry_delay
    assert isinstance(excinfo.value.cause, DeadlineExceeded)
    assert f"{server.url} :: (503) 503 Service Unavailable" in caplog.text
    errors = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
    assert errors and set(errors[-1]) == {"x"}


def test_slow_headers_cannot_hold_the_loop_past_its_deadline():
    with TricklingServer(b"HTTP/1.1 200 OK\r\n", lambda n: b"X-Padding-%d: 1\r\n" % n) as server:
        settings = HealthcheckSettings(url=server.url, timeout=1.0)
        started = time.monotonic()
        with pytest.raises(HealthcheckTimedOut) as excinfo:
            wait_until_healthy(settings)
        elapsed = time.monotonic() - started

    assert elapsed < settings.timeout + settings.retry_delay
    assert isinstance(excinfo.value.cause, httpx.TimeoutException)


def test_slow_headers_within_the_overall_budget_are_a_per_attempt_timeout(caplog):
    caplog.set_level(logging.WARNING)
    with TricklingServer(b"HTTP/1.1 200 OK\r\n", lambda n: b"X-Padding-%d: 1\r\n" % n) as server:
        settings = HealthcheckSettings(url=server.url, timeout=1.5, request_timeout=0.5, retry_delay=0.1)
        started = time.monotonic()
        with pytest.raises(HealthcheckTimedOut):
            wait_until_healthy(settings)
        elapsed = time.monotonic() - started

    assert elapsed < settings.timeout + 1.0
    assert "healthcheck request timeout(500ms)" in caplog.text
