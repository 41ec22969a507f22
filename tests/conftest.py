from __future__ import annotations

import collections
import os
import typing

import pytest

import oauthstream

ENVIRONMENT_VARIABLES = {
    "HTTP_PROXY",
    "HTTPS_PROXY",
    "ALL_PROXY",
    "NO_PROXY",
    "TWURLRC",
}


@pytest.fixture(scope="function", autouse=True)
def clean_environ():
    """Keeps os.environ clean for every test without having to mock os.environ"""
    original_environ = os.environ.copy()
    os.environ.clear()
    os.environ.update(
        {
            k: v
            for k, v in original_environ.items()
            if k not in ENVIRONMENT_VARIABLES and k.upper() not in ENVIRONMENT_VARIABLES
        }
    )
    yield
    os.environ.clear()
    os.environ.update(original_environ)


READ = "read"
WRITE = "write"
CLOSE = "close"


class MockTransport(oauthstream.BaseTransport):
    """A transport that replays a script of expected operations.

    Each ``read`` returns the next scripted bytes (``b""`` is end of stream)
    or raises the scripted exception.  Each ``write`` is compared to the
    scripted bytes unless the script holds ``None``.
    """

    def __init__(self) -> None:
        self.script: typing.Deque[tuple[str, typing.Any]] = collections.deque()
        self.written: list[bytes] = []
        self.close_count = 0

    def expect_read(self, data: bytes | Exception) -> None:
        self.script.append((READ, data))

    def expect_write(self, data: bytes | Exception | None = None) -> None:
        self.script.append((WRITE, data))

    def expect_close(self) -> None:
        self.script.append((CLOSE, None))

    def _next(self, command: str) -> typing.Any:
        if not self.script:
            pytest.fail(f"Unexpected {command}, the script is empty")
        expected, payload = self.script.popleft()
        if expected != command:
            pytest.fail(f"Expected {expected}, got {command}")
        return payload

    def read(self, max_bytes: int) -> bytes:
        payload = self._next(READ)
        if isinstance(payload, Exception):
            raise payload
        assert len(payload) <= max_bytes
        return payload

    def write(self, data: bytes) -> None:
        payload = self._next(WRITE)
        if isinstance(payload, Exception):
            raise payload
        if payload is not None:
            assert data == payload
        self.written.append(data)

    def close(self) -> None:
        self._next(CLOSE)
        self.close_count += 1

    def end_test(self) -> None:
        assert not self.script, f"Operations still scripted: {list(self.script)}"


class MockDialer(oauthstream.BaseDialer):
    def __init__(self, transport: MockTransport) -> None:
        self.transport = transport
        self.dialed: list[tuple[str, int, bool]] = []

    def dial(self, host: str, port: int, *, tls: bool) -> oauthstream.BaseTransport:
        self.dialed.append((host, port, tls))
        return self.transport


@pytest.fixture
def transport() -> typing.Iterator[MockTransport]:
    transport = MockTransport()
    yield transport
    transport.end_test()


@pytest.fixture
def dialer(transport: MockTransport) -> MockDialer:
    return MockDialer(transport)


@pytest.fixture
def credentials() -> oauthstream.Credentials:
    return oauthstream.Credentials(
        token="token",
        token_secret="secret",
        consumer_key="consumerkey",
        consumer_secret="consumersecret",
    )


TWURLRC = """\
---
profiles:
  someuser:
    consumerkey:
      username: someuser
      consumer_key: consumerkey
      consumer_secret: consumersecret
      token: token
      secret: secret
configuration:
  default_profile:
  - someuser
  - consumerkey
"""


@pytest.fixture
def twurlrc_path(tmp_path):
    path = tmp_path / ".twurlrc"
    path.write_text(TWURLRC, encoding="utf-8")
    return path
