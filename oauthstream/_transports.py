"""
Dialers open byte-stream transports to an address.

The connection never touches sockets directly: it asks a dialer for a
transport, which makes it possible to drive a full stream from a scripted
test double.
"""

from __future__ import annotations

import logging
import socket
import ssl

from ._exceptions import DialError
from ._urlparse import InvalidURL, urlparse

__all__ = [
    "BaseDialer",
    "BaseTransport",
    "SocketTransport",
    "TCPDialer",
    "parse_address",
]

logger = logging.getLogger("oauthstream.transports")

TLS_PORT = 443


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``scheme://host:port``) into a tuple."""
    url = address if "://" in address else f"http://{address}"
    try:
        parsed = urlparse(url)
    except InvalidURL as exc:
        raise DialError(f"Invalid address {address!r}: {exc}") from exc
    return parsed.host, parsed.effective_port


class BaseTransport:
    def read(self, max_bytes: int) -> bytes:
        """Return up to ``max_bytes`` bytes, or ``b""`` at end of stream."""
        raise NotImplementedError()  # pragma: no cover

    def write(self, data: bytes) -> None:
        raise NotImplementedError()  # pragma: no cover

    def close(self) -> None:
        pass


class BaseDialer:
    def dial(self, host: str, port: int, *, tls: bool) -> BaseTransport:
        raise NotImplementedError()  # pragma: no cover


class SocketTransport(BaseTransport):
    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock

    def read(self, max_bytes: int) -> bytes:
        return self._sock.recv(max_bytes)

    def write(self, data: bytes) -> None:
        self._sock.sendall(data)

    def close(self) -> None:
        self._sock.close()


class TCPDialer(BaseDialer):
    """Open TCP connections, wrapped in TLS when asked to.

    ``timeout`` applies to connecting and to every subsequent socket read or
    write; ``None`` blocks indefinitely.
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        self.timeout = timeout
        self.ssl_context = ssl_context

    def dial(self, host: str, port: int, *, tls: bool) -> BaseTransport:
        logger.debug("Dialing %s:%d (tls=%s)", host, port, tls)
        try:
            sock = socket.create_connection((host, port), timeout=self.timeout)
        except OSError as exc:
            raise DialError(f"Cannot connect to {host}:{port}: {exc}") from exc
        if tls:
            context = self.ssl_context or ssl.create_default_context()
            try:
                sock = context.wrap_socket(sock, server_hostname=host)
            except OSError as exc:
                sock.close()
                raise DialError(f"TLS handshake with {host}:{port} failed: {exc}") from exc
        return SocketTransport(sock)
