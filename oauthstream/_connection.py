from __future__ import annotations

import contextlib
import enum
import logging
import time
import typing
from collections.abc import Callable, Iterator

from ._decoders import READ_SIZE, ChunkDecoder
from ._exceptions import (
    HeaderReadError,
    StreamError,
    TransportReadError,
    TransportWriteError,
)
from ._models import ByteSink, Configuration, Credentials, Request
from ._transports import TLS_PORT, BaseDialer, BaseTransport, TCPDialer, parse_address
from .oauth1a import HmacSha1Signer, Signer, sign_request

__all__ = ["Connection", "ConnectionState"]

logger = logging.getLogger("oauthstream.connection")


class ConnectionState(enum.Enum):
    IDLE = "idle"
    DIALING = "dialing"
    REQUESTING = "requesting"
    READING_HEADERS = "reading-headers"
    STREAMING_BODY = "streaming-body"
    CLOSED = "closed"
    FAILED = "failed"


class TransportReader:
    """Buffered reads over a transport.

    Every byte received is passed to ``listener`` as it comes off the wire,
    before any decoding.
    """

    def __init__(
        self,
        transport: BaseTransport,
        listener: ByteSink | None = None,
        read_size: int = READ_SIZE,
    ) -> None:
        self._transport = transport
        self._listener = listener
        self._read_size = read_size
        self._buffer = bytearray()
        self._eof = False

    def _fill(self) -> bool:
        if self._eof:
            return False
        try:
            data = self._transport.read(self._read_size)
        except OSError as exc:
            raise TransportReadError(f"Read failed: {exc}") from exc
        if not data:
            self._eof = True
            return False
        if self._listener is not None:
            self._listener(data)
        self._buffer += data
        return True

    def readline(self) -> bytes:
        while b"\n" not in self._buffer:
            if not self._fill():
                break
        end = self._buffer.find(b"\n") + 1 or len(self._buffer)
        line = bytes(self._buffer[:end])
        del self._buffer[:end]
        return line

    def read(self, size: int = -1) -> bytes:
        """Return buffered bytes if any, otherwise at most one transport read."""
        if not self._buffer:
            self._fill()
        if size < 0:
            size = len(self._buffer)
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data


def _write(transport: BaseTransport, data: bytes, listener: ByteSink | None) -> None:
    try:
        transport.write(data)
    except OSError as exc:
        raise TransportWriteError(f"Write failed: {exc}") from exc
    if listener is not None:
        listener(data)


class Connection:
    """A single streaming request.

    Each call to :meth:`read` (or :meth:`iter_segments`) dials a fresh
    transport, sends one signed request and decodes the response body until
    the server closes the stream or the configured TTL runs out.  The
    transport is closed on every exit path.

    Parameters
    ----------
    configuration:
        What to request and how to decode the body.
    credentials:
        Authorized OAuth credentials used to sign the request.
    dialer:
        Opens the transport.  Defaults to :class:`TCPDialer`.
    signer:
        Defaults to :class:`HmacSha1Signer`.
    nonce, timestamp:
        Fixed OAuth nonce and timestamp.  Generated per request when not
        given.
    clock:
        Monotonic clock used for the TTL.
    """

    def __init__(
        self,
        configuration: Configuration,
        credentials: Credentials,
        *,
        dialer: BaseDialer | None = None,
        signer: Signer | None = None,
        nonce: str | None = None,
        timestamp: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.configuration = configuration
        self.credentials = credentials
        self.dialer = dialer or TCPDialer()
        self.signer = signer or HmacSha1Signer()
        self.nonce = nonce
        self.timestamp = timestamp
        self.clock = clock

        self.state = ConnectionState.IDLE
        self.request: Request | None = None
        self.status_code: int | None = None
        self.reason_phrase = ""
        self.headers: list[tuple[str, str]] = []
        self.gzip = False

    def __repr__(self) -> str:
        return f"<Connection({self.configuration!r}, state={self.state.value!r})>"

    def _transition(self, state: ConnectionState) -> None:
        logger.debug("%s -> %s", self.state.value, state.value)
        self.state = state

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _dial(self) -> BaseTransport:
        self._transition(ConnectionState.DIALING)
        conf = self.configuration
        if conf.proxy is None:
            return self.dialer.dial(
                conf.url.host, conf.url.port or TLS_PORT, tls=True
            )
        host, port = parse_address(conf.proxy)
        return self.dialer.dial(host, port, tls=False)

    def build_request(self) -> Request:
        """Build and sign the request described by the configuration."""
        conf = self.configuration
        request = Request(conf.method, conf.url)
        if not conf.chunked:
            # Non-persistent exchange, the server closes when done.
            request.headers["Connection"] = "close"
        if conf.gzip:
            request.headers["Accept-Encoding"] = "deflate, gzip"
        sign_request(
            request,
            self.credentials,
            signer=self.signer,
            nonce=self.nonce,
            timestamp=self.timestamp,
        )
        return request

    def _send(self, transport: BaseTransport) -> None:
        self._transition(ConnectionState.REQUESTING)
        self.request = self.build_request()
        data = self.request.encode(proxy=self.configuration.proxy is not None)
        _write(transport, data, self.configuration.on_bytes_out)

    def _read_headers(self, reader: TransportReader) -> None:
        self._transition(ConnectionState.READING_HEADERS)
        try:
            status_line = reader.readline()
            if not status_line:
                raise HeaderReadError("Connection closed before the response headers")
            self._parse_status_line(status_line)

            is_gzip = False
            while True:
                line = reader.readline()
                if not line:
                    raise HeaderReadError("Connection closed inside the response headers")
                text = line.decode("latin-1").rstrip("\r\n")
                if not text:
                    break
                name, _, value = text.partition(":")
                name, value = name.strip(), value.strip()
                self.headers.append((name, value))
                if name.lower() == "content-encoding" and "gzip" in value.lower():
                    is_gzip = True
        except TransportReadError as exc:
            raise HeaderReadError(f"Reading response headers failed: {exc}") from exc

        self.gzip = self.configuration.gzip and is_gzip
        if self.configuration.gzip and not is_gzip:
            logger.warning("gzip requested but the response is not gzip encoded")

    def _parse_status_line(self, line: bytes) -> None:
        text = line.decode("latin-1").rstrip("\r\n")
        version, _, rest = text.partition(" ")
        code, _, reason = rest.partition(" ")
        if not version.startswith("HTTP/") or not code.isdigit():
            raise HeaderReadError(f"Malformed status line: {text!r}")
        self.status_code = int(code)
        self.reason_phrase = reason
        if not 200 <= self.status_code < 300:
            logger.warning("Stream endpoint responded %s %s", code, reason)

    def _stream_body(self, reader: TransportReader) -> Iterator[bytes]:
        self._transition(ConnectionState.STREAMING_BODY)
        ttl = self.configuration.ttl
        decoder = ChunkDecoder(
            reader, chunked=self.configuration.chunked, gzip=self.gzip
        )
        start = self.clock()
        for unit in decoder.iter_units():
            yield from unit
            if ttl is not None and self.clock() - start >= ttl:
                logger.info("Stream TTL of %ss reached, closing", ttl)
                return

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def iter_segments(self) -> Iterator[bytes]:
        """Lazily yield decoded body segments.

        Lines in plain mode, chunk payloads (or decompressed blocks) in
        chunked mode.  Closing the iterator early closes the transport.
        """
        self.headers = []
        self.status_code = None
        self.request = None
        transport: BaseTransport | None = None
        try:
            transport = self._dial()
            reader = TransportReader(transport, self.configuration.on_bytes_in)
            self._send(transport)
            self._read_headers(reader)
            yield from self._stream_body(reader)
        except StreamError as exc:
            self._transition(ConnectionState.FAILED)
            if exc._request is None and self.request is not None:
                exc.request = self.request
            raise
        finally:
            if transport is not None:
                try:
                    transport.close()
                except OSError as exc:
                    logger.warning("Closing the transport failed: %s", exc)
            if self.state is not ConnectionState.FAILED:
                self._transition(ConnectionState.CLOSED)

    def read(self, sink: Callable[[bytes], typing.Any]) -> None:
        """Stream the body into ``sink`` until end of stream or TTL expiry."""
        with contextlib.closing(self.iter_segments()) as segments:
            for segment in segments:
                sink(segment)
