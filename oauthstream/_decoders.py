from __future__ import annotations

import enum
import logging
import typing
import zlib
from collections.abc import Callable, Iterator

from ._exceptions import DecompressionError, MalformedChunkSize

logger = logging.getLogger("oauthstream.decoders")

# Size of the decompressed blocks forwarded in chunked + gzip mode.
GZIP_BLOCK_SIZE = 512
READ_SIZE = 4096

_GZIP_MAGIC = b"\x1f\x8b"
_GZIP_HEADER_SIZE = 10


class Reader(typing.Protocol):
    """Anything with the read side of a binary file, e.g. ``io.BytesIO``.

    ``read(n)`` may return fewer than ``n`` bytes and returns ``b""`` only
    at end of stream.
    """

    def read(self, size: int, /) -> bytes: ...

    def readline(self) -> bytes: ...


def decode_hex_size(line: bytes) -> int:
    """Parse a chunk-size line.

    Every byte must be a hex digit.  An empty line (the CRLF that trails the
    previous payload) decodes to zero.
    """
    size = 0
    for c in line:
        if 0x30 <= c <= 0x39:
            value = c - 0x30
        elif 0x61 <= c <= 0x66:
            value = c - 0x61 + 10
        elif 0x41 <= c <= 0x46:
            value = c - 0x41 + 10
        else:
            raise MalformedChunkSize(line)
        size = size * 16 + value
    return size


def _strip_newline(line: bytes) -> bytes:
    if line.endswith(b"\r\n"):
        return line[:-2]
    if line.endswith(b"\n"):
        return line[:-1]
    return line


class LineDecoder:
    """Incrementally split bytes into ``\\n`` delimited lines.

    A ``\\r`` directly before the ``\\n`` is dropped with it.
    """

    def __init__(self) -> None:
        self.buffer = bytearray()

    def decode(self, data: bytes) -> list[bytes]:
        self.buffer += data
        if b"\n" not in data:
            return []
        *lines, rest = bytes(self.buffer).split(b"\n")
        self.buffer = bytearray(rest)
        return [line[:-1] if line.endswith(b"\r") else line for line in lines]

    def flush(self) -> list[bytes]:
        if not self.buffer:
            return []
        line = _strip_newline(bytes(self.buffer))
        self.buffer = bytearray()
        return [line]


class GZipState(enum.Enum):
    NOT_STARTED = "not-started"
    BUFFERING = "buffering"
    DECOMPRESSING = "decompressing"


class GZipDecoder:
    """Decompress a gzip stream that arrives in arbitrary pieces.

    The decompressor is only created once the full fixed-size gzip header
    has been buffered, so a stream split inside its header is handled the
    same as one split anywhere else.  Output is returned in blocks of at
    most ``block_size`` bytes; a short last block is returned as-is.
    """

    def __init__(self, block_size: int = GZIP_BLOCK_SIZE) -> None:
        self.block_size = block_size
        self.state = GZipState.NOT_STARTED
        self._buffer = bytearray()
        self._decompressor: typing.Any = None

    def _start(self, data: bytes) -> bytes:
        if data[:2] != _GZIP_MAGIC:
            raise DecompressionError(f"Not a gzip stream: {data[:2]!r}")
        self._decompressor = zlib.decompressobj(zlib.MAX_WBITS | 16)
        self.state = GZipState.DECOMPRESSING
        logger.debug("gzip header received, decompressing")
        return self._decompress(data)

    def _decompress(self, data: bytes) -> bytes:
        try:
            output = self._decompressor.decompress(data)
            # Concatenated gzip members.
            while self._decompressor.eof and self._decompressor.unused_data:
                rest = self._decompressor.unused_data
                self._decompressor = zlib.decompressobj(zlib.MAX_WBITS | 16)
                output += self._decompressor.decompress(rest)
        except zlib.error as exc:
            raise DecompressionError(str(exc)) from exc
        return output

    def _blocks(self, data: bytes) -> list[bytes]:
        size = self.block_size
        return [data[i : i + size] for i in range(0, len(data), size)]

    def decode(self, data: bytes) -> list[bytes]:
        if not data:
            return []
        if self.state is GZipState.DECOMPRESSING:
            return self._blocks(self._decompress(data))

        self._buffer += data
        if len(self._buffer) < _GZIP_HEADER_SIZE:
            self.state = GZipState.BUFFERING
            return []
        buffered = bytes(self._buffer)
        self._buffer = bytearray()
        return self._blocks(self._start(buffered))

    def flush(self) -> list[bytes]:
        if self.state is not GZipState.DECOMPRESSING:
            if self._buffer:
                raise DecompressionError("Stream ended inside the gzip header")
            return []
        try:
            output = self._decompressor.flush()
        except zlib.error as exc:
            raise DecompressionError(str(exc)) from exc
        return self._blocks(output)


class ChunkDecoder:
    """Decode a response body read from ``reader``.

    In plain mode every unit is one line; in chunked mode every unit is one
    transfer-encoding chunk.  The stream ends cleanly at end of input; there
    is no terminal chunk.
    """

    def __init__(
        self,
        reader: Reader,
        *,
        chunked: bool = False,
        gzip: bool = False,
        block_size: int = GZIP_BLOCK_SIZE,
    ) -> None:
        self.reader = reader
        self.chunked = chunked
        self.gzip = gzip
        self.block_size = block_size

    def __iter__(self) -> Iterator[bytes]:
        for unit in self.iter_units():
            yield from unit

    def iter_units(self) -> Iterator[list[bytes]]:
        """Yield the decoded segments of each wire unit, one list per unit."""
        if self.chunked:
            return self._iter_chunks()
        if self.gzip:
            return self._iter_gzip_lines()
        return self._iter_lines()

    def _iter_lines(self) -> Iterator[list[bytes]]:
        while True:
            line = self.reader.readline()
            if not line:
                return
            yield [_strip_newline(line)]

    def _iter_gzip_lines(self) -> Iterator[list[bytes]]:
        decompressor = GZipDecoder(block_size=READ_SIZE)
        lines = LineDecoder()
        while True:
            data = self.reader.read(READ_SIZE)
            if not data:
                break
            for block in decompressor.decode(data):
                for line in lines.decode(block):
                    yield [line]
        for block in decompressor.flush():
            for line in lines.decode(block):
                yield [line]
        for line in lines.flush():
            yield [line]

    def _read_payload(self, size: int) -> bytes:
        payload = bytearray()
        while len(payload) < size:
            data = self.reader.read(size - len(payload))
            if not data:
                logger.debug(
                    "End of stream after %d of %d chunk bytes", len(payload), size
                )
                break
            payload += data
        return bytes(payload)

    def _iter_chunks(self) -> Iterator[list[bytes]]:
        decompressor = GZipDecoder(self.block_size) if self.gzip else None
        while True:
            line = self.reader.readline()
            if not line:
                break
            size = decode_hex_size(_strip_newline(line))
            payload = self._read_payload(size)
            if decompressor is None:
                yield [payload] if payload else []
            else:
                yield decompressor.decode(payload)
            if len(payload) < size:
                break
        if decompressor is not None:
            tail = decompressor.flush()
            if tail:
                yield tail


class NonEmptySink:
    """Forward segments to ``sink`` unless they are empty or a bare CRLF."""

    def __init__(self, sink: Callable[[bytes], typing.Any]) -> None:
        self.sink = sink

    def __call__(self, data: bytes) -> None:
        if not data or data == b"\r\n":
            return
        self.sink(data)
