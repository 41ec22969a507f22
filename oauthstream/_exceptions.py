"""
Exception hierarchy raised by the streaming client.

    StreamError
    ├── DialError
    ├── SignError
    ├── TransportError
    │   ├── HeaderReadError
    │   ├── TransportReadError
    │   └── TransportWriteError
    └── DecodingError
        ├── MalformedChunkSize
        └── DecompressionError

Reaching the end of the stream or running out the configured TTL are not
errors and never raise.
"""

from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from ._models import Request

__all__ = [
    "DecodingError",
    "DecompressionError",
    "DialError",
    "HeaderReadError",
    "MalformedChunkSize",
    "SignError",
    "StreamError",
    "TransportError",
    "TransportReadError",
    "TransportWriteError",
]


class StreamError(Exception):
    """Base class for every failure surfaced by a stream attempt."""

    def __init__(self, message: str, *, request: Request | None = None) -> None:
        super().__init__(message)
        self._request = request

    @property
    def request(self) -> Request:
        if self._request is None:
            raise RuntimeError("The .request property has not been set.")
        return self._request

    @request.setter
    def request(self, request: Request) -> None:
        self._request = request


class DialError(StreamError):
    """The transport could not be opened."""


class SignError(StreamError):
    """The request could not be signed."""


class TransportError(StreamError):
    pass


class HeaderReadError(TransportError):
    """The response headers could not be read."""


class TransportReadError(TransportError):
    pass


class TransportWriteError(TransportError):
    pass


class DecodingError(StreamError):
    pass


class MalformedChunkSize(DecodingError):
    """A chunk-size line contained something other than hex digits."""

    def __init__(
        self, line: bytes, *, request: Request | None = None
    ) -> None:
        text = line.decode("latin-1")
        super().__init__(f"Expected hex chunk size, got {text!r}", request=request)
        self.line = line


class DecompressionError(DecodingError):
    pass
