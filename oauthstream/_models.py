from __future__ import annotations

import datetime
import typing
from collections.abc import Callable
from urllib.parse import parse_qsl

from ._urlparse import ParseResult, urlparse
from .__version__ import __version__

ByteSink = Callable[[bytes], typing.Any]

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
USER_AGENT = f"oauthstream/{__version__}"


class Credentials(typing.NamedTuple):
    """Already-authorized OAuth credentials for a single user and client."""

    token: str
    token_secret: str
    consumer_key: str
    consumer_secret: str

    def __repr__(self) -> str:
        return (
            f"Credentials(token={self.token!r}, consumer_key={self.consumer_key!r})"
        )


class Request:
    """The HTTP request sent down a streaming connection."""

    def __init__(
        self,
        method: str,
        url: str | ParseResult,
        *,
        headers: dict[str, str] | None = None,
        content: bytes = b"",
    ) -> None:
        self.method = method.upper()
        self.url = url if isinstance(url, ParseResult) else urlparse(url)
        self.headers: dict[str, str] = dict(headers or {})
        self.content = content

    @property
    def query_params(self) -> list[tuple[str, str]]:
        if not self.url.query:
            return []
        return parse_qsl(self.url.query, keep_blank_values=True)

    @property
    def form(self) -> list[tuple[str, str]]:
        content_type = self.headers.get("Content-Type", "").partition(";")[0]
        if not self.content or content_type.strip().lower() != FORM_CONTENT_TYPE:
            return []
        return parse_qsl(
            self.content.decode("utf-8"), keep_blank_values=True, strict_parsing=True
        )

    def encode(self, *, proxy: bool = False) -> bytes:
        """Serialize the request line, headers and body for the wire.

        ``Host`` and ``User-Agent`` come first, the remaining headers follow
        sorted by name.  With ``proxy=True`` the request line carries the
        absolute URL.
        """
        target = str(self.url) if proxy else self.url.target
        lines = [
            f"{self.method} {target} HTTP/1.1",
            f"Host: {self.url.netloc}",
            f"User-Agent: {self.headers.get('User-Agent', USER_AGENT)}",
        ]
        headers = {
            name: value
            for name, value in self.headers.items()
            if name not in ("Host", "User-Agent")
        }
        if self.content and "Content-Length" not in headers:
            headers["Content-Length"] = str(len(self.content))
        for name in sorted(headers):
            lines.append(f"{name}: {headers[name]}")
        head = "\r\n".join(lines) + "\r\n\r\n"
        return head.encode("latin-1") + self.content

    def __repr__(self) -> str:
        return f"<Request({self.method!r}, {str(self.url)!r})>"


class Configuration:
    """What to request and how to decode the response body."""

    __slots__ = (
        "method",
        "url",
        "chunked",
        "proxy",
        "ttl",
        "gzip",
        "on_bytes_out",
        "on_bytes_in",
    )

    def __init__(
        self,
        method: str,
        url: str | ParseResult,
        *,
        chunked: bool = False,
        proxy: str | None = None,
        ttl: float | datetime.timedelta | None = None,
        gzip: bool = False,
        on_bytes_out: ByteSink | None = None,
        on_bytes_in: ByteSink | None = None,
    ) -> None:
        self.method = method.upper()
        self.url = url if isinstance(url, ParseResult) else urlparse(url)
        self.chunked = chunked
        self.proxy = proxy or None
        if isinstance(ttl, datetime.timedelta):
            ttl = ttl.total_seconds()
        if ttl is not None and ttl < 0:
            raise ValueError(f"ttl must not be negative, got {ttl!r}")
        self.ttl: float | None = ttl
        self.gzip = gzip
        self.on_bytes_out = on_bytes_out
        self.on_bytes_in = on_bytes_in

    def __repr__(self) -> str:
        pieces = [f"{self.method!r}", f"{str(self.url)!r}"]
        if self.chunked:
            pieces.append("chunked=True")
        if self.gzip:
            pieces.append("gzip=True")
        if self.proxy is not None:
            pieces.append(f"proxy={self.proxy!r}")
        if self.ttl is not None:
            pieces.append(f"ttl={self.ttl!r}")
        return f"Configuration({', '.join(pieces)})"
