from __future__ import annotations

import ipaddress
import re
import typing

import idna

MAX_URL_LENGTH = 65536

UNRESERVED_CHARACTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"
SUB_DELIMS = "!$&'()*+,;="

PERCENT_ENCODED_REGEX = re.compile("%[A-Fa-f0-9]{2}")

_UNRESERVED_BYTES = frozenset(UNRESERVED_CHARACTERS.encode("ascii"))

_ALWAYS_EXCLUDED = (0x20, 0x22, 0x3C, 0x3E)
_PATH_EXCLUDED = _ALWAYS_EXCLUDED + (0x23, 0x3F, 0x60, 0x7B, 0x7D)


def _safe_chars(*excluded: int) -> str:
    excluded_set = set(excluded)
    return "".join(chr(i) for i in range(0x20, 0x7F) if i not in excluded_set)


QUERY_SAFE = _safe_chars(*_ALWAYS_EXCLUDED, 0x23)
PATH_SAFE = _safe_chars(*_PATH_EXCLUDED)

URL_REGEX = re.compile(
    r"(?:(?P<scheme>([a-zA-Z][a-zA-Z0-9+.-]*)?):)?"
    r"(?://(?P<authority>[^/?#]*))?"
    r"(?P<path>[^?#]*)"
    r"(?:\?(?P<query>[^#]*))?"
    r"(?:#(?P<fragment>.*))?"
)

AUTHORITY_REGEX = re.compile(
    r"(?:(?P<userinfo>.*)@)?(?P<host>(\[.*\]|[^:@]*)):?(?P<port>.*)?"
)

IPv4_STYLE_HOSTNAME = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+\.[0-9]+$")
IPv6_STYLE_HOSTNAME = re.compile(r"^\[.*\]$")

DEFAULT_PORTS = {"http": 80, "https": 443}


class InvalidURL(ValueError):
    pass


class ParseResult(typing.NamedTuple):
    scheme: str
    host: str
    port: int | None
    path: str
    query: str | None

    @property
    def netloc(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return host + (f":{self.port}" if self.port is not None else "")

    @property
    def effective_port(self) -> int:
        if self.port is not None:
            return self.port
        return DEFAULT_PORTS.get(self.scheme, 443)

    @property
    def base_url(self) -> str:
        """``scheme://host/path`` with the query string stripped."""
        return f"{self.scheme}://{self.netloc}{self.path}"

    @property
    def target(self) -> str:
        """The origin-form request target, ``/path?query``."""
        return self.path + (f"?{self.query}" if self.query is not None else "")

    def __str__(self) -> str:
        return self.base_url + (f"?{self.query}" if self.query is not None else "")


def _validate_non_printable(value: str, label: str) -> None:
    if any(char.isascii() and not char.isprintable() for char in value):
        char = next(c for c in value if c.isascii() and not c.isprintable())
        raise InvalidURL(f"Invalid non-printable ASCII character in {label}, {char!r} at position {value.find(char)}.")


def urlparse(url: str) -> ParseResult:
    """Split an absolute URL into the pieces needed to dial and sign.

    The fragment and any userinfo are discarded; an empty path becomes ``/``.
    """
    if len(url) > MAX_URL_LENGTH:
        raise InvalidURL("URL too long")

    _validate_non_printable(url, "URL")

    url_dict = URL_REGEX.match(url).groupdict()  # type: ignore[union-attr]

    scheme = (url_dict["scheme"] or "").lower()
    authority = url_dict["authority"] or ""
    path = url_dict["path"] or ""
    query = url_dict["query"]

    authority_dict = AUTHORITY_REGEX.match(authority).groupdict()  # type: ignore[union-attr]
    host = encode_host(authority_dict["host"] or "")
    port = normalize_port(authority_dict["port"], scheme)

    if not scheme:
        raise InvalidURL(f"URL has no scheme: {url!r}")
    if not host:
        raise InvalidURL(f"URL has no host: {url!r}")
    if path and not path.startswith("/"):
        raise InvalidURL("For absolute URLs, path must be empty or begin with '/'")

    return ParseResult(
        scheme,
        host,
        port,
        quote(normalize_path(path) or "/", safe=PATH_SAFE),
        None if query is None else quote(query, safe=QUERY_SAFE),
    )


def encode_host(host: str) -> str:
    if not host:
        return ""

    if IPv4_STYLE_HOSTNAME.match(host):
        try:
            ipaddress.IPv4Address(host)
        except ipaddress.AddressValueError:
            raise InvalidURL(f"Invalid IPv4 address: {host!r}")
        return host

    if IPv6_STYLE_HOSTNAME.match(host):
        try:
            ipaddress.IPv6Address(host[1:-1])
        except ipaddress.AddressValueError:
            raise InvalidURL(f"Invalid IPv6 address: {host!r}")
        return host[1:-1]

    if host.isascii():
        WHATWG_SAFE = '"`{}%|\\'
        return quote(host.lower(), safe=SUB_DELIMS + WHATWG_SAFE)

    try:
        return idna.encode(host.lower()).decode("ascii")
    except idna.IDNAError:
        raise InvalidURL(f"Invalid IDNA hostname: {host!r}")


def normalize_port(port: str | int | None, scheme: str) -> int | None:
    if not port and port != 0:
        return None
    try:
        port_as_int = int(port)  # type: ignore[arg-type]
    except ValueError:
        raise InvalidURL(f"Invalid port: {port!r}")
    default = DEFAULT_PORTS.get(scheme)
    return None if port_as_int == default else port_as_int


def normalize_path(path: str) -> str:
    if "." not in path:
        return path
    components = path.split("/")
    if "." not in components and ".." not in components:
        return path
    output: list[str] = []
    for component in components:
        if component == "..":
            if output and output != [""]:
                output.pop()
        elif component != ".":
            output.append(component)
    return "/".join(output)


def _percent_encode(string: str) -> str:
    return "".join(f"%{byte:02X}" for byte in string.encode("utf-8"))


def percent_encoded(string: str, safe: str) -> str:
    non_escaped = UNRESERVED_CHARACTERS + safe
    if not string.rstrip(non_escaped):
        return string
    return "".join(c if c in non_escaped else _percent_encode(c) for c in string)


def quote(string: str, safe: str) -> str:
    parts: list[str] = []
    pos = 0
    for match in re.finditer(PERCENT_ENCODED_REGEX, string):
        start, end = match.start(), match.end()
        if start != pos:
            parts.append(percent_encoded(string[pos:start], safe=safe))
        parts.append(match.group(0))
        pos = end
    if pos != len(string):
        parts.append(percent_encoded(string[pos:], safe=safe))
    return "".join(parts)


# ---------------------------------------------------------------------------
# RFC 3986 escaping for OAuth
#
# Unlike ``quote`` above, existing ``%XX`` sequences are not preserved and
# nothing outside the unreserved set is considered safe.  Spaces become
# ``%20``, never ``+``.
# ---------------------------------------------------------------------------


def rfc3986_escape(value: str | bytes) -> str:
    """Percent-encode every byte outside ``A-Za-z0-9-._~``.

    Strings are encoded to UTF-8 first, so a multi-byte character becomes
    several ``%XX`` triplets.
    """
    data = value.encode("utf-8") if isinstance(value, str) else value
    return "".join(
        chr(byte) if byte in _UNRESERVED_BYTES else f"%{byte:02X}" for byte in data
    )


def rfc3986_unescape_bytes(value: str) -> bytes:
    output = bytearray()
    pos = 0
    for match in PERCENT_ENCODED_REGEX.finditer(value):
        output += value[pos : match.start()].encode("utf-8")
        output.append(int(match.group(0)[1:], 16))
        pos = match.end()
    output += value[pos:].encode("utf-8")
    return bytes(output)


def rfc3986_unescape(value: str) -> str:
    return rfc3986_unescape_bytes(value).decode("utf-8")
