# ruff: noqa: I001
from .__version__ import __description__, __title__, __version__
from ._connection import Connection, ConnectionState
from ._decoders import ChunkDecoder, GZipDecoder, LineDecoder, NonEmptySink, decode_hex_size
from ._exceptions import *  # noqa: F403
from ._models import Configuration, Credentials, Request
from ._transports import BaseDialer, BaseTransport, SocketTransport, TCPDialer
from ._urlparse import InvalidURL, rfc3986_escape, rfc3986_unescape
from . import oauth1a, twurlrc  # noqa: F401
from .oauth1a import ClientConfig, HmacSha1Signer, Signer, UserConfig, sign_request
from .twurlrc import CredentialsError, load_credentials

try:
    from .cli import main
except ImportError:

    def main() -> None:  # type: ignore[misc]
        import sys

        print(
            'The "oauthstream" command requires the CLI extra. '
            'Install it with: pip install "oauthstream[cli]"',
            file=sys.stderr,
        )
        sys.exit(1)


_EXCLUDED_FROM_ALL = {"cli", "main"}

__all__ = sorted(
    (
        member
        for member in list(vars().keys())
        if (
            not member.startswith("_")
            or member in ["__description__", "__title__", "__version__"]
        )
        and member not in _EXCLUDED_FROM_ALL
    ),
    key=str.casefold,
)
