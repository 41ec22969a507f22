"""
OAuth 1.0a request signing (RFC 5849, HMAC-SHA1).

Only signing is implemented: the credentials are expected to be already
authorized.  The nonce and timestamp may be injected so that a signature is
fully determined by its inputs.

>>> signer = HmacSha1Signer()
>>> request = Request("GET", "https://stream.twitter.com/1/statuses/filter.json")
>>> signer.sign(
...     request,
...     ClientConfig("consumerkey", "consumersecret"),
...     UserConfig.authorized("token", "secret"),
...     nonce="54321",
...     timestamp="12345",
... )
'OAuth oauth_consumer_key="consumerkey", oauth_nonce="54321", ...'
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
import time
from collections.abc import Iterable, Mapping

from ._exceptions import SignError
from ._models import Credentials, Request
from ._urlparse import rfc3986_escape

__all__ = [
    "ClientConfig",
    "HmacSha1Signer",
    "Signer",
    "UserConfig",
    "encode_parameters",
    "generate_nonce",
    "generate_timestamp",
    "sign_request",
    "signature_base_string",
]

logger = logging.getLogger("oauthstream.oauth1a")

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"


class ClientConfig:
    """Client (consumer) key and secret issued by the service."""

    __slots__ = ("consumer_key", "consumer_secret")

    def __init__(self, consumer_key: str, consumer_secret: str) -> None:
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret

    def __repr__(self) -> str:
        return f"ClientConfig(consumer_key={self.consumer_key!r})"


class UserConfig:
    """User tokens.

    Request and access tokens are kept apart so the position in the
    authorization flow can be inferred; signing always prefers the access
    token.
    """

    __slots__ = (
        "request_token_key",
        "request_token_secret",
        "access_token_key",
        "access_token_secret",
    )

    def __init__(
        self,
        *,
        request_token_key: str = "",
        request_token_secret: str = "",
        access_token_key: str = "",
        access_token_secret: str = "",
    ) -> None:
        self.request_token_key = request_token_key
        self.request_token_secret = request_token_secret
        self.access_token_key = access_token_key
        self.access_token_secret = access_token_secret

    @classmethod
    def authorized(cls, token: str, secret: str) -> UserConfig:
        return cls(access_token_key=token, access_token_secret=secret)

    def get_token(self) -> tuple[str, str]:
        """Return ``(key, secret)``: access token, else request token, else empty."""
        if self.access_token_key:
            return self.access_token_key, self.access_token_secret
        if self.request_token_key:
            return self.request_token_key, self.request_token_secret
        return "", ""

    def __repr__(self) -> str:
        key, _ = self.get_token()
        return f"UserConfig(token={key!r})"


def generate_nonce() -> str:
    return secrets.token_hex(16)


def generate_timestamp() -> str:
    return str(int(time.time()))


def _first_values(pairs: Iterable[tuple[str, str]]) -> dict[str, str]:
    # TODO: sign every value of a repeated parameter, not just the first.
    values: dict[str, str] = {}
    for key, value in pairs:
        values.setdefault(key, value)
    return values


def encode_parameters(params: Mapping[str, str]) -> str:
    """Sort parameters by name and join them as ``key=value`` pairs.

    Names and values are RFC 3986 escaped.  Sorting happens on the raw
    names, before escaping.
    """
    return "&".join(
        f"{rfc3986_escape(key)}={rfc3986_escape(params[key])}" for key in sorted(params)
    )


def signature_base_string(
    method: str, base_url: str, params: Mapping[str, str]
) -> str:
    """``METHOD&escaped(base_url)&escaped(sorted parameters)``."""
    return "&".join(
        [
            method.upper(),
            rfc3986_escape(base_url),
            rfc3986_escape(encode_parameters(params)),
        ]
    )


class Signer:
    """Interface for OAuth signing implementations."""

    def sign(
        self,
        request: Request,
        client_config: ClientConfig,
        user_config: UserConfig,
        *,
        nonce: str | None = None,
        timestamp: str | None = None,
    ) -> str:
        raise NotImplementedError()  # pragma: no cover


class HmacSha1Signer(Signer):
    def oauth_parameters(
        self,
        client_config: ClientConfig,
        user_config: UserConfig,
        *,
        nonce: str | None = None,
        timestamp: str | None = None,
    ) -> dict[str, str]:
        params = {
            "oauth_consumer_key": client_config.consumer_key,
            "oauth_nonce": generate_nonce() if nonce is None else nonce,
            "oauth_signature_method": SIGNATURE_METHOD,
            "oauth_timestamp": generate_timestamp() if timestamp is None else timestamp,
            "oauth_version": OAUTH_VERSION,
        }
        token_key, _ = user_config.get_token()
        if token_key:
            params["oauth_token"] = token_key
        return params

    def signature(
        self, base_string: str, consumer_secret: str, token_secret: str = ""
    ) -> str:
        key = f"{consumer_secret}&{token_secret}".encode("utf-8")
        digest = hmac.new(key, base_string.encode("utf-8"), hashlib.sha1).digest()
        return base64.b64encode(digest).decode("ascii")

    def sign(
        self,
        request: Request,
        client_config: ClientConfig,
        user_config: UserConfig,
        *,
        nonce: str | None = None,
        timestamp: str | None = None,
    ) -> str:
        """Add an ``Authorization: OAuth ...`` header to ``request``.

        Query-string and form-body parameters take part in the signature but
        only the ``oauth_*`` parameters appear in the header.  Returns the
        header value.
        """
        oauth_params = self.oauth_parameters(
            client_config, user_config, nonce=nonce, timestamp=timestamp
        )
        try:
            form = request.form
        except (UnicodeDecodeError, ValueError) as exc:
            raise SignError(
                f"Cannot read form parameters: {exc}", request=request
            ) from exc

        signing_params = dict(oauth_params)
        signing_params.update(_first_values(request.query_params))
        signing_params.update(_first_values(form))

        base_string = signature_base_string(
            request.method, request.url.base_url, signing_params
        )
        logger.debug("Signature base string: %s", base_string)

        _, token_secret = user_config.get_token()
        oauth_params["oauth_signature"] = self.signature(
            base_string, client_config.consumer_secret, token_secret
        )
        header = "OAuth " + ", ".join(
            f'{rfc3986_escape(key)}="{rfc3986_escape(oauth_params[key])}"'
            for key in sorted(oauth_params)
        )
        request.headers["Authorization"] = header
        return header


def sign_request(
    request: Request,
    credentials: Credentials,
    *,
    signer: Signer | None = None,
    nonce: str | None = None,
    timestamp: str | None = None,
) -> str:
    """Sign ``request`` with a flat :class:`Credentials` value."""
    signer = signer or HmacSha1Signer()
    return signer.sign(
        request,
        ClientConfig(credentials.consumer_key, credentials.consumer_secret),
        UserConfig.authorized(credentials.token, credentials.token_secret),
        nonce=nonce,
        timestamp=timestamp,
    )
