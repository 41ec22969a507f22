"""
Load credentials from a twurl ``~/.twurlrc`` file.

The file is YAML shaped like::

    profiles:
      someuser:
        CONSUMER_KEY:
          username: someuser
          consumer_key: CONSUMER_KEY
          consumer_secret: CONSUMER_SECRET
          token: TOKEN
          secret: TOKEN_SECRET
    configuration:
      default_profile:
      - someuser
      - CONSUMER_KEY
"""

from __future__ import annotations

import logging
import os
import typing
from pathlib import Path

import yaml

from ._models import Credentials

__all__ = ["CredentialsError", "default_path", "load_credentials"]

logger = logging.getLogger("oauthstream.twurlrc")

REQUIRED_KEYS = ("token", "secret", "consumer_key", "consumer_secret")


class CredentialsError(Exception):
    pass


def default_path() -> Path:
    return Path(os.environ.get("TWURLRC", Path.home() / ".twurlrc"))


def _select_profile(
    data: dict[str, typing.Any], username: str | None, consumer_key: str | None
) -> dict[str, typing.Any]:
    profiles = data.get("profiles") or {}
    default = (data.get("configuration") or {}).get("default_profile") or []
    if username is None:
        if not default:
            raise CredentialsError("No username given and no default profile configured")
        username = default[0]
        if consumer_key is None and len(default) > 1:
            consumer_key = default[1]

    user_profiles = profiles.get(username)
    if not user_profiles:
        raise CredentialsError(f"No profile for user {username!r}")
    if consumer_key is None:
        if len(user_profiles) > 1:
            raise CredentialsError(
                f"User {username!r} has several consumer keys, pick one explicitly"
            )
        consumer_key = next(iter(user_profiles))
    profile = user_profiles.get(consumer_key)
    if not profile:
        raise CredentialsError(
            f"No profile for user {username!r} and consumer key {consumer_key!r}"
        )
    return profile


def load_credentials(
    path: str | Path | None = None,
    *,
    username: str | None = None,
    consumer_key: str | None = None,
) -> Credentials:
    """Read one profile from a ``.twurlrc`` file.

    Without ``username`` the file's default profile is used.  Raises
    :class:`CredentialsError` when the file is missing, unparseable, or has
    no matching complete profile.
    """
    path = Path(path) if path is not None else default_path()
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise CredentialsError(f"Cannot read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise CredentialsError(f"Cannot parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise CredentialsError(f"{path} does not contain a mapping")

    profile = _select_profile(data, username, consumer_key)
    missing = [key for key in REQUIRED_KEYS if not profile.get(key)]
    if missing:
        raise CredentialsError(f"Profile is missing {', '.join(missing)}")

    logger.debug("Loaded credentials for %s from %s", profile.get("username"), path)
    return Credentials(
        token=str(profile["token"]),
        token_secret=str(profile["secret"]),
        consumer_key=str(profile["consumer_key"]),
        consumer_secret=str(profile["consumer_secret"]),
    )
