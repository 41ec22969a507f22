from __future__ import annotations

import ipaddress
import typing
from urllib.request import getproxies

if typing.TYPE_CHECKING:
    from ._urlparse import ParseResult


def get_environment_proxies() -> dict[str, str | None]:
    """Map ``scheme://`` and ``all://host`` patterns to proxy URLs.

    A value of ``None`` marks a ``NO_PROXY`` exclusion.
    """
    proxy_info = getproxies()
    mounts: dict[str, str | None] = {}

    for scheme in ("http", "https", "all"):
        if proxy_info.get(scheme):
            hostname = proxy_info[scheme]
            mounts[f"{scheme}://"] = (
                hostname if "://" in hostname else f"http://{hostname}"
            )

    no_proxy_hosts = [host.strip() for host in proxy_info.get("no", "").split(",")]
    for hostname in no_proxy_hosts:
        if hostname == "*":
            return {}
        elif hostname:
            if "://" in hostname:
                mounts[hostname] = None
            elif _is_ip_hostname(hostname, ipaddress.IPv4Address):
                mounts[f"all://{hostname}"] = None
            elif _is_ip_hostname(hostname, ipaddress.IPv6Address):
                mounts[f"all://[{hostname}]"] = None
            elif hostname.lower() == "localhost":
                mounts[f"all://{hostname}"] = None
            else:
                mounts[f"all://*{hostname}"] = None

    return mounts


def _is_ip_hostname(
    hostname: str,
    address_class: type[ipaddress.IPv4Address] | type[ipaddress.IPv6Address],
) -> bool:
    try:
        address_class(hostname.split("/")[0])
    except ValueError:
        return False
    return True


def _host_excluded(pattern: str, host: str) -> bool:
    pattern = pattern.lower()
    if pattern.startswith("*."):
        return host.endswith(pattern[1:])
    if pattern.startswith("*"):
        domain = pattern[1:].lstrip(".")
        return host == domain or host.endswith("." + domain)
    return host == pattern.strip("[]")


def get_environment_proxy(url: ParseResult) -> str | None:
    """Return the proxy the environment configures for ``url``, if any."""
    mounts = get_environment_proxies()
    for pattern, proxy in mounts.items():
        if proxy is not None:
            continue
        scheme, _, host = pattern.partition("://")
        if scheme not in ("all", url.scheme):
            continue
        if _host_excluded(host.partition("/")[0], url.host):
            return None
    return mounts.get(f"{url.scheme}://") or mounts.get("all://")
