from __future__ import annotations

import logging
import sys
import typing

import click

from ._connection import Connection
from ._decoders import NonEmptySink
from ._exceptions import StreamError
from ._models import Configuration
from ._utils import get_environment_proxy
from .twurlrc import CredentialsError, load_credentials

try:
    from rich.console import Console

    HAS_RICH = True
except ImportError:  # pragma: no cover
    HAS_RICH = False


def _report_error(exc: Exception, use_rich: bool) -> None:
    if use_rich:
        console = Console(stderr=True)
        console.print(f"[bold red]{type(exc).__name__}[/bold red]: {exc}")
    else:
        click.echo(f"{type(exc).__name__}: {exc}", err=True)


def _stdout_sink(chunked: bool) -> typing.Callable[[bytes], None]:
    def write(segment: bytes) -> None:
        # Chunk payloads carry their own line endings.
        click.echo(segment, nl=not chunked)

    return NonEmptySink(write)


@click.command(help="Stream an OAuth 1.0a signed HTTP feed to stdout.")
@click.argument("url")
@click.option("-X", "--method", default="GET", help="HTTP method.")
@click.option(
    "--chunked", is_flag=True, default=False, help="Decode a chunked response body."
)
@click.option(
    "--gzip", is_flag=True, default=False, help="Ask for a gzip-compressed body."
)
@click.option("--proxy", default=None, help="HTTP proxy address, host:port.")
@click.option(
    "--no-env",
    is_flag=True,
    default=False,
    help="Ignore HTTPS_PROXY / NO_PROXY from the environment.",
)
@click.option(
    "--ttl",
    type=float,
    default=None,
    help="Stop cleanly after this many seconds.",
)
@click.option(
    "--twurlrc",
    "twurlrc_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Credentials file (default ~/.twurlrc).",
)
@click.option("-u", "--user", default=None, help="Profile username in the credentials file.")
@click.option("--consumer-key", default=None, help="Consumer key of the profile.")
@click.option(
    "--dump-out",
    type=click.File("wb"),
    default=None,
    help="Copy every byte sent to this file.",
)
@click.option(
    "--dump-in",
    type=click.File("wb"),
    default=None,
    help="Copy every byte received to this file.",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose logging.")
@click.option(
    "--no-color", is_flag=True, default=False, help="Disable colored output."
)
def main(
    url: str,
    method: str,
    chunked: bool,
    gzip: bool,
    proxy: str | None,
    no_env: bool,
    ttl: float | None,
    twurlrc_path: str | None,
    user: str | None,
    consumer_key: str | None,
    dump_out: typing.BinaryIO | None,
    dump_in: typing.BinaryIO | None,
    verbose: bool,
    no_color: bool,
) -> None:
    use_rich = HAS_RICH and not no_color and sys.stderr.isatty()
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )

    try:
        credentials = load_credentials(
            twurlrc_path, username=user, consumer_key=consumer_key
        )
        configuration = Configuration(
            method,
            url,
            chunked=chunked,
            gzip=gzip,
            proxy=proxy,
            ttl=ttl,
            on_bytes_out=dump_out.write if dump_out is not None else None,
            on_bytes_in=dump_in.write if dump_in is not None else None,
        )
        if configuration.proxy is None and not no_env:
            configuration.proxy = get_environment_proxy(configuration.url)

        Connection(configuration, credentials).read(_stdout_sink(chunked))
    except (StreamError, CredentialsError, ValueError) as exc:
        _report_error(exc, use_rich)
        sys.exit(1)
