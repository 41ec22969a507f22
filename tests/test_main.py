from __future__ import annotations

import gzip

import pytest

pytest.importorskip("click")

from click.testing import CliRunner

import oauthstream
from oauthstream import cli

STREAM_URL = "https://stream.twitter.com/1/statuses/filter.json"


def chunk(data: bytes) -> bytes:
    return b"%x\r\n" % len(data) + data + b"\r\n"


@pytest.fixture
def patched_dialer(dialer, monkeypatch):
    monkeypatch.setattr("oauthstream._connection.TCPDialer", lambda: dialer)
    return dialer


def test_help() -> None:
    runner = CliRunner()
    result = runner.invoke(cli.main, ["--help"])
    assert result.exit_code == 0
    assert "Stream an OAuth 1.0a signed HTTP feed to stdout." in result.output


def test_plain_stream(transport, patched_dialer, twurlrc_path) -> None:
    transport.expect_write()
    transport.expect_read(b"HTTP/1.1 200 OK\r\n\r\n" + b'{"foo": "bar"}\r\n\r\n')
    transport.expect_read(b"")
    transport.expect_close()

    runner = CliRunner()
    result = runner.invoke(cli.main, [STREAM_URL, "--twurlrc", str(twurlrc_path)])
    assert result.exit_code == 0, result.output
    assert result.output == '{"foo": "bar"}\n'
    assert transport.written[0].startswith(b"GET /1/statuses/filter.json HTTP/1.1\r\n")
    assert b'oauth_consumer_key="consumerkey"' in transport.written[0]


def test_chunked_gzip_stream(transport, patched_dialer, twurlrc_path) -> None:
    compressed = gzip.compress(b'{"a": 1}\r\n{"b": 2}\r\n')
    transport.expect_write()
    transport.expect_read(
        b"HTTP/1.1 200 OK\r\nContent-Encoding: gzip\r\n\r\n" + chunk(compressed)
    )
    transport.expect_read(b"")
    transport.expect_close()

    runner = CliRunner()
    result = runner.invoke(
        cli.main,
        [STREAM_URL, "--chunked", "--gzip", "--twurlrc", str(twurlrc_path)],
    )
    assert result.exit_code == 0, result.output
    assert result.stdout_bytes == b'{"a": 1}\r\n{"b": 2}\r\n'


def test_dump_files(transport, patched_dialer, twurlrc_path, tmp_path) -> None:
    response = b"HTTP/1.1 200 OK\r\n\r\n" + b"line\n"
    transport.expect_write()
    transport.expect_read(response)
    transport.expect_read(b"")
    transport.expect_close()

    dump_out = tmp_path / "out.bin"
    dump_in = tmp_path / "in.bin"
    runner = CliRunner()
    result = runner.invoke(
        cli.main,
        [
            STREAM_URL,
            "--twurlrc",
            str(twurlrc_path),
            "--dump-out",
            str(dump_out),
            "--dump-in",
            str(dump_in),
        ],
    )
    assert result.exit_code == 0, result.output
    assert dump_out.read_bytes() == transport.written[0]
    assert dump_in.read_bytes() == response


def test_environment_proxy(transport, patched_dialer, twurlrc_path, monkeypatch) -> None:
    monkeypatch.setenv("HTTPS_PROXY", "http://proxy.local:3128")
    transport.expect_write()
    transport.expect_read(b"HTTP/1.1 200 OK\r\n\r\n")
    transport.expect_read(b"")
    transport.expect_close()

    runner = CliRunner()
    result = runner.invoke(cli.main, [STREAM_URL, "--twurlrc", str(twurlrc_path)])
    assert result.exit_code == 0, result.output
    assert patched_dialer.dialed == [("proxy.local", 3128, False)]


def test_no_env_ignores_proxy(transport, patched_dialer, twurlrc_path, monkeypatch) -> None:
    monkeypatch.setenv("HTTPS_PROXY", "http://proxy.local:3128")
    transport.expect_write()
    transport.expect_read(b"HTTP/1.1 200 OK\r\n\r\n")
    transport.expect_read(b"")
    transport.expect_close()

    runner = CliRunner()
    result = runner.invoke(
        cli.main, [STREAM_URL, "--no-env", "--twurlrc", str(twurlrc_path)]
    )
    assert result.exit_code == 0, result.output
    assert patched_dialer.dialed == [("stream.twitter.com", 443, True)]


def test_stream_error(transport, patched_dialer, twurlrc_path) -> None:
    transport.expect_write()
    transport.expect_read(b"HTTP/1.1 200 OK\r\n\r\nnothex\r\n")
    transport.expect_close()

    runner = CliRunner()
    result = runner.invoke(
        cli.main, [STREAM_URL, "--chunked", "--twurlrc", str(twurlrc_path)]
    )
    assert result.exit_code == 1
    assert "MalformedChunkSize: Expected hex chunk size, got 'nothex'" in result.output


def test_missing_credentials(tmp_path) -> None:
    runner = CliRunner()
    result = runner.invoke(
        cli.main, [STREAM_URL, "--twurlrc", str(tmp_path / "missing")]
    )
    assert result.exit_code == 1
    assert "CredentialsError" in result.output


def test_invalid_url(twurlrc_path) -> None:
    runner = CliRunner()
    result = runner.invoke(cli.main, ["not a url", "--twurlrc", str(twurlrc_path)])
    assert result.exit_code == 1
    assert "InvalidURL" in result.output


def test_package_main_is_cli() -> None:
    assert oauthstream.main is cli.main
