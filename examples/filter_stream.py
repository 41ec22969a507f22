"""
Filter Stream
=============

Consume a signed streaming endpoint for a fixed amount of time, printing each
line and recording the raw bytes that crossed the wire.

Credentials are read from ``~/.twurlrc``.
"""

import json
import threading

import oauthstream

URL = "https://stream.twitter.com/1/statuses/filter.json?track=python"


def plain_stream() -> None:
    """Newline-delimited body, stop after 30 seconds."""
    print("── Plain stream ───────────────────────────────────────────────")
    credentials = oauthstream.load_credentials()
    received = bytearray()
    configuration = oauthstream.Configuration(
        "GET", URL, ttl=30, on_bytes_in=received.extend
    )
    connection = oauthstream.Connection(configuration, credentials)

    def print_line(line: bytes) -> None:
        if line:
            print(f"  {json.loads(line).get('text', '')!r}")

    connection.read(print_line)
    print(f"  Status: {connection.status_code}, {len(received)} raw bytes in")
    print()


def chunked_gzip_stream() -> None:
    """Chunked, gzip-compressed body, consumed lazily."""
    print("── Chunked + gzip ─────────────────────────────────────────────")
    credentials = oauthstream.load_credentials()
    configuration = oauthstream.Configuration(
        "GET", URL, chunked=True, gzip=True, ttl=10
    )
    connection = oauthstream.Connection(configuration, credentials)
    total = 0
    for block in connection.iter_segments():
        total += len(block)
    print(f"  Decompressed {total} bytes (gzip negotiated: {connection.gzip})")
    print()


def concurrent_streams() -> None:
    """Each connection owns its own transport; run them on separate threads."""
    print("── Concurrent streams ─────────────────────────────────────────")
    credentials = oauthstream.load_credentials()
    counts: dict[str, int] = {}

    def run(track: str) -> None:
        configuration = oauthstream.Configuration(
            "GET", f"{URL.split('?')[0]}?track={track}", ttl=10
        )
        connection = oauthstream.Connection(configuration, credentials)
        lines: list[bytes] = []
        connection.read(lines.append)
        counts[track] = len(lines)

    threads = [threading.Thread(target=run, args=(t,)) for t in ("python", "rust")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    print(f"  Lines per track: {counts}")
    print()


def error_handling() -> None:
    """Every failure is a StreamError subclass; TTL expiry is not an error."""
    print("── Error handling ─────────────────────────────────────────────")
    credentials = oauthstream.Credentials("token", "secret", "key", "secret")
    configuration = oauthstream.Configuration(
        "GET", "https://localhost:1/stream.json"
    )
    try:
        oauthstream.Connection(configuration, credentials).read(print)
    except oauthstream.DialError as exc:
        print(f"  DialError: {exc}")
    except oauthstream.StreamError as exc:
        print(f"  {type(exc).__name__}: {exc}")
    print()


if __name__ == "__main__":
    plain_stream()
    chunked_gzip_stream()
    concurrent_streams()
    error_handling()
