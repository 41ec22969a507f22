from __future__ import annotations

import itertools

import pytest

import oauthstream
from oauthstream.oauth1a import (
    ClientConfig,
    HmacSha1Signer,
    UserConfig,
    encode_parameters,
    generate_nonce,
    signature_base_string,
)

STREAM_URL = "https://stream.twitter.com/1/statuses/filter.json"

EXPECTED_HEADER = (
    'OAuth oauth_consumer_key="consumerkey", '
    'oauth_nonce="54321", '
    'oauth_signature="dG59sMu9QpDU4oJMGCjKEKGlVYU%3D", '
    'oauth_signature_method="HMAC-SHA1", '
    'oauth_timestamp="12345", '
    'oauth_token="token", '
    'oauth_version="1.0"'
)


def sign(request: oauthstream.Request, **kwargs) -> str:
    return HmacSha1Signer().sign(
        request,
        ClientConfig("consumerkey", "consumersecret"),
        UserConfig.authorized("token", "secret"),
        nonce=kwargs.pop("nonce", "54321"),
        timestamp=kwargs.pop("timestamp", "12345"),
    )


def test_sign_known_header() -> None:
    request = oauthstream.Request("GET", STREAM_URL)
    header = sign(request)
    assert header == EXPECTED_HEADER
    assert request.headers["Authorization"] == EXPECTED_HEADER


def test_sign_request_with_credentials(credentials: oauthstream.Credentials) -> None:
    request = oauthstream.Request("GET", STREAM_URL)
    header = oauthstream.sign_request(
        request, credentials, nonce="54321", timestamp="12345"
    )
    assert header == EXPECTED_HEADER


def test_lowercase_method_is_normalized() -> None:
    assert sign(oauthstream.Request("get", STREAM_URL)) == EXPECTED_HEADER


def test_header_only_carries_oauth_parameters() -> None:
    request = oauthstream.Request("GET", STREAM_URL + "?track=python")
    header = sign(request)
    assert "track" not in header
    assert header != EXPECTED_HEADER


def test_query_parameters_change_the_signature() -> None:
    first = sign(oauthstream.Request("GET", STREAM_URL + "?track=a"))
    second = sign(oauthstream.Request("GET", STREAM_URL + "?track=b"))
    assert first != second


def test_form_parameters_are_signed() -> None:
    plain = oauthstream.Request("POST", STREAM_URL)
    form = oauthstream.Request(
        "POST",
        STREAM_URL,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        content=b"track=python",
    )
    assert sign(plain) != sign(form)


def test_form_body_without_form_content_type_is_ignored() -> None:
    plain = oauthstream.Request("POST", STREAM_URL)
    other = oauthstream.Request(
        "POST",
        STREAM_URL,
        headers={"Content-Type": "application/json"},
        content=b'{"track": "python"}',
    )
    assert sign(plain) == sign(other)


def test_unreadable_form_body_is_a_sign_error() -> None:
    request = oauthstream.Request(
        "POST",
        STREAM_URL,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        content=b"\xff\xfe",
    )
    with pytest.raises(oauthstream.SignError) as exc_info:
        sign(request)
    assert exc_info.value.request is request


def test_repeated_parameter_first_value_wins() -> None:
    first = sign(oauthstream.Request("GET", STREAM_URL + "?track=a&track=b"))
    only = sign(oauthstream.Request("GET", STREAM_URL + "?track=a"))
    assert first == only


def test_no_token_omits_oauth_token() -> None:
    request = oauthstream.Request("GET", STREAM_URL)
    header = HmacSha1Signer().sign(
        request,
        ClientConfig("consumerkey", "consumersecret"),
        UserConfig(),
        nonce="54321",
        timestamp="12345",
    )
    assert "oauth_token" not in header
    assert header.startswith('OAuth oauth_consumer_key="consumerkey", ')


def test_generated_nonce_and_timestamp() -> None:
    request = oauthstream.Request("GET", STREAM_URL)
    header = HmacSha1Signer().sign(
        request,
        ClientConfig("consumerkey", "consumersecret"),
        UserConfig.authorized("token", "secret"),
    )
    assert 'oauth_nonce="' in header
    assert 'oauth_nonce="54321"' not in header


def test_generate_nonce_is_unique() -> None:
    nonces = {generate_nonce() for _ in range(1000)}
    assert len(nonces) == 1000


class TestUserConfig:
    def test_access_token_preferred(self) -> None:
        config = UserConfig(
            request_token_key="rk",
            request_token_secret="rs",
            access_token_key="ak",
            access_token_secret="as",
        )
        assert config.get_token() == ("ak", "as")

    def test_request_token_fallback(self) -> None:
        config = UserConfig(request_token_key="rk", request_token_secret="rs")
        assert config.get_token() == ("rk", "rs")

    def test_empty(self) -> None:
        assert UserConfig().get_token() == ("", "")

    def test_carries_only_tokens(self) -> None:
        with pytest.raises(TypeError):
            UserConfig(verifier="v")  # type: ignore[call-arg]


class TestClientConfig:
    def test_carries_only_key_and_secret(self) -> None:
        config = ClientConfig("consumerkey", "consumersecret")
        assert (config.consumer_key, config.consumer_secret) == (
            "consumerkey",
            "consumersecret",
        )
        assert not hasattr(config, "callback_url")
        assert repr(config) == "ClientConfig(consumer_key='consumerkey')"


class TestEncodeParameters:
    def test_sorted_and_escaped(self) -> None:
        params = {"b": "2 3", "a": "1", "c": "~x+y"}
        assert encode_parameters(params) == "a=1&b=2%203&c=~x%2By"

    def test_insertion_order_does_not_matter(self) -> None:
        items = [
            ("oauth_nonce", "n"),
            ("track", "café"),
            ("a", "b c"),
            ("Z", "upper"),
            ("oauth_consumer_key", "key"),
        ]
        encoded = {
            encode_parameters(dict(permutation))
            for permutation in itertools.permutations(items)
        }
        assert len(encoded) == 1

    def test_sorted_on_raw_names(self) -> None:
        # "~" sorts before "é" on the raw name, after it once escaped.
        assert encode_parameters({"a\u00e9": "1", "a~": "2"}) == "a~=2&a%C3%A9=1"


def test_signature_base_string() -> None:
    base = signature_base_string(
        "get",
        "https://stream.twitter.com/1/statuses/filter.json",
        {"oauth_nonce": "54321", "track": "a b"},
    )
    assert base == (
        "GET&https%3A%2F%2Fstream.twitter.com%2F1%2Fstatuses%2Ffilter.json"
        "&oauth_nonce%3D54321%26track%3Da%2520b"
    )
