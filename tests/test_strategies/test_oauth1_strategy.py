"""Tests for the OAuth 1.0a strategy.

The reference request is the ``photos.example.net`` example used in the
OAuth Core 1.0 appendix.
"""

from __future__ import annotations

import base64
from urllib.parse import unquote

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from reqauth.auth.base import SigningContext
from reqauth.canonical import oauth1
from reqauth.exceptions import SigningComputationError
from reqauth.models import NameValue, RequestDescriptor
from reqauth.strategies.oauth1 import OAuth1Strategy

from conftest import FIXED_NOW, fixed_random


PHOTOS_URL = "http://photos.example.net/photos?file=vacation.jpg&size=original"
PHOTOS_VALUES = {
    "consumer_key": "dpf43f3p2l4k3l03",
    "consumer_secret": "kd94hf93k423kf44",
    "token_key": "nnch734d00sl2jdk",
    "token_secret": "pfkkdhi9sl3r4s00",
    "nonce": "kllo9940pd9333jh",
    "timestamp": "1191242096",
}
PHOTOS_HEADER = (
    'OAuth oauth_consumer_key="dpf43f3p2l4k3l03", '
    'oauth_nonce="kllo9940pd9333jh", '
    'oauth_signature="tR3%2BTy81lMeYAr%2FFid0kMTYa%2FWM%3D", '
    'oauth_signature_method="HMAC-SHA1", '
    'oauth_timestamp="1191242096", '
    'oauth_token="nnch734d00sl2jdk", '
    'oauth_version="1.0"'
)


def _sign(values: dict, url: str = PHOTOS_URL, method: str = "GET", **request: object) -> str:
    strategy = OAuth1Strategy()
    context = SigningContext(
        request=RequestDescriptor(method=method, url=url, **request),  # type: ignore[arg-type]
        clock=lambda: FIXED_NOW,
        random_bytes=fixed_random,
    )
    result = strategy.apply(context, strategy.parameters().resolve(values))
    assert result.set_query_parameters is None
    assert [h.name for h in result.set_headers] == ["Authorization"]
    return result.set_headers[0].value


def _params(header: str) -> dict[str, str]:
    assert header.startswith("OAuth ")
    params = {}
    for piece in header[len("OAuth "):].split(", "):
        key, _, value = piece.partition("=")
        params[key] = unquote(value.strip('"'))
    return params


class TestHmac:
    def test_reference_header(self) -> None:
        assert _sign(PHOTOS_VALUES) == PHOTOS_HEADER

    def test_deterministic(self) -> None:
        assert _sign(PHOTOS_VALUES) == _sign(PHOTOS_VALUES)

    def test_query_change_changes_signature(self) -> None:
        other = _sign(PHOTOS_VALUES, url=PHOTOS_URL.replace("original", "small"))
        assert _params(other)["oauth_signature"] != _params(PHOTOS_HEADER)["oauth_signature"]

    def test_descriptor_query_is_signed(self) -> None:
        split = _sign(
            PHOTOS_VALUES,
            url="http://photos.example.net/photos?file=vacation.jpg",
            query=[NameValue(name="size", value="original")],
        )
        assert split == PHOTOS_HEADER

    def test_method_is_signed(self) -> None:
        posted = _sign(PHOTOS_VALUES, method="POST")
        assert _params(posted)["oauth_signature"] != _params(PHOTOS_HEADER)["oauth_signature"]

    def test_existing_oauth_query_params_ignored(self) -> None:
        noisy = _sign(PHOTOS_VALUES, url=PHOTOS_URL + "&oauth_signature=stale")
        assert noisy == PHOTOS_HEADER

    @pytest.mark.parametrize("method", ["HMAC-SHA256", "HMAC-SHA512"])
    def test_other_hmac_methods(self, method: str) -> None:
        params = _params(_sign({**PHOTOS_VALUES, "signature_method": method}))
        assert params["oauth_signature_method"] == method
        assert params["oauth_signature"] != _params(PHOTOS_HEADER)["oauth_signature"]


class TestGeneratedValues:
    def test_nonce_and_timestamp_from_context(self) -> None:
        values = {k: v for k, v in PHOTOS_VALUES.items() if k not in ("nonce", "timestamp")}
        params = _params(_sign(values))
        assert params["oauth_nonce"] == fixed_random(16).hex()
        assert params["oauth_timestamp"] == str(int(FIXED_NOW.timestamp()))

    def test_token_omitted_when_empty(self) -> None:
        values = {**PHOTOS_VALUES, "token_key": ""}
        assert "oauth_token" not in _params(_sign(values))

    def test_callback_verifier_and_realm(self) -> None:
        header = _sign(
            {**PHOTOS_VALUES, "callback": "https://app/cb", "verifier": "v1", "realm": "Photos"}
        )
        assert header.startswith('OAuth realm="Photos", ')
        params = _params(header)
        assert params["oauth_callback"] == "https://app/cb"
        assert params["oauth_verifier"] == "v1"

    def test_custom_version(self) -> None:
        assert _params(_sign({**PHOTOS_VALUES, "version": "1.0a"}))["oauth_version"] == "1.0a"


class TestPlaintext:
    def test_signature_is_signing_key(self) -> None:
        params = _params(_sign({**PHOTOS_VALUES, "signature_method": "PLAINTEXT"}))
        assert params["oauth_signature"] == "kd94hf93k423kf44&pfkkdhi9sl3r4s00"

    def test_secrets_are_encoded(self) -> None:
        values = {**PHOTOS_VALUES, "signature_method": "PLAINTEXT", "consumer_secret": "a b&c"}
        params = _params(_sign(values))
        assert params["oauth_signature"] == "a%20b%26c&pfkkdhi9sl3r4s00"


class TestRsa:
    @pytest.fixture(scope="class")
    def key(self) -> rsa.RSAPrivateKey:
        return rsa.generate_private_key(public_exponent=65537, key_size=2048)

    def _pem(self, key: rsa.RSAPrivateKey) -> str:
        return key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode("ascii")

    def test_rsa_sha256_verifies(self, key: rsa.RSAPrivateKey) -> None:
        values = {**PHOTOS_VALUES, "signature_method": "RSA-SHA256", "private_key": self._pem(key)}
        params = _params(_sign(values))

        pairs = [("file", "vacation.jpg"), ("size", "original")]
        pairs += [(k, v) for k, v in params.items() if k != "oauth_signature"]
        base_string = oauth1.signature_base_string("GET", PHOTOS_URL, pairs)
        key.public_key().verify(
            base64.b64decode(params["oauth_signature"]),
            base_string.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )

    def test_token_secret_not_used(self, key: rsa.RSAPrivateKey) -> None:
        pem = self._pem(key)
        base = {**PHOTOS_VALUES, "signature_method": "RSA-SHA1", "private_key": pem}
        assert _sign(base) == _sign({**base, "token_secret": "different"})

    def test_missing_private_key(self) -> None:
        with pytest.raises(SigningComputationError, match="private key"):
            _sign({**PHOTOS_VALUES, "signature_method": "RSA-SHA1"})


class TestSchema:
    def test_rsa_fields_visibility(self) -> None:
        schema = OAuth1Strategy().parameters()
        hmac_rows = {row.name: row.hidden for row in schema.evaluate({})}
        rsa_rows = {row.name: row.hidden for row in schema.evaluate({"signature_method": "RSA-SHA1"})}
        assert hmac_rows["private_key"] is True
        assert hmac_rows["token_secret"] is False
        assert rsa_rows["private_key"] is False
        assert rsa_rows["token_secret"] is True
