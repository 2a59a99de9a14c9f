"""Tests for the JWKS cache: TTL and refresh on unknown kid."""

from unittest.mock import MagicMock, patch

from scoped_api.auth.jwks_cache import JWKSCache

JWKS_URI = "https://sso.example.com/realms/shop/protocol/openid-connect/certs"


def _jwk(kid: str, use: str = "sig") -> dict:
    from cryptography.hazmat.primitives.asymmetric import rsa
    from jwt.algorithms import RSAAlgorithm

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    jwk = RSAAlgorithm.to_jwk(key.public_key(), as_dict=True)
    jwk["kid"] = kid
    jwk["use"] = use
    return jwk


def _response(keys: list[dict]) -> MagicMock:
    resp = MagicMock()
    resp.raise_for_status.return_value = None
    resp.json.return_value = {"keys": keys}
    return resp


def test_known_kid_served_from_cache():
    with patch("scoped_api.auth.jwks_cache.requests.get") as get:
        get.return_value = _response([_jwk("k1")])
        cache = JWKSCache(JWKS_URI, ttl_seconds=3600, timeout_seconds=4)
        assert cache.get_signing_key("k1") is not None
        assert cache.get_signing_key("k1") is not None

    get.assert_called_once_with(JWKS_URI, timeout=4)


def test_unknown_kid_refreshes_once():
    with patch("scoped_api.auth.jwks_cache.requests.get") as get:
        get.side_effect = [_response([_jwk("k1")]), _response([_jwk("k1"), _jwk("k2")])]
        cache = JWKSCache(JWKS_URI, ttl_seconds=3600)
        cache.get_signing_key("k1")
        assert cache.get_signing_key("k2") is not None

    assert get.call_count == 2


def test_unknown_kid_after_refresh_is_none():
    with patch("scoped_api.auth.jwks_cache.requests.get") as get:
        get.return_value = _response([_jwk("k1")])
        cache = JWKSCache(JWKS_URI, ttl_seconds=3600)
        assert cache.get_signing_key("missing") is None

    assert get.call_count == 2


def test_encryption_keys_ignored():
    with patch("scoped_api.auth.jwks_cache.requests.get") as get:
        get.return_value = _response([_jwk("k1", use="enc")])
        cache = JWKSCache(JWKS_URI, ttl_seconds=3600)
        assert cache.get_signing_key("k1") is None


def test_expired_ttl_refetches():
    with patch("scoped_api.auth.jwks_cache.requests.get") as get:
        get.return_value = _response([_jwk("k1")])
        cache = JWKSCache(JWKS_URI, ttl_seconds=0)
        cache.get_signing_key("k1")
        cache.get_signing_key("k1")

    assert get.call_count == 2
