from base64 import b64decode
from types import SimpleNamespace

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from oauthlib.oauth1.rfc5849.signature import verify_rsa_sha1

from signedfetch.signing.exceptions import (
    ConfigurationError,
    PrivateKeyError,
    SigningError,
)
from signedfetch.signing.keys import KeyMaterial
from signedfetch.signing.signature import (
    RsaSha1SignatureMethod,
    SignatureEngine,
    SignatureMethod,
    get_signature_method,
)
from signedfetch.signing.types import ParameterSet, ParameterSource


def make_params(*pairs, source=ParameterSource.query):
    params = ParameterSet()
    for name, value in pairs:
        params.append(name, value, source)
    return params


class TestBaseString(object):
    def test_rfc5849_example(self):
        # Section 3.4.1.1 of RFC 5849, minus the oauth_signature parameter
        params = make_params(
            ("b5", "=%3D"),
            ("a3", "a"),
            ("c@", ""),
            ("a2", "r b"),
            ("oauth_consumer_key", "9djdj82h48djs9d2"),
            ("oauth_token", "kkk9d7dh3k39sjv7"),
            ("oauth_signature_method", "HMAC-SHA1"),
            ("oauth_timestamp", "137131201"),
            ("oauth_nonce", "7d8f3e4a"),
            ("c2", ""),
            ("a3", "2 q"),
            ("oauth_signature", "ignored"),
        )
        base_string = SignatureEngine().base_string(
            "post", "http://Example.com:80/request?b5=%3D%253D", params
        )
        assert base_string == (
            "POST&http%3A%2F%2Fexample.com%2Frequest&a2%3Dr%2520b%26a3%3D2%2520q"
            "%26a3%3Da%26b5%3D%253D%25253D%26c%2540%3D%26c2%3D%26oauth_consumer_"
            "key%3D9djdj82h48djs9d2%26oauth_nonce%3D7d8f3e4a%26oauth_signature_m"
            "ethod%3DHMAC-SHA1%26oauth_timestamp%3D137131201%26oauth_token%3Dkkk"
            "9d7dh3k39sjv7"
        )

    def test_reserved_characters_are_escaped(self):
        params = make_params(("q", "a b*c+d~e"))
        base_string = SignatureEngine().base_string(
            "GET", "https://x.example/p", params
        )
        assert base_string == (
            "GET&https%3A%2F%2Fx.example%2Fp&q%3Da%2520b%252Ac%252Bd~e"
        )

    def test_non_default_port_is_kept(self):
        base_string = SignatureEngine().base_string(
            "GET", "http://x.example:8080/", ParameterSet()
        )
        assert base_string == "GET&http%3A%2F%2Fx.example%3A8080%2F&"

    @pytest.mark.parametrize(
        "url", ["/relative/path", "x.example/p", "http://x.example:notaport/", ""]
    )
    def test_unparseable_url(self, url):
        with pytest.raises(SigningError):
            SignatureEngine().base_string("GET", url, ParameterSet())


class TestSign(object):
    def test_signature_verifies(self, key_material, rsa_private_key):
        params = make_params(("a", "1"), ("oauth_nonce", "n"))
        engine = SignatureEngine()
        signature, method = engine.sign("GET", "http://test/", params, key_material)
        assert method == "RSA-SHA1"
        rsa_private_key.public_key().verify(
            b64decode(signature),
            engine.base_string("GET", "http://test/", params).encode(),
            padding.PKCS1v15(),
            hashes.SHA1(),
        )

    def test_signature_is_deterministic(self, key_material):
        params = make_params(
            ("a", "1"), ("oauth_nonce", "fixed"), ("oauth_timestamp", "1")
        )
        engine = SignatureEngine()
        first = engine.sign("POST", "http://test/x", params, key_material)
        second = engine.sign("POST", "http://test/x", params, key_material)
        assert first == second

    def test_signature_changes_with_params(self, key_material):
        engine = SignatureEngine()
        first, _ = engine.sign(
            "GET", "http://t/", make_params(("a", "1")), key_material
        )
        second, _ = engine.sign(
            "GET", "http://t/", make_params(("a", "2")), key_material
        )
        assert first != second

    def test_oauthlib_accepts_our_signature(self, key_material, public_key_pem):
        params = make_params(
            ("title", "hello world"),
            ("oauth_consumer_key", "d"),
            ("oauth_nonce", "abc"),
            ("oauth_timestamp", "1442832674"),
            ("oauth_signature_method", "RSA-SHA1"),
        )
        signature, _ = SignatureEngine().sign(
            "POST", "https://api.example/v1/items", params, key_material
        )
        request = SimpleNamespace(
            http_method="POST",
            uri="https://api.example/v1/items",
            params=params.pairs(),
            signature=signature,
        )
        assert verify_rsa_sha1(request, public_key_pem)

    def test_bad_url(self, key_material):
        with pytest.raises(SigningError):
            SignatureEngine().sign("GET", "nope", ParameterSet(), key_material)

    def test_key_that_is_not_rsa(self):
        with pytest.raises(PrivateKeyError):
            SignatureEngine().sign(
                "GET", "http://t/", ParameterSet(), KeyMaterial("k", object())
            )

    def test_custom_signature_method(self, key_material):
        class Plain(SignatureMethod):
            name = "PLAIN-TEST"

            def sign(self, base_string, key_material):
                return "sig:" + base_string[:3]

        engine = SignatureEngine(signature_method=Plain())
        assert engine.sign("GET", "http://t/", ParameterSet(), key_material) == (
            "sig:GET",
            "PLAIN-TEST",
        )


class TestGetSignatureMethod(object):
    def test_known(self):
        assert isinstance(get_signature_method("RSA-SHA1"), RsaSha1SignatureMethod)

    def test_unknown(self):
        with pytest.raises(ConfigurationError):
            get_signature_method("HMAC-SHA1")

    def test_engine_looks_up_names(self):
        assert isinstance(SignatureEngine().signature_method, RsaSha1SignatureMethod)
        assert SignatureEngine("RSA-SHA1").signature_method.name == "RSA-SHA1"
        with pytest.raises(ConfigurationError):
            SignatureEngine("PLAINTEXT")
