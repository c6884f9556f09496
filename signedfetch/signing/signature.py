import base64
import logging
from typing import Dict, Tuple, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from oauthlib.oauth1.rfc5849 import signature as oauth_signature

from signedfetch.signing.exceptions import (
    ConfigurationError,
    PrivateKeyError,
    SigningError,
)
from signedfetch.signing.keys import KeyMaterial
from signedfetch.signing.params import OAUTH_SIGNATURE, RSA_SHA1
from signedfetch.signing.types import ParameterSet

log = logging.getLogger(__name__)


class SignatureMethod(object):
    name: str = None

    def sign(self, base_string: str, key_material: KeyMaterial) -> str:
        raise NotImplementedError()


class RsaSha1SignatureMethod(SignatureMethod):
    name = RSA_SHA1

    def sign(self, base_string: str, key_material: KeyMaterial) -> str:
        """Builds the base64 RSASSA-PKCS1-v1_5 SHA-1 signature of the base string"""
        if not isinstance(key_material.private_key, rsa.RSAPrivateKey):
            raise PrivateKeyError("Signing key is not an RSA private key")
        signature = key_material.private_key.sign(
            base_string.encode("ascii"), padding.PKCS1v15(), hashes.SHA1()
        )
        return base64.b64encode(signature).decode("ascii")


SIGNATURE_METHODS: Dict[str, SignatureMethod] = {
    RSA_SHA1: RsaSha1SignatureMethod(),
}


def get_signature_method(name: str) -> SignatureMethod:
    try:
        return SIGNATURE_METHODS[name]
    except KeyError:
        raise ConfigurationError("Unsupported signature method %s" % name)


class SignatureEngine(object):
    def __init__(self, signature_method: Union[str, SignatureMethod] = RSA_SHA1):
        if isinstance(signature_method, str):
            signature_method = get_signature_method(signature_method)
        self.signature_method = signature_method

    def base_string(self, method: str, url: str, parameter_set: ParameterSet) -> str:
        """
        Builds the OAuth signature base string: the uppercase method, the base
        string URI (no query, no default port) and the normalized parameters,
        each escaped with RFC 3986 rules and joined by "&".
        """
        try:
            base_uri = oauth_signature.base_string_uri(url)
            normalized = oauth_signature.normalize_parameters(
                [
                    (name, value)
                    for name, value in parameter_set.pairs()
                    if name != OAUTH_SIGNATURE
                ]
            )
            return oauth_signature.signature_base_string(
                method.upper(), base_uri, normalized
            )
        except (ValueError, TypeError, AttributeError) as e:
            raise SigningError("Unable to build signature base string") from e

    def sign(
        self,
        method: str,
        url: str,
        parameter_set: ParameterSet,
        key_material: KeyMaterial,
    ) -> Tuple[str, str]:
        base_string = self.base_string(method, url, parameter_set)
        try:
            signature = self.signature_method.sign(base_string, key_material)
        except PrivateKeyError:
            raise
        except (ValueError, TypeError, UnicodeError) as e:
            raise SigningError("Unable to compute request signature") from e
        log.debug(
            "Signed request",
            extra=dict(
                signature_method=self.signature_method.name,
                key_name=key_material.key_name,
            ),
        )
        return signature, self.signature_method.name
