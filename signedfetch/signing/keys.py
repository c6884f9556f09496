import binascii
import logging
import os
import threading
from base64 import b64decode
from dataclasses import dataclass, field
from typing import Optional, Union

from cachetools import LRUCache, cached
from cachetools.keys import hashkey
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from signedfetch.config import (
    MissingConfigException,
    get_config,
    load_file_from_path_at_config,
)
from signedfetch.signing.exceptions import ConfigurationError, PrivateKeyError

log = logging.getLogger(__name__)

PEM_MARKER = b"-----BEGIN"

KeyData = Union[str, bytes]


def _as_password(passphrase: Optional[KeyData]) -> Optional[bytes]:
    if passphrase is None or isinstance(passphrase, bytes):
        return passphrase
    return passphrase.encode()


def load_private_key(
    data: KeyData, passphrase: Optional[KeyData] = None
) -> rsa.RSAPrivateKey:
    """
    Parses an RSA private key.

    Three encodings are accepted, mirroring what containers historically
    configured: a PEM document (PKCS#1 or PKCS#8, possibly encrypted), the
    base64 text of a PKCS#8 DER key without PEM armour, or raw DER bytes.
    """
    if not data:
        raise PrivateKeyError("Empty private key")
    raw = data.encode() if isinstance(data, str) else data
    password = _as_password(passphrase)
    try:
        if PEM_MARKER in raw:
            key = serialization.load_pem_private_key(raw, password=password)
        else:
            if isinstance(data, str):
                raw = b64decode("".join(data.split()), validate=True)
            key = serialization.load_der_private_key(raw, password=password)
    except (ValueError, TypeError, UnsupportedAlgorithm, binascii.Error) as e:
        raise PrivateKeyError("Unable to parse private key") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise PrivateKeyError(
            "Signed fetch requires an RSA key, got %s" % type(key).__name__
        )
    return key


_key_file_cache = LRUCache(maxsize=16)
_key_file_lock = threading.Lock()


def _key_file_cache_key(path, mtime, size, passphrase):
    return hashkey(path, mtime, size, passphrase)


@cached(_key_file_cache, key=_key_file_cache_key, lock=_key_file_lock)
def _load_key_file(path, mtime, size, passphrase) -> rsa.RSAPrivateKey:
    log.info("Loading signing key from file", extra=dict(path=path))
    with open(path, "rb") as _file:
        return load_private_key(_file.read(), passphrase)


def load_key_file(
    path: str, passphrase: Optional[KeyData] = None
) -> rsa.RSAPrivateKey:
    """
    Loads a private key from disk, memoized by the file identity so a rotated
    key file is picked up while an unchanged one is parsed only once.
    """
    realpath = os.path.realpath(path)
    try:
        stat = os.stat(realpath)
    except FileNotFoundError as e:
        log.exception("No private key file found", extra=dict(path=path))
        raise PrivateKeyError("No private key file found at %s" % path) from e
    return _load_key_file(realpath, stat.st_mtime_ns, stat.st_size, passphrase)


def clear_key_file_cache() -> None:
    with _key_file_lock:
        _key_file_cache.clear()


@dataclass(frozen=True)
class KeyMaterial:
    key_name: Optional[str]
    private_key: rsa.RSAPrivateKey = field(repr=False, compare=False)

    @classmethod
    def from_pem(cls, key_name, pem: KeyData, passphrase=None) -> "KeyMaterial":
        return cls(key_name, load_private_key(pem, passphrase))

    @classmethod
    def from_b64(cls, key_name, b64_key: str, passphrase=None) -> "KeyMaterial":
        return cls(key_name, load_private_key(b64_key, passphrase))

    @classmethod
    def from_der(cls, key_name, der: bytes, passphrase=None) -> "KeyMaterial":
        return cls(key_name, load_private_key(bytes(der), passphrase))

    @classmethod
    def from_file(cls, key_name, path: str, passphrase=None) -> "KeyMaterial":
        return cls(key_name, load_key_file(path, passphrase))

    @classmethod
    def from_config(cls) -> "KeyMaterial":
        key_name = get_config("signing", "key_name")
        passphrase = get_config("signing", "key_passphrase")
        key_file = get_config("signing", "key_file")
        if isinstance(key_file, str):
            return cls.from_file(key_name, key_file, passphrase)
        if isinstance(key_file, dict):
            try:
                contents = load_file_from_path_at_config("signing", "key_file")
            except (MissingConfigException, FileNotFoundError) as e:
                raise PrivateKeyError("Unable to read `signing.key_file`") from e
            return cls(key_name, load_private_key(contents, passphrase))
        inline_key = get_config("signing", "private_key")
        if inline_key:
            return cls(key_name, load_private_key(inline_key, passphrase))
        log.error("`signing.key_file` or `signing.private_key` config required")
        raise ConfigurationError("No private key configured for signed fetch")
