import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from signedfetch.config import ConfigHelper
from signedfetch.signing.keys import KeyMaterial, clear_key_file_cache
from signedfetch.signing.types import SigningIdentity
from tests.helper import InterceptingFetcher

KEY_NAME = "https://c.example/pub.crt"


@pytest.fixture
def mock_configuration(mocker):
    m = mocker.patch("signedfetch.config._get_config_instance")
    mock_config = ConfigHelper()
    m.return_value = mock_config
    our_config = {
        "signing": {
            "key_name": KEY_NAME,
            "excluded_params": [],
            "http": {"timeouts": [10, 30], "verify_ssl": True},
        },
    }
    mock_config.set_params(our_config)
    return mock_config


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key):
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture(scope="session")
def public_key_pem(rsa_private_key):
    return (
        rsa_private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )


@pytest.fixture
def key_material(rsa_private_key):
    return KeyMaterial(KEY_NAME, rsa_private_key)


@pytest.fixture
def identity():
    return SigningIdentity(owner_id="o", viewer_id="v", app_id="a", domain="d")


@pytest.fixture(autouse=True)
def empty_key_file_cache():
    clear_key_file_cache()
    yield
    clear_key_file_cache()


@pytest.fixture
def interceptor():
    return InterceptingFetcher()
