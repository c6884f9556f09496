from signedfetch.signing.exceptions import (
    ConfigurationError,
    FetchServerUnreachableError,
    GadgetException,
    PrivateKeyError,
    SignedFetchError,
    SigningError,
)
from signedfetch.signing.fetcher import SigningFetcher, SigningFetcherFactory
from signedfetch.signing.keys import KeyMaterial
from signedfetch.signing.params import ParameterCanonicalizer
from signedfetch.signing.rebuild import RequestRebuilder
from signedfetch.signing.signature import (
    RsaSha1SignatureMethod,
    SignatureEngine,
    SignatureMethod,
)
from signedfetch.signing.transport import HttpxFetcher, RemoteContentFetcher
from signedfetch.signing.types import (
    FetchResponse,
    ParameterSet,
    SignedRequest,
    SigningIdentity,
)


def get_fetcher(next_fetcher=None, identity=None, **token):
    """
    Builds a signing fetcher out of the configured container key.

    `identity` may be a `SigningIdentity` or a decoded security token; extra
    keyword arguments are read as token fields.
    """
    if identity is None:
        identity = SigningIdentity.from_token(token)
    elif not isinstance(identity, SigningIdentity):
        identity = SigningIdentity.from_token(identity)
    factory = SigningFetcherFactory.from_config()
    return factory.get_signing_fetcher(next_fetcher or HttpxFetcher(), identity)
