import logging
import time
from typing import List, Mapping, Optional, Sequence
from urllib.parse import urlsplit

from signedfetch.config import get_config
from signedfetch.metrics import Counter, Histogram, inc_counter, observe_histogram
from signedfetch.signing.exceptions import ConfigurationError, GadgetException
from signedfetch.signing.keys import KeyMaterial
from signedfetch.signing.params import (
    RSA_SHA1,
    ParameterCanonicalizer,
    RawParams,
    decode_form,
    normalize_raw_params,
)
from signedfetch.signing.rebuild import RequestRebuilder, parse_post_headers
from signedfetch.signing.signature import SignatureEngine
from signedfetch.signing.transport import RemoteContentFetcher
from signedfetch.signing.types import FetchResponse, SignedRequest, SigningIdentity

log = logging.getLogger(__name__)

SIGNED_FETCH_COUNTER = Counter(
    "signed_fetch_requests",
    "Number of requests that went through the signing fetcher",
    ["outcome"],
)

SIGNING_DURATION = Histogram(
    "signed_fetch_signing_seconds",
    "Time spent canonicalizing, signing and rebuilding a request",
)

HEADERS_PARAM = "headers"


def _find_param(pairs, name: str) -> Optional[str]:
    for key, value in pairs:
        if key.lower() == name:
            return value
    return None


class SigningFetcher(RemoteContentFetcher):
    """
    Implements signed fetch based on the OAuth request signing algorithm.

    The fetcher keeps no per request state, so a single instance can be used
    by many threads at once. Network access is left to `next_fetcher`.
    """

    def __init__(
        self,
        next_fetcher: RemoteContentFetcher,
        identity: SigningIdentity,
        key_material: KeyMaterial,
        canonicalizer: ParameterCanonicalizer = None,
        engine: SignatureEngine = None,
        rebuilder: RequestRebuilder = None,
    ):
        self.next_fetcher = next_fetcher
        self.identity = identity
        self.key_material = key_material
        self.engine = engine or SignatureEngine()
        self.canonicalizer = canonicalizer or ParameterCanonicalizer(
            signature_method_name=self.engine.signature_method.name
        )
        announced = self.canonicalizer.signature_method_name
        if announced != self.engine.signature_method.name:
            raise ConfigurationError(
                "Canonicalizer announces %s but the engine signs with %s"
                % (announced, self.engine.signature_method.name)
            )
        self.rebuilder = rebuilder or RequestRebuilder()

    @classmethod
    def make_from_private_key(
        cls, next_fetcher, identity, key_name, private_key, **kwargs
    ) -> "SigningFetcher":
        if isinstance(private_key, (str, bytes)):
            key_material = KeyMaterial.from_pem(key_name, private_key)
        else:
            key_material = KeyMaterial(key_name, private_key)
        return cls(next_fetcher, identity, key_material, **kwargs)

    @classmethod
    def make_from_b64_private_key(
        cls, next_fetcher, identity, key_name, private_key, **kwargs
    ) -> "SigningFetcher":
        return cls(
            next_fetcher,
            identity,
            KeyMaterial.from_b64(key_name, private_key),
            **kwargs,
        )

    @classmethod
    def make_from_private_key_bytes(
        cls, next_fetcher, identity, key_name, private_key, **kwargs
    ) -> "SigningFetcher":
        return cls(
            next_fetcher,
            identity,
            KeyMaterial.from_der(key_name, private_key),
            **kwargs,
        )

    def __repr__(self):
        return "<SigningFetcher key_name=%s app=%s>" % (
            self.key_material.key_name,
            self.identity.app_id,
        )

    def sign_request(
        self,
        url: str,
        method: str = "GET",
        query_params: RawParams = None,
        body_params: RawParams = None,
        headers: Optional[Mapping[str, str]] = None,
        sign_owner: bool = True,
        sign_viewer: bool = True,
    ) -> SignedRequest:
        """
        Turns an unsigned request into a signed one.

        `query_params` and `body_params` are the parameters of the request the
        proxy received. The body may carry the `postData` field with the form
        to post to the target, and the `headers` field with the headers to
        send along with a POST.

        Raises:
            GadgetException: whenever the request can't be signed; the cause
                is chained but its details never reach the message.
        """
        start = time.perf_counter()
        try:
            method = method.upper()
            raw_query = decode_form(urlsplit(url).query) + normalize_raw_params(
                query_params
            )
            raw_body = normalize_raw_params(body_params)
            params = self.canonicalizer.canonicalize(
                raw_query,
                raw_body,
                self.identity,
                key_name=self.key_material.key_name,
                sign_owner=sign_owner,
                sign_viewer=sign_viewer,
            )
            signature, _ = self.engine.sign(method, url, params, self.key_material)
            if headers is None and method in self.rebuilder.body_methods:
                headers = parse_post_headers(_find_param(raw_body, HEADERS_PARAM))
            signed = self.rebuilder.rebuild(url, method, params, signature, headers)
        except Exception as e:
            inc_counter(SIGNED_FETCH_COUNTER, labels=dict(outcome="failed"))
            log.warning(
                "Unable to sign request",
                extra=dict(method=method, error_type=type(e).__name__),
            )
            raise GadgetException(500, "Unable to sign the request") from e
        observe_histogram(SIGNING_DURATION, time.perf_counter() - start)
        inc_counter(SIGNED_FETCH_COUNTER, labels=dict(outcome="signed"))
        return signed

    def fetch(
        self,
        url: str,
        method: str = "GET",
        query_params: RawParams = None,
        body_params: RawParams = None,
        headers: Optional[Mapping[str, str]] = None,
        sign_owner: bool = True,
        sign_viewer: bool = True,
    ) -> FetchResponse:
        signed = self.sign_request(
            url,
            method,
            query_params=query_params,
            body_params=body_params,
            headers=headers,
            sign_owner=sign_owner,
            sign_viewer=sign_viewer,
        )
        return self.next_fetcher.fetch_request(signed)

    def fetch_request(self, request: SignedRequest) -> FetchResponse:
        return self.next_fetcher.fetch_request(request)

    def multi_fetch_request(
        self, requests: Sequence[SignedRequest]
    ) -> List[FetchResponse]:
        return self.next_fetcher.multi_fetch_request(requests)


class SigningFetcherFactory(object):
    """
    Holds the container key, parsed once, and hands out one fetcher per
    incoming request identity.
    """

    def __init__(
        self,
        key_material: KeyMaterial,
        excluded_params=(),
        engine: SignatureEngine = None,
        signature_method: str = RSA_SHA1,
    ):
        self.key_material = key_material
        self.engine = engine or SignatureEngine(signature_method)
        self.canonicalizer = ParameterCanonicalizer(
            signature_method_name=self.engine.signature_method.name
        ).with_extra_exclusions(excluded_params)
        self.rebuilder = RequestRebuilder()

    @classmethod
    def from_config(cls) -> "SigningFetcherFactory":
        return cls(
            KeyMaterial.from_config(),
            excluded_params=get_config("signing", "excluded_params", default=[]) or [],
            signature_method=get_config(
                "signing", "signature_method", default=RSA_SHA1
            ),
        )

    def get_signing_fetcher(
        self, next_fetcher: RemoteContentFetcher, identity: SigningIdentity
    ) -> SigningFetcher:
        return SigningFetcher(
            next_fetcher,
            identity,
            self.key_material,
            canonicalizer=self.canonicalizer,
            engine=self.engine,
            rebuilder=self.rebuilder,
        )
