from base64 import b64decode
from urllib.parse import parse_qsl, urlsplit, urlunsplit

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from oauthlib.oauth1.rfc5849 import signature as oauth_signature

from signedfetch.signing.transport import RemoteContentFetcher
from signedfetch.signing.types import FetchResponse


class InterceptingFetcher(RemoteContentFetcher):
    def __init__(self):
        self.intercepted = []

    @property
    def last_request(self):
        return self.intercepted[-1] if self.intercepted else None

    def fetch_request(self, request):
        self.intercepted.append(request)
        return FetchResponse(status_code=200, body=b"ok")


def request_params(signed_request):
    """All the (name, value) pairs a verifier would see on the wire"""
    parsed = urlsplit(signed_request.url)
    params = parse_qsl(parsed.query, keep_blank_values=True)
    if signed_request.body:
        params.extend(parse_qsl(signed_request.body, keep_blank_values=True))
    return params


def assert_signature_ok(signed_request, public_key):
    params = request_params(signed_request)
    signatures = [value for name, value in params if name == "oauth_signature"]
    assert len(signatures) == 1
    parsed = urlsplit(signed_request.url)
    base_string = oauth_signature.signature_base_string(
        signed_request.method,
        oauth_signature.base_string_uri(
            urlunsplit((parsed.scheme, parsed.netloc, parsed.path, "", ""))
        ),
        oauth_signature.normalize_parameters(
            [(name, value) for name, value in params if name != "oauth_signature"]
        ),
    )
    # Raises InvalidSignature on failure
    public_key.verify(
        b64decode(signatures[0]),
        base_string.encode("ascii"),
        padding.PKCS1v15(),
        hashes.SHA1(),
    )
