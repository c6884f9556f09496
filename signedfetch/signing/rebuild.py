from collections import Counter
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from oauthlib.oauth1.rfc5849.utils import escape

from signedfetch.signing.exceptions import SigningError
from signedfetch.signing.params import OAUTH_SIGNATURE, RESERVED_PREFIXES, decode_form
from signedfetch.signing.types import ParameterSet, ParameterSource, SignedRequest

BODY_METHODS = ("POST",)


def form_encode(pairs: Iterable[Tuple[str, str]]) -> str:
    """
    Encodes pairs the way OAuth does, which differs from regular form
    encoding: spaces become %20, and only unreserved characters are left as is.

    >>> form_encode([("a b", "c*d+e")])
    'a%20b=c%2Ad%2Be'
    """
    return "&".join("%s=%s" % (escape(name), escape(value)) for name, value in pairs)


def parse_post_headers(value: Optional[str]) -> Optional[Dict[str, str]]:
    """
    Decodes the `headers` field the proxy receives in its body, which is
    itself a form encoded `Name=Value&Other=Value` string.
    """
    if not value:
        return None
    return dict(decode_form(value))


class RequestRebuilder(object):
    def __init__(
        self,
        body_methods: Iterable[str] = BODY_METHODS,
        reserved_prefixes: Iterable[str] = RESERVED_PREFIXES,
    ):
        self.body_methods = tuple(m.upper() for m in body_methods)
        self.reserved_prefixes = tuple(p.lower() for p in reserved_prefixes)

    def rebuild(
        self,
        original_url: str,
        method: str,
        parameter_set: ParameterSet,
        signature: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> SignedRequest:
        method = method.upper()
        parsed = urlsplit(original_url)
        if not parsed.scheme or not parsed.netloc:
            raise SigningError("Cannot rebuild a request for a relative url")

        in_body = method in self.body_methods
        body_pairs: List[Tuple[str, str]] = []
        query_pairs: List[Tuple[str, str]] = []
        for param in parameter_set:
            if param.name == OAUTH_SIGNATURE:
                continue
            if in_body and param.source == ParameterSource.body:
                body_pairs.append((param.name, param.value))
            else:
                query_pairs.append((param.name, param.value))
        query_pairs.append((OAUTH_SIGNATURE, signature))

        # Stick on the original query params too, unless they are already there.
        # Unlike a plain re-append, reserved names are left out: put back unsigned
        # they would sit next to the identity the signer asserts.
        emitted = Counter(query_pairs)
        for pair in decode_form(parsed.query):
            if pair[0].lower().startswith(self.reserved_prefixes):
                continue
            if emitted[pair] > 0:
                emitted[pair] -= 1
            else:
                query_pairs.append(pair)

        url = urlunsplit(
            (parsed.scheme, parsed.netloc, parsed.path, form_encode(query_pairs), "")
        )
        body = form_encode(body_pairs) if body_pairs else None
        return SignedRequest(
            url=url,
            method=method,
            headers=dict(headers) if headers else None,
            body=body,
        )
