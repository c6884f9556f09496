import logging
import re
from typing import Callable, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl

from oauthlib.common import generate_nonce, generate_timestamp

from signedfetch.signing.types import ParameterSet, ParameterSource, SigningIdentity

log = logging.getLogger(__name__)

OPENSOCIAL_OWNERID = "opensocial_owner_id"
OPENSOCIAL_VIEWERID = "opensocial_viewer_id"
OPENSOCIAL_APPID = "opensocial_app_id"
XOAUTH_PUBLIC_KEY = "xoauth_signature_publickey"

OAUTH_TOKEN = "oauth_token"
OAUTH_CONSUMER_KEY = "oauth_consumer_key"
OAUTH_NONCE = "oauth_nonce"
OAUTH_TIMESTAMP = "oauth_timestamp"
OAUTH_SIGNATURE_METHOD = "oauth_signature_method"
OAUTH_SIGNATURE = "oauth_signature"
RSA_SHA1 = "RSA-SHA1"

# Body field carrying the form the gadget wants posted to the target, encoded
POST_DATA_PARAM = "postdata"

# Fields that only tell the proxy what to do. Compared lower-cased.
DEFAULT_EXCLUDED_PARAMS = frozenset(
    (
        "output",
        "httpmethod",
        "authz",
        "st",
        "headers",
        "url",
        "contenttype",
        "postdata",
        "numentries",
        "getsummaries",
        "signowner",
        "signviewer",
        "gadget",
        "bypassspeccache",
    )
)

# Only the signer may put parameters under these prefixes
RESERVED_PREFIXES = ("oauth", "xoauth", "opensocial")

ALLOWED_PARAM_NAME = re.compile(r"[A-Za-z0-9_-]+", re.ASCII)

RawParams = Union[None, str, Mapping, Iterable[Tuple[str, str]]]


def decode_form(text: Optional[str]) -> List[Tuple[str, str]]:
    if not text:
        return []
    return parse_qsl(text, keep_blank_values=True)


def normalize_raw_params(raw: RawParams) -> List[Tuple[str, str]]:
    """
    Turns the different shapes incoming parameters come in into a flat list
    of (name, value) pairs, keeping repeated names.

    >>> normalize_raw_params({"a": ["1", "2"], "b": "3"})
    [('a', '1'), ('a', '2'), ('b', '3')]
    >>> normalize_raw_params("a=1&b=")
    [('a', '1'), ('b', '')]
    """
    if raw is None:
        return []
    if isinstance(raw, (str, bytes)):
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return decode_form(raw)
    if isinstance(raw, Mapping):
        result = []
        for name, value in raw.items():
            if isinstance(value, (list, tuple)):
                result.extend((_as_str(name), _as_str(v)) for v in value)
            else:
                result.append((_as_str(name), _as_str(value)))
        return result
    return [(_as_str(name), _as_str(value)) for name, value in raw]


def _as_str(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class ParameterCanonicalizer(object):
    def __init__(
        self,
        excluded_params: Iterable[str] = DEFAULT_EXCLUDED_PARAMS,
        reserved_prefixes: Iterable[str] = RESERVED_PREFIXES,
        nonce_generator: Callable[[], str] = generate_nonce,
        clock: Callable[[], str] = generate_timestamp,
        signature_method_name: str = RSA_SHA1,
    ):
        self.excluded_params = frozenset(p.lower() for p in excluded_params)
        self.reserved_prefixes = tuple(p.lower() for p in reserved_prefixes)
        self.nonce_generator = nonce_generator
        self.clock = clock
        self.signature_method_name = signature_method_name

    def with_extra_exclusions(self, names: Iterable[str]) -> "ParameterCanonicalizer":
        return ParameterCanonicalizer(
            excluded_params=self.excluded_params | {n.lower() for n in names},
            reserved_prefixes=self.reserved_prefixes,
            nonce_generator=self.nonce_generator,
            clock=self.clock,
            signature_method_name=self.signature_method_name,
        )

    def is_allowed_param(self, name: str) -> bool:
        canon_name = name.lower()
        if canon_name in self.excluded_params:
            return False
        if canon_name.startswith(self.reserved_prefixes):
            return False
        return ALLOWED_PARAM_NAME.fullmatch(name) is not None

    def sanitize(self, pairs: Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
        """
        Strips out any proxy control field and any owner or viewer id passed
        by the client.
        """
        allowed = []
        for name, value in pairs:
            if self.is_allowed_param(name):
                allowed.append((name, value))
            else:
                log.debug(
                    "Dropping parameter from signed fetch",
                    extra=dict(param_name=name),
                )
        return allowed

    def canonicalize(
        self,
        raw_query_params: RawParams,
        raw_body_params: RawParams,
        identity: SigningIdentity,
        key_name: Optional[str] = None,
        sign_owner: bool = True,
        sign_viewer: bool = True,
    ) -> ParameterSet:
        query_pairs = self.sanitize(normalize_raw_params(raw_query_params))

        body_pairs = normalize_raw_params(raw_body_params)
        post_data_pairs = []
        for name, value in body_pairs:
            if name.lower() == POST_DATA_PARAM:
                # the form the gadget wants posted, itself form encoded
                post_data_pairs.extend(decode_form(value))
        body_pairs = self.sanitize(body_pairs) + self.sanitize(post_data_pairs)

        params = ParameterSet()
        for name, value in query_pairs:
            params.append(name, value, ParameterSource.query)
        for name, value in body_pairs:
            params.append(name, value, ParameterSource.body)

        self._add_opensocial_params(params, identity, sign_owner, sign_viewer)
        self._add_oauth_params(params, identity, key_name)
        return params

    def _add_opensocial_params(
        self,
        params: ParameterSet,
        identity: SigningIdentity,
        sign_owner: bool,
        sign_viewer: bool,
    ) -> None:
        if sign_owner and identity.owner_id is not None:
            params.append(OPENSOCIAL_OWNERID, identity.owner_id, ParameterSource.signer)
        if sign_viewer and identity.viewer_id is not None:
            params.append(
                OPENSOCIAL_VIEWERID, identity.viewer_id, ParameterSource.signer
            )
        if identity.app_id is not None:
            params.append(OPENSOCIAL_APPID, identity.app_id, ParameterSource.signer)

    def _add_oauth_params(
        self, params: ParameterSet, identity: SigningIdentity, key_name: Optional[str]
    ) -> None:
        # Signed fetch never carries a user token
        params.append(OAUTH_TOKEN, "", ParameterSource.signer)
        if identity.domain is not None:
            params.append(OAUTH_CONSUMER_KEY, identity.domain, ParameterSource.signer)
        if key_name is not None:
            params.append(XOAUTH_PUBLIC_KEY, key_name, ParameterSource.signer)
        params.append(OAUTH_NONCE, self.nonce_generator(), ParameterSource.signer)
        params.append(OAUTH_TIMESTAMP, str(self.clock()), ParameterSource.signer)
        params.append(
            OAUTH_SIGNATURE_METHOD, self.signature_method_name, ParameterSource.signer
        )
