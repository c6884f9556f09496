from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple


class ParameterSource(Enum):
    query = "query"
    body = "body"
    signer = "signer"


@dataclass(frozen=True)
class SigningIdentity:
    owner_id: Optional[str] = None
    viewer_id: Optional[str] = None
    app_id: Optional[str] = None
    domain: Optional[str] = None

    @classmethod
    def from_token(cls, token: Mapping) -> "SigningIdentity":
        """
        Builds an identity out of an already verified security token.

        Both the short (`owner`) and long (`owner_id`) spellings are accepted,
        since different token decoders disagree on them.
        """

        def pick(name):
            value = token.get(name)
            if value is None:
                value = token.get(f"{name}_id")
            return None if value is None else str(value)

        return cls(
            owner_id=pick("owner"),
            viewer_id=pick("viewer"),
            app_id=pick("app"),
            domain=token.get("domain"),
        )


@dataclass(frozen=True)
class Parameter:
    name: str
    value: str
    source: ParameterSource


class ParameterSet(object):
    """Ordered multimap of the parameters that take part in a signature"""

    def __init__(self, parameters: Iterable[Parameter] = ()):
        self._parameters: List[Parameter] = list(parameters)

    def append(self, name: str, value: str, source: ParameterSource) -> None:
        self._parameters.append(Parameter(name, value, source))

    def pairs(self) -> List[Tuple[str, str]]:
        return [(p.name, p.value) for p in self._parameters]

    def get(self, name: str, default=None) -> Optional[str]:
        for p in self._parameters:
            if p.name == name:
                return p.value
        return default

    def get_all(self, name: str) -> List[str]:
        return [p.value for p in self._parameters if p.name == name]

    def names(self) -> List[str]:
        return [p.name for p in self._parameters]

    def from_source(self, source: ParameterSource) -> List[Parameter]:
        return [p for p in self._parameters if p.source == source]

    def __iter__(self) -> Iterator[Parameter]:
        return iter(self._parameters)

    def __len__(self) -> int:
        return len(self._parameters)

    def __contains__(self, name) -> bool:
        return any(p.name == name for p in self._parameters)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ParameterSet):
            return NotImplemented
        return self._parameters == other._parameters

    def __repr__(self):
        return "<ParameterSet names=%s>" % self.names()


@dataclass(frozen=True)
class SignedRequest:
    url: str
    method: str
    headers: Optional[Dict[str, str]] = None
    body: Optional[str] = None


@dataclass(frozen=True)
class FetchResponse:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", "replace")
