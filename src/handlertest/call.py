"""
A Call describes one request of a scenario and the checks run on its response.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .body import Body, NoopBody, as_body
from .checkers import Checker


@dataclass
class Call:
    name: str
    method: str
    url: str
    body: Body = field(default_factory=NoopBody)
    headers: Dict[str, str] = field(default_factory=dict)
    checkers: List[Checker] = field(default_factory=list)
    # called with the decoded JSON body; result lands in response_object
    decoder: Optional[Callable[[Any], Any]] = None
    response_object: Any = None

    @classmethod
    def new(cls, name: str, method: str, url: str, body: Any = None) -> "Call":
        """Build a call, accepting a Body, a raw template string or nothing as body."""
        return cls(name=name, method=method, url=url, body=as_body(body))

    def with_headers(self, headers: Dict[str, str]) -> "Call":
        """Add headers; names and values are both templates."""
        self.headers.update(headers)
        return self

    def with_checkers(self, *checkers: Checker) -> "Call":
        self.checkers.extend(checkers)
        return self

    def decode_into(self, decoder: Callable[[Any], Any]) -> "Call":
        """
        Decode the response body into a typed object before the checkers run,
        e.g. call.decode_into(Item.from_dict) or call.decode_into(lambda d: Item(**d)).
        """
        self.decoder = decoder
        return self
