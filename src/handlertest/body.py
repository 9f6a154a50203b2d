"""
Request bodies.

A body knows how to produce its payload as a binary stream and which
content-type it carries. Any string content it holds goes through the same
render function as the URL and the headers, so values captured from earlier
calls can be spliced into payloads.
"""

import io
import json
from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Callable, Dict
from urllib.parse import urlencode

from .errors import BodyError

RenderFunc = Callable[[str], str]


class Body(ABC):
    """Payload producer for one call."""

    @abstractmethod
    def get_body(self, render: RenderFunc) -> BinaryIO:
        """Return the rendered payload as a readable binary stream."""

    @abstractmethod
    def content_type(self) -> str:
        """Content-Type header value, or "" to leave the header unset."""


class NoopBody(Body):
    """Empty body, used when a call carries no payload."""

    def get_body(self, render: RenderFunc) -> BinaryIO:
        return io.BytesIO(b"")

    def content_type(self) -> str:
        return ""

    def __repr__(self):
        return "NoopBody()"


class StringBody(Body):
    """Raw template string rendered as-is."""

    def __init__(self, template: str, content_type: str = ""):
        self.template = template
        self._content_type = content_type

    def get_body(self, render: RenderFunc) -> BinaryIO:
        return io.BytesIO(render(self.template).encode("utf-8"))

    def content_type(self) -> str:
        return self._content_type

    def __repr__(self):
        return f"StringBody({self.template!r})"


def _render_leaves(obj: Any, render: RenderFunc) -> Any:
    """Recursively render every string in obj (dict keys included)."""
    if isinstance(obj, dict):
        return {_render_leaves(k, render): _render_leaves(v, render) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_render_leaves(v, render) for v in obj]
    if isinstance(obj, str):
        return render(obj)
    return obj


class JSONBody(Body):
    """
    Structured value serialized to JSON.
    String leaves are rendered first, so {"owner": "{{ field('user', 'id') }}"}
    carries the captured id (as a string).
    """

    def __init__(self, value: Any):
        self.value = value

    def get_body(self, render: RenderFunc) -> BinaryIO:
        rendered = _render_leaves(self.value, render)
        try:
            payload = json.dumps(rendered)
        except (TypeError, ValueError) as exc:
            raise BodyError(f"cannot serialize JSON body: {exc}") from exc
        return io.BytesIO(payload.encode("utf-8"))

    def content_type(self) -> str:
        return "application/json"

    def __repr__(self):
        return f"JSONBody({self.value!r})"


class FormBody(Body):
    """URL-encoded form; field values are templates."""

    def __init__(self, fields: Dict[str, Any]):
        self.fields = fields

    def get_body(self, render: RenderFunc) -> BinaryIO:
        pairs = []
        for key, value in self.fields.items():
            if isinstance(value, str):
                value = render(value)
            pairs.append((key, value))
        return io.BytesIO(urlencode(pairs).encode("ascii"))

    def content_type(self) -> str:
        return "application/x-www-form-urlencoded"

    def __repr__(self):
        return f"FormBody({self.fields!r})"


def as_body(body: Any) -> Body:
    """
    Normalize the body argument accepted by Call.new / Tester.add_call:
      - a Body instance is used as-is
      - a non-empty string becomes a StringBody
      - anything else (None, "", other types) becomes a NoopBody
    """
    if isinstance(body, Body):
        return body
    if isinstance(body, str) and body != "":
        return StringBody(body)
    return NoopBody()
