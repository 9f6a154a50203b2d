"""
values.py
- Values: JSON results of earlier calls, keyed by call name
- Renders URL, header and body templates against them with Jinja2
- Only two functions are visible inside templates: field() and json()
"""

import json
import re
from typing import Any, Dict

from jinja2 import TemplateError, Undefined
from jinja2.sandbox import SandboxedEnvironment

from .errors import RenderError

# rendered for lookups of names or keys that are not in the store
NO_VALUE = "<no value>"

# command form {{field "a" "b"}} -> call form {{ field("a", "b") }}
_COMMAND_RE = re.compile(r'\{\{(-?)\s*(field|json)((?:\s+"[^"]*")*)\s*(-?)\}\}')
_ARG_RE = re.compile(r'"[^"]*"')


class _NoValue(Undefined):
    __slots__ = ()

    def __str__(self):
        return NO_VALUE


def _finalize(value: Any) -> Any:
    # booleans as they appear on the wire, nil results as a missing value
    if value is None:
        return NO_VALUE
    if isinstance(value, bool):
        return json.dumps(value)
    return value


def _build_environment() -> SandboxedEnvironment:
    env = SandboxedEnvironment(
        undefined=_NoValue,
        finalize=_finalize,
        autoescape=False,
        keep_trailing_newline=True,
    )
    env.globals.clear()
    env.filters.clear()
    env.tests.clear()
    return env


_ENVIRONMENT = _build_environment()


def _to_call_syntax(match: "re.Match") -> str:
    open_trim, func, raw_args, close_trim = match.groups()
    args = ", ".join(_ARG_RE.findall(raw_args))
    return f"{{{{{open_trim} {func}({args}) {close_trim}}}}}"


class Values(Dict[str, Any]):
    """Store of decoded response bodies, keyed by call name."""

    def apply(self, template: str) -> str:
        """Render template against the store. Raises RenderError."""
        source = _COMMAND_RE.sub(_to_call_syntax, template)
        functions = {"field": self.field, "json": self.json_field}
        try:
            tmpl = _ENVIRONMENT.from_string(source, globals=functions)
            context = {k: v for k, v in self.items() if k not in functions}
            return tmpl.render(context)
        except RenderError:
            raise
        except (TemplateError, TypeError, ValueError, LookupError, ArithmeticError) as exc:
            raise RenderError(f"cannot render {template!r}: {exc}") from exc

    def field(self, *keys: str) -> Any:
        """
        Walk the store by successive keys.
        A missing key yields NO_VALUE; a non-mapping in the way is an error.
        Calls whose body was not a JSON object are stored as None and behave
        like an empty object.
        """
        node: Any = self
        for depth, key in enumerate(keys):
            if node is None and depth == 1:
                return NO_VALUE
            if not isinstance(node, dict):
                raise RenderError(f"cannot dereference {type(node).__name__} with key {key!r}")
            if key not in node:
                return NO_VALUE
            node = node[key]
        return node

    def json_field(self, *keys: str) -> str:
        """Same walk as field(), re-serialized as compact JSON with sorted keys."""
        value = self.field(*keys)
        try:
            return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise RenderError(f"cannot serialize {keys!r} to JSON: {exc}") from exc
