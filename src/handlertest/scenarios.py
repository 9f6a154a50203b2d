"""
scenarios.py
- Loads Calls from a YAML scenario file
- Applies simple $key substitutions from a flat config YAML at load time
- {{ ... }} templates are left alone: they are rendered by the Tester at run time

    calls:
      - name: create
        method: POST
        url: /items
        json: {name: $item_name}
        expect:
          status: 201
          fields: [id]
      - name: fetch
        url: /items/{{ field("create", "id") }}
        expect:
          status: 200
          branch: [name, $item_name]
"""

import re
from typing import Any, Dict, List, Optional

import yaml

from . import checkers
from .body import Body, FormBody, JSONBody, NoopBody, StringBody
from .call import Call
from .errors import ScenarioError
from .utils import load_yaml_file

# simple $key placeholder pattern (no braces, single level keys)
_SIMPLE_PLACEHOLDER_RE = re.compile(r"\$([A-Za-z0-9_]+)")

_BODY_KEYS = ("body", "json", "form")


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load simple key->value YAML config used for $key substitution."""
    if not path:
        return {}
    try:
        cfg = load_yaml_file(path)
    except (OSError, yaml.YAMLError) as e:
        raise ScenarioError(f"Failed to load config '{path}': {e}") from e
    if not isinstance(cfg, dict):
        raise ScenarioError(f"Failed to load config '{path}': config file must be a mapping of key -> value")
    return cfg


def _substitute_in_obj(obj: Any, cfg: Dict[str, Any]) -> Any:
    """
    Recursively substitute $key placeholders in strings using cfg (flat key→value mapping).
    - If a string is exactly "$key" and cfg[key] is not a str, return the typed value.
    - Otherwise perform string replacement with str(value).
    """
    if isinstance(obj, dict):
        return {k: _substitute_in_obj(v, cfg) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_in_obj(v, cfg) for v in obj]
    if isinstance(obj, str):
        matches = list(_SIMPLE_PLACEHOLDER_RE.finditer(obj))
        if not matches:
            return obj
        # single exact placeholder -> preserve type
        if len(matches) == 1 and matches[0].start() == 0 and matches[0].end() == len(obj):
            key = matches[0].group(1)
            if key in cfg:
                return cfg[key]
            return obj

        def _repl(m):
            key = m.group(1)
            if key in cfg:
                return str(cfg[key])
            return m.group(0)
        return _SIMPLE_PLACEHOLDER_RE.sub(_repl, obj)
    return obj


def _build_body(entry: Dict[str, Any], name: str) -> Body:
    present = [k for k in _BODY_KEYS if k in entry]
    if len(present) > 1:
        raise ScenarioError(f"call '{name}': only one of {', '.join(_BODY_KEYS)} may be given, got {present}")
    if "json" in entry:
        return JSONBody(entry["json"])
    if "form" in entry:
        if not isinstance(entry["form"], dict):
            raise ScenarioError(f"call '{name}': 'form' must be a mapping")
        return FormBody(entry["form"])
    body = entry.get("body")
    if isinstance(body, str) and body:
        return StringBody(body, content_type=entry.get("content_type", ""))
    if body not in (None, ""):
        raise ScenarioError(f"call '{name}': 'body' must be a string (use 'json' for structured bodies)")
    return NoopBody()


def _build_checkers(expect: Dict[str, Any], name: str) -> List[checkers.Checker]:
    out: List[checkers.Checker] = []
    for key, value in expect.items():
        if key == "status":
            out.append(checkers.expect_status(int(value)))
        elif key == "fields":
            out.append(checkers.expect_json_fields(*_as_list(value)))
        elif key == "list_length":
            out.append(checkers.expect_list_length(int(value)))
        elif key == "list_non_empty":
            if value:
                out.append(checkers.expect_list_non_empty)
        elif key == "branch":
            out.append(checkers.expect_json_branch(*[str(n) for n in _as_list(value)]))
        elif key == "jsonpath":
            for assertion in _as_list(value):
                if not isinstance(assertion, dict) or not assertion.get("path"):
                    raise ScenarioError(f"call '{name}': jsonpath assertion needs a 'path'")
                if "expected_value" in assertion:
                    out.append(checkers.expect_jsonpath(assertion["path"], assertion["expected_value"]))
                else:
                    out.append(checkers.expect_jsonpath(assertion["path"]))
        elif key == "headers":
            if not isinstance(value, dict):
                raise ScenarioError(f"call '{name}': expect.headers must be a mapping")
            for header, header_value in value.items():
                out.append(checkers.expect_header(header, None if header_value is None else str(header_value)))
        else:
            raise ScenarioError(f"call '{name}': unknown expectation '{key}'")
    return out


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else [value]


def build_call(entry: Dict[str, Any], index: int) -> Call:
    """Build one Call from its scenario mapping."""
    if not isinstance(entry, dict):
        raise ScenarioError(f"call #{index}: expected a mapping, got {type(entry).__name__}")
    name = entry.get("name")
    if not name:
        raise ScenarioError(f"call #{index}: missing 'name'")
    url = entry.get("url")
    if not url:
        raise ScenarioError(f"call '{name}': missing 'url'")
    c = Call(name=str(name), method=str(entry.get("method") or "GET").upper(), url=str(url),
             body=_build_body(entry, name))
    headers = entry.get("headers") or {}
    if not isinstance(headers, dict):
        raise ScenarioError(f"call '{name}': 'headers' must be a mapping")
    c.with_headers({str(k): str(v) for k, v in headers.items()})
    expect = entry.get("expect") or {}
    if not isinstance(expect, dict):
        raise ScenarioError(f"call '{name}': 'expect' must be a mapping")
    c.with_checkers(*_build_checkers(expect, name))
    return c


def load_scenario(path: str, config: Optional[Dict[str, Any]] = None) -> List[Call]:
    """Load a scenario YAML, apply $key substitutions from config and build its Calls."""
    try:
        data = load_yaml_file(path)
    except (OSError, yaml.YAMLError) as e:
        raise ScenarioError(f"Failed to load scenario '{path}': {e}") from e
    if not isinstance(data, dict) or "calls" not in data:
        raise ScenarioError(f"Invalid scenario file '{path}': missing 'calls' key")
    if config:
        data = _substitute_in_obj(data, config)
    entries = data.get("calls") or []
    if not isinstance(entries, list):
        raise ScenarioError(f"Invalid scenario file '{path}': 'calls' must be a list")
    return [build_call(entry, idx) for idx, entry in enumerate(entries, start=1)]
