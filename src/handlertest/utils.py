"""
Small helpers shared by the checkers, the scenario loader and the tests.
"""

from typing import Any, Dict, Optional, Tuple
import json

import requests
from requests.structures import CaseInsensitiveDict
import yaml
from jsonpath_ng import parse as jsonpath_parse


def load_yaml_file(path: str) -> Dict[str, Any]:
    """Load YAML file and return parsed dict (raises on error)."""
    with open(path, "rt", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return data or {}


def jsonpath_matches(body: Any, path: str):
    """Return the list of values matched by JSONPath (raises on invalid path)."""
    expr = jsonpath_parse(path)
    return [m.value for m in expr.find(body)]


def compare_jsonpath(body: Any, path: str, expected: Any) -> Tuple[bool, Optional[str]]:
    """
    Evaluate JSONPath against body and compare to expected.
    Returns (True, None) when any match equals expected, otherwise (False, message).
    """
    try:
        matches = jsonpath_matches(body, path)
    except Exception as exc:
        return False, f"Invalid JSONPath '{path}': {exc}"
    if not matches:
        return False, f"JSON path '{path}' not found"
    for mv in matches:
        if mv == expected:
            return True, None
    return False, f"JSON path '{path}' expected {expected!r} but got {matches!r}"


def scalar_text(value: Any) -> str:
    """Text form of a decoded JSON scalar (true/false/null spelled as in JSON)."""
    if isinstance(value, bool) or value is None:
        return json.dumps(value)
    return str(value)


def make_response_json(obj: Any, status: int = 200, headers: Dict[str, str] = None) -> requests.Response:
    """
    Convenience for building a requests.Response with JSON body for tests.
    """
    return make_response_text(json.dumps(obj), status, headers, content_type="application/json")


def make_response_text(text: str, status: int = 200, headers: Dict[str, str] = None,
                       content_type: str = "text/plain; charset=utf-8") -> requests.Response:
    """Build a requests.Response carrying an arbitrary text body."""
    resp = requests.Response()
    resp.status_code = status
    resp._content = text.encode("utf-8")
    hdrs = CaseInsensitiveDict(headers or {})
    hdrs.setdefault("Content-Type", content_type)
    resp.headers = hdrs
    resp.encoding = "utf-8"
    return resp
