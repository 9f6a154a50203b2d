"""
Response checkers.

A checker is any callable

    checker(response: requests.Response, body: str, response_object: Any) -> Optional[str]

returning None when the response is acceptable, or a message describing the
mismatch. Raising AssertionError is accepted as well. Checkers must not mutate
their arguments; expected values are captured when the checker is built.
"""

import json
from typing import Any, Callable, Optional

import requests

from .utils import compare_jsonpath, jsonpath_matches, scalar_text

Checker = Callable[[requests.Response, str, Any], Optional[str]]

_MISSING = object()


class _NotJSON(Exception):
    pass


def _decode(body: str, expected_type: type, label: str) -> Any:
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise _NotJSON(f"Response body is not valid JSON: {exc}") from exc
    if not isinstance(data, expected_type):
        raise _NotJSON(f"Expected a JSON {label}, got {type(data).__name__}")
    return data


def expect_status(status: int) -> Checker:
    def check(response, body, response_object):
        if response.status_code != status:
            return f"Status Code mismatch: expected {status}, got {response.status_code}"
        return None
    return check


def expect_json_fields(*fields: str) -> Checker:
    """Body is a JSON object holding every given top-level key (values not checked)."""
    def check(response, body, response_object):
        try:
            data = _decode(body, dict, "object")
        except _NotJSON as exc:
            return str(exc)
        for f in fields:
            if f not in data:
                return f"Missing expected field '{f}'"
        return None
    return check


def expect_list_length(length: int) -> Checker:
    def check(response, body, response_object):
        try:
            items = _decode(body, list, "list")
        except _NotJSON as exc:
            return str(exc)
        if len(items) != length:
            return f"Expected a list of length {length}, got {len(items)}"
        return None
    return check


def expect_list_non_empty(response: requests.Response, body: str, response_object: Any) -> Optional[str]:
    try:
        items = _decode(body, list, "list")
    except _NotJSON as exc:
        return str(exc)
    if not items:
        return "Expected a non empty list"
    return None


def expect_json_branch(*nodes: str) -> Checker:
    """
    Walk nested JSON objects following nodes.

    Every key must exist. When the second-to-last node holds a scalar instead
    of an object, the last node is the expected value of that scalar:

        expect_json_branch("user", "role", "admin")   # {"user": {"role": "admin"}}
    """
    def check(response, body, response_object):
        try:
            node = _decode(body, dict, "object")
        except _NotJSON as exc:
            return str(exc)
        for i, name in enumerate(nodes):
            if not isinstance(node, dict):
                return f"Cannot descend into '{nodes[i - 1]}': not an object"
            if name not in node:
                return f"Missing node '{name}'"
            value = node[name]
            if not isinstance(value, dict) and i == len(nodes) - 2:
                expected = nodes[i + 1]
                if scalar_text(value) != expected:
                    return f"Wrong value: expected '{expected}', got '{scalar_text(value)}'"
                return None
            node = value
        return None
    return check


def expect_jsonpath(path: str, expected: Any = _MISSING) -> Checker:
    """JSONPath matches at least once; with expected, one of the matches must equal it."""
    def check(response, body, response_object):
        try:
            data = json.loads(body)
        except ValueError as exc:
            return f"Response body is not valid JSON: {exc}"
        if expected is _MISSING:
            try:
                matches = jsonpath_matches(data, path)
            except Exception as exc:
                return f"Invalid JSONPath '{path}': {exc}"
            if not matches:
                return f"JSON path '{path}' not found"
            return None
        ok, err = compare_jsonpath(data, path, expected)
        return None if ok else err
    return check


def expect_header(name: str, value: Optional[str] = None) -> Checker:
    """Response carries header name (case-insensitive), optionally with an exact value."""
    def check(response, body, response_object):
        actual = response.headers.get(name)
        if actual is None:
            return f"header '{name}' not found"
        if value is not None and actual != value:
            return f"header '{name}' expected {value!r} but got {actual!r}"
        return None
    return check
