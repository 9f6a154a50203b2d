"""
handlertest: scripted integration tests for in-process WSGI handlers.
Exposes the public API so callers can import everything from `handlertest`.
"""
from .body import Body, FormBody, JSONBody, NoopBody, StringBody, as_body
from .call import Call
from .checkers import (
    Checker,
    expect_header,
    expect_json_branch,
    expect_json_fields,
    expect_jsonpath,
    expect_list_length,
    expect_list_non_empty,
    expect_status,
)
from .errors import BodyError, DecodeError, HandlerTestError, RenderError, ScenarioError, ScenarioFailed
from .handler_tester import Tester
from .reporting import FailureCollector, generate_html_report
from .scenarios import load_config, load_scenario
from .values import NO_VALUE, Values
from .wsgi import WSGIAdapter

__all__ = [
    "Body",
    "FormBody",
    "JSONBody",
    "NoopBody",
    "StringBody",
    "as_body",
    "Call",
    "Checker",
    "expect_header",
    "expect_json_branch",
    "expect_json_fields",
    "expect_jsonpath",
    "expect_list_length",
    "expect_list_non_empty",
    "expect_status",
    "BodyError",
    "DecodeError",
    "HandlerTestError",
    "RenderError",
    "ScenarioError",
    "ScenarioFailed",
    "Tester",
    "FailureCollector",
    "generate_html_report",
    "load_config",
    "load_scenario",
    "NO_VALUE",
    "Values",
    "WSGIAdapter",
]
