import json
import logging
from dataclasses import dataclass

import pytest

from handlertest import (
    Call,
    FailureCollector,
    JSONBody,
    ScenarioFailed,
    Tester,
    expect_json_fields,
    expect_list_length,
    expect_status,
)


@dataclass
class Item:
    id: int
    name: str


def test_values_flow_into_later_calls(items_app):
    tester = Tester(items_app)
    tester.add_call("create", "POST", "/items", '{"name": "spoon"}').with_checkers(
        expect_status(201), expect_json_fields("id", "name"))
    tester.add_call("fetch", "GET", '/items/{{field "create" "id"}}').with_checkers(expect_status(200))
    tester.run()

    assert tester.reporter.failures == []
    assert [r["path"] for r in items_app.requests] == ["/items", "/items/7"]
    assert tester.records[1]["request"]["url"] == "http://testserver/items/7"
    assert tester.values["create"] == {"id": 7, "name": "spoon"}
    assert tester.values["fetch"] == {"id": 7, "name": "spoon"}


def test_zero_calls_reports_nothing(items_app):
    tester = Tester(items_app)
    tester.run()
    assert tester.reporter.failures == []
    assert tester.records == []
    tester.reporter.raise_for_failures()


def test_store_holds_only_calls_already_run(items_app):
    seen = {}

    def snapshot(name):
        def check(response, body, response_object):
            seen[name] = sorted(tester.values)
            return None
        return check

    tester = Tester(items_app)
    for name in ("one", "two", "three"):
        tester.add_call(name, "POST", "/items", '{"name": "x"}').with_checkers(snapshot(name))
    tester.run()

    assert seen == {"one": ["one"], "two": ["one", "two"], "three": ["one", "three", "two"]}


def test_checker_failures_are_reported_and_run_continues(items_app):
    tester = Tester(items_app)
    tester.add_call("missing", "GET", "/items/99").with_checkers(expect_status(200), expect_json_fields("id"))
    tester.add_call("list", "GET", "/items").with_checkers(expect_list_length(0))
    tester.run()

    failures = tester.reporter.failures
    assert len(failures) == 2
    assert failures[0] == "missing: Status Code mismatch: expected 200, got 404"
    assert failures[1] == "missing: Missing expected field 'id'"
    assert len(items_app.requests) == 2
    with pytest.raises(ScenarioFailed) as excinfo:
        tester.reporter.raise_for_failures()
    assert "2 failure(s)" in str(excinfo.value)


def test_url_render_error_skips_only_that_call(items_app):
    tester = Tester(items_app)
    tester.add_call("bad", "GET", '/items/{{ field("x" }}').with_checkers(expect_status(200))
    tester.add_call("list", "GET", "/items").with_checkers(expect_status(200))
    tester.run()

    assert len(tester.reporter.failures) == 1
    assert tester.reporter.failures[0].startswith("bad: ")
    assert [r["path"] for r in items_app.requests] == ["/items"]
    assert "bad" not in tester.values


def test_header_render_error_falls_back_to_empty(items_app):
    tester = Tester(items_app)
    tester.add_call("list", "GET", "/items").with_headers({"X-Token": '{{ field("x" }}'})
    tester.run()

    assert len(tester.reporter.failures) == 1
    assert tester.reporter.failures[0].startswith("list: ")
    assert items_app.requests[0]["headers"]["X_TOKEN"] == ""


def test_headers_and_body_are_templated(items_app):
    tester = Tester(items_app)
    tester.add_call("create", "POST", "/items", JSONBody({"name": "cup"}))
    tester.add_call("copy", "POST", "/items", JSONBody({"name": '{{ field("create", "name") }}-2'})).with_headers(
        {"X-{{ field(\"create\", \"name\") }}": '{{ field("create", "id") }}'})
    tester.run()

    assert tester.reporter.failures == []
    copy = items_app.requests[1]
    assert copy["content_type"] == "application/json"
    assert json.loads(copy["body"]) == {"name": "cup-2"}
    assert copy["headers"]["X_CUP"] == "7"


def test_string_body_without_content_type(items_app):
    tester = Tester(items_app)
    tester.add_call("create", "POST", "/items", '{"name": "fork"}')
    tester.run()
    assert items_app.requests[0]["content_type"] is None
    assert items_app.requests[0]["body"] == b'{"name": "fork"}'


def test_handler_exception_is_reported(items_app, caplog):
    tester = Tester(items_app)
    tester.add_call("boom", "GET", "/boom").with_checkers(expect_status(200))
    tester.add_call("list", "GET", "/items").with_checkers(expect_status(200))
    with caplog.at_level(logging.ERROR, logger="handlertest"):
        tester.run()

    assert tester.reporter.failures == ["boom: handler raised RuntimeError: boom"]
    assert "handler raised" in caplog.text
    assert len(items_app.requests) == 2


def test_invalid_url_is_reported(items_app):
    tester = Tester(items_app)
    tester.add_call("bad", "GET", "http://")
    tester.add_call("ipv6", "GET", "http://[::1/x")
    tester.add_call("list", "GET", "/items")
    tester.run()

    failures = tester.reporter.failures
    assert len(failures) == 2
    assert failures[0].startswith("bad: invalid request")
    assert failures[1].startswith("ipv6: invalid request")
    assert len(items_app.requests) == 1


def test_non_object_bodies_are_stored_as_none(items_app):
    tester = Tester(items_app)
    tester.add_call("text", "GET", "/text")
    tester.add_call("empty", "GET", "/empty").with_checkers(expect_status(204))
    tester.add_call("list", "GET", "/items")
    tester.add_call("after", "GET", '/items/{{ field("text", "id") }}')
    tester.run()

    assert tester.reporter.failures == []
    assert tester.values == {"text": None, "empty": None, "list": None, "after": {"error": "not found"}}
    assert items_app.requests[-1]["path"] == "/items/<no value>"


def test_decode_into_feeds_checkers(items_app):
    received = []

    def check(response, body, response_object):
        received.append(response_object)

    tester = Tester(items_app)
    create = tester.add_call("create", "POST", "/items", '{"name": "bowl"}')
    create.decode_into(lambda d: Item(**d)).with_checkers(check)
    tester.run()

    assert tester.reporter.failures == []
    assert create.response_object == Item(id=7, name="bowl")
    assert received == [Item(id=7, name="bowl")]


def test_decode_failure_skips_checkers(items_app):
    called = []
    tester = Tester(items_app)
    tester.add_call("text", "GET", "/text").decode_into(dict).with_checkers(
        lambda response, body, obj: called.append(True))
    tester.add_call("list", "GET", "/items").with_checkers(expect_status(200))
    tester.run()

    assert called == []
    assert len(tester.reporter.failures) == 1
    assert tester.reporter.failures[0].startswith("text: cannot decode response")


def test_checker_assertion_error_is_reported(items_app):
    def check(response, body, response_object):
        assert response.status_code == 418, "not a teapot"

    tester = Tester(items_app)
    tester.add_call("list", "GET", "/items").with_checkers(check)
    tester.run()
    assert tester.reporter.failures == ["list: not a teapot"]


def test_custom_reporter_receives_errors(items_app):
    class Sink:
        def __init__(self):
            self.errors = []

        def error(self, message):
            self.errors.append(message)

        def fatal(self, message):
            raise AssertionError(message)

    sink = Sink()
    tester = Tester(items_app, Call.new("list", "GET", "/items").with_checkers(expect_status(500)), reporter=sink)
    tester.run()
    assert sink.errors == ["list: Status Code mismatch: expected 500, got 200"]


def test_testers_do_not_share_reporters(items_app):
    first = Tester(items_app, Call.new("a", "GET", "/nope").with_checkers(expect_status(200)))
    second = Tester(items_app, Call.new("b", "GET", "/items").with_checkers(expect_status(200)))
    first.run()
    second.run()
    assert len(first.reporter) == 1
    assert len(second.reporter) == 0


def test_run_logs_each_call(items_app, caplog):
    tester = Tester(items_app)
    tester.add_call("list", "GET", "/items?page=2")
    with caplog.at_level(logging.INFO, logger="handlertest"):
        tester.run()
    assert "[1/1] list GET http://testserver/items?page=2 -> 200" in caplog.text
    assert items_app.requests[0]["query"] == "page=2"


def test_report_collects_records(items_app):
    with Tester(items_app, name="items") as tester:
        tester.add_call("missing", "GET", "/items/1").with_checkers(expect_status(200))
        tester.run()
        report = tester.report()

    assert report["name"] == "items"
    assert report["failures"] == ["missing: Status Code mismatch: expected 200, got 404"]
    call = report["calls"][0]
    assert call["index"] == 1
    assert call["request"]["method"] == "GET"
    assert call["response"]["status_code"] == 404
    assert call["response"]["json"] == {"error": "not found"}
    assert call["duration_ms"] >= 0


def test_failure_collector_fatal_raises():
    collector = FailureCollector()
    collector.error("first")
    with pytest.raises(ScenarioFailed) as excinfo:
        collector.fatal("second")
    assert excinfo.value.failures == ["first", "second"]


def test_handler_tester_fixture(handler_tester, items_app):
    tester = handler_tester(items_app)
    tester.add_call("create", "POST", "/items", '{"name": "lid"}').with_checkers(expect_status(201))
    tester.run()
    assert tester.name == "test_handler_tester_fixture"


def test_body_build_error_skips_only_that_call(items_app):
    tester = Tester(items_app)
    tester.add_call("bad", "POST", "/items", JSONBody({"x": object()})).with_checkers(expect_status(201))
    tester.add_call("list", "GET", "/items").with_checkers(expect_status(200))
    tester.run()

    failures = tester.reporter.failures
    assert len(failures) == 1
    assert failures[0].startswith("bad: cannot build body")
    assert [(r["method"], r["path"]) for r in items_app.requests] == [("GET", "/items")]


def test_checker_exception_is_reported_and_run_continues(items_app):
    def strict_json(response, body, response_object):
        json.loads(body)

    tester = Tester(items_app)
    tester.add_call("text", "GET", "/text").with_checkers(strict_json, expect_status(200))
    tester.add_call("list", "GET", "/items").with_checkers(expect_status(200))
    tester.run()

    failures = tester.reporter.failures
    assert len(failures) == 1
    assert failures[0].startswith("text: checker raised JSONDecodeError")
    assert [r["path"] for r in items_app.requests] == ["/text", "/items"]


def test_body_without_charset_reaches_checkers_as_utf8(items_app):
    bodies = []

    def capture(response, body, response_object):
        bodies.append(body)

    tester = Tester(items_app)
    tester.add_call("utf8", "GET", "/utf8").with_checkers(capture)
    tester.run()

    assert tester.reporter.failures == []
    assert bodies == ["héllo"]
