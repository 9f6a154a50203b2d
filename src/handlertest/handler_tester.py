"""
handler_tester.py
- Runs a list of Calls, in order, against an in-process WSGI handler
- Renders URL, headers and body of each call from the results of earlier calls
- Stores every JSON object response under its call name for later calls
- Reports each failure (render, request, handler, decode, checker) and moves on:
  one broken call never stops the following ones
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import requests

from .body import Body
from .call import Call
from .errors import DecodeError, HandlerTestError, RenderError
from .reporting import FailureCollector
from .values import Values
from .wsgi import WSGIApp, mount

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://testserver"
SNIPPET_LENGTH = 2000


def _best_effort_json(text: str) -> Optional[Dict[str, Any]]:
    """Decoded body when it is a JSON object, None otherwise (never raises)."""
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _body_text(resp: requests.Response) -> str:
    """Response text; bodies without a declared charset are read as UTF-8."""
    if "charset=" in resp.headers.get("Content-Type", "").lower():
        return resp.text
    return resp.content.decode("utf-8", errors="replace")


def _decode_target(c: Call, text: str) -> Any:
    try:
        return c.decoder(json.loads(text))
    except (ValueError, TypeError, LookupError, AttributeError) as exc:
        raise DecodeError(f"cannot decode response: {exc}") from exc


class Tester:
    """
    Sequential runner for one scenario.

        tester = Tester(app)
        tester.add_call("create", "POST", "/items", '{"name": "x"}').with_checkers(expect_status(201))
        tester.add_call("fetch", "GET", '/items/{{field "create" "id"}}').with_checkers(expect_status(200))
        tester.run()
        tester.reporter.raise_for_failures()

    reporter defaults to a FailureCollector; any object with error()/fatal() works.
    """

    def __init__(self, handler: WSGIApp, *calls: Call, reporter: Any = None,
                 base_url: str = DEFAULT_BASE_URL, name: Optional[str] = None):
        self.handler = handler
        self.calls: List[Call] = list(calls)
        self.reporter = reporter if reporter is not None else FailureCollector()
        self.base_url = base_url
        self.name = name or getattr(handler, "__name__", type(handler).__name__)
        self.values = Values()
        self.records: List[Dict[str, Any]] = []
        self._current: Optional[Dict[str, Any]] = None
        self.session = requests.Session()
        # no proxies or netrc lookups: every URL goes to the handler
        self.session.trust_env = False
        mount(self.session, handler)

    @classmethod
    def from_scenario(cls, handler: WSGIApp, path: str, config: Optional[Dict[str, Any]] = None,
                      **kwargs) -> "Tester":
        """Build a Tester from a YAML scenario file (see scenarios.load_scenario)."""
        from .scenarios import load_scenario

        kwargs.setdefault("name", path)
        return cls(handler, *load_scenario(path, config=config), **kwargs)

    def add_call(self, name: str, method: str, url: str, body: Any = None) -> Call:
        c = Call.new(name, method, url, body)
        self.calls.append(c)
        return c

    def _error(self, message: str, record: Optional[Dict[str, Any]] = None):
        if record is not None:
            record["failures"].append(message)
        self.reporter.error(message)

    def apply_template(self, template: str) -> str:
        """Lenient render: report the error and fall back to ""."""
        try:
            return self.values.apply(template)
        except RenderError as exc:
            record = self._current
            self._error(f"{record['name']}: {exc}" if record else str(exc), record)
            return ""

    def _url(self, rendered: str) -> str:
        if urlsplit(rendered).scheme:
            return rendered
        if not rendered.startswith("/"):
            rendered = "/" + rendered
        return self.base_url.rstrip("/") + rendered

    def run(self):
        total = len(self.calls)
        for idx, c in enumerate(self.calls, start=1):
            record: Dict[str, Any] = {"index": idx, "name": c.name, "start": time.time(), "duration_ms": None,
                                      "request": None, "response": None, "failures": []}
            self.records.append(record)
            self._current = record
            try:
                self._run_call(c, record, idx, total)
            finally:
                self._current = None
                record["duration_ms"] = int((time.time() - record["start"]) * 1000)
        return self.records

    def _run_call(self, c: Call, record: Dict[str, Any], idx: int, total: int):
        body: Body = c.body
        try:
            payload = body.get_body(self.apply_template).read()
        except (HandlerTestError, TypeError, ValueError, OSError) as exc:
            self._error(f"{c.name}: cannot build body: {exc}", record)
            return

        try:
            rendered_url = self.values.apply(c.url)
        except RenderError as exc:
            self._error(f"{c.name}: {exc}", record)
            return

        headers: Dict[str, str] = {}
        content_type = body.content_type()
        if content_type:
            headers["Content-Type"] = content_type
        for k, v in c.headers.items():
            headers[self.apply_template(k)] = self.apply_template(v)

        try:
            url = self._url(rendered_url)
            prepared = self.session.prepare_request(
                requests.Request(c.method.upper(), url, data=payload or None, headers=headers))
        except (requests.RequestException, ValueError) as exc:
            self._error(f"{c.name}: invalid request: {exc}", record)
            return
        record["request"] = {"method": prepared.method, "url": prepared.url, "headers": headers,
                             "body": payload.decode("utf-8", errors="replace")}

        try:
            resp = self.session.send(prepared, allow_redirects=False)
        except Exception as exc:
            logger.exception("handler raised on %s %s", prepared.method, prepared.url)
            self._error(f"{c.name}: handler raised {type(exc).__name__}: {exc}", record)
            return
        logger.info("[%d/%d] %s %s %s -> %d", idx, total, c.name, prepared.method, prepared.url, resp.status_code)

        resp_body = _body_text(resp)
        stored = _best_effort_json(resp_body) if resp_body else None
        record["response"] = {"status_code": resp.status_code, "headers": dict(resp.headers), "json": stored,
                              "text_snippet": resp_body[:SNIPPET_LENGTH]}

        if resp.content:
            if c.decoder is not None:
                try:
                    c.response_object = _decode_target(c, resp_body)
                except DecodeError as exc:
                    self._error(f"{c.name}: {exc}", record)
                    return
        # entry is written before the checkers run; None when the body is not a JSON object
        self.values[c.name] = stored

        for checker in c.checkers:
            try:
                err = checker(resp, resp_body, c.response_object)
            except AssertionError as exc:
                err = str(exc) or "assertion failed"
            except Exception as exc:
                logger.exception("checker raised on %s", c.name)
                err = f"checker raised {type(exc).__name__}: {exc}"
            if err:
                self._error(f"{c.name}: {err}", record)

    def report(self) -> Dict[str, Any]:
        failures = [f for r in self.records for f in r["failures"]]
        return {"name": self.name, "calls": self.records, "failures": failures}

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
