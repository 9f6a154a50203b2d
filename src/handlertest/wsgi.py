"""
In-process transport for requests.

WSGIAdapter is mounted on a requests.Session in place of the HTTP adapter:
instead of opening a socket it turns the PreparedRequest into a WSGI environ,
calls the application and wraps what it returns in a requests.Response.
"""

import io
import sys
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote_to_bytes, urlsplit

import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict
from requests.utils import get_encoding_from_headers

WSGIApp = Callable[..., Any]


def _body_bytes(body: Any) -> bytes:
    if body is None:
        return b""
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    if hasattr(body, "read"):
        data = body.read()
        return data.encode("utf-8") if isinstance(data, str) else data
    # generator / iterable of chunks
    return b"".join(c.encode("utf-8") if isinstance(c, str) else c for c in body)


def build_environ(request: requests.PreparedRequest) -> Dict[str, Any]:
    """Build a PEP 3333 environ for request."""
    parts = urlsplit(request.url)
    scheme = parts.scheme or "http"
    body = _body_bytes(request.body)
    environ = {
        "REQUEST_METHOD": request.method,
        "SCRIPT_NAME": "",
        "PATH_INFO": unquote_to_bytes(parts.path or "/").decode("latin-1"),
        "QUERY_STRING": parts.query,
        "SERVER_NAME": parts.hostname or "localhost",
        "SERVER_PORT": str(parts.port or (443 if scheme == "https" else 80)),
        "SERVER_PROTOCOL": "HTTP/1.1",
        "CONTENT_LENGTH": str(len(body)),
        "wsgi.version": (1, 0),
        "wsgi.url_scheme": scheme,
        "wsgi.input": io.BytesIO(body),
        "wsgi.errors": sys.stderr,
        "wsgi.multithread": False,
        "wsgi.multiprocess": False,
        "wsgi.run_once": False,
    }
    for name, value in request.headers.items():
        key = name.upper().replace("-", "_")
        if key in ("CONTENT_TYPE", "CONTENT_LENGTH"):
            environ[key] = value
        else:
            environ["HTTP_" + key] = value
    return environ


class WSGIAdapter(BaseAdapter):
    """Transport adapter that serves every request from a WSGI application."""

    def __init__(self, app: WSGIApp):
        super().__init__()
        self.app = app

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        environ = build_environ(request)
        started: Dict[str, Any] = {}
        chunks: List[bytes] = []

        def start_response(status: str, headers: List[Tuple[str, str]], exc_info=None):
            if exc_info is not None and started:
                raise exc_info[1].with_traceback(exc_info[2])
            started["status"] = status
            started["headers"] = headers
            return chunks.append

        result = self.app(environ, start_response)
        try:
            for chunk in result:
                chunks.append(chunk)
        finally:
            close = getattr(result, "close", None)
            if close is not None:
                close()
        if "status" not in started:
            raise RuntimeError("WSGI application returned without calling start_response")
        return self.build_response(request, started["status"], started["headers"], b"".join(chunks))

    def build_response(self, request: requests.PreparedRequest, status: str,
                       headers: List[Tuple[str, str]], content: bytes) -> requests.Response:
        code, _, reason = status.partition(" ")
        resp = requests.Response()
        resp.status_code = int(code)
        resp.reason = reason
        resp.headers = CaseInsensitiveDict(headers)
        resp.encoding = get_encoding_from_headers(resp.headers)
        resp._content = content
        resp._content_consumed = True
        resp.url = request.url
        resp.request = request
        resp.connection = self
        return resp

    def close(self):
        pass


def mount(session: requests.Session, app: WSGIApp, prefixes: Optional[Tuple[str, ...]] = None) -> WSGIAdapter:
    """Route every http(s) URL of session to app."""
    adapter = WSGIAdapter(app)
    for prefix in prefixes or ("http://", "https://"):
        session.mount(prefix, adapter)
    return adapter
