import json

import pytest

pytest_plugins = ["handlertest.plugin"]


def make_items_app(first_id=7):
    """Tiny in-memory items API; every request it serves is kept in app.requests."""
    items = {}
    counter = {"next": first_id}
    seen = []

    def respond(start_response, status, payload=None, content_type="application/json"):
        if payload is None:
            start_response(status, [])
            return [b""]
        data = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        start_response(status, [("Content-Type", content_type), ("Content-Length", str(len(data)))])
        return [data]

    def app(environ, start_response):
        length = int(environ.get("CONTENT_LENGTH") or 0)
        body = environ["wsgi.input"].read(length)
        method = environ["REQUEST_METHOD"]
        path = environ["PATH_INFO"]
        seen.append({
            "method": method,
            "path": path,
            "query": environ["QUERY_STRING"],
            "content_type": environ.get("CONTENT_TYPE"),
            "headers": {k[5:]: v for k, v in environ.items() if k.startswith("HTTP_")},
            "body": body,
        })

        if path == "/items" and method == "POST":
            data = json.loads(body or b"{}")
            item = dict(data, id=counter["next"])
            items[item["id"]] = item
            counter["next"] += 1
            return respond(start_response, "201 Created", item)
        if path == "/items" and method == "GET":
            return respond(start_response, "200 OK", list(items.values()))
        if path.startswith("/items/") and method == "GET":
            item = items.get(int(path.rsplit("/", 1)[1]) if path.rsplit("/", 1)[1].isdigit() else None)
            if item is None:
                return respond(start_response, "404 Not Found", {"error": "not found"})
            return respond(start_response, "200 OK", item)
        if path == "/text":
            return respond(start_response, "200 OK", b"hello", content_type="text/plain")
        if path == "/utf8":
            return respond(start_response, "200 OK", "h\u00e9llo".encode("utf-8"), content_type="text/plain")
        if path == "/empty":
            return respond(start_response, "204 No Content")
        if path == "/boom":
            raise RuntimeError("boom")
        return respond(start_response, "404 Not Found", {"error": "no route"})

    app.requests = seen
    app.items = items
    return app


@pytest.fixture
def items_app():
    return make_items_app()
