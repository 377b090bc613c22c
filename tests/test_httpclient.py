import json
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

import pytest

from lumber.httpclient import APIError, Cancelled, Client


@pytest.fixture
def serve():
    servers = []

    def start(handler):
        class Handler(BaseHTTPRequestHandler):
            def do_GET(self):
                status, headers, body = handler(self)
                self.send_response(status)
                for key, value in headers.items():
                    self.send_header(key, value)
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def log_message(self, *args):
                pass

        server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        threading.Thread(target=server.serve_forever, daemon=True).start()
        servers.append(server)
        return f"http://127.0.0.1:{server.server_port}"

    yield start
    for server in servers:
        server.shutdown()
        server.server_close()


class _Counter:
    def __init__(self):
        self.value = 0
        self.lock = threading.Lock()

    def add(self):
        with self.lock:
            self.value += 1
            return self.value


def _echo_request(req):
    parts = urlsplit(req.path)
    body = json.dumps({"path": parts.path, "query": parts.query}).encode()
    return 200, {"Content-Type": "application/json"}, body


def test_get_json_success(serve):
    url = serve(lambda req: (200, {"Content-Type": "application/json"},
                             b'{"name":"lumber","version":1}'))
    result = Client(url, "token").get_json("/info")
    assert result == {"name": "lumber", "version": 1}


def test_get_json_bearer_auth(serve):
    seen = {}

    def handler(req):
        seen["auth"] = req.headers.get("Authorization")
        return 200, {}, b"{}"

    url = serve(handler)
    assert Client(url, "secret").get_json("/") == {}
    assert seen["auth"] == "Bearer secret"


def test_get_json_query_params_sorted(serve):
    url = serve(_echo_request)
    result = Client(url, "token").get_json("/logs", {"to": "200", "from": ["100"]})
    assert result == {"path": "/logs", "query": "from=100&to=200"}


def test_get_json_query_escaping(serve):
    url = serve(_echo_request)
    result = Client(url, "token").get_json("/", {"sql": "a b&c"})
    assert result == {"path": "/", "query": "sql=a+b%26c"}


def test_get_json_api_error(serve):
    url = serve(lambda req: (400, {}, b'{"error":"bad request"}'))
    with pytest.raises(APIError) as info:
        Client(url, "token").get_json("/bad")
    assert info.value.status_code == 400
    assert info.value.body == '{"error":"bad request"}'
    assert str(info.value) == 'HTTP 400: {"error":"bad request"}'


def test_api_error_body_truncated(serve):
    url = serve(lambda req: (404, {}, b"x" * 1000))
    with pytest.raises(APIError) as info:
        Client(url, "token").get_json("/")
    assert info.value.body == "x" * 512


def test_get_json_rate_limit_retry_after(serve):
    calls = _Counter()

    def handler(req):
        if calls.add() == 1:
            return 429, {"Retry-After": "1"}, b"rate limited"
        return 200, {}, b'{"ok":true}'

    url = serve(handler)
    started = time.monotonic()
    result = Client(url, "token").get_json("/")
    elapsed = time.monotonic() - started
    assert result == {"ok": True}
    assert elapsed >= 0.9
    assert calls.value == 2


def test_get_json_retry_on_5xx(serve):
    calls = _Counter()

    def handler(req):
        if calls.add() == 1:
            return 503, {}, b"service unavailable"
        return 200, {}, b'{"ok":true}'

    url = serve(handler)
    result = Client(url, "token", retry_base=0.01).get_json("/")
    assert result == {"ok": True}
    assert calls.value == 2


def test_get_json_cancelled(serve):
    calls = _Counter()

    def handler(req):
        calls.add()
        return 429, {}, b"rate limited"

    url = serve(handler)
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(Cancelled):
        Client(url, "token").get_json("/", cancel=cancel)
    assert calls.value == 0


def test_get_json_cancelled_during_wait(serve):
    calls = _Counter()

    def handler(req):
        calls.add()
        return 503, {}, b"down"

    url = serve(handler)
    cancel = threading.Event()
    threading.Timer(0.1, cancel.set).start()
    started = time.monotonic()
    with pytest.raises(Cancelled):
        Client(url, "token", retry_base=5.0).get_json("/", cancel=cancel)
    assert time.monotonic() - started < 4.0
    assert calls.value == 1


def test_get_json_max_retries_exceeded(serve):
    calls = _Counter()

    def handler(req):
        calls.add()
        return 429, {"Retry-After": "0"}, b"rate limited"

    url = serve(handler)
    with pytest.raises(APIError) as info:
        Client(url, "token", retry_base=0.01).get_json("/")
    assert info.value.status_code == 429
    assert calls.value == 4


def test_get_json_client_error_not_retried(serve):
    calls = _Counter()

    def handler(req):
        calls.add()
        return 401, {}, b"unauthorized"

    url = serve(handler)
    with pytest.raises(APIError) as info:
        Client(url, "token", retry_base=0.01).get_json("/")
    assert info.value.status_code == 401
    assert calls.value == 1