"""A small JSON-over-HTTP client with Bearer auth and retries."""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

MAX_RETRIES = 3
_BODY_LIMIT = 512


class APIError(Exception):
    """A non-2xx HTTP response. ``body`` holds at most the first 512 bytes."""

    def __init__(self, status_code: int, body: str, retry_after: str = ""):
        self.status_code = status_code
        self.body = body
        self.retry_after = retry_after
        super().__init__(f"HTTP {status_code}: {body}")


class Cancelled(Exception):
    """Raised when a request is abandoned because its cancel event was set."""

    def __init__(self):
        super().__init__("request cancelled")


def _encode(query: Mapping[str, str | Iterable[str]]) -> str:
    pairs = []
    for key in sorted(query):
        value = query[key]
        values = [value] if isinstance(value, str) else list(value)
        pairs.extend((key, item) for item in values)
    return urlencode(pairs)


def _backoff_delay(attempt: int, last_error: APIError | None, base: float) -> float:
    if last_error is not None and last_error.status_code == 429 and last_error.retry_after:
        try:
            seconds = int(last_error.retry_after)
        except ValueError:
            seconds = 0
        if seconds > 0:
            return float(seconds)
    return base * (1 << (attempt - 1))


class Client:
    """GETs JSON from ``base_url`` + path, authenticated with a Bearer token.

    Rate-limited (429) responses are retried after their ``Retry-After`` delay,
    server errors (5xx) with exponential backoff of ``retry_base`` seconds
    doubled on each attempt; at most three retries are made.
    """

    def __init__(self, base_url: str, token: str, *, timeout: float = 30.0,
                 retry_base: float = 1.0):
        self.base_url = base_url
        self.token = token
        self.timeout = timeout
        self.retry_base = retry_base

    def _send(self, url: str) -> tuple[int, bytes, Any]:
        request = Request(url, method="GET")
        request.add_header("Authorization", "Bearer " + self.token)
        try:
            with urlopen(request, timeout=self.timeout) as response:
                return response.status, response.read(), response.headers
        except HTTPError as err:
            with err:
                return err.code, err.read(), err.headers

    def get_json(self, path: str, query: Mapping[str, str | Iterable[str]] | None = None,
                 cancel: threading.Event | None = None) -> Any:
        """Return the decoded JSON body of a GET request.

        Raises :class:`APIError` for non-2xx responses once retries are spent
        and :class:`Cancelled` when ``cancel`` is set before a request or during
        a retry wait.
        """
        url = self.base_url + path
        if query:
            url += "?" + _encode(query)

        last_error: APIError | None = None
        for attempt in range(MAX_RETRIES + 1):
            if attempt > 0:
                delay = _backoff_delay(attempt, last_error, self.retry_base)
                if cancel is None:
                    time.sleep(delay)
                elif cancel.wait(delay):
                    raise Cancelled()
            if cancel is not None and cancel.is_set():
                raise Cancelled()

            status, body, headers = self._send(url)
            if 200 <= status < 300:
                return json.loads(body)

            error = APIError(status, body[:_BODY_LIMIT].decode("utf-8", errors="replace"))
            if status == 429:
                error.retry_after = headers.get("Retry-After", "") if headers else ""
                last_error = error
                continue
            if status >= 500:
                last_error = error
                continue
            raise error

        raise last_error