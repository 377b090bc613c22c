"""Connector for the Fly.io HTTP logs API."""

from __future__ import annotations

import json
import logging
import re
import threading
from collections.abc import Generator, Iterator
from datetime import datetime, timedelta, timezone
from typing import Any

from . import connector
from .connector import Connector, ConnectorConfig, QueryParams, RawLog
from .durations import parse_duration
from .httpclient import APIError, Cancelled, Client

DEFAULT_ENDPOINT = "https://api.fly.io"
DEFAULT_POLL_INTERVAL = 5.0

logger = logging.getLogger(__name__)

_POLL_ERRORS = (APIError, Cancelled, OSError, ValueError)

_RFC3339 = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2}):([0-9]{2})"
    r"(?:\.([0-9]{1,9}))?(Z|[+-][0-9]{2}:[0-9]{2})"
)


def _parse_timestamp(text: str) -> datetime | None:
    match = _RFC3339.fullmatch(text or "")
    if not match:
        return None
    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    microsecond = int(((match.group(7) or "") + "000000")[:6])
    zone = match.group(8)
    try:
        if zone == "Z":
            tz = timezone.utc
        else:
            offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
            tz = timezone(-offset if zone[0] == "-" else offset)
        return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)
    except ValueError:
        return None


def to_raw_log(entry: dict[str, Any]) -> RawLog:
    """Convert one entry of the ``data`` array into a :class:`RawLog`."""
    attributes = entry.get("attributes") or {}
    metadata: dict[str, Any] = {
        "level": attributes.get("level", ""),
        "instance": attributes.get("instance", ""),
        "region": attributes.get("region", ""),
        "id": entry.get("id", ""),
    }
    metadata.update(attributes.get("meta") or {})
    return RawLog(
        timestamp=_parse_timestamp(attributes.get("timestamp", "")),
        source="flyio",
        raw=attributes.get("message", ""),
        metadata=metadata,
    )


def _fetch(client: Client, path: str, query: dict[str, str],
           cancel: threading.Event | None) -> tuple[list[dict[str, Any]], str]:
    response = client.get_json(path, query, cancel)
    if not isinstance(response, dict):
        raise ValueError(f"unexpected response: {json.dumps(response)[:100]}")
    meta = response.get("meta") or {}
    return response.get("data") or [], meta.get("next_token") or ""


class FlyioConnector(Connector):
    """Reads application logs from Fly.io; requires ``app_name`` in ``cfg.extra``."""

    @staticmethod
    def _client_and_path(cfg: ConnectorConfig) -> tuple[Client, str]:
        app_name = cfg.extra.get("app_name", "")
        if not app_name:
            raise ValueError('flyio connector: missing required config key "app_name" in Extra')
        client = Client(cfg.endpoint or DEFAULT_ENDPOINT, cfg.api_key)
        return client, f"/api/v1/apps/{app_name}/logs"

    def query(self, cfg: ConnectorConfig, params: QueryParams) -> list[RawLog]:
        """Fetch all pages, filtering by time on the client side."""
        client, path = self._client_and_path(cfg)
        results: list[RawLog] = []
        cursor = ""
        while True:
            query = {"next_token": cursor} if cursor else {}
            entries, cursor = _fetch(client, path, query, None)
            for entry in entries:
                log = to_raw_log(entry)
                if params.start is not None and (
                    log.timestamp is None or log.timestamp < params.start
                ):
                    continue
                if params.end is not None and log.timestamp is not None and (
                    not log.timestamp < params.end
                ):
                    continue
                results.append(log)
                if params.limit > 0 and len(results) >= params.limit:
                    return results[: params.limit]
            if not cursor:
                return results

    def stream(self, cfg: ConnectorConfig, stop: threading.Event) -> Iterator[RawLog]:
        """Poll for new logs every ``poll_interval`` (default 5s) until ``stop`` is set."""
        client, path = self._client_and_path(cfg)
        interval = DEFAULT_POLL_INTERVAL
        raw_interval = cfg.extra.get("poll_interval", "")
        if raw_interval:
            try:
                parsed = parse_duration(raw_interval)
            except ValueError:
                parsed = 0.0
            if parsed > 0:
                interval = parsed
        return self._run(client, path, interval, stop)

    @staticmethod
    def _run(client: Client, path: str, interval: float,
             stop: threading.Event) -> Iterator[RawLog]:
        cursor = ""
        while True:
            cursor = yield from _poll(client, path, cursor, stop)
            if stop.wait(interval):
                return


def _poll(client: Client, path: str, cursor: str,
          stop: threading.Event) -> Generator[RawLog, None, str]:
    query = {"next_token": cursor} if cursor else {}
    try:
        entries, next_token = _fetch(client, path, query, stop)
    except _POLL_ERRORS as exc:
        logger.warning("poll error: connector=flyio error=%s", exc)
        return cursor
    for entry in entries:
        if stop.is_set():
            return cursor
        yield to_raw_log(entry)
    return next_token or cursor


connector.register("flyio", FlyioConnector)