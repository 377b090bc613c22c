"""Connector for the Vercel REST logs API."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Generator, Iterator
from datetime import datetime, timedelta, timezone
from typing import Any

from . import connector
from .connector import Connector, ConnectorConfig, QueryParams, RawLog
from .durations import parse_duration
from .httpclient import APIError, Cancelled, Client

DEFAULT_ENDPOINT = "https://api.vercel.com"
DEFAULT_POLL_INTERVAL = 5.0

logger = logging.getLogger(__name__)

_POLL_ERRORS = (APIError, Cancelled, OSError, ValueError)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLISECOND = timedelta(milliseconds=1)


def _unix_millis(moment: datetime) -> int:
    return (moment - _EPOCH) // _MILLISECOND


def to_raw_log(entry: dict[str, Any]) -> RawLog:
    """Convert one entry of the ``data`` array into a :class:`RawLog`."""
    metadata: dict[str, Any] = {
        "level": entry.get("level", ""),
        "source": entry.get("source", ""),
        "id": entry.get("id", ""),
    }
    proxy = entry.get("proxy")
    if proxy is not None:
        metadata["status_code"] = proxy.get("statusCode", 0)
        metadata["path"] = proxy.get("path", "")
        metadata["method"] = proxy.get("method", "")
        metadata["host"] = proxy.get("host", "")
    return RawLog(
        timestamp=_EPOCH + timedelta(milliseconds=int(entry.get("timestamp", 0))),
        source="vercel",
        raw=entry.get("message", ""),
        metadata=metadata,
    )


def _fetch(client: Client, path: str, query: dict[str, str],
           cancel: threading.Event | None) -> tuple[list[dict[str, Any]], str]:
    response = client.get_json(path, query, cancel)
    if not isinstance(response, dict):
        raise ValueError(f"unexpected response: {json.dumps(response)[:100]}")
    pagination = response.get("pagination") or {}
    return response.get("data") or [], pagination.get("next") or ""


class VercelConnector(Connector):
    """Reads project logs from Vercel; requires ``project_id`` in ``cfg.extra``."""

    @staticmethod
    def _client_and_path(cfg: ConnectorConfig) -> tuple[Client, str]:
        project_id = cfg.extra.get("project_id", "")
        if not project_id:
            raise ValueError(
                'vercel connector: missing required config key "project_id" in Extra'
            )
        client = Client(cfg.endpoint or DEFAULT_ENDPOINT, cfg.api_key)
        return client, f"/v1/projects/{project_id}/logs"

    def query(self, cfg: ConnectorConfig, params: QueryParams) -> list[RawLog]:
        """Fetch all pages within the requested time range."""
        client, path = self._client_and_path(cfg)
        team_id = cfg.extra.get("team_id", "")
        results: list[RawLog] = []
        cursor = ""
        while True:
            query: dict[str, str] = {}
            if params.start is not None:
                query["from"] = str(_unix_millis(params.start))
            if params.end is not None:
                query["to"] = str(_unix_millis(params.end))
            if team_id:
                query["teamId"] = team_id
            if cursor:
                query["next"] = cursor
            entries, cursor = _fetch(client, path, query, None)
            for entry in entries:
                results.append(to_raw_log(entry))
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
        return self._run(client, path, cfg.extra.get("team_id", ""), interval, stop)

    @staticmethod
    def _run(client: Client, path: str, team_id: str, interval: float,
             stop: threading.Event) -> Iterator[RawLog]:
        cursor = ""
        while True:
            cursor = yield from _poll(client, path, team_id, cursor, stop)
            if stop.wait(interval):
                return


def _poll(client: Client, path: str, team_id: str, cursor: str,
          stop: threading.Event) -> Generator[RawLog, None, str]:
    query: dict[str, str] = {}
    if team_id:
        query["teamId"] = team_id
    if cursor:
        query["next"] = cursor
    try:
        entries, next_cursor = _fetch(client, path, query, stop)
    except _POLL_ERRORS as exc:
        logger.warning("poll error: connector=vercel error=%s", exc)
        return cursor
    for entry in entries:
        if stop.is_set():
            return cursor
        yield to_raw_log(entry)
    return next_cursor or cursor


connector.register("vercel", VercelConnector)