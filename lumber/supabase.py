"""Connector for the Supabase Management API analytics (logs) endpoint."""

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

DEFAULT_ENDPOINT = "https://api.supabase.com"
DEFAULT_POLL_INTERVAL = 10.0
MAX_WINDOW = timedelta(hours=24)

DEFAULT_TABLES = ("edge_logs", "postgres_logs", "auth_logs", "function_logs")

ALLOWED_TABLES = frozenset({
    "edge_logs",
    "postgres_logs",
    "auth_logs",
    "function_logs",
    "storage_logs",
    "function_edge_logs",
    "realtime_logs",
})

logger = logging.getLogger(__name__)

_POLL_ERRORS = (APIError, Cancelled, OSError, ValueError)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)
# Sorts logs without a timestamp before every real one.
_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _unix_micros(moment: datetime) -> int:
    return (_as_utc(moment) - _EPOCH) // _MICROSECOND


def _from_micros(micros: int) -> datetime:
    return _EPOCH + timedelta(microseconds=micros)


def _iso(moment: datetime) -> str:
    return _as_utc(moment).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_sql(table: str, from_micros: int, to_micros: int) -> str:
    """Build the SELECT for ``table`` over ``[from_micros, to_micros)``.

    Raises ``ValueError`` if the table is not in the allow-list.
    """
    if table not in ALLOWED_TABLES:
        raise ValueError(f"supabase connector: table {json.dumps(table)} not in allow-list")
    return (
        f"SELECT id, timestamp, event_message FROM {table} "
        f"WHERE timestamp >= {from_micros} AND timestamp < {to_micros} "
        f"ORDER BY timestamp ASC LIMIT 1000"
    )


def to_raw_log(row: dict[str, Any], table: str) -> RawLog:
    """Convert one result row (timestamp in microseconds) into a :class:`RawLog`."""
    timestamp = None
    value = row.get("timestamp")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            timestamp = _from_micros(int(value))
        except (OverflowError, ValueError):
            timestamp = None

    message = row.get("event_message")
    metadata: dict[str, Any] = {"table": table}
    metadata.update((key, val) for key, val in row.items() if key != "event_message")

    return RawLog(
        timestamp=timestamp,
        source="supabase",
        raw=message if isinstance(message, str) else "",
        metadata=metadata,
    )


def parse_tables(cfg: ConnectorConfig) -> list[str]:
    """Tables named in the comma-separated ``tables`` extra key, or the defaults."""
    names = [part.strip() for part in cfg.extra.get("tables", "").split(",")]
    tables = [name for name in names if name]
    return tables or list(DEFAULT_TABLES)


def _fetch(client: Client, path: str, sql: str, start: datetime, end: datetime,
           cancel: threading.Event | None) -> list[dict[str, Any]]:
    query = {
        "sql": sql,
        "iso_timestamp_start": _iso(start),
        "iso_timestamp_end": _iso(end),
    }
    response = client.get_json(path, query, cancel)
    if not isinstance(response, dict):
        raise ValueError(f"unexpected response: {json.dumps(response)[:100]}")
    return response.get("result") or []


def _sort_key(log: RawLog) -> datetime:
    return log.timestamp if log.timestamp is not None else _EARLIEST


class SupabaseConnector(Connector):
    """Reads project logs from Supabase; requires ``project_ref`` in ``cfg.extra``."""

    @staticmethod
    def _client_and_path(cfg: ConnectorConfig) -> tuple[Client, str]:
        project_ref = cfg.extra.get("project_ref", "")
        if not project_ref:
            raise ValueError(
                'supabase connector: missing required config key "project_ref" in Extra'
            )
        client = Client(cfg.endpoint or DEFAULT_ENDPOINT, cfg.api_key)
        return client, f"/v1/projects/{project_ref}/analytics/endpoints/logs.all"

    def query(self, cfg: ConnectorConfig, params: QueryParams) -> list[RawLog]:
        """Query every table in 24-hour windows; results are sorted by time.

        Without bounds the last hour is queried; a missing start means one hour
        before the end, a missing end means now.
        """
        client, path = self._client_and_path(cfg)
        tables = parse_tables(cfg)

        now = datetime.now(timezone.utc)
        start, end = params.start, params.end
        if start is None and end is None:
            end = now
            start = now - timedelta(hours=1)
        elif start is None:
            start = end - timedelta(hours=1)
        elif end is None:
            end = now
        start, end = _as_utc(start), _as_utc(end)

        results: list[RawLog] = []
        chunk_start = start
        while chunk_start < end:
            chunk_end = min(chunk_start + MAX_WINDOW, end)
            from_micros = _unix_micros(chunk_start)
            to_micros = _unix_micros(chunk_end)
            for table in tables:
                sql = build_sql(table, from_micros, to_micros)
                rows = _fetch(client, path, sql, chunk_start, chunk_end, None)
                results.extend(to_raw_log(row, table) for row in rows)
            chunk_start = chunk_end

        results.sort(key=_sort_key)
        if params.limit > 0:
            del results[params.limit:]
        return results

    def stream(self, cfg: ConnectorConfig, stop: threading.Event) -> Iterator[RawLog]:
        """Poll every ``poll_interval`` (default 10s) for rows newer than the last seen."""
        client, path = self._client_and_path(cfg)
        tables = parse_tables(cfg)
        interval = DEFAULT_POLL_INTERVAL
        raw_interval = cfg.extra.get("poll_interval", "")
        if raw_interval:
            try:
                parsed = parse_duration(raw_interval)
            except ValueError:
                parsed = 0.0
            if parsed > 0:
                interval = parsed
        return self._run(client, path, tables, interval, stop)

    @staticmethod
    def _run(client: Client, path: str, tables: list[str], interval: float,
             stop: threading.Event) -> Iterator[RawLog]:
        last_micros = _unix_micros(datetime.now(timezone.utc) - timedelta(minutes=1))
        while True:
            last_micros = yield from _poll(client, path, tables, last_micros, stop)
            if stop.wait(interval):
                return


def _poll(client: Client, path: str, tables: list[str], last_micros: int,
          stop: threading.Event) -> Generator[RawLog, None, int]:
    now_micros = _unix_micros(datetime.now(timezone.utc))
    from_micros = last_micros + 1
    max_seen = last_micros

    for table in tables:
        try:
            sql = build_sql(table, from_micros, now_micros)
        except ValueError as exc:
            logger.warning("sql build error: connector=supabase table=%s error=%s", table, exc)
            continue
        try:
            rows = _fetch(client, path, sql, _from_micros(from_micros),
                          _from_micros(now_micros), stop)
        except _POLL_ERRORS as exc:
            logger.warning("poll error: connector=supabase table=%s error=%s", table, exc)
            continue
        for row in rows:
            log = to_raw_log(row, table)
            if log.timestamp is not None:
                max_seen = max(max_seen, _unix_micros(log.timestamp))
            if stop.is_set():
                return max_seen
            yield log

    return max_seen


connector.register("supabase", SupabaseConnector)