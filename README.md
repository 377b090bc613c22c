# lumber

Lumber collects logs from hosted platforms and hands them to your code as
plain `RawLog` records (`lumber.connector.RawLog`): a `timestamp`
(a timezone-aware `datetime`, or `None` when the provider's value could not
be read), the name of the `source`, the original message in `raw`, and a
`metadata` dictionary of provider fields.

It has no dependencies outside the standard library.

## Connectors

Three providers are built in, each in its own module:

| Provider   | Module            | Class               | Required `extra` key |
|------------|-------------------|---------------------|----------------------|
| `vercel`   | `lumber.vercel`   | `VercelConnector`   | `project_id`         |
| `flyio`    | `lumber.flyio`    | `FlyioConnector`    | `app_name`           |
| `supabase` | `lumber.supabase` | `SupabaseConnector` | `project_ref`        |

All of them implement `lumber.connector.Connector`:

- `query(cfg, params)` fetches historical logs and returns a list.
- `stream(cfg, stop)` returns an iterator that polls the provider and yields
  new records until the `threading.Event` `stop` is set.

`cfg` is a `ConnectorConfig` (`provider`, `api_key`, `endpoint`, `extra`);
an empty `endpoint` means the provider's public API. `params` is a
`QueryParams` (`start`, `end`, `limit`, `filter`); `None` bounds are open and
a `limit` of 0 means no limit. A missing required `extra` key raises
`ValueError` from both `query` and `stream` (the latter before any
iteration starts).

Every stream accepts an optional `poll_interval` in `extra` (for example
`"500ms"` or `"10s"`); invalid or non-positive values fall back to the
default of 5 seconds for Vercel and Fly.io and 10 seconds for Supabase.

### Vercel

`query` sends `from`/`to` as Unix milliseconds, adds `teamId` when
`extra["team_id"]` is set, and follows the `pagination.next` cursor until
it runs out or `limit` records are collected. Metadata holds `level`,
`source` and `id`, plus `status_code`, `path`, `method` and `host` when the
entry carries proxy information.

### Fly.io

The API has no server-side time range, so `query` follows `next_token`
pages and filters by `start` (inclusive) and `end` (exclusive) on the
client. Metadata holds `level`, `instance`, `region`, `id` and every key of
the entry's own `meta`.

### Supabase

`query` runs one SQL `SELECT` per table over the analytics endpoint,
splitting the range into 24-hour windows, and returns the merged rows sorted
by timestamp (then cut to `limit`). Without bounds it covers the last hour;
a missing start means one hour before the end, a missing end means now.

Tables come from the comma-separated `extra["tables"]`, or default to
`edge_logs`, `postgres_logs`, `auth_logs` and `function_logs`. Only the
allow-listed tables (those four plus `storage_logs`, `function_edge_logs`
and `realtime_logs`) are accepted; `build_sql` raises `ValueError` for any
other name. Row timestamps are microseconds since the epoch; metadata holds
the `table` name and every row field except `event_message`.

`stream` starts one minute in the past and on each poll asks for rows newer
than the latest timestamp seen so far.

## Querying historical logs

```python
from datetime import datetime, timezone

from lumber.connector import ConnectorConfig, QueryParams
from lumber.vercel import VercelConnector

cfg = ConnectorConfig(
    provider="vercel",
    api_key="placeholder",
    extra={"project_id": "proj_123"},
)
params = QueryParams(
    start=datetime(2026, 2, 24, 0, 0, tzinfo=timezone.utc),
    end=datetime(2026, 2, 24, 1, 0, tzinfo=timezone.utc),
    limit=100,
)

for log in VercelConnector().query(cfg, params):
    print(log.timestamp, log.metadata.get("level"), log.raw)
```

## Streaming

```python
import threading

from lumber.connector import ConnectorConfig
from lumber.flyio import FlyioConnector

stop = threading.Event()
cfg = ConnectorConfig(
    provider="flyio",
    api_key="placeholder",
    extra={"app_name": "my-app", "poll_interval": "5s"},
)

for log in FlyioConnector().stream(cfg, stop):
    print(log.raw)
```

Set `stop` from another thread to end the stream. A failed poll is logged
as a warning through the standard `logging` module, and the next poll
carries on from where the last successful one left off.

## Choosing a connector by name

Each connector module registers itself under its provider name when it is
imported:

```python
import lumber.flyio
import lumber.supabase
import lumber.vercel
from lumber import connector

print(connector.providers())   # ['flyio', 'supabase', 'vercel']
conn = connector.get("supabase")()
```

`get` raises `UnknownProviderError` for a name that was never registered.
Your own connectors can be added with `connector.register(name, factory)`,
where `factory` is any callable returning a `Connector`.

## HTTP behaviour

All connectors share `lumber.httpclient.Client(base_url, token, *,
timeout=30.0, retry_base=1.0)`. `get_json(path, query=None, cancel=None)`
sends a Bearer token, encodes query keys in sorted order, and returns the
decoded JSON body. It retries HTTP 429 after the `Retry-After` delay and
5xx responses with a back-off of `retry_base` seconds doubled each time
(1s, 2s, 4s by default), at most three retries. Any other non-2xx response,
or the last error once retries are spent, raises `APIError` with
`status_code` and the first 512 bytes of the body. If the `cancel` event is
set before a request or during a retry wait, `Cancelled` is raised.

## Configuration

`lumber.config.load()` reads settings from the environment and fills in
defaults. `Config.validate()` checks them all at once and raises
`ConfigError`, whose `errors` attribute lists every problem found.
Validation requires an API key when a connector is set, requires the model,
vocabulary and projection files to exist on disk, a confidence threshold
between 0 and 1, a known verbosity and mode, `query_from`/`query_to` in
query mode, an `http://` or `https://` webhook URL, and an existing
directory for the output file.

| Variable                        | Default                               |
|---------------------------------|---------------------------------------|
| `LUMBER_CONNECTOR`              | `vercel`                              |
| `LUMBER_API_KEY`                | (none; required with a connector)     |
| `LUMBER_ENDPOINT`               | (empty: provider's public API)        |
| `LUMBER_MODE`                   | `stream` (or `query`)                 |
| `LUMBER_LOG_LEVEL`              | `info`                                |
| `LUMBER_SHUTDOWN_TIMEOUT`       | `10s`                                 |
| `LUMBER_VERBOSITY`              | `standard` (`minimal`, `full`)        |
| `LUMBER_CONFIDENCE_THRESHOLD`   | `0.5`                                 |
| `LUMBER_DEDUP_WINDOW`           | `5s` (`0` disables)                   |
| `LUMBER_MAX_BUFFER_SIZE`        | `1000`                                |
| `LUMBER_OUTPUT`                 | `stdout`                              |
| `LUMBER_OUTPUT_PRETTY`          | `false` (`true` or `1` enable)        |
| `LUMBER_OUTPUT_FILE`            | (empty)                               |
| `LUMBER_OUTPUT_FILE_MAX_SIZE`   | `0`                                   |
| `LUMBER_WEBHOOK_URL`            | (empty)                               |
| `LUMBER_MODEL_PATH`             | `models/model_quantized.onnx`         |
| `LUMBER_VOCAB_PATH`             | `models/vocab.txt`                    |
| `LUMBER_PROJECTION_PATH`        | `models/2_Dense/model.safetensors`    |

Unparseable numbers and durations fall back to the default. Durations are
stored in seconds.

Provider-specific variables go into `connector.extra`, which is `None` when
none of them is set:

| Variable                        | Extra key       |
|---------------------------------|-----------------|
| `LUMBER_VERCEL_PROJECT_ID`      | `project_id`    |
| `LUMBER_VERCEL_TEAM_ID`         | `team_id`       |
| `LUMBER_FLY_APP_NAME`           | `app_name`      |
| `LUMBER_SUPABASE_PROJECT_REF`   | `project_ref`   |
| `LUMBER_SUPABASE_TABLES`        | `tables`        |
| `LUMBER_POLL_INTERVAL`          | `poll_interval` |

`load_with_flags(argv=None)` layers command-line flags on top of the
environment: `-version`, `-mode`, `-connector`, `-from`, `-to`, `-limit`,
`-verbosity`, `-pretty`, `-log-level`, `-output-file` and `-webhook-url`
(each also accepted with two dashes). Only flags that are actually given
override the environment. `-from` and `-to` take RFC 3339 times; an invalid
one is recorded and reported by `validate()`.

`lumber.durations.parse_duration` turns text such as `"1h30m"`, `"250ms"`
or `"-1.5h"` into seconds (raising `ValueError` on bad input), and
`format_duration` renders seconds back in that compact form.

## What this package does not do

Lumber fetches logs and loads settings; it does not process them further.
There is no command-line program, and nothing here classifies, deduplicates,
compacts or writes logs: the engine and output settings in `Config`
(model paths, confidence threshold, verbosity, dedup window, buffer size,
output file, webhook) are read and validated, but no code in the package
acts on them.