"""Configuration loaded from environment variables and command-line flags."""

from __future__ import annotations

import argparse
import json
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from .durations import format_duration, parse_duration

VERSION = "0.6.0"

_CONNECTOR_EXTRA_VARS = (
    ("LUMBER_VERCEL_PROJECT_ID", "project_id"),
    ("LUMBER_VERCEL_TEAM_ID", "team_id"),
    ("LUMBER_FLY_APP_NAME", "app_name"),
    ("LUMBER_SUPABASE_PROJECT_REF", "project_ref"),
    ("LUMBER_SUPABASE_TABLES", "tables"),
    ("LUMBER_POLL_INTERVAL", "poll_interval"),
)

_VERBOSITIES = ("minimal", "standard", "full")
_MODES = ("stream", "query")


class ConfigError(ValueError):
    """Raised by :meth:`Config.validate`; carries every problem found."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("config validation failed:\n  - " + "\n  - ".join(self.errors))


@dataclass
class ConnectorSettings:
    """Connector-specific settings."""

    provider: str = "vercel"
    api_key: str = ""
    endpoint: str = ""
    extra: dict[str, str] | None = None


@dataclass
class EngineConfig:
    """Classification engine settings. Durations are in seconds."""

    model_path: str = "models/model_quantized.onnx"
    vocab_path: str = "models/vocab.txt"
    projection_path: str = "models/2_Dense/model.safetensors"
    confidence_threshold: float = 0.5
    verbosity: str = "standard"
    dedup_window: float = 5.0
    max_buffer_size: int = 1000


@dataclass
class OutputConfig:
    """Output destination settings."""

    format: str = "stdout"
    pretty: bool = False
    file_path: str = ""
    file_max_size: int = 0
    webhook_url: str = ""
    webhook_headers: dict[str, str] | None = None


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _missing(path: str) -> bool:
    try:
        os.stat(path)
    except FileNotFoundError:
        return True
    except (OSError, ValueError):
        return False
    return False


@dataclass
class Config:
    """All settings. ``shutdown_timeout`` is in seconds."""

    connector: ConnectorSettings = field(default_factory=ConnectorSettings)
    engine: EngineConfig = field(default_factory=EngineConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    log_level: str = "info"
    shutdown_timeout: float = 10.0
    mode: str = "stream"
    query_from: datetime | None = None
    query_to: datetime | None = None
    query_limit: int = 0
    show_version: bool = False
    parse_errors: list[str] = field(default_factory=list)

    def validate(self) -> None:
        """Check every setting and raise :class:`ConfigError` listing all problems."""
        errors: list[str] = []

        if self.connector.provider and not self.connector.api_key:
            errors.append("LUMBER_API_KEY is required when a connector is configured")

        for name, path in (
            ("model", self.engine.model_path),
            ("vocab", self.engine.vocab_path),
            ("projection", self.engine.projection_path),
        ):
            if _missing(path):
                errors.append(f"{name} file not found: {path}")

        threshold = self.engine.confidence_threshold
        if threshold < 0 or threshold > 1:
            errors.append(f"confidence threshold must be 0-1, got {threshold:f}")

        if self.engine.verbosity not in _VERBOSITIES:
            errors.append(
                f"invalid verbosity {_quote(self.engine.verbosity)} (must be minimal|standard|full)"
            )

        if self.engine.dedup_window < 0:
            errors.append(
                f"dedup window must be non-negative, got {format_duration(self.engine.dedup_window)}"
            )

        if self.mode not in _MODES:
            errors.append(f"invalid mode {_quote(self.mode)} (must be stream or query)")

        errors.extend(self.parse_errors)

        if self.mode == "query":
            if self.query_from is None:
                errors.append(
                    "-from is required in query mode (RFC3339 format, e.g. 2026-02-24T00:00:00Z)"
                )
            if self.query_to is None:
                errors.append(
                    "-to is required in query mode (RFC3339 format, e.g. 2026-02-24T01:00:00Z)"
                )

        url = self.output.webhook_url
        if url and not url.startswith(("http://", "https://")):
            errors.append(
                f"invalid webhook URL {_quote(url)} (must start with http:// or https://)"
            )

        path = self.output.file_path
        if path:
            directory = path[: max(path.rfind("/"), 0)]
            if directory and _missing(directory):
                errors.append(f"output file directory does not exist: {directory}")

        if errors:
            raise ConfigError(errors)


def getenv(key: str, fallback: str) -> str:
    """Return the variable's value, or ``fallback`` when it is unset or empty."""
    return os.environ.get(key, "") or fallback


def getenv_bool(key: str, fallback: bool) -> bool:
    """``true`` (any case) or ``1`` mean True; any other non-empty value means False."""
    value = os.environ.get(key, "")
    if not value:
        return fallback
    return value.lower() == "true" or value == "1"


def getenv_duration(key: str, fallback: float) -> float:
    """Read a duration in seconds; ``"0"`` disables, unparseable values use ``fallback``."""
    value = os.environ.get(key, "")
    if not value:
        return fallback
    if value == "0":
        return 0.0
    try:
        return parse_duration(value)
    except ValueError:
        return fallback


_INTEGER = re.compile(r"[+-]?[0-9]+")


def getenv_int(key: str, fallback: int) -> int:
    """Read a decimal integer, using ``fallback`` when unset or invalid."""
    value = os.environ.get(key, "")
    if not value or not _INTEGER.fullmatch(value):
        return fallback
    return int(value)


def getenv_float(key: str, fallback: float) -> float:
    """Read a floating-point number, using ``fallback`` when unset or invalid."""
    value = os.environ.get(key, "")
    if not value or value != value.strip() or "_" in value:
        return fallback
    try:
        return float(value)
    except ValueError:
        return fallback


def load_connector_extra() -> dict[str, str] | None:
    """Collect provider-specific variables; None when none of them is set."""
    extra = {
        extra_key: os.environ[env_var]
        for env_var, extra_key in _CONNECTOR_EXTRA_VARS
        if os.environ.get(env_var, "")
    }
    return extra or None


def load() -> Config:
    """Build a configuration from environment variables with defaults."""
    return Config(
        log_level=getenv("LUMBER_LOG_LEVEL", "info"),
        shutdown_timeout=getenv_duration("LUMBER_SHUTDOWN_TIMEOUT", 10.0),
        mode=getenv("LUMBER_MODE", "stream"),
        connector=ConnectorSettings(
            provider=getenv("LUMBER_CONNECTOR", "vercel"),
            api_key=os.environ.get("LUMBER_API_KEY", ""),
            endpoint=os.environ.get("LUMBER_ENDPOINT", ""),
            extra=load_connector_extra(),
        ),
        engine=EngineConfig(
            model_path=getenv("LUMBER_MODEL_PATH", "models/model_quantized.onnx"),
            vocab_path=getenv("LUMBER_VOCAB_PATH", "models/vocab.txt"),
            projection_path=getenv("LUMBER_PROJECTION_PATH", "models/2_Dense/model.safetensors"),
            confidence_threshold=getenv_float("LUMBER_CONFIDENCE_THRESHOLD", 0.5),
            verbosity=getenv("LUMBER_VERBOSITY", "standard"),
            dedup_window=getenv_duration("LUMBER_DEDUP_WINDOW", 5.0),
            max_buffer_size=getenv_int("LUMBER_MAX_BUFFER_SIZE", 1000),
        ),
        output=OutputConfig(
            format=getenv("LUMBER_OUTPUT", "stdout"),
            pretty=getenv_bool("LUMBER_OUTPUT_PRETTY", False),
            file_path=os.environ.get("LUMBER_OUTPUT_FILE", ""),
            file_max_size=getenv_int("LUMBER_OUTPUT_FILE_MAX_SIZE", 0),
            webhook_url=os.environ.get("LUMBER_WEBHOOK_URL", ""),
        ),
    )


_RFC3339 = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2}):([0-9]{2})"
    r"(?:\.([0-9]+))?(Z|[+-][0-9]{2}:[0-9]{2})"
)


def _parse_rfc3339(text: str) -> datetime:
    match = _RFC3339.fullmatch(text)
    if not match:
        raise ValueError(f"not an RFC3339 time: {text!r}")
    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    fraction = match.group(7) or ""
    microsecond = int((fraction + "000000")[:6])
    zone = match.group(8)
    if zone == "Z":
        tz = timezone.utc
    else:
        hours, minutes = int(zone[1:3]), int(zone[4:6])
        if hours > 23 or minutes > 59:
            raise ValueError(f"bad time zone offset in {text!r}")
        offset = timedelta(hours=hours, minutes=minutes)
        tz = timezone(-offset if zone[0] == "-" else offset)
    return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)


_DESCRIPTION = f"""lumber {VERSION} — log normalization pipeline

Modes:
  lumber                              Stream logs (default)
  lumber -mode query -from T -to T    Query historical logs"""

_EPILOG = """Environment variables:
  LUMBER_CONNECTOR      Log provider (vercel, flyio, supabase)
  LUMBER_API_KEY        Provider API key/token
  LUMBER_VERBOSITY      Output verbosity (minimal, standard, full)
  LUMBER_DEDUP_WINDOW   Dedup window duration (e.g. 5s, 0 to disable)
  LUMBER_LOG_LEVEL      Internal log level (debug, info, warn, error)

  See README for full configuration reference."""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lumber",
        description=_DESCRIPTION,
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    skip = argparse.SUPPRESS
    parser.add_argument("-version", "--version", dest="version", action="store_true",
                        default=skip, help="Print version and exit")
    parser.add_argument("-mode", "--mode", dest="mode", default=skip,
                        help="Pipeline mode: stream or query")
    parser.add_argument("-connector", "--connector", dest="connector", default=skip,
                        help="Connector: vercel, flyio, supabase")
    parser.add_argument("-from", "--from", dest="from_", default=skip,
                        help="Query start time (RFC3339)")
    parser.add_argument("-to", "--to", dest="to", default=skip,
                        help="Query end time (RFC3339)")
    parser.add_argument("-limit", "--limit", dest="limit", type=int, default=skip,
                        help="Query result limit")
    parser.add_argument("-verbosity", "--verbosity", dest="verbosity", default=skip,
                        help="Verbosity: minimal, standard, full")
    parser.add_argument("-pretty", "--pretty", dest="pretty", action="store_true",
                        default=skip, help="Pretty-print JSON output")
    parser.add_argument("-log-level", "--log-level", dest="log_level", default=skip,
                        help="Log level: debug, info, warn, error")
    parser.add_argument("-output-file", "--output-file", dest="output_file", default=skip,
                        help="File path for NDJSON output")
    parser.add_argument("-webhook-url", "--webhook-url", dest="webhook_url", default=skip,
                        help="Webhook POST endpoint")
    return parser


def load_with_flags(argv=None) -> Config:
    """Load from the environment, then apply only the flags given explicitly."""
    cfg = load()
    given = vars(_build_parser().parse_args(argv))

    cfg.show_version = bool(given.get("version", False))

    if "connector" in given:
        cfg.connector.provider = given["connector"]
    for flag, key in (("-from", "from_"), ("-to", "to")):
        if key not in given:
            continue
        try:
            moment = _parse_rfc3339(given[key])
        except ValueError:
            cfg.parse_errors.append(f"{flag}: invalid RFC3339 time {_quote(given[key])}")
            continue
        if key == "from_":
            cfg.query_from = moment
        else:
            cfg.query_to = moment
    if "limit" in given:
        cfg.query_limit = given["limit"]
    if "log_level" in given:
        cfg.log_level = given["log_level"]
    if "mode" in given:
        cfg.mode = given["mode"]
    if "output_file" in given:
        cfg.output.file_path = given["output_file"]
    if "pretty" in given:
        cfg.output.pretty = given["pretty"]
    if "verbosity" in given:
        cfg.engine.verbosity = given["verbosity"]
    if "webhook_url" in given:
        cfg.output.webhook_url = given["webhook_url"]

    return cfg