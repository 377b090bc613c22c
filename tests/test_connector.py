import threading

import pytest

from lumber.connector import (
    Connector,
    ConnectorConfig,
    QueryParams,
    RawLog,
    UnknownProviderError,
    get,
    providers,
    register,
)


class EchoConnector(Connector):
    def __init__(self):
        self.lines = ["a", "b"]

    def stream(self, cfg, stop):
        def generate():
            for line in self.lines:
                if stop.is_set():
                    return
                yield RawLog(source=cfg.provider, raw=line)

        return generate()

    def query(self, cfg, params):
        logs = [RawLog(source=cfg.provider, raw=line) for line in self.lines]
        return logs[: params.limit] if params.limit else logs


def test_register_and_get_returns_factory():
    register("test-echo", EchoConnector)
    factory = get("test-echo")
    assert factory is EchoConnector
    conn = factory()
    logs = conn.query(ConnectorConfig(provider="test-echo"), QueryParams(limit=1))
    assert [log.raw for log in logs] == ["a"]


def test_register_replaces_existing():
    register("test-replace", EchoConnector)

    class Other(EchoConnector):
        pass

    register("test-replace", Other)
    assert get("test-replace") is Other


def test_get_unknown_provider_raises():
    with pytest.raises(UnknownProviderError) as info:
        get("test-does-not-exist")
    assert "unknown connector provider" in str(info.value)
    assert info.value.name == "test-does-not-exist"


def test_unknown_provider_is_lookup_error():
    with pytest.raises(LookupError):
        get("test-also-missing")


def test_providers_lists_registered_sorted():
    register("test-zeta", EchoConnector)
    register("test-alpha", EchoConnector)
    names = providers()
    assert "test-zeta" in names and "test-alpha" in names
    assert names == sorted(names)


def test_connector_is_abstract():
    with pytest.raises(TypeError):
        Connector()


def test_stream_stops_when_event_set():
    stop = threading.Event()
    stop.set()
    assert list(EchoConnector().stream(ConnectorConfig(), stop)) == []


def test_connector_config_none_extra_becomes_empty():
    cfg = ConnectorConfig(provider="vercel", extra=None)
    assert cfg.extra == {}
    assert cfg.extra.get("project_id", "") == ""


def test_query_params_defaults_are_open():
    params = QueryParams()
    assert params.start is None and params.end is None
    assert params.limit == 0
    assert params.filter == ""


def test_raw_log_metadata_not_shared():
    first, second = RawLog(), RawLog()
    first.metadata["level"] = "info"
    assert second.metadata == {}