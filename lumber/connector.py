"""Log source connector interface, shared data types and the provider registry."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class RawLog:
    """One log line as received from a provider."""

    timestamp: datetime | None = None
    source: str = ""
    raw: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ConnectorConfig:
    """Provider connection settings; ``extra`` holds provider-specific keys."""

    provider: str = ""
    api_key: str = ""
    endpoint: str = ""
    extra: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.extra is None:
            self.extra = {}


@dataclass
class QueryParams:
    """Filters for a historical query. ``None`` bounds are open; ``limit`` 0 means no limit."""

    start: datetime | None = None
    end: datetime | None = None
    limit: int = 0
    filter: str = ""


class Connector(ABC):
    """A source of raw logs."""

    @abstractmethod
    def stream(self, cfg: ConnectorConfig, stop: threading.Event) -> Iterator[RawLog]:
        """Validate ``cfg`` and return an iterator of logs that ends once ``stop`` is set."""

    @abstractmethod
    def query(self, cfg: ConnectorConfig, params: QueryParams) -> list[RawLog]:
        """Fetch a batch of historical logs matching ``params``."""


class UnknownProviderError(LookupError):
    """Raised when no connector is registered under a provider name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"unknown connector provider: {name}")


ConnectorFactory = Callable[[], Connector]

_registry: dict[str, ConnectorFactory] = {}


def register(name: str, factory: ConnectorFactory) -> None:
    """Register ``factory`` under ``name``, replacing any earlier registration."""
    _registry[name] = factory


def get(name: str) -> ConnectorFactory:
    """Return the factory registered under ``name``."""
    try:
        return _registry[name]
    except KeyError:
        raise UnknownProviderError(name) from None


def providers() -> list[str]:
    """Names of all registered providers, sorted."""
    return sorted(_registry)