"""Snapshot data model shared by collectors, renderers and the dashboard."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping, Union

# int | float | str | bool | nested sequence thereof. bool is a subclass of
# int, so anything dispatching on type must test bool first. Lists handed to
# MetricData are stored as tuples.
MetricValue = Union[int, float, str, bool, list["MetricValue"], tuple["MetricValue", ...]]


def _freeze(value: MetricValue) -> MetricValue:
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MetricData:
    """One collector's output for one refresh cycle."""

    metrics: Mapping[str, MetricValue]
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        # Read-only view over a private copy; nested lists become tuples.
        frozen = {k: _freeze(v) for k, v in self.metrics.items()}
        object.__setattr__(self, "metrics", MappingProxyType(frozen))

    def get(self, key: str) -> MetricValue | None:
        return self.metrics.get(key)


@dataclass(frozen=True)
class Snapshot:
    """Ordered per-module results of one ``Engine.collect_once`` call."""

    modules: tuple[tuple[str, MetricData], ...] = ()
    errors: tuple[tuple[str, str], ...] = ()

    def __len__(self) -> int:
        return len(self.modules)

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.modules]
