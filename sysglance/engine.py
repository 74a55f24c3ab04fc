"""Collection engine: runs the configured collectors and builds snapshots."""

from __future__ import annotations

import logging
from typing import Iterable

from sysglance.collectors import COLLECTORS, Collector
from sysglance.errors import CollectorError, UnknownModuleError
from sysglance.metrics import MetricData, Snapshot

log = logging.getLogger(__name__)

AVAILABLE_MODULES: tuple[str, ...] = ("cpu", "memory", "disk", "network", "process", "system")


class Engine:
    """Ordered set of collectors producing one ``Snapshot`` per call.

    Duplicate module names are kept as given and yield duplicate entries.
    """

    def __init__(
        self,
        module_names: Iterable[str],
        registry: dict[str, type[Collector]] | None = None,
    ) -> None:
        registry = COLLECTORS if registry is None else registry
        self._collectors: list[Collector] = []
        for name in module_names:
            cls = registry.get(name)
            if cls is None:
                raise UnknownModuleError(name)
            self._collectors.append(cls())

    @property
    def module_names(self) -> list[str]:
        return [c.name for c in self._collectors]

    def collect_once(self) -> Snapshot:
        modules: list[tuple[str, MetricData]] = []
        errors: list[tuple[str, str]] = []
        for collector in self._collectors:
            try:
                data = collector.collect()
            except CollectorError as exc:
                log.warning("%s collection failed: %s", collector.name, exc.cause)
                errors.append((collector.name, str(exc.cause)))
                continue
            modules.append((collector.name, data))
        return Snapshot(modules=tuple(modules), errors=tuple(errors))
