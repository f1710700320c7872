"""Explicit table of source system adapters, populated at startup."""

import logging
from typing import Any, Callable, Dict, List, Optional

from ehr_sync.adapters.native_store import NativeRecordStore
from ehr_sync.adapters.sources.base import AbstractRecordSource
from ehr_sync.adapters.sources.http import HTTPRecordSource
from ehr_sync.adapters.sources.synthetic import SyntheticRecordSource
from ehr_sync.domain.errors import ConfigurationError
from ehr_sync.domain.systems import SourceSystem, parse_system

logger = logging.getLogger(__name__)

SourceFactory = Callable[[], AbstractRecordSource]


class SourceRegistry:
    """Maps a system key to its adapter; adapters are built on first use."""

    def __init__(self):
        self._factories: Dict[SourceSystem, SourceFactory] = {}
        self._sources: Dict[SourceSystem, AbstractRecordSource] = {}

    def register(self, system, factory: SourceFactory):
        system = parse_system(system)
        self._factories[system] = factory
        self._sources.pop(system, None)

    def get(self, system) -> AbstractRecordSource:
        system = parse_system(system)
        if system not in self._factories:
            raise ConfigurationError(f"No source registered for {system.value}")
        if system not in self._sources:
            self._sources[system] = self._factories[system]()
        return self._sources[system]

    @property
    def systems(self) -> List[SourceSystem]:
        return list(self._factories)

    async def aclose(self):
        for source in self._sources.values():
            await source.aclose()
        self._sources.clear()


def build_source_registry(store: NativeRecordStore, use_mocks: bool = True,
                          mock_config: Optional[Dict[str, Any]] = None) -> SourceRegistry:
    registry = SourceRegistry()
    for system in SourceSystem:
        if use_mocks:
            registry.register(system, lambda s=system: SyntheticRecordSource(s, store, mock_config))
        else:
            registry.register(system, lambda s=system: HTTPRecordSource(s))
    logger.info(
        f"Registered {'synthetic' if use_mocks else 'live'} sources: "
        f"{', '.join(s.value for s in registry.systems)}"
    )
    return registry
