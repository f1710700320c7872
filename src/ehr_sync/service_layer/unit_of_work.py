"""Unit of Work owning the collaborators of a sync service process."""

from __future__ import annotations

import abc
import logging
from typing import List, Optional

import config
from ehr_sync.adapters.document_parser import AbstractDocumentParser, HTTPDocumentConverter
from ehr_sync.adapters.event_log import AbstractSyncEventLog, build_event_log
from ehr_sync.adapters.fhir_client import AbstractFHIRClient, HTTPFHIRClient
from ehr_sync.adapters.native_store import NativeRecordStore
from ehr_sync.adapters.sources.registry import SourceRegistry, build_source_registry
from ehr_sync.domain.model import SyncRun
from ehr_sync.domain.base import Event

logger = logging.getLogger(__name__)


class AbstractUnitOfWork(abc.ABC):
    """Collaborators a sync needs plus the runs whose events are not yet collected."""

    fhir_client: AbstractFHIRClient
    event_log: AbstractSyncEventLog
    sources: SourceRegistry
    store: NativeRecordStore
    document_parser: AbstractDocumentParser

    def __init__(self):
        self.seen: List[SyncRun] = []
        self.events: List[Event] = []

    async def __aenter__(self) -> AbstractUnitOfWork:
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    def add_run(self, run: SyncRun):
        self.seen.append(run)

    def collect_new_events(self) -> List[Event]:
        """Collect events from sync runs and clear them."""
        for run in self.seen:
            while run.events:
                self.events.append(run.events.pop(0))
        self.seen = [run for run in self.seen if run.result is None]

        events = self.events[:]
        self.events.clear()
        return events

    @abc.abstractmethod
    async def aclose(self):
        raise NotImplementedError


class SyncUnitOfWork(AbstractUnitOfWork):
    """
    Unit of Work wired from configuration.

    Collaborators passed in are used as is and left open on exit; the ones
    built here from config are closed with the unit of work.
    """

    def __init__(self, fhir_client: Optional[AbstractFHIRClient] = None,
                 event_log: Optional[AbstractSyncEventLog] = None,
                 sources: Optional[SourceRegistry] = None,
                 store: Optional[NativeRecordStore] = None,
                 document_parser: Optional[AbstractDocumentParser] = None):
        super().__init__()
        self._owned = []
        self.store = store or NativeRecordStore()
        self.fhir_client = fhir_client or self._own(HTTPFHIRClient())
        self.event_log = event_log or self._own(build_event_log())
        self.document_parser = document_parser or self._own(HTTPDocumentConverter())
        self.sources = sources or self._own(
            build_source_registry(self.store, use_mocks=config.use_mock_sources())
        )

    def _own(self, collaborator):
        self._owned.append(collaborator)
        return collaborator

    async def aclose(self):
        for collaborator in reversed(self._owned):
            await collaborator.aclose()
        self._owned.clear()
        logger.info("Closed sync unit of work")
