"""
Drives one source system through its three ingestion stages.

Stages run in a fixed order (native records, documents, messages) and items
within a stage run one after another, so the order of sync events is
reproducible. Every item ends as an ``ItemSucceeded`` or ``ItemFailed``
outcome folded into the ``SyncRun``; only configuration errors escape.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ehr_sync.adapters.bundle_executor import BundleExecutor
from ehr_sync.domain.errors import ConfigurationError, TransformError, TransportError
from ehr_sync.domain.model import (
    ItemFailed,
    ItemKind,
    ItemOutcome,
    ItemSucceeded,
    SyncAction,
    SyncRun,
)
from ehr_sync.domain.records import NATIVE_RECORD_TYPES, ClinicalDocument
from ehr_sync.domain.systems import Encoding, SourceSystem, parse_system
from ehr_sync.hl7v2.encoding import MessageError
from ehr_sync.hl7v2.messages import InterfaceMessage, MessageType
from ehr_sync.service_layer.unit_of_work import AbstractUnitOfWork
from ehr_sync.transformers.registry import get_transformer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stage:
    name: str
    encoding: Encoding
    fetch: str


STAGES = (
    Stage("native", Encoding.NATIVE_JSON, "fetch_native_records"),
    Stage("document", Encoding.DOCUMENT, "fetch_documents"),
    Stage("message", Encoding.MESSAGE, "fetch_messages"),
)

MESSAGE_ITEMS = {
    MessageType.ADT_A01: (ItemKind.ENCOUNTER, SyncAction.CREATED),
    MessageType.ADT_A08: (ItemKind.ENCOUNTER, SyncAction.UPDATED),
    MessageType.ORU_R01: (ItemKind.OBSERVATION, SyncAction.CREATED),
}


@dataclass
class _Item:
    """Mutable description of the item being processed, filled in as it is decoded."""
    kind: ItemKind
    action: SyncAction = SyncAction.CREATED
    resource_id: str = "unknown"


class SyncOrchestrator:
    def __init__(self, uow: AbstractUnitOfWork, item_timeout: Optional[float] = None):
        self.uow = uow
        self.item_timeout = item_timeout
        self.executor = BundleExecutor(uow.fhir_client)

    async def run(self, system) -> SyncRun:
        system = parse_system(system)
        source = self.uow.sources.get(system)
        run = SyncRun(system)
        self.uow.add_run(run)
        logger.info(f"Starting sync of {system.value}")

        for stage in STAGES:
            await self._run_stage(stage, source, run)

        result = run.complete()
        logger.info(
            f"Finished sync of {system.value}: {result.synced_resources} resources, "
            f"{len(result.errors)} errors in {result.elapsed_ms} ms"
        )
        return run

    async def _run_stage(self, stage: Stage, source, run: SyncRun):
        transform = get_transformer(run.system, stage.encoding)
        try:
            items = await source.fetch_all(getattr(source, stage.fetch))
        except TransportError as e:
            logger.error(f"{run.system.value} {stage.name} stage aborted: {e}")
            run.record_stage_failure(stage.name, e)
            return
        except ConfigurationError:
            raise
        except Exception as e:
            logger.exception(f"{run.system.value} {stage.name} stage aborted")
            run.record_stage_failure(stage.name, e)
            return

        logger.info(f"{run.system.value} {stage.name} stage: {len(items)} items")
        for item in items:
            outcome = await self._process(stage, transform, run.system, item)
            event = run.record(outcome)
            try:
                await self.uow.event_log.append(event)
            except Exception:
                logger.exception(f"Could not append sync event {event.id} to the event log")

    async def _process(self, stage: Stage, transform, system: SourceSystem, item) -> ItemOutcome:
        described = _Item(kind=ItemKind.DOCUMENT if stage.encoding is Encoding.DOCUMENT else ItemKind.PATIENT)
        try:
            work = self._transform_and_execute(stage, transform, system, item, described)
            if self.item_timeout:
                outcome = await asyncio.wait_for(work, self.item_timeout)
            else:
                outcome = await work
        except TransformError as e:
            logger.warning(f"Skipping {stage.name} item {described.resource_id}: {e}")
            return ItemFailed(described.kind, described.action, described.resource_id, str(e))
        except TransportError as e:
            logger.error(f"{stage.name} item {described.resource_id} failed: {e}")
            return ItemFailed(described.kind, described.action, described.resource_id, str(e))
        except asyncio.TimeoutError:
            message = f"{stage.name} item {described.resource_id} timed out after {self.item_timeout}s"
            logger.error(message)
            return ItemFailed(described.kind, described.action, described.resource_id, message)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.exception(f"{stage.name} item {described.resource_id} failed unexpectedly")
            return ItemFailed(described.kind, described.action, described.resource_id, f"{type(e).__name__}: {e}")
        return outcome

    async def _transform_and_execute(self, stage: Stage, transform, system: SourceSystem,
                                     item, described: _Item) -> ItemOutcome:
        if stage.encoding is Encoding.NATIVE_JSON:
            record = _native_record(system, item)
            described.resource_id = record.local_id
            bundle = transform(record)
        elif stage.encoding is Encoding.DOCUMENT:
            document: ClinicalDocument = item
            described.resource_id = document.document_id
            parsed = await self.uow.document_parser.parse(document.xml, document.template_type)
            bundle = transform(document, parsed)
        else:
            message = _interface_message(item)
            described.resource_id = message.control_id
            described.kind, described.action = MESSAGE_ITEMS[message.message_type]
            bundle = transform(message)

        outcome = await self.executor.execute(bundle)
        if outcome.errors:
            logger.warning(f"{stage.name} item {described.resource_id} partially rejected by the store")
            return ItemFailed(
                described.kind, described.action, described.resource_id,
                error=str(outcome.error),
                resource_count=outcome.resource_count,
                resource_types=outcome.resource_types,
            )
        return ItemSucceeded(
            described.kind, described.action, described.resource_id,
            resource_count=outcome.resource_count,
            resource_types=outcome.resource_types,
            details=f"{outcome.resource_count} resources synced",
        )


def _native_record(system: SourceSystem, item):
    # live sources hand over raw JSON mappings
    if isinstance(item, dict):
        return NATIVE_RECORD_TYPES[system].from_dict(item)
    return item


def _interface_message(item) -> InterfaceMessage:
    if isinstance(item, InterfaceMessage):
        return item
    try:
        return InterfaceMessage.from_raw(str(item))
    except MessageError as e:
        raise TransformError(f"Undecodable message: {e}") from e
