import asyncio
import logging
from datetime import timezone
from typing import Dict

from ehr_sync.adapters.sources.synthetic import SyntheticRecordSource
from ehr_sync.domain.commands import PerformSync, PerformSyncAll, RegenerateNativeRecords
from ehr_sync.domain.errors import ConfigurationError
from ehr_sync.domain.events import NativeRecordsRegenerated, SyncCompleted
from ehr_sync.domain.model import SyncAllResult, SyncResult
from ehr_sync.domain.systems import SYSTEM_INFO, parse_system, provenance_tag
from ehr_sync.service_layer.orchestrator import SyncOrchestrator
from ehr_sync.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

AUDIT_EVENT_TYPE = {
    "system": "http://terminology.hl7.org/CodeSystem/audit-event-type",
    "code": "rest",
    "display": "RESTful Operation",
}


async def perform_sync(command: PerformSync, uow: AbstractUnitOfWork) -> SyncResult:
    """
    Synchronize every encoding of one source system into the clinical data store.

    Raises:
        ConfigurationError: If the system key is unknown or has no source
    """
    logger.info(f"Processing PerformSync command for {command.system}")
    run = await SyncOrchestrator(uow, item_timeout=command.item_timeout).run(command.system)
    return run.result


async def perform_sync_all(command: PerformSyncAll, uow: AbstractUnitOfWork) -> SyncAllResult:
    """Synchronize several systems concurrently; they share no state besides the event log."""
    systems = [parse_system(s) for s in command.systems] if command.systems else uow.sources.systems
    logger.info(f"Processing PerformSyncAll command for {', '.join(s.value for s in systems)}")

    runs = await asyncio.gather(*(
        SyncOrchestrator(uow, item_timeout=command.item_timeout).run(system) for system in systems
    ))
    return SyncAllResult(results={run.system.value: run.result for run in runs})


async def regenerate_native_records(command: RegenerateNativeRecords,
                                    uow: AbstractUnitOfWork) -> Dict[str, Dict[str, int]]:
    """Replace the synthetic record sets, one atomic snapshot swap per system."""
    if command.patient_count < 1:
        raise ValueError("patient_count must be at least 1")
    systems = [parse_system(s) for s in command.systems] if command.systems else uow.sources.systems

    summary = {}
    for system in systems:
        source = uow.sources.get(system)
        if not isinstance(source, SyntheticRecordSource):
            raise ConfigurationError(f"{system.value} is a live source and cannot be regenerated")
        snapshot = source.regenerate(command.patient_count, seed=command.seed)
        summary[system.value] = {
            "patients": len(snapshot.records),
            "documents": len(snapshot.documents),
            "messages": len(snapshot.messages),
        }

    uow.events.append(NativeRecordsRegenerated(systems=list(summary), patient_count=command.patient_count))
    return summary


async def record_sync_audit(event: SyncCompleted, uow: AbstractUnitOfWork):
    """
    Write the summary AuditEvent of a sync run to the clinical data store.

    Failures are logged only; the audit record must never fail a sync.
    """
    info = SYSTEM_INFO[parse_system(event.system)]
    audit = {
        "resourceType": "AuditEvent",
        "type": AUDIT_EVENT_TYPE,
        "action": "E",
        "recorded": event.completed_at.astimezone(timezone.utc).isoformat(),
        "outcome": "0" if event.success else "4",
        "outcomeDesc": (
            f"Synced {event.synced_resources} resources from {info.display} "
            f"with {event.error_count} errors in {event.elapsed_ms} ms"
        ),
        "agent": [{"who": {"display": "ehr-sync"}, "requestor": True}],
        "source": {"observer": {"display": info.display}},
        "entity": [{"what": {"display": info.code}, "detail": [
            {"type": "syncedResources", "valueString": str(event.synced_resources)},
            {"type": "errorCount", "valueString": str(event.error_count)},
            {"type": "elapsedMs", "valueString": str(event.elapsed_ms)},
        ]}],
        "meta": {"tag": [provenance_tag(event.system)]},
    }
    try:
        await uow.fhir_client.create(audit)
        logger.info(f"Recorded sync audit for {event.system}")
    except Exception as e:
        logger.error(f"Failed to record sync audit for {event.system}: {e}")


async def log_regeneration(event: NativeRecordsRegenerated, uow: AbstractUnitOfWork):
    logger.info(
        f"Native records regenerated for {', '.join(event.systems)} "
        f"({event.patient_count} patients each)"
    )
