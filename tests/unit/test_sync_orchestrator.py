"""
Unit tests for sync runs - following Cosmic Python pattern.

Commands go through the message bus against a unit of work whose
collaborators are in-process fakes, so every failure mode can be injected.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from ehr_sync.adapters.fhir_client import HTTPFHIRClient
from ehr_sync.adapters.native_store import SystemSnapshot
from ehr_sync.adapters.sources.http import HTTPRecordSource
from ehr_sync.adapters.sources.base import AbstractRecordSource, AuthResult, Page
from ehr_sync.adapters.sources.registry import SourceRegistry
from ehr_sync.domain.commands import PerformSync, PerformSyncAll, RegenerateNativeRecords
from ehr_sync.domain.errors import ConfigurationError, TransportError
from ehr_sync.domain.model import ItemKind, SyncStatus
from ehr_sync.domain.systems import PROVENANCE_SYSTEM, SourceSystem
from ehr_sync.generators.athena import generate_athena_records
from ehr_sync.generators.messages import generate_interface_messages
from ehr_sync.service_layer import messagebus, unit_of_work
from ehr_sync.service_layer.orchestrator import SyncOrchestrator
from ehr_sync.service_layer.unit_of_work import SyncUnitOfWork

ITEMS_PER_RUN = 2 + 2 + 3  # patients, documents, messages of the test mock config


class StaticSource(AbstractRecordSource):
    """Source serving fixed items, the way a live system hands over raw payloads."""

    def __init__(self, system, records=(), documents=(), messages=()):
        super().__init__(system)
        self.records = list(records)
        self.documents = list(documents)
        self.messages = list(messages)

    async def authenticate(self):
        return AuthResult("static-token", datetime.now(timezone.utc) + timedelta(hours=1))

    @staticmethod
    def _page(items, limit, offset):
        return Page(items[offset:offset + limit], len(items), limit, offset)

    async def fetch_native_records(self, limit=100, offset=0):
        return self._page(self.records, limit, offset)

    async def fetch_documents(self, limit=100, offset=0):
        return self._page(self.documents, limit, offset)

    async def fetch_messages(self, limit=100, offset=0):
        return self._page(self.messages, limit, offset)


async def _sync(uow, system="athena", item_timeout=None):
    [result] = await messagebus.handle(PerformSync(system=system, item_timeout=item_timeout), uow)
    return result


@pytest.mark.asyncio
async def test_sync_processes_every_encoding(uow, fhir_client, event_log):
    """Test a clean run syncs records, documents and messages in stage order"""
    result = await _sync(uow)

    assert result.success is True
    assert result.errors == []
    assert len(result.events) == ITEMS_PER_RUN
    assert result.synced_resources == sum(len(b["entry"]) for b in fhir_client.batches)
    assert result.resource_summary["Patient"] >= 2
    kinds = [event.kind for event in result.events]
    assert kinds[:2] == [ItemKind.PATIENT, ItemKind.PATIENT]
    assert kinds[2:4] == [ItemKind.DOCUMENT, ItemKind.DOCUMENT]
    assert set(kinds[4:]) <= {ItemKind.ENCOUNTER, ItemKind.OBSERVATION}

    logged, total = await event_log.list(limit=100)
    assert total == ITEMS_PER_RUN
    assert logged[0].id == result.events[-1].id


@pytest.mark.asyncio
async def test_event_timestamps_are_strictly_increasing(uow):
    result = await _sync(uow)
    timestamps = [event.timestamp for event in result.events]

    assert timestamps == sorted(timestamps)
    assert len(set(timestamps)) == len(timestamps)


@pytest.mark.asyncio
async def test_completed_sync_writes_audit_event(uow, fhir_client):
    await _sync(uow, "nextgen")

    [audit] = fhir_client.created
    assert audit["resourceType"] == "AuditEvent"
    assert audit["outcome"] == "0"
    assert audit["meta"]["tag"][0] == {
        "system": PROVENANCE_SYSTEM, "code": "nextgen", "display": "NextGen Healthcare",
    }
    assert uow.collect_new_events() == []


@pytest.mark.asyncio
async def test_audit_failure_does_not_fail_the_sync(uow, fhir_client):
    fhir_client.fail_creates = True

    result = await _sync(uow)

    assert result.success is True
    assert fhir_client.created == []


@pytest.mark.asyncio
async def test_malformed_record_fails_alone(uow, sources):
    """Test one bad native record does not stop the items after it"""
    snapshot = sources.get("athena").regenerate()
    snapshot.records[0].patient.lastname = ""

    result = await _sync(uow)

    assert result.success is False
    assert len(result.errors) == 1
    assert "lastname" in result.errors[0]
    statuses = [event.status for event in result.events]
    assert statuses.count(SyncStatus.FAILED) == 1
    assert result.events[0].status is SyncStatus.FAILED
    assert result.events[0].resource_id == snapshot.records[0].local_id
    assert len(result.events) == ITEMS_PER_RUN
    assert result.synced_resources > 0


@pytest.mark.asyncio
async def test_store_rejection_keeps_accepted_counts(uow, fhir_client):
    fhir_client.reject_types = {"Observation"}

    result = await _sync(uow)

    accepted = sum(
        1 for b in fhir_client.batches for e in b["entry"]
        if e["resource"]["resourceType"] != "Observation"
    )
    assert result.success is False
    assert result.synced_resources == accepted
    assert "Observation" not in result.resource_summary
    assert all("422" in error for error in result.errors)
    # every document carries an Observation, so both are failed items
    documents = [e for e in result.events if e.kind is ItemKind.DOCUMENT]
    assert all(e.status is SyncStatus.FAILED for e in documents)


@pytest.mark.asyncio
async def test_unexpected_store_error_fails_only_that_item(uow, fhir_client, monkeypatch):
    """Test an error outside the sync taxonomy still folds into one failed item"""
    execute_batch = fhir_client.execute_batch
    calls = []

    async def flaky_batch(bundle):
        calls.append(bundle)
        if len(calls) == 1:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return await execute_batch(bundle)

    monkeypatch.setattr(fhir_client, "execute_batch", flaky_batch)
    result = await _sync(uow)

    assert result.success is False
    assert len(result.errors) == 1
    assert result.errors[0].startswith("ValueError")
    assert result.events[0].status is SyncStatus.FAILED
    assert len(result.events) == ITEMS_PER_RUN
    assert len(fhir_client.batches) == ITEMS_PER_RUN - 1
    assert result.synced_resources > 0


@pytest.mark.asyncio
async def test_store_answering_non_json_fails_items_not_the_run(sources, event_log, native_store,
                                                                 document_parser):
    client = HTTPFHIRClient(
        "https://fhir.example.test/R4",
        client=httpx.AsyncClient(transport=httpx.MockTransport(
            lambda request: httpx.Response(200, text="<html>OK</html>")
        )),
    )
    uow = SyncUnitOfWork(fhir_client=client, event_log=event_log, sources=sources,
                         store=native_store, document_parser=document_parser)

    result = await _sync(uow)

    assert len(result.events) == ITEMS_PER_RUN
    assert len(result.errors) == ITEMS_PER_RUN
    assert all("unreadable body" in error for error in result.errors)
    assert result.synced_resources == 0


@pytest.mark.asyncio
async def test_malformed_converter_output_fails_only_documents(uow, document_parser, monkeypatch):
    async def odd_bundle(xml, template_type="CCD"):
        return {"resourceType": "Bundle", "entry": ["not an entry"]}

    monkeypatch.setattr(document_parser, "parse", odd_bundle)
    result = await _sync(uow)

    failed = [e for e in result.events if e.status is SyncStatus.FAILED]
    assert len(result.events) == ITEMS_PER_RUN
    assert len(failed) == 2
    assert {e.kind for e in failed} == {ItemKind.DOCUMENT}


@pytest.mark.asyncio
async def test_unexpected_fetch_error_aborts_only_that_stage(uow, sources, monkeypatch):
    async def broken(limit=100, offset=0):
        raise KeyError("raw")

    monkeypatch.setattr(sources.get("athena"), "fetch_messages", broken)
    result = await _sync(uow)

    assert result.errors == ["message stage aborted: 'raw'"]
    assert len(result.events) == 2 + 2


@pytest.mark.asyncio
async def test_live_source_without_token_aborts_each_stage(fhir_client, event_log, native_store,
                                                          document_parser):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"token": "x"}))
    registry = SourceRegistry()
    registry.register("athena", lambda: HTTPRecordSource(
        "athena", base_url="https://athena.example.test", client=httpx.AsyncClient(transport=transport),
    ))
    uow = SyncUnitOfWork(fhir_client=fhir_client, event_log=event_log, sources=registry,
                         store=native_store, document_parser=document_parser)

    result = await _sync(uow)

    assert result.success is False
    assert [error.split(" ", 1)[0] for error in result.errors] == ["native", "document", "message"]
    assert all("authentication failed" in error for error in result.errors)
    assert result.events == []


@pytest.mark.asyncio
async def test_fetch_failure_aborts_only_that_stage(uow, sources, monkeypatch):
    source = sources.get("elation")

    async def unavailable(limit=100, offset=0):
        raise TransportError("documents endpoint unavailable")

    monkeypatch.setattr(source, "fetch_documents", unavailable)
    result = await _sync(uow, "elation")

    assert result.success is False
    assert result.errors == ["document stage aborted: documents endpoint unavailable"]
    assert len(result.events) == 2 + 3
    assert ItemKind.DOCUMENT not in {event.kind for event in result.events}


@pytest.mark.asyncio
async def test_empty_stages_contribute_nothing(uow, sources, native_store):
    snapshot = sources.get("athena").regenerate()
    native_store.replace(SourceSystem.ATHENA, SystemSnapshot(records=snapshot.records))

    result = await _sync(uow)

    assert result.success is True
    assert len(result.events) == 2
    assert {event.kind for event in result.events} == {ItemKind.PATIENT}


@pytest.mark.asyncio
async def test_parser_failure_fails_document_items(uow, document_parser):
    document_parser.fail = True

    result = await _sync(uow)

    assert len(result.errors) == 2
    assert all("converter unavailable" in error for error in result.errors)
    assert len(result.events) == ITEMS_PER_RUN


@pytest.mark.asyncio
async def test_slow_item_times_out(uow, document_parser, monkeypatch):
    """Test an item exceeding the per-item timeout becomes a failed item"""
    async def slow_parse(xml, template_type="CCD"):
        await asyncio.sleep(5)

    monkeypatch.setattr(document_parser, "parse", slow_parse)
    result = await _sync(uow, item_timeout=0.05)

    assert len(result.errors) == 2
    assert all("timed out" in error for error in result.errors)
    assert len(result.events) == ITEMS_PER_RUN


@pytest.mark.asyncio
async def test_event_log_failure_does_not_fail_the_sync(uow, event_log, monkeypatch):
    async def broken_append(event):
        raise ConnectionError("redis down")

    monkeypatch.setattr(event_log, "append", broken_append)
    result = await _sync(uow)

    assert result.success is True
    assert len(result.events) == ITEMS_PER_RUN


@pytest.mark.asyncio
async def test_unknown_system_is_a_configuration_error(uow):
    with pytest.raises(ConfigurationError):
        await SyncOrchestrator(uow).run("epic")


@pytest.mark.asyncio
async def test_unregistered_system_is_a_configuration_error(fhir_client, event_log, native_store,
                                                            document_parser):
    uow = SyncUnitOfWork(fhir_client=fhir_client, event_log=event_log, sources=SourceRegistry(),
                         store=native_store, document_parser=document_parser)

    with pytest.raises(ConfigurationError):
        await _sync(uow)


@pytest.mark.asyncio
async def test_raw_payloads_are_decoded_per_item(fhir_client, event_log, native_store, document_parser):
    """Test a live source's raw JSON and message text are decoded inside each item"""
    records = [r.to_dict() for r in generate_athena_records(2, seed=3)]
    records.insert(1, {"patient": {"patientid": "broken"}})
    messages = [m.raw for m in generate_interface_messages(2, "ATHENA_EHR", "ATHENA_FACILITY", "ATH", seed=3)]
    messages.append("this is not a message")

    registry = SourceRegistry()
    registry.register("athena", lambda: StaticSource("athena", records=records, messages=messages))
    uow = SyncUnitOfWork(fhir_client=fhir_client, event_log=event_log, sources=registry,
                         store=native_store, document_parser=document_parser)

    result = await _sync(uow)

    statuses = [event.status for event in result.events]
    assert statuses == [
        SyncStatus.SUCCESS, SyncStatus.FAILED, SyncStatus.SUCCESS,
        SyncStatus.SUCCESS, SyncStatus.SUCCESS, SyncStatus.FAILED,
    ]
    assert len(result.errors) == 2


@pytest.mark.asyncio
async def test_sync_all_runs_every_system(uow, fhir_client):
    [result] = await messagebus.handle(PerformSyncAll(), uow)

    assert set(result.results) == {"athena", "elation", "nextgen"}
    assert result.success is True
    assert result.total_synced_resources == sum(r.synced_resources for r in result.results.values())
    assert len(fhir_client.created) == 3


@pytest.mark.asyncio
async def test_sync_all_isolates_failing_system(uow, sources, monkeypatch):
    async def unavailable(limit=100, offset=0):
        raise TransportError("auth rejected")

    monkeypatch.setattr(sources.get("nextgen"), "fetch_native_records", unavailable)
    [result] = await messagebus.handle(PerformSyncAll(systems=["athena", "nextgen"]), uow)

    assert result.success is False
    assert result.results["athena"].success is True
    assert result.results["nextgen"].errors == ["native stage aborted: auth rejected"]


@pytest.mark.asyncio
async def test_regenerate_replaces_every_snapshot(uow, native_store):
    [summary] = await messagebus.handle(RegenerateNativeRecords(patient_count=3, seed=9), uow)

    assert set(summary) == {"athena", "elation", "nextgen"}
    for system, counts in summary.items():
        assert counts == {"patients": 3, "documents": 2, "messages": 3}
        assert len(native_store.snapshot(SourceSystem(system)).records) == 3


@pytest.mark.asyncio
async def test_regenerate_rejects_non_positive_count(uow):
    with pytest.raises(ValueError):
        await messagebus.handle(RegenerateNativeRecords(patient_count=0), uow)


@pytest.mark.asyncio
async def test_regenerate_refuses_live_source(fhir_client, event_log, native_store, document_parser):
    registry = SourceRegistry()
    registry.register("athena", lambda: StaticSource("athena"))
    uow = SyncUnitOfWork(fhir_client=fhir_client, event_log=event_log, sources=registry,
                         store=native_store, document_parser=document_parser)

    with pytest.raises(ConfigurationError):
        await messagebus.handle(RegenerateNativeRecords(patient_count=2, systems=["athena"]), uow)


def test_unit_of_work_module_docstring():
    assert unit_of_work.__doc__.startswith("Unit of Work")
