"""
Shared fixtures: in-process fakes for the clinical data store and the
document converter, and a unit of work wired to synthetic sources.
"""
import pytest

from ehr_sync.adapters.document_parser import AbstractDocumentParser
from ehr_sync.adapters.event_log import InMemorySyncEventLog
from ehr_sync.adapters.fhir_client import AbstractFHIRClient, FHIRClientError
from ehr_sync.adapters.native_store import NativeRecordStore
from ehr_sync.adapters.sources.registry import build_source_registry
from ehr_sync.domain.errors import TransportError
from ehr_sync.service_layer.unit_of_work import SyncUnitOfWork

MOCK_CONFIG = {
    "patient_count": 2,
    "document_count": 2,
    "message_count": 3,
    "seed": 42,
}


class FakeFHIRClient(AbstractFHIRClient):
    """
    Accepts every entry with ``201 Created`` unless told otherwise.

    ``reject_types`` makes the store answer ``422`` for entries of those
    resource types; ``fail_batches`` makes every batch call raise.
    """

    def __init__(self, reject_types=(), fail_batches=False, fail_creates=False):
        self.reject_types = set(reject_types)
        self.fail_batches = fail_batches
        self.fail_creates = fail_creates
        self.batches = []
        self.created = []

    async def create(self, resource):
        if self.fail_creates:
            raise FHIRClientError("store unavailable", status_code=503)
        self.created.append(resource)
        return {**resource, "id": f"created-{len(self.created)}"}

    async def read(self, resource_type, resource_id):
        raise FHIRClientError(f"{resource_type}/{resource_id} not found", status_code=404)

    async def update(self, resource):
        return resource

    async def search(self, resource_type, params=None):
        return []

    async def execute_batch(self, bundle):
        if self.fail_batches:
            raise FHIRClientError("connection refused")
        self.batches.append(bundle)
        entries = []
        for entry in bundle["entry"]:
            if entry["resource"]["resourceType"] in self.reject_types:
                entries.append({"response": {
                    "status": "422 Unprocessable Entity",
                    "outcome": {"resourceType": "OperationOutcome",
                                "issue": [{"severity": "error", "diagnostics": "invalid resource"}]},
                }})
            else:
                entries.append({"response": {"status": "201 Created"}})
        return {"resourceType": "Bundle", "type": "transaction-response", "entry": entries}

    @property
    def submitted_resources(self):
        return [entry["resource"] for bundle in self.batches for entry in bundle["entry"]]


class FakeDocumentParser(AbstractDocumentParser):
    """Turns any document into a Patient and one Observation."""

    def __init__(self, fail=False):
        self.fail = fail
        self.parsed = []

    async def parse(self, xml, template_type):
        if self.fail:
            raise TransportError("converter unavailable")
        self.parsed.append(template_type)
        return {
            "resourceType": "Bundle",
            "type": "collection",
            "entry": [
                {"fullUrl": "urn:uuid:patient-1",
                 "resource": {"resourceType": "Patient", "id": "patient-1"}},
                {"fullUrl": "urn:uuid:obs-1",
                 "resource": {"resourceType": "Observation", "status": "final"}},
            ],
        }


@pytest.fixture
def fhir_client():
    return FakeFHIRClient()


@pytest.fixture
def document_parser():
    return FakeDocumentParser()


@pytest.fixture
def native_store():
    return NativeRecordStore()


@pytest.fixture
def event_log():
    return InMemorySyncEventLog(max_events=100)


@pytest.fixture
def sources(native_store):
    return build_source_registry(native_store, use_mocks=True, mock_config=dict(MOCK_CONFIG))


@pytest.fixture
def uow(fhir_client, event_log, sources, native_store, document_parser):
    """Unit of work where every collaborator is an in-process fake."""
    return SyncUnitOfWork(
        fhir_client=fhir_client,
        event_log=event_log,
        sources=sources,
        store=native_store,
        document_parser=document_parser,
    )
