"""
Integration tests for the sync API - following Cosmic Python pattern.

Tests verify that:
1. Sync endpoints dispatch commands and report per-system outcomes
2. The events view pages through the shared event log
3. Mock data regeneration swaps the synthetic record sets
"""
import pytest
from fastapi.testclient import TestClient

from ehr_sync.adapters.sources.base import AbstractRecordSource, Page
from ehr_sync.adapters.sources.registry import SourceRegistry
from ehr_sync.entrypoints.sync_api import create_app
from ehr_sync.service_layer.unit_of_work import SyncUnitOfWork


class LiveSourceStub(AbstractRecordSource):
    """Non-synthetic source with nothing to serve."""

    async def authenticate(self):
        raise NotImplementedError

    async def fetch_native_records(self, limit=100, offset=0):
        return Page([], 0, limit, offset)

    async def fetch_documents(self, limit=100, offset=0):
        return Page([], 0, limit, offset)

    async def fetch_messages(self, limit=100, offset=0):
        return Page([], 0, limit, offset)


@pytest.fixture
def client(uow):
    with TestClient(create_app(uow)) as test_client:
        yield test_client


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_sync_single_system(client, fhir_client):
    """Test syncing one system reports counts, events and a resource summary"""
    response = client.post("/api/v1/sync/athena")

    assert response.status_code == 200
    data = response.json()
    assert data["system"] == "athena"
    assert data["success"] is True
    assert data["errors"] == []
    assert len(data["events"]) == 7
    assert data["synced_resources"] == sum(len(b["entry"]) for b in fhir_client.batches)
    assert data["resource_summary"]["Patient"] >= 2
    assert {"id", "timestamp", "system", "type", "action", "resourceId", "status"} <= set(data["events"][0])


def test_sync_unknown_system_is_not_found(client):
    response = client.post("/api/v1/sync/epic")

    assert response.status_code == 404


def test_sync_reports_partial_failure_with_200(client, fhir_client):
    fhir_client.reject_types = {"Observation"}

    response = client.post("/api/v1/sync/elation")

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["errors"]


def test_sync_all_systems(client):
    response = client.post("/api/v1/sync")

    assert response.status_code == 200
    data = response.json()
    assert set(data["results"]) == {"athena", "elation", "nextgen"}
    assert data["total_synced_resources"] == sum(r["synced_resources"] for r in data["results"].values())


def test_sync_selected_systems(client):
    response = client.post("/api/v1/sync", params={"systems": ["nextgen"]})

    assert response.status_code == 200
    assert set(response.json()["results"]) == {"nextgen"}


def test_events_are_paginated_newest_first(client):
    """Test the events view pages through the log after two syncs"""
    client.post("/api/v1/sync/athena")
    client.post("/api/v1/sync/nextgen")

    response = client.get("/api/v1/sync/events", params={"limit": 5})
    data = response.json()

    assert response.status_code == 200
    assert data["total"] == 14
    assert len(data["events"]) == 5
    assert data["has_more"] is True
    assert data["events"][0]["system"] == "nextgen"
    timestamps = [event["timestamp"] for event in data["events"]]
    assert timestamps == sorted(timestamps, reverse=True)

    last_page = client.get("/api/v1/sync/events", params={"limit": 5, "offset": 10}).json()
    assert len(last_page["events"]) == 4
    assert last_page["has_more"] is False


def test_events_filtered_by_system(client):
    client.post("/api/v1/sync/athena")
    client.post("/api/v1/sync/elation")

    data = client.get("/api/v1/sync/events", params={"system": "elation", "limit": 100}).json()

    assert data["total"] == 7
    assert all(event["system"] == "elation" for event in data["events"])


def test_events_reject_bad_parameters(client):
    assert client.get("/api/v1/sync/events", params={"limit": 0}).status_code == 422
    assert client.get("/api/v1/sync/events", params={"limit": 101}).status_code == 422
    assert client.get("/api/v1/sync/events", params={"system": "epic"}).status_code == 404


def test_regenerate_mock_data(client, native_store):
    response = client.post("/api/v1/mock-data/regenerate", json={"patient_count": 4, "seed": 1})

    assert response.status_code == 200
    data = response.json()
    assert data["patient_count"] == 4
    assert data["systems"]["athena"] == {"patients": 4, "documents": 2, "messages": 3}

    sync = client.post("/api/v1/sync/athena").json()
    assert len(sync["events"]) == 4 + 2 + 3


def test_regenerate_validates_patient_count(client):
    response = client.post("/api/v1/mock-data/regenerate", json={"patient_count": 0})

    assert response.status_code == 422


def test_regenerate_live_source_conflicts(fhir_client, event_log, native_store, document_parser):
    registry = SourceRegistry()
    registry.register("athena", lambda: LiveSourceStub("athena"))
    uow = SyncUnitOfWork(fhir_client=fhir_client, event_log=event_log, sources=registry,
                         store=native_store, document_parser=document_parser)

    with TestClient(create_app(uow)) as live_client:
        response = live_client.post("/api/v1/mock-data/regenerate", json={"patient_count": 2})

    assert response.status_code == 409


def test_regenerate_unknown_system_is_not_found(client):
    response = client.post("/api/v1/mock-data/regenerate", json={"patient_count": 2, "systems": ["epic"]})

    assert response.status_code == 404


def test_regenerate_unregistered_system_is_not_found(fhir_client, event_log, native_store, document_parser):
    """Test a known system without a registered source is 404, not a conflict"""
    registry = SourceRegistry()
    registry.register("athena", lambda: LiveSourceStub("athena"))
    uow = SyncUnitOfWork(fhir_client=fhir_client, event_log=event_log, sources=registry,
                         store=native_store, document_parser=document_parser)

    with TestClient(create_app(uow)) as live_client:
        response = live_client.post("/api/v1/mock-data/regenerate",
                                    json={"patient_count": 2, "systems": ["nextgen"]})

    assert response.status_code == 404
