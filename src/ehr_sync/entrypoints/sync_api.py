"""
EHR Sync API Entrypoint - Thin API with Command Dispatch
API triggers syncs by dispatching commands through the message bus
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field
import logging

import config
from ehr_sync import views
from ehr_sync.domain.commands import PerformSync, PerformSyncAll, RegenerateNativeRecords
from ehr_sync.domain.errors import ConfigurationError
from ehr_sync.domain.model import SyncResult
from ehr_sync.domain.systems import parse_system
from ehr_sync.service_layer import messagebus
from ehr_sync.service_layer.unit_of_work import AbstractUnitOfWork, SyncUnitOfWork

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SyncEventModel(BaseModel):
    id: str
    timestamp: str
    system: str
    type: str
    action: str
    resourceId: str
    status: str
    details: Optional[str] = None


class SyncResponse(BaseModel):
    """Outcome of one source system sync"""
    system: str
    success: bool
    synced_resources: int
    errors: List[str]
    events: List[SyncEventModel]
    resource_summary: Dict[str, int]
    elapsed_ms: int
    timestamp: str


class SyncAllResponse(BaseModel):
    success: bool
    total_synced_resources: int
    results: Dict[str, SyncResponse]
    timestamp: str


class SyncEventsResponse(BaseModel):
    events: List[SyncEventModel]
    total: int
    limit: int
    offset: int
    has_more: bool


class RegenerateRequest(BaseModel):
    patient_count: int = Field(5, ge=1, le=100)
    systems: Optional[List[str]] = None
    seed: Optional[int] = None


class RegenerateResponse(BaseModel):
    status: str
    patient_count: int
    systems: Dict[str, Dict[str, int]]
    regenerated_at: str


def _sync_response(result: SyncResult, timestamp: str) -> SyncResponse:
    return SyncResponse(
        system=result.system,
        success=result.success,
        synced_resources=result.synced_resources,
        errors=result.errors,
        events=[SyncEventModel(**event.to_dict()) for event in result.events],
        resource_summary=result.resource_summary,
        elapsed_ms=result.elapsed_ms,
        timestamp=timestamp,
    )


def _system_or_404(system: str):
    try:
        return parse_system(system)
    except ConfigurationError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


def _registered_or_404(uow: AbstractUnitOfWork, system: str):
    source_system = _system_or_404(system)
    if source_system not in uow.sources.systems:
        raise HTTPException(status_code=404, detail=f"No source registered for {source_system.value}")
    return source_system


def create_app(uow: Optional[AbstractUnitOfWork] = None) -> FastAPI:
    """Build the API; a unit of work passed in is used instead of one wired from config."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if uow is not None:
            app.state.uow = uow
            yield
            return
        async with SyncUnitOfWork() as owned:
            app.state.uow = owned
            logger.info("EHR sync unit of work ready")
            yield

    app = FastAPI(
        title="EHR Sync API",
        description="Multi-format clinical record synchronization into a FHIR store",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "ehr-sync-api",
            "mock_sources": config.use_mock_sources(),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    @app.post("/api/v1/sync", response_model=SyncAllResponse)
    async def sync_all(request: Request, systems: Optional[List[str]] = Query(None)):
        """Sync every registered source system concurrently."""
        if systems:
            systems = [_system_or_404(s).value for s in systems]
        cmd = PerformSyncAll(systems=systems, item_timeout=config.get_sync_item_timeout())
        [result] = await messagebus.handle(cmd, request.app.state.uow)

        timestamp = datetime.now(timezone.utc).isoformat()
        return SyncAllResponse(
            success=result.success,
            total_synced_resources=result.total_synced_resources,
            results={name: _sync_response(r, timestamp) for name, r in result.results.items()},
            timestamp=timestamp,
        )

    @app.post("/api/v1/sync/{system}", response_model=SyncResponse)
    async def sync_system(system: str, request: Request):
        """
        Sync native records, documents and messages of one source system.

        Partial failures are reported in ``errors``; the call only fails for
        an unknown system.
        """
        source_system = _system_or_404(system)
        cmd = PerformSync(system=source_system.value, item_timeout=config.get_sync_item_timeout())
        try:
            [result] = await messagebus.handle(cmd, request.app.state.uow)
        except ConfigurationError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

        logger.info(f"Sync of {system} finished with {len(result.errors)} errors")
        return _sync_response(result, datetime.now(timezone.utc).isoformat())

    @app.get("/api/v1/sync/events", response_model=SyncEventsResponse)
    async def get_sync_events(request: Request, system: Optional[str] = None,
                              limit: int = Query(20, ge=1, le=100),
                              offset: int = Query(0, ge=0)):
        """
        Page through sync events, newest first.

        Following Cosmic Python pattern: API layer is thin, delegates to views.
        """
        if system:
            _system_or_404(system)
        return await views.get_sync_events(request.app.state.uow, system=system, limit=limit, offset=offset)

    @app.post("/api/v1/mock-data/regenerate", response_model=RegenerateResponse)
    async def regenerate_mock_data(request: Request, body: Optional[RegenerateRequest] = None):
        """Replace the synthetic records served by the mock source systems."""
        body = body or RegenerateRequest()
        active_uow = request.app.state.uow
        systems = [_registered_or_404(active_uow, s).value for s in body.systems] if body.systems else None
        cmd = RegenerateNativeRecords(patient_count=body.patient_count, systems=systems, seed=body.seed)
        try:
            [summary] = await messagebus.handle(cmd, active_uow)
        except ConfigurationError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e

        return RegenerateResponse(
            status="regenerated",
            patient_count=body.patient_count,
            systems=summary,
            regenerated_at=datetime.now(timezone.utc).isoformat(),
        )

    return app


app = create_app()


def main():
    api_config = config.get_api_host_and_port()
    uvicorn.run("ehr_sync.entrypoints.sync_api:app", host=api_config["host"], port=api_config["port"])


if __name__ == "__main__":
    main()
