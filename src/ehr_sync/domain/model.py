"""Domain model for sync runs and their audit trail."""

import threading
import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ehr_sync.domain.events import SyncCompleted
from ehr_sync.domain.systems import SourceSystem


class SyncStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class ItemKind(str, Enum):
    PATIENT = "patient"
    ENCOUNTER = "encounter"
    OBSERVATION = "observation"
    DOCUMENT = "document"


class SyncAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


_clock_lock = threading.Lock()
_last_timestamp: Optional[datetime] = None


def _next_timestamp() -> datetime:
    """Wall clock time, strictly increasing within this process."""
    global _last_timestamp
    with _clock_lock:
        now = datetime.now(timezone.utc)
        if _last_timestamp is not None and now <= _last_timestamp:
            now = _last_timestamp + timedelta(microseconds=1)
        _last_timestamp = now
        return now


@dataclass
class SyncEvent:
    """Audit entry for one processed item."""
    id: str
    timestamp: datetime
    system: str
    kind: ItemKind
    action: SyncAction
    resource_id: str
    status: SyncStatus
    details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "system": self.system,
            "type": self.kind.value,
            "action": self.action.value,
            "resourceId": self.resource_id,
            "status": self.status.value,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncEvent":
        return cls(
            id=data["id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            system=data["system"],
            kind=ItemKind(data["type"]),
            action=SyncAction(data["action"]),
            resource_id=data["resourceId"],
            status=SyncStatus(data["status"]),
            details=data.get("details"),
        )


def new_sync_event(system, kind: ItemKind, action: SyncAction, resource_id: str,
                   status: SyncStatus, details: Optional[str] = None) -> SyncEvent:
    """Create a SyncEvent with a fresh id and a monotonic timestamp."""
    return SyncEvent(
        id=f"sync-{uuid.uuid4()}",
        timestamp=_next_timestamp(),
        system=SourceSystem(system).value,
        kind=kind,
        action=action,
        resource_id=resource_id,
        status=status,
        details=details,
    )


@dataclass(frozen=True)
class ItemSucceeded:
    kind: ItemKind
    action: SyncAction
    resource_id: str
    resource_count: int
    resource_types: Dict[str, int] = field(default_factory=dict)
    details: Optional[str] = None


@dataclass(frozen=True)
class ItemFailed:
    """An item that could not be (fully) synced.

    ``resource_count`` keeps entries the store accepted before rejecting
    others.
    """
    kind: ItemKind
    action: SyncAction
    resource_id: str
    error: str
    resource_count: int = 0
    resource_types: Dict[str, int] = field(default_factory=dict)


ItemOutcome = Union[ItemSucceeded, ItemFailed]


@dataclass
class SyncResult:
    system: str
    success: bool
    synced_resources: int
    errors: List[str]
    events: List[SyncEvent]
    resource_summary: Dict[str, int] = field(default_factory=dict)
    elapsed_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "system": self.system,
            "success": self.success,
            "syncedResources": self.synced_resources,
            "errors": list(self.errors),
            "events": [event.to_dict() for event in self.events],
            "resourceSummary": dict(self.resource_summary),
            "elapsedMs": self.elapsed_ms,
        }


@dataclass
class SyncAllResult:
    results: Dict[str, SyncResult]

    @property
    def success(self) -> bool:
        return all(result.success for result in self.results.values())

    @property
    def total_synced_resources(self) -> int:
        return sum(result.synced_resources for result in self.results.values())


class SyncRun:
    """One sync invocation for a single source system.

    Item outcomes are folded into the run as they arrive; a failed item
    never removes counts or events recorded before it.
    """

    def __init__(self, system: SourceSystem):
        self.system = SourceSystem(system)
        self.synced_resources = 0
        self.errors: List[str] = []
        self.sync_events: List[SyncEvent] = []
        self.resource_summary: Counter = Counter()
        self.result: Optional[SyncResult] = None
        self.events: List = []
        self._started = time.monotonic()

    def record(self, outcome: ItemOutcome) -> SyncEvent:
        """Fold an item outcome into the run and return its audit event."""
        self.synced_resources += outcome.resource_count
        self.resource_summary.update(outcome.resource_types)

        if isinstance(outcome, ItemFailed):
            self.errors.append(outcome.error)
            status, details = SyncStatus.FAILED, outcome.error
        else:
            status, details = SyncStatus.SUCCESS, outcome.details

        event = new_sync_event(
            self.system, outcome.kind, outcome.action, outcome.resource_id, status, details
        )
        self.sync_events.append(event)
        return event

    def record_stage_failure(self, stage: str, error: Exception):
        self.errors.append(f"{stage} stage aborted: {error}")

    def complete(self) -> SyncResult:
        """Close the run and raise the summary SyncCompleted event."""
        elapsed_ms = int((time.monotonic() - self._started) * 1000)
        self.result = SyncResult(
            system=self.system.value,
            success=not self.errors,
            synced_resources=self.synced_resources,
            errors=list(self.errors),
            events=list(self.sync_events),
            resource_summary=dict(self.resource_summary),
            elapsed_ms=elapsed_ms,
        )

        self.events.append(
            SyncCompleted(
                system=self.system.value,
                synced_resources=self.synced_resources,
                error_count=len(self.errors),
                elapsed_ms=elapsed_ms,
                success=self.result.success,
                completed_at=datetime.now(timezone.utc),
            )
        )
        return self.result
