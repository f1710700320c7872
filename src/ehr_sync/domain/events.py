"""Domain events for the EHR sync service."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from ehr_sync.domain.base import Event


@dataclass
class SyncCompleted(Event):
    """Event raised once per system sync run, regardless of its outcome."""
    system: str
    synced_resources: int
    error_count: int
    elapsed_ms: int
    success: bool
    completed_at: datetime


@dataclass
class NativeRecordsRegenerated(Event):
    """Event raised when the synthetic native record set has been replaced."""
    systems: List[str] = field(default_factory=list)
    patient_count: int = 0
