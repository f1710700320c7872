"""Commands for the EHR sync service."""

from dataclasses import dataclass
from typing import List, Optional

from ehr_sync.domain.base import Command


@dataclass
class PerformSync(Command):
    """Command to synchronize all encodings of one source system."""
    system: str
    item_timeout: Optional[float] = None


@dataclass
class PerformSyncAll(Command):
    """Command to synchronize several source systems concurrently."""
    systems: Optional[List[str]] = None
    item_timeout: Optional[float] = None


@dataclass
class RegenerateNativeRecords(Command):
    """Command to replace the synthetic record set of the mock sources."""
    patient_count: int
    systems: Optional[List[str]] = None
    seed: Optional[int] = None
