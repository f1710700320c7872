"""In-process store backing the synthetic source systems."""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ehr_sync.domain.systems import SourceSystem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SystemSnapshot:
    """Everything one synthetic source system currently serves."""
    records: Tuple = ()
    documents: Tuple = ()
    messages: Tuple = ()


class NativeRecordStore:
    """
    Holds one immutable snapshot per source system.

    Snapshots are swapped whole, so readers see either the old or the new
    record set and never a mix of the two.
    """

    def __init__(self, snapshots: Optional[Dict[SourceSystem, SystemSnapshot]] = None):
        self._lock = threading.Lock()
        self._snapshots: Dict[SourceSystem, SystemSnapshot] = dict(snapshots or {})

    def snapshot(self, system: SourceSystem) -> SystemSnapshot:
        return self._snapshots.get(SourceSystem(system), SystemSnapshot())

    def has_snapshot(self, system: SourceSystem) -> bool:
        return SourceSystem(system) in self._snapshots

    def replace(self, system: SourceSystem, snapshot: SystemSnapshot) -> SystemSnapshot:
        """Atomically replace the snapshot of ``system``, returning the previous one."""
        system = SourceSystem(system)
        with self._lock:
            previous = self._snapshots.get(system, SystemSnapshot())
            self._snapshots[system] = snapshot
        logger.info(
            f"Replaced {system.value} snapshot: {len(previous.records)} -> {len(snapshot.records)} records"
        )
        return previous

    def reset(self, system: Optional[SourceSystem] = None):
        with self._lock:
            if system is None:
                self._snapshots.clear()
            else:
                self._snapshots.pop(SourceSystem(system), None)
