"""Record types a source system exposes, one per encoding."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Type, Union

from ehr_sync.domain.native.athena import AthenaNativeRecord
from ehr_sync.domain.native.elation import ElationNativeRecord
from ehr_sync.domain.native.nextgen import NextGenNativeRecord
from ehr_sync.domain.systems import SourceSystem

NativeRecord = Union[AthenaNativeRecord, ElationNativeRecord, NextGenNativeRecord]

NATIVE_RECORD_TYPES: Dict[SourceSystem, Type] = {
    SourceSystem.ATHENA: AthenaNativeRecord,
    SourceSystem.ELATION: ElationNativeRecord,
    SourceSystem.NEXTGEN: NextGenNativeRecord,
}

# C-CDA document template OIDs
DOCUMENT_TEMPLATES = {
    "CCD": "2.16.840.1.113883.10.20.22.1.2",
    "DischargeSummary": "2.16.840.1.113883.10.20.22.1.8",
    "ProgressNote": "2.16.840.1.113883.10.20.22.1.9",
}


@dataclass
class ClinicalDocument:
    """XML clinical document as delivered by a source system."""
    document_id: str
    template_type: str  # CCD, DischargeSummary, ProgressNote
    xml: str
    patient_id: Optional[str] = None
    created_at: Optional[datetime] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def template_oid(self) -> Optional[str]:
        return DOCUMENT_TEMPLATES.get(self.template_type)
