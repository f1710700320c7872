"""Builds a complete synthetic snapshot (records, documents, messages) per system."""

import logging
from typing import Callable, Dict, Optional

from ehr_sync.adapters.native_store import SystemSnapshot
from ehr_sync.domain.systems import SYSTEM_INFO, SourceSystem
from ehr_sync.generators.athena import generate_athena_records
from ehr_sync.generators.common import SyntheticDataFactory
from ehr_sync.generators.documents import generate_clinical_documents
from ehr_sync.generators.elation import generate_elation_records
from ehr_sync.generators.messages import generate_interface_messages
from ehr_sync.generators.nextgen import generate_nextgen_records

logger = logging.getLogger(__name__)

RECORD_GENERATORS: Dict[SourceSystem, Callable] = {
    SourceSystem.ATHENA: generate_athena_records,
    SourceSystem.ELATION: generate_elation_records,
    SourceSystem.NEXTGEN: generate_nextgen_records,
}


def generate_snapshot(system: SourceSystem, patient_count: int, document_count: int = 3,
                      message_count: int = 5, seed: Optional[int] = None) -> SystemSnapshot:
    factory = SyntheticDataFactory(seed)
    info = SYSTEM_INFO[system]
    snapshot = SystemSnapshot(
        records=tuple(RECORD_GENERATORS[system](patient_count, factory=factory)),
        documents=tuple(generate_clinical_documents(document_count, info.mrn_prefix, factory=factory)),
        messages=tuple(generate_interface_messages(
            message_count, f"{system.value.upper()}_EHR", info.sending_facility,
            info.mrn_prefix, factory=factory,
        )),
    )
    logger.info(
        f"Generated {system.value} snapshot: {len(snapshot.records)} patients, "
        f"{len(snapshot.documents)} documents, {len(snapshot.messages)} messages"
    )
    return snapshot
