"""Source system definitions and provenance conventions."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict

from ehr_sync.domain.errors import ConfigurationError

PROVENANCE_SYSTEM = "https://ehr-sync.io/fhir/CodeSystem/ehr-source"


class SourceSystem(str, Enum):
    ATHENA = "athena"
    ELATION = "elation"
    NEXTGEN = "nextgen"


class Encoding(str, Enum):
    """Encodings a source system can expose its records in."""
    NATIVE_JSON = "native-json"
    DOCUMENT = "document"
    MESSAGE = "message"


@dataclass(frozen=True)
class SourceSystemInfo:
    code: str
    display: str
    mrn_prefix: str
    sending_facility: str


SYSTEM_INFO: Dict[SourceSystem, SourceSystemInfo] = {
    SourceSystem.ATHENA: SourceSystemInfo("athena", "Athena Health", "ATH", "ATHENA_FACILITY"),
    SourceSystem.ELATION: SourceSystemInfo("elation", "Elation Health", "ELA", "ELATION_FACILITY"),
    SourceSystem.NEXTGEN: SourceSystemInfo("nextgen", "NextGen Healthcare", "NXG", "NEXTGEN_FACILITY"),
}


def parse_system(value) -> SourceSystem:
    """Resolve a system key, raising ConfigurationError for unknown keys."""
    if isinstance(value, SourceSystem):
        return value
    try:
        return SourceSystem(str(value).lower())
    except ValueError as e:
        raise ConfigurationError(f"Unknown source system: {value!r}") from e


def provenance_tag(system) -> Dict[str, str]:
    """Tag naming the source system a canonical resource was derived from."""
    info = SYSTEM_INFO[parse_system(system)]
    return {
        "system": PROVENANCE_SYSTEM,
        "code": info.code,
        "display": info.display,
    }
