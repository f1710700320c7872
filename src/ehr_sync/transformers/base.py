"""
Building blocks shared by the per-system transformers.

Every canonical resource built here carries exactly one provenance tag and
one identifier in the ``urn:<system>:<resourceType>`` namespace. Entries
are conditional upserts keyed on that identifier, so re-syncing a record
updates the stored resource instead of duplicating it.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from ehr_sync.codes import CDC_RACE_ETHNICITY, OBSERVATION_CATEGORY, UCUM, coding
from ehr_sync.domain.bundle import BundleEntry, TransactionBundle
from ehr_sync.domain.errors import TransformError
from ehr_sync.domain.systems import SourceSystem, provenance_tag

US_CORE_RACE = "http://hl7.org/fhir/us/core/StructureDefinition/us-core-race"
US_CORE_ETHNICITY = "http://hl7.org/fhir/us/core/StructureDefinition/us-core-ethnicity"
LANGUAGE_SYSTEM = "urn:ietf:bcp:47"


def identifier_system(system: SourceSystem, resource_type: str) -> str:
    return f"urn:{SourceSystem(system).value}:{resource_type}"


def identifier(system: SourceSystem, resource_type: str, local_id) -> Dict[str, str]:
    return {"system": identifier_system(system, resource_type), "value": str(local_id)}


def resource_uuid(system: SourceSystem, resource_type: str, local_id) -> str:
    """Stable UUID of a native record, used as its bundle fullUrl."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{identifier_system(system, resource_type)}|{local_id}"))


def canonical_resource(system: SourceSystem, resource_type: str, local_id,
                       **content) -> Dict[str, Any]:
    resource: Dict[str, Any] = {
        "resourceType": resource_type,
        "meta": {"tag": [provenance_tag(system)]},
        "identifier": [identifier(system, resource_type, local_id)],
    }
    resource.update({key: value for key, value in content.items() if value not in (None, [], {}, "")})
    return resource


class BundleBuilder:
    """Accumulates canonical resources of one source system into a transaction bundle."""

    def __init__(self, system: SourceSystem):
        self.system = SourceSystem(system)
        self.bundle = TransactionBundle()

    def add(self, resource_type: str, local_id, **content) -> BundleEntry:
        if local_id in (None, ""):
            raise TransformError(f"{resource_type} without a native id")
        resource = canonical_resource(self.system, resource_type, local_id, **content)
        ident = resource["identifier"][0]
        return self.bundle.add(BundleEntry(
            resource=resource,
            method="PUT",
            url=f"{resource_type}?identifier={ident['system']}|{ident['value']}",
            full_url=f"urn:uuid:{resource_uuid(self.system, resource_type, local_id)}",
        ))

    @staticmethod
    def reference(entry: BundleEntry, display: Optional[str] = None) -> Dict[str, Any]:
        ref: Dict[str, Any] = {
            "reference": entry.full_url,
            "type": entry.resource_type,
            "identifier": dict(entry.resource["identifier"][0]),
        }
        if display:
            ref["display"] = display
        return ref


def require(record, *names: str):
    """Raise TransformError if any of ``names`` is missing or empty on ``record``."""
    missing = [name for name in names if getattr(record, name, None) in (None, "")]
    if missing:
        raise TransformError(f"{type(record).__name__}: missing required field(s) {', '.join(missing)}")


def check_dependents(record):
    """Every dependent must reference the root record it is shipped with."""
    for label, patient_ref in record.dependent_references():
        if str(patient_ref) != str(record.local_id):
            raise TransformError(
                f"{label} references patient {patient_ref}, expected {record.local_id}"
            )


def parse_datetime(value, formats: Iterable[str] = ()) -> Optional[datetime]:
    """Parse ISO or any of ``formats``; unparseable values yield None."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def fhir_date(value, formats: Iterable[str] = ()) -> Optional[str]:
    parsed = parse_datetime(value, formats)
    return parsed.date().isoformat() if parsed else None


def fhir_datetime(value, formats: Iterable[str] = ()) -> Optional[str]:
    parsed = parse_datetime(value, formats)
    return parsed.isoformat() if parsed else None


def to_float(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def quantity(value, unit: Optional[str]) -> Optional[Dict[str, Any]]:
    number = to_float(value)
    if number is None:
        return None
    result: Dict[str, Any] = {"value": number}
    if unit:
        result.update(unit=unit, system=UCUM, code=unit)
    return result


def reference_range(low, high, unit: Optional[str] = None) -> Optional[list]:
    low, high = to_float(low), to_float(high)
    if low is None and high is None:
        return None
    entry = {}
    if low is not None:
        entry["low"] = quantity(low, unit)
    if high is not None:
        entry["high"] = quantity(high, unit)
    return [entry]


def split_range(text: Optional[str]):
    """Split a ``low-high`` reference range string."""
    if not text or "-" not in str(text):
        return None, None
    low, _, high = str(text).partition("-")
    return to_float(low), to_float(high)


def category(system_url: str, code: str, display: Optional[str] = None) -> list:
    return [{"coding": [coding(system_url, code, display)]}]


def observation_category(code: str) -> list:
    displays = {"vital-signs": "Vital Signs", "laboratory": "Laboratory"}
    return category(OBSERVATION_CATEGORY, code, displays.get(code))


def human_name(family, given, middle=None, use="official") -> list:
    return [{"use": use, "family": family, "given": [name for name in (given, middle) if name]}]


def telecom(phone=None, mobile=None, email=None) -> list:
    points = []
    if phone:
        points.append({"system": "phone", "value": phone, "use": "home"})
    if mobile:
        points.append({"system": "phone", "value": mobile, "use": "mobile"})
    if email:
        points.append({"system": "email", "value": email})
    return points


def address(line1, city, state, postal_code, country=None, line2=None) -> list:
    if not any((line1, city, state, postal_code)):
        return []
    result = {"use": "home", "line": [line for line in (line1, line2) if line]}
    result.update({k: v for k, v in (("city", city), ("state", state), ("postalCode", postal_code),
                                      ("country", country)) if v})
    return [result]


def communication(language: Optional[str]) -> list:
    if not language:
        return []
    return [{"language": {"coding": [coding(LANGUAGE_SYSTEM, language)]}}]


def race_ethnicity_extensions(race_code=None, race_display=None,
                              ethnicity_code=None, ethnicity_display=None) -> list:
    extensions = []
    for url, code, display in ((US_CORE_RACE, race_code, race_display),
                               (US_CORE_ETHNICITY, ethnicity_code, ethnicity_display)):
        if code or display:
            sub = [{"url": "text", "valueString": display or code}]
            if code:
                sub.insert(0, {"url": "ombCategory", "valueCoding": coding(CDC_RACE_ETHNICITY, code, display)})
            extensions.append({"url": url, "extension": sub})
    return extensions
