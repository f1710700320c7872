"""Declarative grammar of the pipe-delimited interface messages.

Field positions are the indexes obtained when splitting a segment on the
field separator, so position 0 is always the segment id. For MSH this is
one less than the standard HL7 numbering because MSH-1 is the separator
itself (``MSH-9`` message type lives at position 8).
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Iterable, Tuple

SEGMENT_SEPARATOR = "\r"
FIELD_SEPARATOR = "|"
COMPONENT_SEPARATOR = "^"
REPETITION_SEPARATOR = "~"
ESCAPE_CHARACTER = "\\"
SUBCOMPONENT_SEPARATOR = "&"
ENCODING_CHARACTERS = (
    COMPONENT_SEPARATOR + REPETITION_SEPARATOR + ESCAPE_CHARACTER + SUBCOMPONENT_SEPARATOR
)

VERSION_ID = "2.5.1"
PROCESSING_ID = "P"


@dataclass(frozen=True)
class FieldSpec:
    position: int
    name: str
    composite: bool = False


@dataclass(frozen=True)
class SegmentSpec:
    """Fixed field table of one segment type."""
    segment_id: str
    length: int
    fields: Tuple[FieldSpec, ...]

    def __post_init__(self):
        for spec in self.fields:
            if not 0 < spec.position < self.length:
                raise ValueError(
                    f"{self.segment_id}.{spec.name}: position {spec.position} outside 1..{self.length - 1}"
                )

    def field(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(f"{self.segment_id} has no field {name!r}")


def _segment(segment_id: str, length: int, *fields: Tuple) -> SegmentSpec:
    return SegmentSpec(segment_id, length, tuple(FieldSpec(*f) for f in fields))


MSH = _segment(
    "MSH", 12,
    (1, "encoding_characters"),
    (2, "sending_application"),
    (3, "sending_facility"),
    (4, "receiving_application"),
    (5, "receiving_facility"),
    (6, "date_time_of_message"),
    (7, "security"),
    (8, "message_type", True),
    (9, "message_control_id"),
    (10, "processing_id"),
    (11, "version_id"),
)

EVN = _segment(
    "EVN", 7,
    (1, "event_type_code"),
    (2, "recorded_date_time"),
    (6, "event_occurred"),
)

PID = _segment(
    "PID", 31,
    (1, "set_id"),
    (3, "patient_identifier_list", True),
    (5, "patient_name", True),
    (7, "date_of_birth"),
    (8, "administrative_sex"),
    (10, "race", True),
    (11, "patient_address", True),
    (13, "phone_home", True),
    (15, "primary_language"),
    (16, "marital_status", True),
    (18, "patient_account_number"),
    (19, "ssn"),
    (22, "ethnic_group", True),
)

PV1 = _segment(
    "PV1", 52,
    (1, "set_id"),
    (2, "patient_class"),
    (3, "assigned_patient_location", True),
    (7, "attending_doctor", True),
    (19, "visit_number"),
    (44, "admit_date_time"),
    (45, "discharge_date_time"),
    (51, "visit_indicator"),
)

DG1 = _segment(
    "DG1", 16,
    (1, "set_id"),
    (2, "diagnosis_coding_method"),
    (3, "diagnosis_code", True),
    (4, "diagnosis_description"),
    (5, "diagnosis_date_time"),
    (6, "diagnosis_type"),
    (15, "diagnosis_priority"),
)

ORC = _segment(
    "ORC", 16,
    (1, "order_control"),
    (2, "placer_order_number"),
    (3, "filler_order_number"),
    (5, "order_status"),
    (12, "ordering_provider", True),
)

OBR = _segment(
    "OBR", 26,
    (1, "set_id"),
    (2, "placer_order_number"),
    (3, "filler_order_number"),
    (4, "universal_service_identifier", True),
    (7, "observation_date_time"),
    (16, "ordering_provider", True),
    (25, "result_status"),
)

OBX = _segment(
    "OBX", 18,
    (1, "set_id"),
    (2, "value_type"),
    (3, "observation_identifier", True),
    (4, "observation_sub_id"),
    (5, "observation_value"),
    (6, "units"),
    (7, "references_range"),
    (8, "abnormal_flags"),
    (11, "observation_result_status"),
    (14, "date_time_of_observation"),
)

NTE = _segment(
    "NTE", 4,
    (1, "set_id"),
    (2, "source_of_comment"),
    (3, "comment"),
)

SEGMENTS: Dict[str, SegmentSpec] = {
    spec.segment_id: spec for spec in (MSH, EVN, PID, PV1, DG1, ORC, OBR, OBX, NTE)
}


@lru_cache(maxsize=None)
def _structure_pattern(structure: str):
    # [X] optional, {X} repeating, as in the HL7 abstract message syntax
    pattern = re.sub(r"[A-Z][A-Z0-9]{2}", lambda m: f"(?:{m.group()};)", structure)
    pattern = (pattern.replace("[", "(?:").replace("]", ")?")
               .replace("{", "(?:").replace("}", ")+").replace(" ", ""))
    return re.compile(pattern)


@dataclass(frozen=True)
class MessageProfile:
    message_type: str
    trigger_event: str
    description: str
    structure: str

    @property
    def code(self) -> str:
        return f"{self.message_type}{COMPONENT_SEPARATOR}{self.trigger_event}"

    def matches(self, segment_ids: Iterable[str]) -> bool:
        sequence = "".join(f"{segment_id};" for segment_id in segment_ids)
        return _structure_pattern(self.structure).fullmatch(sequence) is not None


PROFILES: Dict[str, MessageProfile] = {
    profile.code: profile for profile in (
        MessageProfile("ADT", "A01", "Admit/visit notification", "MSH EVN PID PV1 [DG1]"),
        MessageProfile("ADT", "A08", "Update patient information", "MSH EVN PID PV1"),
        MessageProfile("ORU", "R01", "Unsolicited observation result", "MSH PID ORC OBR {OBX [NTE]}"),
    )
}
