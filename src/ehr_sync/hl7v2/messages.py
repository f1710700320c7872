"""Construction of admit, update and lab-result interface messages."""

import itertools
import random
import re
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from ehr_sync.codes import (
    ADMINISTRATIVE_SEX,
    ETHNICITY,
    INTERPRETATION,
    MARITAL_STATUS,
    PATIENT_CLASS,
    RACE,
)
from ehr_sync.hl7v2 import grammar
from ehr_sync.hl7v2.encoding import (
    MessageError,
    ParsedMessage,
    decode,
    encode_segment,
    format_date,
    format_timestamp,
    validate,
)

DEFAULT_RECEIVING_APPLICATION = "EHR_SYNC"
DEFAULT_RECEIVING_FACILITY = "EHR_SYNC_FACILITY"
PATIENT_ID_AUTHORITY_OID = "2.16.840.1.113883.4.3"


class MessageType(str, Enum):
    ADT_A01 = "ADT_A01"
    ADT_A08 = "ADT_A08"
    ORU_R01 = "ORU_R01"

    @property
    def code(self) -> str:
        return self.value.replace("_", grammar.COMPONENT_SEPARATOR)


@dataclass
class PatientIdentity:
    local_id: str
    mrn: str
    family_name: str
    given_name: str
    birth_date: date
    gender: str  # male, female, other, unknown
    middle_name: Optional[str] = None
    race_code: Optional[str] = None
    ethnicity_code: Optional[str] = None
    marital_status: Optional[str] = None
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "USA"
    phone: Optional[str] = None
    language: str = "en"
    ssn: Optional[str] = None


@dataclass
class Practitioner:
    id: str
    family_name: str
    given_name: str
    npi: str = ""


@dataclass
class Facility:
    id: str
    name: str


@dataclass
class VisitInfo:
    visit_number: str
    encounter_class: str  # AMB, EMER, IMP, VR
    status: str  # planned, in-progress, finished
    start: datetime
    attending: Practitioner
    facility: Facility
    end: Optional[datetime] = None


@dataclass
class CodedDiagnosis:
    code: str
    display: str
    priority: int = 1


@dataclass
class LabOrder:
    placer_number: str
    filler_number: str
    panel_code: str
    panel_name: str
    ordering_provider: Practitioner


@dataclass
class LabObservation:
    code: str
    display: str
    value: float
    unit: str
    low: Optional[float] = None
    high: Optional[float] = None
    interpretation: str = "N"  # N, L, H, LL, HH, A

    @property
    def flag(self) -> str:
        # unknown flags resolve to N
        return INTERPRETATION.resolve(self.interpretation)[0]

    @property
    def is_abnormal(self) -> bool:
        return self.flag != "N"

    @property
    def comment(self) -> str:
        if self.flag in ("H", "HH"):
            return "Result above normal range. Please review."
        if self.flag in ("L", "LL"):
            return "Result below normal range. Please review."
        return "Result outside normal range. Please review."


@dataclass
class InterfaceMessage:
    """An encoded message together with the metadata of its header."""
    message_type: MessageType
    control_id: str
    raw: str
    timestamp: datetime
    patient_id: Optional[str] = None
    segments: List[str] = field(default_factory=list)

    def parse(self) -> ParsedMessage:
        return decode(self.raw)

    @classmethod
    def from_raw(cls, raw: str) -> "InterfaceMessage":
        """Build from raw text, validating it against its message profile."""
        parsed = decode(raw)
        profile = validate(parsed)
        pid = parsed.segment("PID")
        return cls(
            message_type=MessageType(f"{profile.message_type}_{profile.trigger_event}"),
            control_id=parsed.control_id,
            raw=raw,
            timestamp=parsed.timestamp or datetime.now(timezone.utc),
            patient_id=pid.value("patient_account_number") if pid else None,
            segments=[grammar.FIELD_SEPARATOR.join(s.fields) for s in parsed.segments],
        )


_control_sequence = itertools.count(random.randrange(10000))


def next_control_id(now: Optional[float] = None) -> str:
    """Time prefix plus a rolling four digit suffix, unique within the process."""
    millis = int((time.time() if now is None else now) * 1000)
    return f"MSG{millis}{next(_control_sequence) % 10000:04d}"


def _number(value) -> str:
    if value is None:
        return ""
    value = float(value)
    return str(int(value)) if value.is_integer() else f"{round(value, 4)}"


class InterfaceMessageEncoder:
    """Builds messages for one sending application and facility."""

    def __init__(self, sending_application: str, sending_facility: str,
                 receiving_application: str = DEFAULT_RECEIVING_APPLICATION,
                 receiving_facility: str = DEFAULT_RECEIVING_FACILITY,
                 clock: Optional[Callable[[], datetime]] = None):
        self.sending_application = sending_application
        self.sending_facility = sending_facility
        self.receiving_application = receiving_application
        self.receiving_facility = receiving_facility
        self.clock = clock or datetime.now

    def admit(self, patient: PatientIdentity, visit: VisitInfo,
              diagnosis: Optional[CodedDiagnosis] = None) -> InterfaceMessage:
        """ADT^A01: MSH, EVN, PID, PV1 and an optional DG1."""
        segments = [
            self._event(MessageType.ADT_A01, visit.start),
            self._patient(patient),
            self._visit(visit),
        ]
        if diagnosis is not None:
            segments.append(self._diagnosis(diagnosis, visit.start))
        return self._build(MessageType.ADT_A01, patient, segments)

    def update(self, patient: PatientIdentity, visit: VisitInfo) -> InterfaceMessage:
        """ADT^A08: MSH, EVN, PID, PV1."""
        segments = [
            self._event(MessageType.ADT_A08, self.clock()),
            self._patient(patient),
            self._visit(visit),
        ]
        return self._build(MessageType.ADT_A08, patient, segments)

    def lab_result(self, patient: PatientIdentity, order: LabOrder,
                   observations: List[LabObservation],
                   observed_at: Optional[datetime] = None) -> InterfaceMessage:
        """ORU^R01 with one OBX per observation and an NTE after each abnormal one."""
        if not observations:
            raise MessageError("A lab result message needs at least one observation")

        observed_at = observed_at or self.clock()
        provider = order.ordering_provider
        provider_name = (provider.id, provider.family_name, provider.given_name)
        segments = [
            self._patient(patient),
            encode_segment(grammar.ORC, {
                "order_control": "RE",
                "placer_order_number": order.placer_number,
                "filler_order_number": order.filler_number,
                "order_status": "CM",
                "ordering_provider": provider_name,
            }),
            encode_segment(grammar.OBR, {
                "set_id": "1",
                "placer_order_number": order.placer_number,
                "filler_order_number": order.filler_number,
                "universal_service_identifier": (order.panel_code, order.panel_name, "LN"),
                "observation_date_time": format_timestamp(observed_at),
                "ordering_provider": provider_name,
                "result_status": "F",
            }),
        ]

        notes = 0
        for index, observation in enumerate(observations, start=1):
            segments.append(encode_segment(grammar.OBX, {
                "set_id": str(index),
                "value_type": "NM",
                "observation_identifier": (observation.code, observation.display, "LN"),
                "observation_value": _number(observation.value),
                "units": observation.unit,
                "references_range": (
                    f"{_number(observation.low)}-{_number(observation.high)}"
                    if observation.low is not None and observation.high is not None else ""
                ),
                "abnormal_flags": observation.flag,
                "observation_result_status": "F",
                "date_time_of_observation": format_timestamp(observed_at),
            }))
            if observation.is_abnormal:
                notes += 1
                segments.append(encode_segment(grammar.NTE, {
                    "set_id": str(notes),
                    "source_of_comment": "L",
                    "comment": observation.comment,
                }))
        return self._build(MessageType.ORU_R01, patient, segments)

    def _build(self, message_type: MessageType, patient: PatientIdentity,
               body: List[str]) -> InterfaceMessage:
        timestamp = self.clock()
        control_id = next_control_id()
        header = encode_segment(grammar.MSH, {
            "sending_application": self.sending_application,
            "sending_facility": self.sending_facility,
            "receiving_application": self.receiving_application,
            "receiving_facility": self.receiving_facility,
            "date_time_of_message": format_timestamp(timestamp),
            "message_type": tuple(message_type.code.split(grammar.COMPONENT_SEPARATOR)),
            "message_control_id": control_id,
            "processing_id": grammar.PROCESSING_ID,
            "version_id": grammar.VERSION_ID,
        })
        segments = [header] + body
        raw = grammar.SEGMENT_SEPARATOR.join(segments)

        profile = grammar.PROFILES[message_type.code]
        segment_ids = [segment.split(grammar.FIELD_SEPARATOR, 1)[0] for segment in segments]
        if not profile.matches(segment_ids):
            raise MessageError(f"Built {message_type.code} does not match {profile.structure}")

        return InterfaceMessage(
            message_type=message_type,
            control_id=control_id,
            raw=raw,
            timestamp=timestamp,
            patient_id=patient.local_id,
            segments=segments,
        )

    def _event(self, message_type: MessageType, occurred: datetime) -> str:
        return encode_segment(grammar.EVN, {
            "event_type_code": message_type.code.split(grammar.COMPONENT_SEPARATOR)[1],
            "recorded_date_time": format_timestamp(self.clock()),
            "event_occurred": format_timestamp(occurred),
        })

    def _patient(self, patient: PatientIdentity) -> str:
        name = [patient.family_name, patient.given_name]
        if patient.middle_name:
            name.append(patient.middle_name)
        race_code, race_display = RACE.resolve(patient.race_code)
        ethnicity_code, ethnicity_display = ETHNICITY.resolve(patient.ethnicity_code)
        marital_code, marital_display = MARITAL_STATUS.resolve(patient.marital_status)
        return encode_segment(grammar.PID, {
            "set_id": "1",
            "patient_identifier_list": (
                patient.mrn, "", "",
                (patient.mrn[:3], PATIENT_ID_AUTHORITY_OID, "ISO"),
                "MR",
            ),
            "patient_name": tuple(name),
            "date_of_birth": format_date(patient.birth_date),
            "administrative_sex": ADMINISTRATIVE_SEX.lookup(patient.gender),
            "race": (race_code, race_display, "HL70005"),
            "patient_address": (
                patient.street, "", patient.city, patient.state,
                patient.postal_code, patient.country,
            ),
            "phone_home": (re.sub(r"\D", "", patient.phone), "PRN", "PH") if patient.phone else "",
            "primary_language": patient.language,
            "marital_status": (marital_code, marital_display, "HL70002"),
            "patient_account_number": patient.local_id,
            "ssn": (patient.ssn or "").replace("-", ""),
            "ethnic_group": (ethnicity_code, ethnicity_display, "HL70189"),
        })

    def _visit(self, visit: VisitInfo) -> str:
        attending = visit.attending
        return encode_segment(grammar.PV1, {
            "set_id": "1",
            "patient_class": PATIENT_CLASS.lookup(visit.encounter_class),
            "assigned_patient_location": (visit.facility.name, "", "", visit.facility.id),
            "attending_doctor": (
                attending.id, attending.family_name, attending.given_name,
                "", "", "", "", "", attending.npi,
            ),
            "visit_number": visit.visit_number,
            "admit_date_time": format_timestamp(visit.start),
            "discharge_date_time": format_timestamp(visit.end),
            "visit_indicator": "V" if visit.status == "finished" else "A",
        })

    def _diagnosis(self, diagnosis: CodedDiagnosis, recorded: datetime) -> str:
        return encode_segment(grammar.DG1, {
            "set_id": "1",
            "diagnosis_coding_method": "ICD10",
            "diagnosis_code": (diagnosis.code, diagnosis.display, "ICD10"),
            "diagnosis_description": diagnosis.display,
            "diagnosis_date_time": format_timestamp(recorded),
            "diagnosis_type": "A",
            "diagnosis_priority": str(diagnosis.priority),
        })
