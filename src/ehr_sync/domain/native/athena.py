"""Athena Health native records (lower-case concatenated field names)."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ehr_sync.domain.native.base import build, build_list, ensure_mapping


@dataclass
class AthenaPatient:
    patientid: str
    departmentid: str
    firstname: str
    lastname: str
    dob: str  # MM/DD/YYYY
    sex: str  # M, F, O, U
    enterpriseid: Optional[str] = None
    middlename: Optional[str] = None
    preferredname: Optional[str] = None
    ssn: Optional[str] = None
    email: Optional[str] = None
    homephone: Optional[str] = None
    mobilephone: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    countrycode: str = "USA"
    maritalstatus: Optional[str] = None  # SINGLE, MARRIED, DIVORCED, WIDOWED, SEPARATED
    race: Optional[str] = None
    racename: Optional[str] = None
    ethnicity: Optional[str] = None
    ethnicityname: Optional[str] = None
    language6392code: Optional[str] = None
    primaryproviderid: Optional[str] = None
    registrationdate: Optional[str] = None


@dataclass
class AthenaDiagnosis:
    icd10code: str
    description: str
    sequence: int = 1


@dataclass
class AthenaEncounter:
    encounterid: str
    patientid: str
    encountertype: str  # OFFICE, TELEHEALTH, INPATIENT, EMERGENCY, HOME VISIT
    encounterstatus: str  # OPEN, CLOSED, CANCELLED
    encounterdate: str  # MM/DD/YYYY
    departmentid: Optional[str] = None
    providerid: Optional[str] = None
    providerfirstname: Optional[str] = None
    providerlastname: Optional[str] = None
    appointmentid: Optional[str] = None
    closeddatetime: Optional[str] = None
    diagnoses: List[AthenaDiagnosis] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        data = ensure_mapping(cls, data)
        return build(cls, data, diagnoses=build_list(AthenaDiagnosis, data.get("diagnoses")))


@dataclass
class AthenaProblem:
    problemid: str
    patientid: str
    icd10code: str
    name: str
    status: str  # ACTIVE, CHRONIC, RESOLVED, INACTIVE
    snomedcode: Optional[str] = None
    onsetdate: Optional[str] = None
    lastmodifieddatetime: Optional[str] = None
    note: Optional[str] = None


@dataclass
class AthenaAllergy:
    allergyid: str
    patientid: str
    allergenname: str
    allergenid: Optional[str] = None
    status: str = "ACTIVE"  # ACTIVE, INACTIVE
    severity: Optional[str] = None  # MILD, MODERATE, SEVERE
    reactions: List[str] = field(default_factory=list)
    onsetdate: Optional[str] = None


@dataclass
class AthenaMedication:
    medicationid: str
    patientid: str
    medication: str
    medicationcode: Optional[str] = None
    sig: Optional[str] = None
    status: str = "active"  # active, discontinued, completed
    prescribeddatetime: Optional[str] = None
    startdate: Optional[str] = None
    stopdate: Optional[str] = None
    quantity: Optional[float] = None
    quantityunit: Optional[str] = None
    refills: Optional[int] = None


@dataclass
class AthenaVitalReading:
    clinicalelementid: str  # e.g. VITALS.HEARTRATE
    vitalvalue: str
    vitalunits: Optional[str] = None
    vitalname: Optional[str] = None


@dataclass
class AthenaVitals:
    vitalid: str
    patientid: str
    readingdatetime: str  # MM/DD/YYYY HH:MM:SS
    encounterid: Optional[str] = None
    vitals: List[AthenaVitalReading] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        data = ensure_mapping(cls, data)
        return build(cls, data, vitals=build_list(AthenaVitalReading, data.get("vitals")))


@dataclass
class AthenaAnalyte:
    analytename: str
    analytevalue: str
    loinccode: str
    units: Optional[str] = None
    referencerange: Optional[str] = None  # "low-high"
    abnormalflag: Optional[str] = None  # N, L, H, LL, HH


@dataclass
class AthenaLabPanel:
    panelname: str
    loinccode: str
    analytes: List[AthenaAnalyte] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        data = ensure_mapping(cls, data)
        return build(cls, data, analytes=build_list(AthenaAnalyte, data.get("analytes")))


@dataclass
class AthenaLabResult:
    labresultid: str
    patientid: str
    orderid: str
    resultdate: str  # MM/DD/YYYY
    resultstatus: str = "final"
    performinglabname: Optional[str] = None
    orderingproviderid: Optional[str] = None
    panels: List[AthenaLabPanel] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        data = ensure_mapping(cls, data)
        return build(cls, data, panels=build_list(AthenaLabPanel, data.get("panels")))


@dataclass
class AthenaNativeRecord:
    """A patient and all dependent records exported by Athena."""
    patient: AthenaPatient
    encounters: List[AthenaEncounter] = field(default_factory=list)
    problems: List[AthenaProblem] = field(default_factory=list)
    allergies: List[AthenaAllergy] = field(default_factory=list)
    medications: List[AthenaMedication] = field(default_factory=list)
    vitals: List[AthenaVitals] = field(default_factory=list)
    labresults: List[AthenaLabResult] = field(default_factory=list)

    @property
    def local_id(self) -> str:
        return self.patient.patientid

    def dependent_references(self) -> Iterator[Tuple[str, str]]:
        for kind, items, key in (
            ("encounter", self.encounters, "encounterid"),
            ("problem", self.problems, "problemid"),
            ("allergy", self.allergies, "allergyid"),
            ("medication", self.medications, "medicationid"),
            ("vitals", self.vitals, "vitalid"),
            ("labresult", self.labresults, "labresultid"),
        ):
            for item in items:
                yield f"{kind} {getattr(item, key)}", item.patientid

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AthenaNativeRecord":
        data = ensure_mapping(cls, data)
        return build(
            cls, data,
            patient=build(AthenaPatient, data.get("patient")),
            encounters=build_list(AthenaEncounter, data.get("encounters")),
            problems=build_list(AthenaProblem, data.get("problems")),
            allergies=build_list(AthenaAllergy, data.get("allergies")),
            medications=build_list(AthenaMedication, data.get("medications")),
            vitals=build_list(AthenaVitals, data.get("vitals")),
            labresults=build_list(AthenaLabResult, data.get("labresults")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Athena clinical element ids of vital readings, keyed to LOINC
VITAL_ELEMENT_LOINC = {
    "VITALS.HEARTRATE": "8867-4",
    "VITALS.BLOODPRESSURE.SYSTOLIC": "8480-6",
    "VITALS.BLOODPRESSURE.DIASTOLIC": "8462-4",
    "VITALS.TEMPERATURE": "8310-5",
    "VITALS.RESPIRATIONRATE": "9279-1",
    "VITALS.INHALEDO2CONCENTRATION": "2708-6",
    "VITALS.WEIGHT": "29463-7",
    "VITALS.HEIGHT": "8302-2",
}
