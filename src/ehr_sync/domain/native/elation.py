"""Elation Health native records (snake_case, integer ids, nested contacts)."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ehr_sync.domain.native.base import build, build_list, ensure_mapping


@dataclass
class ElationAddress:
    address_line1: str
    city: str
    state: str
    zip: str
    address_line2: Optional[str] = None
    country: str = "US"


@dataclass
class ElationPhone:
    phone: str
    phone_type: str  # Mobile, Home, Work
    is_primary: bool = False


@dataclass
class ElationEmail:
    email: str
    is_primary: bool = False


@dataclass
class ElationPatient:
    id: int
    first_name: str
    last_name: str
    sex: str  # Male, Female, Other, Unknown
    dob: str  # YYYY-MM-DD
    primary_physician: int
    caregiver_practice: int
    middle_name: Optional[str] = None
    ssn: Optional[str] = None
    race: Optional[str] = None  # OMB category text
    ethnicity: Optional[str] = None
    preferred_language: Optional[str] = None
    marital_status: Optional[str] = None  # Single, Married, Divorced, Widowed, Separated
    status: str = "active"
    address: Optional[ElationAddress] = None
    phones: List[ElationPhone] = field(default_factory=list)
    emails: List[ElationEmail] = field(default_factory=list)
    created_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data):
        data = ensure_mapping(cls, data)
        address = data.get("address")
        return build(
            cls, data,
            address=build(ElationAddress, address) if address else None,
            phones=build_list(ElationPhone, data.get("phones")),
            emails=build_list(ElationEmail, data.get("emails")),
        )


@dataclass
class ElationDiagnosisCode:
    code: str
    description: str
    rank: int = 1


@dataclass
class ElationVitals:
    bp_systolic: Optional[int] = None
    bp_diastolic: Optional[int] = None
    heart_rate: Optional[int] = None
    respiratory_rate: Optional[int] = None
    temperature: Optional[float] = None  # degF
    weight: Optional[float] = None  # lb
    height: Optional[float] = None  # in
    bmi: Optional[float] = None
    oxygen_saturation: Optional[int] = None


@dataclass
class ElationVisitNote:
    id: int
    patient: int
    physician: int
    document_date: str  # ISO datetime
    visit_type: str  # Office Visit, Telehealth, Annual Physical, Follow-up, Urgent
    status: str = "Completed"  # Scheduled, Confirmed, Checked In, Roomed, In Progress, Completed, Cancelled, No Show
    chief_complaint: Optional[str] = None
    assessment: Optional[str] = None
    plan: Optional[str] = None
    signed_date: Optional[str] = None
    icd10_codes: List[ElationDiagnosisCode] = field(default_factory=list)
    vitals: Optional[ElationVitals] = None

    @classmethod
    def from_dict(cls, data):
        data = ensure_mapping(cls, data)
        vitals = data.get("vitals")
        return build(
            cls, data,
            icd10_codes=build_list(ElationDiagnosisCode, data.get("icd10_codes")),
            vitals=build(ElationVitals, vitals) if vitals else None,
        )


@dataclass
class ElationProblem:
    id: int
    patient: int
    icd10_code: str
    description: str
    status: str  # Active, Resolved, Inactive
    onset_date: Optional[str] = None
    resolved_date: Optional[str] = None
    snomed_code: Optional[str] = None


@dataclass
class ElationAllergy:
    id: int
    patient: int
    name: str
    status: str = "Active"  # Active, Inactive
    allergen_type: Optional[str] = None  # Drug, Food, Environmental
    reaction: Optional[str] = None
    severity: Optional[str] = None  # Mild, Moderate, Severe
    snomed_code: Optional[str] = None
    start_date: Optional[str] = None


@dataclass
class ElationMedication:
    id: int
    patient: int
    medication_name: str
    status: str = "Active"  # Active, Completed, Discontinued
    rxnorm_cui: Optional[str] = None
    sig: Optional[str] = None
    quantity: Optional[float] = None
    refills: Optional[int] = None
    prescribing_physician: Optional[int] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


@dataclass
class ElationLabResult:
    test_name: str
    loinc_code: str
    value: str
    units: Optional[str] = None
    reference_range: Optional[str] = None
    abnormal_flag: Optional[str] = None  # N, L, H


@dataclass
class ElationLabOrder:
    id: int
    patient: int
    ordering_physician: int
    order_date: str
    panel_name: str
    panel_loinc: str
    status: str = "Resulted"  # Pending, Resulted, Cancelled
    lab_name: Optional[str] = None
    resulted_date: Optional[str] = None
    results: List[ElationLabResult] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        data = ensure_mapping(cls, data)
        return build(cls, data, results=build_list(ElationLabResult, data.get("results")))


@dataclass
class ElationNativeRecord:
    """A patient and all dependent records exported by Elation."""
    patient: ElationPatient
    visit_notes: List[ElationVisitNote] = field(default_factory=list)
    problems: List[ElationProblem] = field(default_factory=list)
    allergies: List[ElationAllergy] = field(default_factory=list)
    medications: List[ElationMedication] = field(default_factory=list)
    lab_orders: List[ElationLabOrder] = field(default_factory=list)

    @property
    def local_id(self) -> str:
        return str(self.patient.id)

    def dependent_references(self) -> Iterator[Tuple[str, str]]:
        for kind, items in (
            ("visit note", self.visit_notes),
            ("problem", self.problems),
            ("allergy", self.allergies),
            ("medication", self.medications),
            ("lab order", self.lab_orders),
        ):
            for item in items:
                yield f"{kind} {item.id}", str(item.patient)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ElationNativeRecord":
        data = ensure_mapping(cls, data)
        return build(
            cls, data,
            patient=ElationPatient.from_dict(data.get("patient")),
            visit_notes=build_list(ElationVisitNote, data.get("visit_notes")),
            problems=build_list(ElationProblem, data.get("problems")),
            allergies=build_list(ElationAllergy, data.get("allergies")),
            medications=build_list(ElationMedication, data.get("medications")),
            lab_orders=build_list(ElationLabOrder, data.get("lab_orders")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
