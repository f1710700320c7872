"""NextGen Healthcare native records (person based, code oriented)."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ehr_sync.domain.native.base import build, build_list, ensure_mapping


@dataclass
class NextGenAddress:
    address_line_1: str
    city: str
    state_code: str
    postal_code: str
    address_line_2: Optional[str] = None
    country_code: str = "USA"
    address_type: str = "Home"


@dataclass
class NextGenPatient:
    person_id: str
    practice_id: str
    first_name: str
    last_name: str
    date_of_birth: str  # YYYY-MM-DD
    gender: str  # M, F, O, U
    medical_record_number: str
    enterprise_id: Optional[str] = None
    middle_name: Optional[str] = None
    preferred_name: Optional[str] = None
    ssn: Optional[str] = None
    email_address: Optional[str] = None
    home_phone: Optional[str] = None
    mobile_phone: Optional[str] = None
    marital_status_code: Optional[str] = None  # S, M, D, W, A, U
    race_code: Optional[str] = None
    ethnicity_code: Optional[str] = None
    language_code: Optional[str] = None
    patient_status: str = "Active"
    address: Optional[NextGenAddress] = None

    @classmethod
    def from_dict(cls, data):
        data = ensure_mapping(cls, data)
        address = data.get("address")
        return build(cls, data, address=build(NextGenAddress, address) if address else None)


@dataclass
class NextGenDiagnosis:
    icd_code: str
    description: str
    icd_version: str = "10"
    sequence_number: int = 1
    diagnosis_type: str = "Primary"


@dataclass
class NextGenVitals:
    vitals_id: str
    recorded_date: str
    height_inches: Optional[float] = None
    weight_lbs: Optional[float] = None
    bmi: Optional[float] = None
    blood_pressure_systolic: Optional[int] = None
    blood_pressure_diastolic: Optional[int] = None
    pulse_rate: Optional[int] = None
    respiratory_rate: Optional[int] = None
    temperature_fahrenheit: Optional[float] = None
    oxygen_saturation: Optional[int] = None


@dataclass
class NextGenEncounter:
    encounter_id: str
    person_id: str
    encounter_date: str  # ISO datetime
    encounter_type: str  # office visit, telehealth, hospital visit, emergency, procedure, consultation
    encounter_status: str  # Open, Closed, Billed, Void
    rendering_provider_id: Optional[str] = None
    rendering_provider_name: Optional[str] = None
    location_id: Optional[str] = None
    location_name: Optional[str] = None
    chief_complaint: Optional[str] = None
    checkout_date: Optional[str] = None
    diagnoses: List[NextGenDiagnosis] = field(default_factory=list)
    vitals: Optional[NextGenVitals] = None

    @classmethod
    def from_dict(cls, data):
        data = ensure_mapping(cls, data)
        vitals = data.get("vitals")
        return build(
            cls, data,
            diagnoses=build_list(NextGenDiagnosis, data.get("diagnoses")),
            vitals=build(NextGenVitals, vitals) if vitals else None,
        )


@dataclass
class NextGenProblem:
    problem_id: str
    person_id: str
    icd_code: str
    description: str
    status: str  # Active, Chronic, Resolved, Inactive
    snomed_code: Optional[str] = None
    onset_date: Optional[str] = None
    resolution_date: Optional[str] = None


@dataclass
class NextGenAllergy:
    allergy_id: str
    person_id: str
    allergen_name: str
    status: str = "Active"  # Active, Inactive, Entered in Error
    allergen_type: Optional[str] = None
    allergen_code: Optional[str] = None
    reaction_description: Optional[str] = None
    reaction_severity: Optional[str] = None
    onset_date: Optional[str] = None
    verified: bool = False


@dataclass
class NextGenMedication:
    medication_id: str
    person_id: str
    drug_name: str
    status: str = "Active"  # Active, Completed, Discontinued, On Hold
    drug_code: Optional[str] = None  # RxNorm
    sig: Optional[str] = None
    dosage: Optional[str] = None
    route: Optional[str] = None
    frequency: Optional[str] = None
    prescription_date: Optional[str] = None
    prescribing_provider_id: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


@dataclass
class NextGenLabResult:
    result_id: str
    loinc_code: str
    test_name: str
    result_value: str
    result_unit: Optional[str] = None
    reference_range_low: Optional[float] = None
    reference_range_high: Optional[float] = None
    abnormal_flag: Optional[str] = None  # N, L, H, LL, HH, A
    result_status: str = "Final"


@dataclass
class NextGenLabOrder:
    order_id: str
    person_id: str
    order_date: str
    panel_code: str
    panel_name: str
    order_status: str = "Completed"  # Ordered, In Progress, Completed, Cancelled
    ordering_provider_id: Optional[str] = None
    performing_lab_name: Optional[str] = None
    result_date: Optional[str] = None
    results: List[NextGenLabResult] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        data = ensure_mapping(cls, data)
        return build(cls, data, results=build_list(NextGenLabResult, data.get("results")))


@dataclass
class NextGenNativeRecord:
    """A person and all dependent records exported by NextGen."""
    patient: NextGenPatient
    encounters: List[NextGenEncounter] = field(default_factory=list)
    problems: List[NextGenProblem] = field(default_factory=list)
    allergies: List[NextGenAllergy] = field(default_factory=list)
    medications: List[NextGenMedication] = field(default_factory=list)
    lab_orders: List[NextGenLabOrder] = field(default_factory=list)

    @property
    def local_id(self) -> str:
        return self.patient.person_id

    def dependent_references(self) -> Iterator[Tuple[str, str]]:
        for kind, items, key in (
            ("encounter", self.encounters, "encounter_id"),
            ("problem", self.problems, "problem_id"),
            ("allergy", self.allergies, "allergy_id"),
            ("medication", self.medications, "medication_id"),
            ("lab order", self.lab_orders, "order_id"),
        ):
            for item in items:
                yield f"{kind} {getattr(item, key)}", item.person_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NextGenNativeRecord":
        data = ensure_mapping(cls, data)
        return build(
            cls, data,
            patient=NextGenPatient.from_dict(data.get("patient")),
            encounters=build_list(NextGenEncounter, data.get("encounters")),
            problems=build_list(NextGenProblem, data.get("problems")),
            allergies=build_list(NextGenAllergy, data.get("allergies")),
            medications=build_list(NextGenMedication, data.get("medications")),
            lab_orders=build_list(NextGenLabOrder, data.get("lab_orders")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
