"""Fixed clinical code sets the synthetic sources draw from."""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Provider:
    id: str
    first_name: str
    last_name: str
    npi: str
    specialty: str


@dataclass(frozen=True)
class FacilityInfo:
    id: str
    name: str
    npi: str


@dataclass(frozen=True)
class Diagnosis:
    code: str
    display: str


@dataclass(frozen=True)
class LabTest:
    code: str
    display: str
    unit: str
    low: float
    high: float


@dataclass(frozen=True)
class LabPanel:
    code: str
    name: str


@dataclass(frozen=True)
class VitalSign:
    code: str
    display: str
    unit: str
    low: float
    high: float


@dataclass(frozen=True)
class Allergen:
    code: str
    display: str
    reaction: str
    category: str


@dataclass(frozen=True)
class Medication:
    rxnorm: str
    display: str
    dosage: str
    frequency: str


PROVIDERS: Tuple[Provider, ...] = (
    Provider("P001", "Robert", "Williams", "1234567890", "Internal Medicine"),
    Provider("P002", "Sarah", "Johnson", "2345678901", "Family Medicine"),
    Provider("P003", "Michael", "Chen", "3456789012", "Cardiology"),
    Provider("P004", "Jennifer", "Davis", "4567890123", "Pediatrics"),
    Provider("P005", "David", "Martinez", "5678901234", "Orthopedics"),
    Provider("P006", "Emily", "Thompson", "6789012345", "Neurology"),
    Provider("P007", "James", "Garcia", "7890123456", "Emergency Medicine"),
    Provider("P008", "Lisa", "Anderson", "8901234567", "Dermatology"),
)

FACILITIES: Tuple[FacilityInfo, ...] = (
    FacilityInfo("F001", "Memorial General Hospital", "1111111111"),
    FacilityInfo("F002", "St. Mary Medical Center", "2222222222"),
    FacilityInfo("F003", "University Health System", "3333333333"),
    FacilityInfo("F004", "Community Health Clinic", "4444444444"),
    FacilityInfo("F005", "Regional Medical Center", "5555555555"),
    FacilityInfo("F006", "Downtown Family Practice", "6666666666"),
)

DIAGNOSES: Tuple[Diagnosis, ...] = (
    Diagnosis("I10", "Essential (primary) hypertension"),
    Diagnosis("E11.9", "Type 2 diabetes mellitus without complications"),
    Diagnosis("J06.9", "Acute upper respiratory infection, unspecified"),
    Diagnosis("M54.5", "Low back pain"),
    Diagnosis("R10.9", "Unspecified abdominal pain"),
    Diagnosis("K21.0", "Gastro-esophageal reflux disease with esophagitis"),
    Diagnosis("F32.9", "Major depressive disorder, single episode, unspecified"),
    Diagnosis("J45.909", "Unspecified asthma, uncomplicated"),
    Diagnosis("N39.0", "Urinary tract infection, site not specified"),
    Diagnosis("G43.909", "Migraine, unspecified, not intractable"),
)

LAB_TESTS: Tuple[LabTest, ...] = (
    LabTest("2345-7", "Glucose [Mass/volume] in Serum or Plasma", "mg/dL", 70, 100),
    LabTest("2093-3", "Cholesterol [Mass/volume] in Serum or Plasma", "mg/dL", 125, 200),
    LabTest("718-7", "Hemoglobin [Mass/volume] in Blood", "g/dL", 12, 17),
    LabTest("4544-3", "Hematocrit [Volume Fraction] of Blood", "%", 36, 50),
    LabTest("6690-2", "Leukocytes [#/volume] in Blood", "10*3/uL", 4.5, 11.0),
    LabTest("777-3", "Platelets [#/volume] in Blood", "10*3/uL", 150, 400),
    LabTest("2160-0", "Creatinine [Mass/volume] in Serum or Plasma", "mg/dL", 0.7, 1.3),
    LabTest("3094-0", "Blood urea nitrogen", "mg/dL", 7, 20),
    LabTest("2951-2", "Sodium [Moles/volume] in Serum or Plasma", "mmol/L", 136, 145),
    LabTest("2823-3", "Potassium [Moles/volume] in Serum or Plasma", "mmol/L", 3.5, 5.0),
)

LAB_PANELS: Tuple[LabPanel, ...] = (
    LabPanel("24323-8", "Comprehensive metabolic panel"),
    LabPanel("57021-8", "CBC with Differential"),
    LabPanel("24362-6", "Lipid Panel"),
    LabPanel("55399-0", "Basic metabolic panel"),
)

VITAL_SIGNS: Tuple[VitalSign, ...] = (
    VitalSign("8867-4", "Heart rate", "/min", 60, 100),
    VitalSign("8480-6", "Systolic blood pressure", "mmHg", 90, 140),
    VitalSign("8462-4", "Diastolic blood pressure", "mmHg", 60, 90),
    VitalSign("8310-5", "Body temperature", "degF", 97.0, 99.5),
    VitalSign("9279-1", "Respiratory rate", "/min", 12, 20),
    VitalSign("2708-6", "Oxygen saturation", "%", 95, 100),
    VitalSign("29463-7", "Body weight", "kg", 50, 120),
    VitalSign("8302-2", "Body height", "cm", 150, 200),
)

ALLERGENS: Tuple[Allergen, ...] = (
    Allergen("91936005", "Penicillin allergy", "Hives, rash", "medication"),
    Allergen("91935009", "Allergy to sulfonamide", "Anaphylaxis", "medication"),
    Allergen("294505008", "Allergy to aspirin", "Bronchospasm", "medication"),
    Allergen("418634005", "Allergic reaction to peanut", "Anaphylaxis", "food"),
    Allergen("418689008", "Allergy to shellfish", "Hives, swelling", "food"),
    Allergen("300913006", "Latex allergy", "Contact dermatitis", "environment"),
    Allergen("419474003", "Allergy to mold", "Sneezing, congestion", "environment"),
    Allergen("232347008", "Allergy to egg", "Gastrointestinal upset", "food"),
)

MEDICATIONS: Tuple[Medication, ...] = (
    Medication("314076", "Lisinopril 10 MG Oral Tablet", "10mg", "once daily"),
    Medication("860975", "Metformin 500 MG Oral Tablet", "500mg", "twice daily"),
    Medication("197361", "Atorvastatin 20 MG Oral Tablet", "20mg", "once daily"),
    Medication("311989", "Omeprazole 20 MG Delayed Release Oral Capsule", "20mg", "once daily"),
    Medication("310798", "Levothyroxine 50 MCG Oral Tablet", "50mcg", "once daily"),
    Medication("197380", "Amlodipine 5 MG Oral Tablet", "5mg", "once daily"),
    Medication("313782", "Acetaminophen 500 MG Oral Tablet", "500mg", "as needed"),
    Medication("197591", "Ibuprofen 400 MG Oral Tablet", "400mg", "every 6 hours as needed"),
)

ENCOUNTER_REASONS: Tuple[str, ...] = (
    "Annual wellness exam",
    "Follow-up visit",
    "New patient evaluation",
    "Medication review",
    "Blood pressure check",
    "Lab results review",
    "Acute illness",
    "Chronic disease management",
    "Preventive care visit",
    "Post-operative follow-up",
)

RACE_CODES: Tuple[str, ...] = ("2106-3", "2054-5", "2028-9", "2076-8", "2131-1")
ETHNICITY_CODES: Tuple[str, ...] = ("2135-2", "2186-5")
MARITAL_STATUS_CODES: Tuple[str, ...] = ("S", "M", "D", "W", "A")
LANGUAGES: Tuple[str, ...] = ("en", "es", "zh", "vi", "fr")
