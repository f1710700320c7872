"""Terminology shared by the interface message codec and the transformers."""

from typing import Any, Dict, Hashable, Optional, Tuple

LOINC = "http://loinc.org"
ICD10 = "http://hl7.org/fhir/sid/icd-10-cm"
SNOMED = "http://snomed.info/sct"
RXNORM = "http://www.nlm.nih.gov/research/umls/rxnorm"
CDC_RACE_ETHNICITY = "urn:oid:2.16.840.1.113883.6.238"
UCUM = "http://unitsofmeasure.org"
V3_ACT_CODE = "http://terminology.hl7.org/CodeSystem/v3-ActCode"
V3_MARITAL_STATUS = "http://terminology.hl7.org/CodeSystem/v3-MaritalStatus"
V3_INTERPRETATION = "http://terminology.hl7.org/CodeSystem/v3-ObservationInterpretation"
OBSERVATION_CATEGORY = "http://terminology.hl7.org/CodeSystem/observation-category"
CONDITION_CLINICAL = "http://terminology.hl7.org/CodeSystem/condition-clinical"
CONDITION_CATEGORY = "http://terminology.hl7.org/CodeSystem/condition-category"
ALLERGY_CLINICAL = "http://terminology.hl7.org/CodeSystem/allergyintolerance-clinical"
ALLERGY_VERIFICATION = "http://terminology.hl7.org/CodeSystem/allergyintolerance-verification"
DIAGNOSTIC_SERVICE_SECTION = "http://terminology.hl7.org/CodeSystem/v2-0074"


class CodeTable:
    """Closed lookup table with an explicit fallback for unknown codes.

    Lookups never raise: ``None``, empty and unmapped codes all resolve to
    the fallback.
    """

    def __init__(self, name: str, mapping: Dict[Hashable, Any], fallback: Any,
                 fallback_code: Optional[str] = None, case_sensitive: bool = True):
        self.name = name
        self.fallback = fallback
        self.fallback_code = fallback_code
        self.case_sensitive = case_sensitive
        self._mapping = dict(mapping) if case_sensitive else {
            str(key).upper(): value for key, value in mapping.items()
        }

    def _key(self, code):
        if code is None:
            return None
        return code if self.case_sensitive else str(code).upper()

    def __contains__(self, code) -> bool:
        return self._key(code) in self._mapping

    def codes(self):
        return list(self._mapping)

    def lookup(self, code) -> Any:
        return self._mapping.get(self._key(code), self.fallback)

    def resolve(self, code) -> Tuple[str, Any]:
        """Return ``(code, value)``, substituting the fallback pair if unmapped."""
        key = self._key(code)
        if key in self._mapping:
            return key, self._mapping[key]
        return self.fallback_code or "", self.fallback


RACE = CodeTable("race", {
    "2106-3": "White",
    "2054-5": "Black or African American",
    "2028-9": "Asian",
    "1002-5": "American Indian or Alaska Native",
    "2076-8": "Native Hawaiian or Other Pacific Islander",
    "2131-1": "Other Race",
}, fallback="Unknown", fallback_code="UNK")

ETHNICITY = CodeTable("ethnicity", {
    "2135-2": "Hispanic or Latino",
    "2186-5": "Not Hispanic or Latino",
}, fallback="Unknown", fallback_code="UNK")

MARITAL_STATUS = CodeTable("marital-status", {
    "S": "Single",
    "M": "Married",
    "D": "Divorced",
    "W": "Widowed",
    "A": "Separated",
    "U": "Unknown",
}, fallback="Unknown", fallback_code="U", case_sensitive=False)

# HL7 administrative sex -> FHIR administrative gender
ADMINISTRATIVE_GENDER = CodeTable("administrative-gender", {
    "M": "male",
    "F": "female",
    "O": "other",
    "U": "unknown",
}, fallback="unknown", case_sensitive=False)

ADMINISTRATIVE_SEX = CodeTable("administrative-sex", {
    "male": "M",
    "female": "F",
    "other": "O",
    "unknown": "U",
}, fallback="U", case_sensitive=False)

# FHIR encounter class -> HL7 patient class (PV1-2)
PATIENT_CLASS = CodeTable("patient-class", {
    "AMB": "O",
    "EMER": "E",
    "IMP": "I",
    "VR": "O",
}, fallback="O")

# HL7 patient class -> FHIR encounter class coding
ENCOUNTER_CLASS = CodeTable("encounter-class", {
    "I": ("IMP", "inpatient encounter"),
    "O": ("AMB", "ambulatory"),
    "E": ("EMER", "emergency"),
    "P": ("PRENC", "pre-admission"),
}, fallback=("AMB", "ambulatory"))

INTERPRETATION = CodeTable("interpretation", {
    "N": "Normal",
    "L": "Low",
    "H": "High",
    "LL": "Critical low",
    "HH": "Critical high",
    "A": "Abnormal",
}, fallback="Normal", fallback_code="N", case_sensitive=False)


def coding(system: str, code: str, display: Optional[str] = None) -> Dict[str, str]:
    result = {"system": system, "code": code}
    if display:
        result["display"] = display
    return result


def codeable_concept(system: str, code: str, display: Optional[str] = None,
                     text: Optional[str] = None) -> Dict[str, Any]:
    concept: Dict[str, Any] = {"coding": [coding(system, code, display)]}
    if text or display:
        concept["text"] = text or display
    return concept


def encounter_class_coding(code: str) -> Dict[str, str]:
    """FHIR encounter class coding for a v3 ActCode (AMB, EMER, IMP, VR...)."""
    displays = {"AMB": "ambulatory", "EMER": "emergency", "IMP": "inpatient encounter",
                "VR": "virtual", "HH": "home health", "PRENC": "pre-admission"}
    return coding(V3_ACT_CODE, code, displays.get(code, code))


def interpretation_concept(flag: Optional[str]) -> Dict[str, Any]:
    code, display = INTERPRETATION.resolve(flag)
    return codeable_concept(V3_INTERPRETATION, code, display)


def marital_status_concept(code: Optional[str]) -> Dict[str, Any]:
    code, display = MARITAL_STATUS.resolve(code)
    return codeable_concept(V3_MARITAL_STATUS, code, display)
