"""
Synthetic C-CDA clinical documents.

Documents are built with ElementTree so the XML is always well formed; the
section structure follows the C-CDA R2.1 templates closely enough for a
standard converter to pick up allergies, medications, problems, results and
vital signs.
"""

import uuid
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import List, Optional

from ehr_sync.codes import ADMINISTRATIVE_SEX, ETHNICITY, RACE
from ehr_sync.domain.records import DOCUMENT_TEMPLATES, ClinicalDocument
from ehr_sync.generators import reference_data as ref
from ehr_sync.generators.common import SyntheticDataFactory

HL7_NS = "urn:hl7-org:v3"
US_REALM_HEADER = "2.16.840.1.113883.10.20.22.1.1"

SECTION_TEMPLATES = {
    "allergies": ("2.16.840.1.113883.10.20.22.2.6.1", "48765-2", "Allergies and adverse reactions"),
    "medications": ("2.16.840.1.113883.10.20.22.2.1.1", "10160-0", "Medications"),
    "problems": ("2.16.840.1.113883.10.20.22.2.5.1", "11450-4", "Problem list"),
    "results": ("2.16.840.1.113883.10.20.22.2.3.1", "30954-2", "Results"),
    "vitals": ("2.16.840.1.113883.10.20.22.2.4.1", "8716-3", "Vital signs"),
}

DOCUMENT_CODES = {
    "CCD": ("34133-9", "Summarization of Episode Note"),
    "DischargeSummary": ("18842-5", "Discharge Summary"),
    "ProgressNote": ("11506-3", "Progress note"),
}

CODE_SYSTEMS = {
    "loinc": "2.16.840.1.113883.6.1",
    "snomed": "2.16.840.1.113883.6.96",
    "rxnorm": "2.16.840.1.113883.6.88",
    "icd10": "2.16.840.1.113883.6.90",
}


def _ts(value: datetime) -> str:
    return value.strftime("%Y%m%d%H%M%S")


def _el(parent, tag, text=None, **attrs):
    element = ET.SubElement(parent, tag, {k: str(v) for k, v in attrs.items() if v is not None})
    if text is not None:
        element.text = str(text)
    return element


def _code(parent, code, display, system, tag="code"):
    return _el(parent, tag, code=code, displayName=display, codeSystem=CODE_SYSTEMS[system])


def _section(body, kind: str, rows: List[List[str]], headers: List[str]):
    template, loinc, title = SECTION_TEMPLATES[kind]
    section = _el(_el(body, "component"), "section")
    _el(section, "templateId", root=template)
    _code(section, loinc, title, "loinc")
    _el(section, "title", title)
    table = _el(_el(section, "text"), "table")
    header_row = _el(_el(table, "thead"), "tr")
    for header in headers:
        _el(header_row, "th", header)
    tbody = _el(table, "tbody")
    for row in rows:
        tr = _el(tbody, "tr")
        for cell in row:
            _el(tr, "td", cell)
    return section


def _entry(section, class_code="OBS", mood_code="EVN"):
    return _el(_el(section, "entry"), "observation", classCode=class_code, moodCode=mood_code)


def _header(doc, template_type, document_id, person, mrn, created, provider, facility):
    _el(doc, "realmCode", code="US")
    _el(doc, "typeId", root="2.16.840.1.113883.1.3", extension="POCD_HD000040")
    _el(doc, "templateId", root=US_REALM_HEADER)
    _el(doc, "templateId", root=DOCUMENT_TEMPLATES[template_type])
    _el(doc, "id", root=document_id)
    code, title = DOCUMENT_CODES[template_type]
    _code(doc, code, title, "loinc")
    _el(doc, "title", title)
    _el(doc, "effectiveTime", value=_ts(created))
    _el(doc, "confidentialityCode", code="N", codeSystem="2.16.840.1.113883.5.25")
    _el(doc, "languageCode", code="en-US")

    patient_role = _el(_el(doc, "recordTarget"), "patientRole")
    _el(patient_role, "id", root="2.16.840.1.113883.4.3", extension=mrn)
    address = _el(patient_role, "addr", use="HP")
    _el(address, "streetAddressLine", person.street)
    _el(address, "city", person.city)
    _el(address, "state", person.state)
    _el(address, "postalCode", person.postal_code)
    _el(address, "country", "US")
    _el(patient_role, "telecom", use="HP", value=f"tel:{person.home_phone}")
    patient = _el(patient_role, "patient")
    name = _el(patient, "name", use="L")
    _el(name, "given", person.given_name)
    if person.middle_name:
        _el(name, "given", person.middle_name)
    _el(name, "family", person.family_name)
    sex = ADMINISTRATIVE_SEX.lookup(person.gender)
    _el(patient, "administrativeGenderCode", code=sex, codeSystem="2.16.840.1.113883.5.1")
    _el(patient, "birthTime", value=person.birth_date.strftime("%Y%m%d"))
    _el(patient, "raceCode", code=person.race_code, displayName=RACE.lookup(person.race_code),
        codeSystem="2.16.840.1.113883.6.238")
    _el(patient, "ethnicGroupCode", code=person.ethnicity_code,
        displayName=ETHNICITY.lookup(person.ethnicity_code), codeSystem="2.16.840.1.113883.6.238")

    author = _el(doc, "author")
    _el(author, "time", value=_ts(created))
    assigned = _el(author, "assignedAuthor")
    _el(assigned, "id", root="2.16.840.1.113883.4.6", extension=provider.npi)
    person_name = _el(_el(assigned, "assignedPerson"), "name")
    _el(person_name, "given", provider.first_name)
    _el(person_name, "family", provider.last_name)

    custodian = _el(_el(_el(doc, "custodian"), "assignedCustodian"), "representedCustodianOrganization")
    _el(custodian, "id", root="2.16.840.1.113883.4.6", extension=facility.npi)
    _el(custodian, "name", facility.name)


def build_clinical_document(factory: SyntheticDataFactory, template_type: str, mrn: str,
                            patient_id: Optional[str] = None) -> ClinicalDocument:
    """Render one document of the given template type for a fresh person."""
    if template_type not in DOCUMENT_TEMPLATES:
        raise ValueError(f"Unknown document template {template_type!r}")

    person = factory.person()
    provider = factory.provider()
    facility = factory.facility()
    created = factory.recent_datetime(days=90)
    document_id = str(uuid.UUID(int=factory.random.getrandbits(128)))

    doc = ET.Element("ClinicalDocument", {"xmlns": HL7_NS})
    _header(doc, template_type, document_id, person, mrn, created, provider, facility)
    body = _el(_el(doc, "component"), "structuredBody")

    allergies = factory.sample(ref.ALLERGENS, 0, 3)
    section = _section(body, "allergies", [[a.display, a.reaction] for a in allergies],
                       ["Allergen", "Reaction"])
    for allergen in allergies:
        _code(_entry(section), allergen.code, allergen.display, "snomed", tag="value")

    medications = factory.sample(ref.MEDICATIONS, 0, 5)
    section = _section(body, "medications", [[m.display, m.frequency] for m in medications],
                       ["Medication", "Frequency"])
    for medication in medications:
        substance = _el(_el(section, "entry"), "substanceAdministration",
                        classCode="SBADM", moodCode="INT")
        product = _el(_el(substance, "consumable"), "manufacturedProduct")
        _code(_el(product, "manufacturedMaterial"), medication.rxnorm, medication.display, "rxnorm")

    problems = factory.sample(ref.DIAGNOSES, 1, 3)
    section = _section(body, "problems", [[d.display, d.code] for d in problems],
                       ["Problem", "ICD-10"])
    for problem in problems:
        _code(_entry(section), problem.code, problem.display, "icd10", tag="value")

    results = factory.lab_values(3, 6)
    section = _section(body, "results",
                       [[r.test.display, f"{r.value} {r.test.unit}", r.interpretation] for r in results],
                       ["Test", "Value", "Flag"])
    for result in results:
        observation = _entry(section)
        _code(observation, result.test.code, result.test.display, "loinc")
        _el(observation, "effectiveTime", value=_ts(created))
        _el(observation, "value", value=result.value, unit=result.test.unit)
        _el(observation, "interpretationCode", code=result.interpretation,
            codeSystem="2.16.840.1.113883.5.83")

    vitals = [factory.vital_value(v) for v in ref.VITAL_SIGNS]
    section = _section(body, "vitals", [[v.vital.display, f"{v.value} {v.vital.unit}"] for v in vitals],
                       ["Vital", "Value"])
    for vital in vitals:
        observation = _entry(section)
        _code(observation, vital.vital.code, vital.vital.display, "loinc")
        _el(observation, "value", value=vital.value, unit=vital.vital.unit)

    xml = ET.tostring(doc, encoding="unicode", xml_declaration=True)
    return ClinicalDocument(
        document_id=document_id,
        template_type=template_type,
        xml=xml,
        patient_id=patient_id or mrn,
        created_at=created,
        metadata={"author": f"{provider.first_name} {provider.last_name}", "custodian": facility.name},
    )


def generate_clinical_documents(count: int, mrn_prefix: str, seed: Optional[int] = None,
                                factory: Optional[SyntheticDataFactory] = None) -> List[ClinicalDocument]:
    factory = factory or SyntheticDataFactory(seed)
    templates = list(DOCUMENT_TEMPLATES)
    return [
        build_clinical_document(factory, factory.choice(templates), f"{mrn_prefix}{factory.digits(7)}")
        for _ in range(count)
    ]
