"""Elation Health native JSON -> canonical resources."""

import logging

from ehr_sync.codes import (
    ALLERGY_CLINICAL,
    ALLERGY_VERIFICATION,
    CONDITION_CATEGORY,
    CONDITION_CLINICAL,
    DIAGNOSTIC_SERVICE_SECTION,
    ICD10,
    LOINC,
    RXNORM,
    SNOMED,
    CodeTable,
    codeable_concept,
    encounter_class_coding,
    interpretation_concept,
    marital_status_concept,
)
from ehr_sync.domain.bundle import TransactionBundle
from ehr_sync.domain.native.elation import (
    ElationLabOrder,
    ElationNativeRecord,
    ElationPatient,
    ElationVisitNote,
)
from ehr_sync.domain.systems import SourceSystem
from ehr_sync.transformers.base import (
    BundleBuilder,
    address,
    category,
    check_dependents,
    communication,
    fhir_date,
    fhir_datetime,
    human_name,
    observation_category,
    quantity,
    race_ethnicity_extensions,
    reference_range,
    require,
    split_range,
)

logger = logging.getLogger(__name__)

SYSTEM = SourceSystem.ELATION

GENDER = CodeTable("elation-sex", {
    "Male": "male",
    "Female": "female",
    "Other": "other",
    "Unknown": "unknown",
}, fallback="unknown", case_sensitive=False)

VISIT_STATUS = CodeTable("elation-visit-status", {
    "Scheduled": "planned",
    "Confirmed": "planned",
    "Checked In": "arrived",
    "Roomed": "arrived",
    "In Progress": "in-progress",
    "Completed": "finished",
    "Cancelled": "cancelled",
    "No Show": "cancelled",
}, fallback="unknown", case_sensitive=False)

VISIT_CLASS = CodeTable("elation-visit-class", {
    "Office Visit": "AMB",
    "Annual Physical": "AMB",
    "Follow-up": "AMB",
    "Telehealth": "VR",
    "Urgent": "EMER",
}, fallback="AMB", case_sensitive=False)

PROBLEM_STATUS = CodeTable("elation-problem-status", {
    "Active": "active",
    "Resolved": "resolved",
    "Inactive": "inactive",
}, fallback="active", case_sensitive=False)

ALLERGY_STATUS = CodeTable("elation-allergy-status", {
    "Active": "active",
    "Inactive": "inactive",
}, fallback="active", case_sensitive=False)

ALLERGY_CATEGORY = CodeTable("elation-allergen-type", {
    "Drug": "medication",
    "Food": "food",
    "Environmental": "environment",
}, fallback=None, case_sensitive=False)

MEDICATION_STATUS = CodeTable("elation-medication-status", {
    "Active": "active",
    "Completed": "completed",
    "Discontinued": "stopped",
}, fallback="unknown", case_sensitive=False)

MARITAL_STATUS = CodeTable("elation-marital-status", {
    "Single": "S",
    "Married": "M",
    "Divorced": "D",
    "Widowed": "W",
    "Separated": "A",
}, fallback="U", case_sensitive=False)

RACE = CodeTable("elation-race", {
    "White": "2106-3",
    "Black or African American": "2054-5",
    "Asian": "2028-9",
    "American Indian or Alaska Native": "1002-5",
    "Native Hawaiian or Other Pacific Islander": "2076-8",
    "Other": "2131-1",
}, fallback=None, case_sensitive=False)

ETHNICITY = CodeTable("elation-ethnicity", {
    "Hispanic or Latino": "2135-2",
    "Not Hispanic or Latino": "2186-5",
}, fallback=None, case_sensitive=False)

# Elation vitals field -> (LOINC, display, unit)
VITAL_FIELDS = {
    "bp_systolic": ("8480-6", "Systolic blood pressure", "mm[Hg]"),
    "bp_diastolic": ("8462-4", "Diastolic blood pressure", "mm[Hg]"),
    "heart_rate": ("8867-4", "Heart rate", "/min"),
    "respiratory_rate": ("9279-1", "Respiratory rate", "/min"),
    "temperature": ("8310-5", "Body temperature", "[degF]"),
    "weight": ("29463-7", "Body weight", "[lb_av]"),
    "height": ("8302-2", "Body height", "[in_i]"),
    "bmi": ("39156-5", "Body mass index", "kg/m2"),
    "oxygen_saturation": ("2708-6", "Oxygen saturation", "%"),
}


def _patient(builder: BundleBuilder, patient: ElationPatient):
    require(patient, "id", "last_name", "first_name")
    phone = next((p.phone for p in patient.phones if p.phone_type == "Home"), None)
    mobile = next((p.phone for p in patient.phones if p.phone_type == "Mobile"), None)
    email = next((e.email for e in sorted(patient.emails, key=lambda e: not e.is_primary)), None)
    telecom = []
    for value, use in ((phone, "home"), (mobile, "mobile")):
        if value:
            telecom.append({"system": "phone", "value": value, "use": use})
    if email:
        telecom.append({"system": "email", "value": email})

    home = patient.address
    return builder.add(
        "Patient", patient.id,
        active=patient.status.lower() == "active",
        name=human_name(patient.last_name, patient.first_name, patient.middle_name),
        gender=GENDER.lookup(patient.sex),
        birthDate=fhir_date(patient.dob),
        telecom=telecom,
        address=address(home.address_line1, home.city, home.state, home.zip, home.country,
                        home.address_line2) if home else None,
        maritalStatus=marital_status_concept(MARITAL_STATUS.lookup(patient.marital_status)),
        communication=communication(patient.preferred_language),
        generalPractitioner=[{"identifier": {"value": str(patient.primary_physician)}}],
        extension=race_ethnicity_extensions(RACE.lookup(patient.race), patient.race,
                                            ETHNICITY.lookup(patient.ethnicity), patient.ethnicity),
    )


def _visit_note(builder: BundleBuilder, note: ElationVisitNote, subject):
    require(note, "id", "document_date")
    documented = fhir_datetime(note.document_date)
    encounter = builder.add(
        "Encounter", note.id,
        status=VISIT_STATUS.lookup(note.status),
        **{"class": encounter_class_coding(VISIT_CLASS.lookup(note.visit_type))},
        type=[{"text": note.visit_type}],
        subject=subject,
        period={"start": documented} if documented else None,
        reasonCode=[{"text": note.chief_complaint}] if note.chief_complaint else None,
        participant=[{"individual": {"identifier": {"value": str(note.physician)}}}],
    )
    encounter_ref = BundleBuilder.reference(encounter)

    diagnoses = []
    for diagnosis in note.icd10_codes:
        require(diagnosis, "code")
        condition = builder.add(
            "Condition", f"{note.id}-{diagnosis.code}",
            clinicalStatus=codeable_concept(CONDITION_CLINICAL, "active"),
            category=category(CONDITION_CATEGORY, "encounter-diagnosis", "Encounter Diagnosis"),
            code=codeable_concept(ICD10, diagnosis.code, diagnosis.description),
            subject=subject,
            encounter=encounter_ref,
        )
        diagnoses.append({"condition": BundleBuilder.reference(condition), "rank": diagnosis.rank})
    if diagnoses:
        encounter.resource["diagnosis"] = diagnoses

    if note.vitals is None:
        return
    for field_name, (loinc, display, unit) in VITAL_FIELDS.items():
        value = getattr(note.vitals, field_name)
        if value is None:
            continue
        builder.add(
            "Observation", f"{note.id}-{field_name}",
            status="final",
            category=observation_category("vital-signs"),
            code=codeable_concept(LOINC, loinc, display),
            subject=subject,
            encounter=encounter_ref,
            effectiveDateTime=documented,
            valueQuantity=quantity(value, unit),
        )


def _lab_order(builder: BundleBuilder, order: ElationLabOrder, subject):
    require(order, "id", "panel_loinc")
    issued = fhir_datetime(order.resulted_date or order.order_date)
    results = []
    for result in order.results:
        require(result, "loinc_code")
        low, high = split_range(result.reference_range)
        observation = builder.add(
            "Observation", f"{order.id}-{result.loinc_code}",
            status="final",
            category=observation_category("laboratory"),
            code=codeable_concept(LOINC, result.loinc_code, result.test_name),
            subject=subject,
            effectiveDateTime=issued,
            valueQuantity=quantity(result.value, result.units),
            referenceRange=reference_range(low, high, result.units),
            interpretation=[interpretation_concept(result.abnormal_flag)],
        )
        results.append(BundleBuilder.reference(observation))

    builder.add(
        "DiagnosticReport", order.id,
        status="final" if order.status == "Resulted" else "registered",
        category=category(DIAGNOSTIC_SERVICE_SECTION, "LAB", "Laboratory"),
        code=codeable_concept(LOINC, order.panel_loinc, order.panel_name),
        subject=subject,
        effectiveDateTime=fhir_datetime(order.order_date),
        issued=issued,
        performer=[{"display": order.lab_name}] if order.lab_name else None,
        result=results,
    )


def transform_elation_record(record: ElationNativeRecord) -> TransactionBundle:
    """Map one Elation patient and its dependents into a transaction bundle."""
    check_dependents(record)
    builder = BundleBuilder(SYSTEM)
    root = _patient(builder, record.patient)
    subject = BundleBuilder.reference(root, f"{record.patient.first_name} {record.patient.last_name}")

    for note in record.visit_notes:
        _visit_note(builder, note, subject)

    for problem in record.problems:
        require(problem, "id", "icd10_code")
        builder.add(
            "Condition", problem.id,
            clinicalStatus=codeable_concept(CONDITION_CLINICAL, PROBLEM_STATUS.lookup(problem.status)),
            category=category(CONDITION_CATEGORY, "problem-list-item", "Problem List Item"),
            code=codeable_concept(ICD10, problem.icd10_code, problem.description),
            subject=subject,
            onsetDateTime=fhir_datetime(problem.onset_date),
            abatementDateTime=fhir_datetime(problem.resolved_date),
        )

    for allergy in record.allergies:
        require(allergy, "id", "name")
        reaction = {}
        if allergy.reaction:
            reaction["manifestation"] = [{"text": allergy.reaction}]
            if allergy.severity:
                reaction["severity"] = allergy.severity.lower()
        allergy_category = ALLERGY_CATEGORY.lookup(allergy.allergen_type)
        builder.add(
            "AllergyIntolerance", allergy.id,
            clinicalStatus=codeable_concept(ALLERGY_CLINICAL, ALLERGY_STATUS.lookup(allergy.status)),
            verificationStatus=codeable_concept(ALLERGY_VERIFICATION, "confirmed"),
            category=[allergy_category] if allergy_category else None,
            code=(codeable_concept(SNOMED, allergy.snomed_code, allergy.name)
                  if allergy.snomed_code else {"text": allergy.name}),
            patient=subject,
            onsetDateTime=fhir_datetime(allergy.start_date),
            reaction=[reaction] if reaction else None,
        )

    for medication in record.medications:
        require(medication, "id", "medication_name")
        period = {k: v for k, v in (("start", fhir_date(medication.start_date)),
                                    ("end", fhir_date(medication.end_date))) if v}
        builder.add(
            "MedicationStatement", medication.id,
            status=MEDICATION_STATUS.lookup(medication.status),
            medicationCodeableConcept=(
                codeable_concept(RXNORM, medication.rxnorm_cui, medication.medication_name)
                if medication.rxnorm_cui else {"text": medication.medication_name}
            ),
            subject=subject,
            effectivePeriod=period,
            dosage=[{"text": medication.sig}] if medication.sig else None,
        )

    for order in record.lab_orders:
        _lab_order(builder, order, subject)

    logger.debug(f"Elation patient {record.patient.id} -> {len(builder.bundle)} resources")
    return builder.bundle
