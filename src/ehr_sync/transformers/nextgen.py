"""NextGen Healthcare native JSON -> canonical resources."""

import logging

from ehr_sync.codes import (
    ADMINISTRATIVE_GENDER,
    ALLERGY_CLINICAL,
    ALLERGY_VERIFICATION,
    CONDITION_CATEGORY,
    CONDITION_CLINICAL,
    DIAGNOSTIC_SERVICE_SECTION,
    ETHNICITY,
    ICD10,
    LOINC,
    RACE,
    RXNORM,
    SNOMED,
    CodeTable,
    codeable_concept,
    encounter_class_coding,
    interpretation_concept,
    marital_status_concept,
)
from ehr_sync.domain.bundle import TransactionBundle
from ehr_sync.domain.native.nextgen import (
    NextGenEncounter,
    NextGenLabOrder,
    NextGenNativeRecord,
    NextGenPatient,
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
    telecom,
)

logger = logging.getLogger(__name__)

SYSTEM = SourceSystem.NEXTGEN

ENCOUNTER_STATUS = CodeTable("nextgen-encounter-status", {
    "Open": "in-progress",
    "Closed": "finished",
    "Billed": "finished",
    "Void": "cancelled",
}, fallback="unknown", case_sensitive=False)

ENCOUNTER_CLASS = CodeTable("nextgen-encounter-class", {
    "telehealth": "VR",
    "emergency": "EMER",
    "hospital visit": "IMP",
}, fallback="AMB", case_sensitive=False)

PROBLEM_STATUS = CodeTable("nextgen-problem-status", {
    "Active": "active",
    "Chronic": "active",
    "Resolved": "resolved",
    "Inactive": "inactive",
}, fallback="active", case_sensitive=False)

ALLERGY_STATUS = CodeTable("nextgen-allergy-status", {
    "Active": "active",
    "Inactive": "inactive",
}, fallback="active", case_sensitive=False)

MEDICATION_STATUS = CodeTable("nextgen-medication-status", {
    "Active": "active",
    "Completed": "completed",
    "Discontinued": "stopped",
    "On Hold": "on-hold",
}, fallback="unknown", case_sensitive=False)

LAB_ORDER_STATUS = CodeTable("nextgen-order-status", {
    "Ordered": "registered",
    "In Progress": "partial",
    "Completed": "final",
    "Cancelled": "cancelled",
}, fallback="unknown", case_sensitive=False)

# NextGen vitals column -> (LOINC, display, unit)
VITAL_COLUMNS = {
    "blood_pressure_systolic": ("8480-6", "Systolic blood pressure", "mm[Hg]"),
    "blood_pressure_diastolic": ("8462-4", "Diastolic blood pressure", "mm[Hg]"),
    "pulse_rate": ("8867-4", "Heart rate", "/min"),
    "respiratory_rate": ("9279-1", "Respiratory rate", "/min"),
    "temperature_fahrenheit": ("8310-5", "Body temperature", "[degF]"),
    "weight_lbs": ("29463-7", "Body weight", "[lb_av]"),
    "height_inches": ("8302-2", "Body height", "[in_i]"),
    "bmi": ("39156-5", "Body mass index", "kg/m2"),
    "oxygen_saturation": ("2708-6", "Oxygen saturation", "%"),
}


def _patient(builder: BundleBuilder, patient: NextGenPatient):
    require(patient, "person_id", "last_name", "first_name")
    home = patient.address
    root = builder.add(
        "Patient", patient.person_id,
        active=patient.patient_status.lower() == "active",
        name=human_name(patient.last_name, patient.first_name, patient.middle_name),
        gender=ADMINISTRATIVE_GENDER.lookup(patient.gender),
        birthDate=fhir_date(patient.date_of_birth),
        telecom=telecom(patient.home_phone, patient.mobile_phone, patient.email_address),
        address=address(home.address_line_1, home.city, home.state_code, home.postal_code,
                        home.country_code, home.address_line_2) if home else None,
        maritalStatus=marital_status_concept(patient.marital_status_code),
        communication=communication(patient.language_code),
        extension=race_ethnicity_extensions(
            patient.race_code, RACE.lookup(patient.race_code) if patient.race_code else None,
            patient.ethnicity_code, ETHNICITY.lookup(patient.ethnicity_code) if patient.ethnicity_code else None,
        ),
    )
    if patient.preferred_name:
        root.resource["name"].append({"use": "usual", "given": [patient.preferred_name]})
    if patient.medical_record_number:
        root.resource["identifier"].append({
            "type": {"text": "Medical record number"},
            "value": patient.medical_record_number,
        })
    return root


def _encounter(builder: BundleBuilder, encounter: NextGenEncounter, subject):
    require(encounter, "encounter_id", "encounter_date")
    start = fhir_datetime(encounter.encounter_date)
    entry = builder.add(
        "Encounter", encounter.encounter_id,
        status=ENCOUNTER_STATUS.lookup(encounter.encounter_status),
        **{"class": encounter_class_coding(ENCOUNTER_CLASS.lookup(encounter.encounter_type))},
        type=[{"text": encounter.encounter_type}],
        subject=subject,
        period={k: v for k, v in (("start", start), ("end", fhir_datetime(encounter.checkout_date))) if v},
        reasonCode=[{"text": encounter.chief_complaint}] if encounter.chief_complaint else None,
        participant=[{"individual": {
            "display": encounter.rendering_provider_name,
            "identifier": {"value": encounter.rendering_provider_id},
        }}] if encounter.rendering_provider_id else None,
        location=[{"location": {"display": encounter.location_name}}] if encounter.location_name else None,
    )
    encounter_ref = BundleBuilder.reference(entry)

    diagnoses = []
    for diagnosis in encounter.diagnoses:
        require(diagnosis, "icd_code")
        condition = builder.add(
            "Condition", f"{encounter.encounter_id}-{diagnosis.icd_code}",
            clinicalStatus=codeable_concept(CONDITION_CLINICAL, "active"),
            category=category(CONDITION_CATEGORY, "encounter-diagnosis", "Encounter Diagnosis"),
            code=codeable_concept(ICD10, diagnosis.icd_code, diagnosis.description),
            subject=subject,
            encounter=encounter_ref,
        )
        diagnoses.append({
            "condition": BundleBuilder.reference(condition),
            "rank": diagnosis.sequence_number,
            "use": {"text": diagnosis.diagnosis_type},
        })
    if diagnoses:
        entry.resource["diagnosis"] = diagnoses

    vitals = encounter.vitals
    if vitals is None:
        return
    effective = fhir_datetime(vitals.recorded_date) or start
    for column, (loinc, display, unit) in VITAL_COLUMNS.items():
        value = getattr(vitals, column)
        if value is None:
            continue
        builder.add(
            "Observation", f"{vitals.vitals_id}-{column}",
            status="final",
            category=observation_category("vital-signs"),
            code=codeable_concept(LOINC, loinc, display),
            subject=subject,
            encounter=encounter_ref,
            effectiveDateTime=effective,
            valueQuantity=quantity(value, unit),
        )


def _lab_order(builder: BundleBuilder, order: NextGenLabOrder, subject):
    require(order, "order_id", "panel_code")
    issued = fhir_datetime(order.result_date or order.order_date)
    results = []
    for result in order.results:
        require(result, "result_id", "loinc_code")
        observation = builder.add(
            "Observation", result.result_id,
            status=result.result_status.lower(),
            category=observation_category("laboratory"),
            code=codeable_concept(LOINC, result.loinc_code, result.test_name),
            subject=subject,
            effectiveDateTime=issued,
            valueQuantity=quantity(result.result_value, result.result_unit),
            referenceRange=reference_range(result.reference_range_low, result.reference_range_high,
                                           result.result_unit),
            interpretation=[interpretation_concept(result.abnormal_flag)],
        )
        results.append(BundleBuilder.reference(observation))

    builder.add(
        "DiagnosticReport", order.order_id,
        status=LAB_ORDER_STATUS.lookup(order.order_status),
        category=category(DIAGNOSTIC_SERVICE_SECTION, "LAB", "Laboratory"),
        code=codeable_concept(LOINC, order.panel_code, order.panel_name),
        subject=subject,
        effectiveDateTime=fhir_datetime(order.order_date),
        issued=issued,
        performer=[{"display": order.performing_lab_name}] if order.performing_lab_name else None,
        result=results,
    )


def transform_nextgen_record(record: NextGenNativeRecord) -> TransactionBundle:
    """Map one NextGen person and its dependents into a transaction bundle."""
    check_dependents(record)
    builder = BundleBuilder(SYSTEM)
    root = _patient(builder, record.patient)
    subject = BundleBuilder.reference(root, f"{record.patient.first_name} {record.patient.last_name}")

    for encounter in record.encounters:
        _encounter(builder, encounter, subject)

    for problem in record.problems:
        require(problem, "problem_id", "icd_code")
        code = codeable_concept(ICD10, problem.icd_code, problem.description)
        if problem.snomed_code:
            code["coding"].append({"system": SNOMED, "code": problem.snomed_code})
        builder.add(
            "Condition", problem.problem_id,
            clinicalStatus=codeable_concept(CONDITION_CLINICAL, PROBLEM_STATUS.lookup(problem.status)),
            category=category(CONDITION_CATEGORY, "problem-list-item", "Problem List Item"),
            code=code,
            subject=subject,
            onsetDateTime=fhir_datetime(problem.onset_date),
            abatementDateTime=fhir_datetime(problem.resolution_date),
        )

    for allergy in record.allergies:
        require(allergy, "allergy_id", "allergen_name")
        entered_in_error = allergy.status.lower() == "entered in error"
        if entered_in_error:
            verification = "entered-in-error"
        else:
            verification = "confirmed" if allergy.verified else "unconfirmed"
        reaction = {}
        if allergy.reaction_description:
            reaction["manifestation"] = [{"text": allergy.reaction_description}]
            if allergy.reaction_severity:
                reaction["severity"] = allergy.reaction_severity.lower()
        builder.add(
            "AllergyIntolerance", allergy.allergy_id,
            # clinicalStatus must be absent for entered-in-error
            clinicalStatus=None if entered_in_error else codeable_concept(
                ALLERGY_CLINICAL, ALLERGY_STATUS.lookup(allergy.status)),
            verificationStatus=codeable_concept(ALLERGY_VERIFICATION, verification),
            code=(codeable_concept(SNOMED, allergy.allergen_code, allergy.allergen_name)
                  if allergy.allergen_code else {"text": allergy.allergen_name}),
            patient=subject,
            onsetDateTime=fhir_datetime(allergy.onset_date),
            reaction=[reaction] if reaction else None,
        )

    for medication in record.medications:
        require(medication, "medication_id", "drug_name")
        dosage = {k: v for k, v in (
            ("text", medication.sig or medication.dosage),
            ("route", {"text": medication.route} if medication.route else None),
            ("timing", {"code": {"text": medication.frequency}} if medication.frequency else None),
        ) if v}
        builder.add(
            "MedicationStatement", medication.medication_id,
            status=MEDICATION_STATUS.lookup(medication.status),
            medicationCodeableConcept=(
                codeable_concept(RXNORM, medication.drug_code, medication.drug_name)
                if medication.drug_code else {"text": medication.drug_name}
            ),
            subject=subject,
            effectivePeriod={k: v for k, v in (("start", fhir_date(medication.start_date)),
                                               ("end", fhir_date(medication.end_date))) if v},
            dateAsserted=fhir_datetime(medication.prescription_date),
            dosage=[dosage] if dosage else None,
        )

    for order in record.lab_orders:
        _lab_order(builder, order, subject)

    logger.debug(f"NextGen person {record.patient.person_id} -> {len(builder.bundle)} resources")
    return builder.bundle
