"""Athena Health native JSON -> canonical resources."""

import logging

from ehr_sync.codes import (
    ADMINISTRATIVE_GENDER,
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
from ehr_sync.domain.native.athena import (
    VITAL_ELEMENT_LOINC,
    AthenaEncounter,
    AthenaLabResult,
    AthenaNativeRecord,
    AthenaVitals,
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
    telecom,
)

logger = logging.getLogger(__name__)

SYSTEM = SourceSystem.ATHENA
DATE_FORMATS = ("%m/%d/%Y",)
DATETIME_FORMATS = ("%m/%d/%Y %H:%M:%S", "%m/%d/%Y %H:%M", "%m/%d/%Y")

ENCOUNTER_CLASS = CodeTable("athena-encounter-class", {
    "OFFICE": "AMB",
    "TELEHEALTH": "VR",
    "INPATIENT": "IMP",
    "EMERGENCY": "EMER",
    "HOME VISIT": "HH",
}, fallback="AMB", case_sensitive=False)

ENCOUNTER_STATUS = CodeTable("athena-encounter-status", {
    "OPEN": "in-progress",
    "CLOSED": "finished",
    "CANCELLED": "cancelled",
}, fallback="unknown", case_sensitive=False)

PROBLEM_STATUS = CodeTable("athena-problem-status", {
    "ACTIVE": "active",
    "CHRONIC": "active",
    "RESOLVED": "resolved",
    "INACTIVE": "inactive",
}, fallback="active", case_sensitive=False)

ALLERGY_STATUS = CodeTable("athena-allergy-status", {
    "ACTIVE": "active",
    "INACTIVE": "inactive",
}, fallback="active", case_sensitive=False)

ALLERGY_SEVERITY = CodeTable("athena-allergy-severity", {
    "MILD": "mild",
    "MODERATE": "moderate",
    "SEVERE": "severe",
}, fallback=None, case_sensitive=False)

MEDICATION_STATUS = CodeTable("athena-medication-status", {
    "active": "active",
    "discontinued": "stopped",
    "completed": "completed",
}, fallback="unknown", case_sensitive=False)

MARITAL_STATUS = CodeTable("athena-marital-status", {
    "SINGLE": "S",
    "MARRIED": "M",
    "DIVORCED": "D",
    "WIDOWED": "W",
    "SEPARATED": "A",
}, fallback="U", case_sensitive=False)


def _encounter(builder: BundleBuilder, encounter: AthenaEncounter, subject):
    require(encounter, "encounterid", "encounterdate")
    provider = " ".join(p for p in (encounter.providerfirstname, encounter.providerlastname) if p)
    entry = builder.add(
        "Encounter", encounter.encounterid,
        status=ENCOUNTER_STATUS.lookup(encounter.encounterstatus),
        **{"class": encounter_class_coding(ENCOUNTER_CLASS.lookup(encounter.encountertype))},
        type=[{"text": encounter.encountertype}] if encounter.encountertype else None,
        subject=subject,
        period={
            key: value for key, value in (
                ("start", fhir_datetime(encounter.encounterdate, DATETIME_FORMATS)),
                ("end", fhir_datetime(encounter.closeddatetime, DATETIME_FORMATS)),
            ) if value
        },
        participant=[{"individual": {"display": provider, "identifier": {"value": encounter.providerid}}}]
        if encounter.providerid else None,
    )

    diagnoses = []
    for diagnosis in encounter.diagnoses:
        require(diagnosis, "icd10code")
        condition = builder.add(
            "Condition", f"{encounter.encounterid}-{diagnosis.icd10code}",
            clinicalStatus=codeable_concept(CONDITION_CLINICAL, "active"),
            category=category(CONDITION_CATEGORY, "encounter-diagnosis", "Encounter Diagnosis"),
            code=codeable_concept(ICD10, diagnosis.icd10code, diagnosis.description),
            subject=subject,
            encounter=BundleBuilder.reference(entry),
        )
        diagnoses.append({"condition": BundleBuilder.reference(condition), "rank": diagnosis.sequence})
    if diagnoses:
        entry.resource["diagnosis"] = diagnoses


def _vitals(builder: BundleBuilder, vitals: AthenaVitals, subject):
    require(vitals, "vitalid")
    effective = fhir_datetime(vitals.readingdatetime, DATETIME_FORMATS)
    for reading in vitals.vitals:
        loinc = VITAL_ELEMENT_LOINC.get(reading.clinicalelementid)
        code = (codeable_concept(LOINC, loinc, reading.vitalname) if loinc
                else {"text": reading.vitalname or reading.clinicalelementid})
        builder.add(
            "Observation", f"{vitals.vitalid}-{reading.clinicalelementid}",
            status="final",
            category=observation_category("vital-signs"),
            code=code,
            subject=subject,
            effectiveDateTime=effective,
            valueQuantity=quantity(reading.vitalvalue, reading.vitalunits),
        )


def _lab_result(builder: BundleBuilder, lab: AthenaLabResult, subject):
    require(lab, "labresultid")
    issued = fhir_datetime(lab.resultdate, DATETIME_FORMATS)
    for panel in lab.panels:
        results = []
        for analyte in panel.analytes:
            require(analyte, "loinccode")
            low, high = split_range(analyte.referencerange)
            observation = builder.add(
                "Observation", f"{lab.labresultid}-{analyte.loinccode}",
                status="final",
                category=observation_category("laboratory"),
                code=codeable_concept(LOINC, analyte.loinccode, analyte.analytename),
                subject=subject,
                effectiveDateTime=issued,
                valueQuantity=quantity(analyte.analytevalue, analyte.units),
                referenceRange=reference_range(low, high, analyte.units),
                interpretation=[interpretation_concept(analyte.abnormalflag)],
            )
            results.append(BundleBuilder.reference(observation))
        builder.add(
            "DiagnosticReport", f"{lab.labresultid}-{panel.loinccode}",
            status="final",
            category=category(DIAGNOSTIC_SERVICE_SECTION, "LAB", "Laboratory"),
            code=codeable_concept(LOINC, panel.loinccode, panel.panelname),
            subject=subject,
            effectiveDateTime=issued,
            issued=issued,
            performer=[{"display": lab.performinglabname}] if lab.performinglabname else None,
            result=results,
        )


def transform_athena_record(record: AthenaNativeRecord) -> TransactionBundle:
    """Map one Athena patient and its dependents into a transaction bundle."""
    patient = record.patient
    require(patient, "patientid", "lastname", "firstname")
    check_dependents(record)

    builder = BundleBuilder(SYSTEM)
    root = builder.add(
        "Patient", patient.patientid,
        active=True,
        name=human_name(patient.lastname, patient.firstname, patient.middlename),
        gender=ADMINISTRATIVE_GENDER.lookup(patient.sex),
        birthDate=fhir_date(patient.dob, DATE_FORMATS),
        telecom=telecom(patient.homephone, patient.mobilephone, patient.email),
        address=address(patient.address1, patient.city, patient.state, patient.zip,
                        patient.countrycode, patient.address2),
        maritalStatus=marital_status_concept(MARITAL_STATUS.lookup(patient.maritalstatus)),
        communication=communication(patient.language6392code),
        extension=race_ethnicity_extensions(patient.race, patient.racename,
                                            patient.ethnicity, patient.ethnicityname),
    )
    subject = BundleBuilder.reference(root, f"{patient.firstname} {patient.lastname}")

    for encounter in record.encounters:
        _encounter(builder, encounter, subject)

    for problem in record.problems:
        require(problem, "problemid", "icd10code")
        builder.add(
            "Condition", problem.problemid,
            clinicalStatus=codeable_concept(CONDITION_CLINICAL, PROBLEM_STATUS.lookup(problem.status)),
            category=category(CONDITION_CATEGORY, "problem-list-item", "Problem List Item"),
            code=codeable_concept(ICD10, problem.icd10code, problem.name),
            subject=subject,
            onsetDateTime=fhir_datetime(problem.onsetdate, DATETIME_FORMATS),
            note=[{"text": problem.note}] if problem.note else None,
        )

    for allergy in record.allergies:
        require(allergy, "allergyid", "allergenname")
        severity = ALLERGY_SEVERITY.lookup(allergy.severity)
        reaction = {"manifestation": [{"text": text} for text in allergy.reactions]}
        if severity:
            reaction["severity"] = severity
        builder.add(
            "AllergyIntolerance", allergy.allergyid,
            clinicalStatus=codeable_concept(ALLERGY_CLINICAL, ALLERGY_STATUS.lookup(allergy.status)),
            verificationStatus=codeable_concept(ALLERGY_VERIFICATION, "confirmed"),
            code=(codeable_concept(SNOMED, allergy.allergenid, allergy.allergenname)
                  if allergy.allergenid else {"text": allergy.allergenname}),
            patient=subject,
            onsetDateTime=fhir_datetime(allergy.onsetdate, DATETIME_FORMATS),
            reaction=[reaction] if allergy.reactions else None,
        )

    for medication in record.medications:
        require(medication, "medicationid", "medication")
        builder.add(
            "MedicationStatement", medication.medicationid,
            status=MEDICATION_STATUS.lookup(medication.status),
            medicationCodeableConcept=(
                codeable_concept(RXNORM, medication.medicationcode, medication.medication)
                if medication.medicationcode else {"text": medication.medication}
            ),
            subject=subject,
            dateAsserted=fhir_datetime(medication.prescribeddatetime, DATETIME_FORMATS),
            dosage=[{"text": medication.sig}] if medication.sig else None,
        )

    for vitals in record.vitals:
        _vitals(builder, vitals, subject)

    for lab in record.labresults:
        _lab_result(builder, lab, subject)

    logger.debug(f"Athena patient {patient.patientid} -> {len(builder.bundle)} resources")
    return builder.bundle
