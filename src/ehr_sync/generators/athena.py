"""Synthetic Athena Health records."""

from typing import List, Optional

from ehr_sync.domain.native.athena import (
    VITAL_ELEMENT_LOINC,
    AthenaAllergy,
    AthenaAnalyte,
    AthenaDiagnosis,
    AthenaEncounter,
    AthenaLabPanel,
    AthenaLabResult,
    AthenaMedication,
    AthenaNativeRecord,
    AthenaPatient,
    AthenaProblem,
    AthenaVitalReading,
    AthenaVitals,
)
from ehr_sync.generators import reference_data as ref
from ehr_sync.generators.common import SyntheticDataFactory

DEPENDENT_COUNTS = {
    "encounters": (1, 4),
    "problems": (0, 4),
    "allergies": (0, 3),
    "medications": (0, 6),
    "vitals": (1, 3),
    "labresults": (0, 2),
    "analytes": (5, 12),
}

ENCOUNTER_TYPES = ("OFFICE", "TELEHEALTH", "INPATIENT", "EMERGENCY", "HOME VISIT")
ENCOUNTER_STATUSES = ("OPEN", "CLOSED", "CLOSED", "CLOSED", "CANCELLED")
PROBLEM_STATUSES = ("ACTIVE", "CHRONIC", "RESOLVED", "INACTIVE")
ALLERGY_SEVERITIES = ("MILD", "MODERATE", "SEVERE")
MEDICATION_STATUSES = ("active", "active", "discontinued", "completed")
MARITAL_STATUSES = {"S": "SINGLE", "M": "MARRIED", "D": "DIVORCED", "W": "WIDOWED", "A": "SEPARATED"}
RACE_NAMES = {
    "2106-3": "White",
    "2054-5": "Black or African American",
    "2028-9": "Asian",
    "2076-8": "Native Hawaiian or Other Pacific Islander",
    "2131-1": "Other Race",
}
ETHNICITY_NAMES = {"2135-2": "Hispanic or Latino", "2186-5": "Not Hispanic or Latino"}

_LOINC_ELEMENTS = {loinc: element for element, loinc in VITAL_ELEMENT_LOINC.items()}


def _date(value) -> str:
    return value.strftime("%m/%d/%Y")


def _datetime(value) -> str:
    return value.strftime("%m/%d/%Y %H:%M:%S")


def generate_athena_patient(factory: SyntheticDataFactory, department_id: str) -> AthenaPatient:
    person = factory.person()
    return AthenaPatient(
        patientid=str(factory.next_id()),
        departmentid=department_id,
        enterpriseid=f"E{factory.next_id()}",
        firstname=person.given_name,
        middlename=person.middle_name,
        lastname=person.family_name,
        dob=_date(person.birth_date),
        sex="M" if person.gender == "male" else "F",
        ssn=person.ssn,
        email=person.email,
        homephone=person.home_phone,
        mobilephone=person.mobile_phone,
        address1=person.street,
        city=person.city,
        state=person.state,
        zip=person.postal_code,
        maritalstatus=MARITAL_STATUSES[person.marital_status],
        race=person.race_code,
        racename=RACE_NAMES[person.race_code],
        ethnicity=person.ethnicity_code,
        ethnicityname=ETHNICITY_NAMES[person.ethnicity_code],
        language6392code=person.language,
        primaryproviderid=factory.provider().id,
        registrationdate=_date(factory.recent_datetime(days=3650)),
    )


def _encounter(factory, patient: AthenaPatient) -> AthenaEncounter:
    provider = factory.provider()
    started = factory.recent_datetime()
    status = factory.choice(ENCOUNTER_STATUSES)
    diagnoses = [
        AthenaDiagnosis(icd10code=d.code, description=d.display, sequence=i)
        for i, d in enumerate(factory.sample(ref.DIAGNOSES, 1, 3), start=1)
    ]
    return AthenaEncounter(
        encounterid=str(factory.next_id()),
        patientid=patient.patientid,
        departmentid=patient.departmentid,
        encountertype=factory.choice(ENCOUNTER_TYPES),
        encounterstatus=status,
        encounterdate=_date(started),
        providerid=provider.id,
        providerfirstname=provider.first_name,
        providerlastname=provider.last_name,
        closeddatetime=_datetime(started) if status == "CLOSED" else None,
        diagnoses=diagnoses,
    )


def _vitals(factory, patient: AthenaPatient) -> AthenaVitals:
    readings = []
    for vital in ref.VITAL_SIGNS:
        value = factory.vital_value(vital)
        readings.append(AthenaVitalReading(
            clinicalelementid=_LOINC_ELEMENTS[vital.code],
            vitalname=vital.display,
            vitalvalue=str(value.value),
            vitalunits=vital.unit,
        ))
    return AthenaVitals(
        vitalid=str(factory.next_id()),
        patientid=patient.patientid,
        readingdatetime=_datetime(factory.recent_datetime()),
        vitals=readings,
    )


def _lab_result(factory, patient: AthenaPatient) -> AthenaLabResult:
    panel = factory.lab_panel()
    low, high = DEPENDENT_COUNTS["analytes"]
    analytes = [
        AthenaAnalyte(
            analytename=lab.test.display,
            analytevalue=str(lab.value),
            loinccode=lab.test.code,
            units=lab.test.unit,
            referencerange=lab.reference_range,
            abnormalflag=lab.interpretation,
        )
        for lab in factory.lab_values(low, high)
    ]
    return AthenaLabResult(
        labresultid=str(factory.next_id()),
        patientid=patient.patientid,
        orderid=str(factory.next_id()),
        resultdate=_date(factory.recent_datetime(days=180)),
        performinglabname=factory.choice(("Quest Diagnostics", "LabCorp", "BioReference")),
        orderingproviderid=factory.provider().id,
        panels=[AthenaLabPanel(panelname=panel.name, loinccode=panel.code, analytes=analytes)],
    )


def generate_athena_record(factory: SyntheticDataFactory,
                           department_id: str = "1") -> AthenaNativeRecord:
    """One patient with dependents inside the Athena dependent count bounds."""
    patient = generate_athena_patient(factory, department_id)

    problems = [
        AthenaProblem(
            problemid=str(factory.next_id()),
            patientid=patient.patientid,
            icd10code=d.code,
            name=d.display,
            status=factory.choice(PROBLEM_STATUSES),
            onsetdate=_date(factory.recent_datetime(days=3650)),
        )
        for d in factory.sample(ref.DIAGNOSES, *DEPENDENT_COUNTS["problems"])
    ]
    allergies = [
        AthenaAllergy(
            allergyid=str(factory.next_id()),
            patientid=patient.patientid,
            allergenname=a.display,
            allergenid=a.code,
            severity=factory.choice(ALLERGY_SEVERITIES),
            reactions=[a.reaction],
            onsetdate=_date(factory.recent_datetime(days=3650)),
        )
        for a in factory.sample(ref.ALLERGENS, *DEPENDENT_COUNTS["allergies"])
    ]
    medications = [
        AthenaMedication(
            medicationid=str(factory.next_id()),
            patientid=patient.patientid,
            medication=m.display,
            medicationcode=m.rxnorm,
            sig=f"Take {m.dosage} {m.frequency}",
            status=factory.choice(MEDICATION_STATUSES),
            prescribeddatetime=_datetime(factory.recent_datetime()),
            refills=factory.random.randint(0, 5),
        )
        for m in factory.sample(ref.MEDICATIONS, *DEPENDENT_COUNTS["medications"])
    ]

    return AthenaNativeRecord(
        patient=patient,
        encounters=[_encounter(factory, patient) for _ in range(factory.between(DEPENDENT_COUNTS["encounters"]))],
        problems=problems,
        allergies=allergies,
        medications=medications,
        vitals=[_vitals(factory, patient) for _ in range(factory.between(DEPENDENT_COUNTS["vitals"]))],
        labresults=[_lab_result(factory, patient) for _ in range(factory.between(DEPENDENT_COUNTS["labresults"]))],
    )


def generate_athena_records(count: int, seed: Optional[int] = None,
                            factory: Optional[SyntheticDataFactory] = None) -> List[AthenaNativeRecord]:
    factory = factory or SyntheticDataFactory(seed)
    return [generate_athena_record(factory) for _ in range(count)]
