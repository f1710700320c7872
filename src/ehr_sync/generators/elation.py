"""Synthetic Elation Health records."""

from typing import List, Optional

from ehr_sync.domain.native.elation import (
    ElationAddress,
    ElationAllergy,
    ElationDiagnosisCode,
    ElationEmail,
    ElationLabOrder,
    ElationLabResult,
    ElationMedication,
    ElationNativeRecord,
    ElationPatient,
    ElationPhone,
    ElationProblem,
    ElationVisitNote,
    ElationVitals,
)
from ehr_sync.generators import reference_data as ref
from ehr_sync.generators.common import SyntheticDataFactory

DEPENDENT_COUNTS = {
    "visit_notes": (1, 4),
    "problems": (0, 4),
    "allergies": (0, 3),
    "medications": (0, 6),
    "lab_orders": (0, 3),
    "results": (3, 8),
}

VISIT_TYPES = ("Office Visit", "Telehealth", "Annual Physical", "Follow-up", "Urgent")
VISIT_STATUSES = ("Scheduled", "Checked In", "In Progress", "Completed", "Completed", "Cancelled")
PROBLEM_STATUSES = ("Active", "Resolved", "Inactive")
MEDICATION_STATUSES = ("Active", "Active", "Completed", "Discontinued")
ALLERGEN_TYPES = {"medication": "Drug", "food": "Food", "environment": "Environmental"}
MARITAL_STATUSES = {"S": "Single", "M": "Married", "D": "Divorced", "W": "Widowed", "A": "Separated"}
RACES = {
    "2106-3": "White",
    "2054-5": "Black or African American",
    "2028-9": "Asian",
    "2076-8": "Native Hawaiian or Other Pacific Islander",
    "2131-1": "Other",
}
ETHNICITIES = {"2135-2": "Hispanic or Latino", "2186-5": "Not Hispanic or Latino"}
PHYSICIAN_IDS = {provider.id: 14000 + index for index, provider in enumerate(ref.PROVIDERS, start=1)}


def generate_elation_patient(factory: SyntheticDataFactory, practice_id: int) -> ElationPatient:
    person = factory.person()
    return ElationPatient(
        id=factory.next_id(),
        first_name=person.given_name,
        middle_name=person.middle_name,
        last_name=person.family_name,
        sex="Male" if person.gender == "male" else "Female",
        dob=person.birth_date.isoformat(),
        primary_physician=PHYSICIAN_IDS[factory.provider().id],
        caregiver_practice=practice_id,
        ssn=person.ssn.replace("-", ""),
        race=RACES[person.race_code],
        ethnicity=ETHNICITIES[person.ethnicity_code],
        preferred_language=person.language,
        marital_status=MARITAL_STATUSES[person.marital_status],
        address=ElationAddress(
            address_line1=person.street,
            city=person.city,
            state=person.state,
            zip=person.postal_code,
        ),
        phones=[
            ElationPhone(phone=person.mobile_phone, phone_type="Mobile", is_primary=True),
            ElationPhone(phone=person.home_phone, phone_type="Home"),
        ],
        emails=[ElationEmail(email=person.email, is_primary=True)],
        created_date=factory.recent_datetime(days=3650).isoformat(),
    )


def _visit_note(factory, patient: ElationPatient) -> ElationVisitNote:
    status = factory.choice(VISIT_STATUSES)
    documented = factory.recent_datetime()
    vitals = None
    if status in ("Roomed", "In Progress", "Completed"):
        by_code = {v.code: factory.vital_value(v).value for v in ref.VITAL_SIGNS}
        vitals = ElationVitals(
            bp_systolic=int(by_code["8480-6"]),
            bp_diastolic=int(by_code["8462-4"]),
            heart_rate=int(by_code["8867-4"]),
            respiratory_rate=int(by_code["9279-1"]),
            temperature=by_code["8310-5"],
            weight=round(by_code["29463-7"] * 2.20462, 1),
            height=round(by_code["8302-2"] / 2.54, 1),
            oxygen_saturation=int(by_code["2708-6"]),
        )
    return ElationVisitNote(
        id=factory.next_id(),
        patient=patient.id,
        physician=PHYSICIAN_IDS[factory.provider().id],
        document_date=documented.isoformat(),
        visit_type=factory.choice(VISIT_TYPES),
        status=status,
        chief_complaint=factory.choice(ref.ENCOUNTER_REASONS),
        assessment=factory.fake.sentence(),
        plan=factory.fake.sentence(),
        signed_date=documented.isoformat() if status == "Completed" else None,
        icd10_codes=[
            ElationDiagnosisCode(code=d.code, description=d.display, rank=rank)
            for rank, d in enumerate(factory.sample(ref.DIAGNOSES, 1, 3), start=1)
        ],
        vitals=vitals,
    )


def _lab_order(factory, patient: ElationPatient) -> ElationLabOrder:
    panel = factory.lab_panel()
    ordered = factory.recent_datetime(days=180)
    results = [
        ElationLabResult(
            test_name=lab.test.display,
            loinc_code=lab.test.code,
            value=str(lab.value),
            units=lab.test.unit,
            reference_range=lab.reference_range,
            abnormal_flag=lab.interpretation,
        )
        for lab in factory.lab_values(*DEPENDENT_COUNTS["results"])
    ]
    return ElationLabOrder(
        id=factory.next_id(),
        patient=patient.id,
        ordering_physician=PHYSICIAN_IDS[factory.provider().id],
        order_date=ordered.isoformat(),
        panel_name=panel.name,
        panel_loinc=panel.code,
        lab_name=factory.choice(("Quest Diagnostics", "LabCorp")),
        resulted_date=ordered.isoformat(),
        results=results,
    )


def generate_elation_record(factory: SyntheticDataFactory, practice_id: int = 65540) -> ElationNativeRecord:
    patient = generate_elation_patient(factory, practice_id)

    problems = [
        ElationProblem(
            id=factory.next_id(),
            patient=patient.id,
            icd10_code=d.code,
            description=d.display,
            status=factory.choice(PROBLEM_STATUSES),
            onset_date=factory.recent_datetime(days=3650).date().isoformat(),
        )
        for d in factory.sample(ref.DIAGNOSES, *DEPENDENT_COUNTS["problems"])
    ]
    allergies = [
        ElationAllergy(
            id=factory.next_id(),
            patient=patient.id,
            name=a.display,
            allergen_type=ALLERGEN_TYPES[a.category],
            reaction=a.reaction,
            severity=factory.choice(("Mild", "Moderate", "Severe")),
            snomed_code=a.code,
        )
        for a in factory.sample(ref.ALLERGENS, *DEPENDENT_COUNTS["allergies"])
    ]
    medications = [
        ElationMedication(
            id=factory.next_id(),
            patient=patient.id,
            medication_name=m.display,
            rxnorm_cui=m.rxnorm,
            sig=f"{m.dosage} {m.frequency}",
            status=factory.choice(MEDICATION_STATUSES),
            refills=factory.random.randint(0, 5),
            prescribing_physician=patient.primary_physician,
            start_date=factory.recent_datetime().date().isoformat(),
        )
        for m in factory.sample(ref.MEDICATIONS, *DEPENDENT_COUNTS["medications"])
    ]

    return ElationNativeRecord(
        patient=patient,
        visit_notes=[_visit_note(factory, patient)
                     for _ in range(factory.between(DEPENDENT_COUNTS["visit_notes"]))],
        problems=problems,
        allergies=allergies,
        medications=medications,
        lab_orders=[_lab_order(factory, patient)
                    for _ in range(factory.between(DEPENDENT_COUNTS["lab_orders"]))],
    )


def generate_elation_records(count: int, seed: Optional[int] = None,
                             factory: Optional[SyntheticDataFactory] = None) -> List[ElationNativeRecord]:
    factory = factory or SyntheticDataFactory(seed)
    return [generate_elation_record(factory) for _ in range(count)]
