"""Synthetic NextGen Healthcare records."""

from typing import List, Optional

from ehr_sync.domain.native.nextgen import (
    NextGenAddress,
    NextGenAllergy,
    NextGenDiagnosis,
    NextGenEncounter,
    NextGenLabOrder,
    NextGenLabResult,
    NextGenMedication,
    NextGenNativeRecord,
    NextGenPatient,
    NextGenProblem,
    NextGenVitals,
)
from ehr_sync.generators import reference_data as ref
from ehr_sync.generators.common import SyntheticDataFactory

DEPENDENT_COUNTS = {
    "encounters": (1, 4),
    "problems": (0, 4),
    "allergies": (0, 3),
    "medications": (0, 6),
    "lab_orders": (0, 3),
    "results": (3, 8),
}

ENCOUNTER_TYPES = ("office visit", "telehealth", "hospital visit", "emergency", "procedure", "consultation")
ENCOUNTER_STATUSES = ("Open", "Closed", "Closed", "Billed", "Void")
PROBLEM_STATUSES = ("Active", "Chronic", "Resolved", "Inactive")
ALLERGY_STATUSES = ("Active", "Active", "Active", "Inactive")
MEDICATION_STATUSES = ("Active", "Active", "Completed", "Discontinued", "On Hold")


def generate_nextgen_patient(factory: SyntheticDataFactory, practice_id: str) -> NextGenPatient:
    person = factory.person()
    person_id = f"{factory.next_id()}-{factory.digits(4)}"
    return NextGenPatient(
        person_id=person_id,
        practice_id=practice_id,
        enterprise_id="00001",
        first_name=person.given_name,
        middle_name=person.middle_name,
        last_name=person.family_name,
        date_of_birth=person.birth_date.isoformat(),
        gender="M" if person.gender == "male" else "F",
        medical_record_number=f"NXG{factory.digits(8)}",
        ssn=person.ssn,
        email_address=person.email,
        home_phone=person.home_phone,
        mobile_phone=person.mobile_phone,
        marital_status_code=person.marital_status,
        race_code=person.race_code,
        ethnicity_code=person.ethnicity_code,
        language_code=person.language,
        address=NextGenAddress(
            address_line_1=person.street,
            city=person.city,
            state_code=person.state,
            postal_code=person.postal_code,
        ),
    )


def _encounter(factory, patient: NextGenPatient) -> NextGenEncounter:
    provider = factory.provider()
    facility = factory.facility()
    started = factory.recent_datetime()
    status = factory.choice(ENCOUNTER_STATUSES)
    vitals = None
    if status != "Void":
        by_code = {v.code: factory.vital_value(v).value for v in ref.VITAL_SIGNS}
        vitals = NextGenVitals(
            vitals_id=str(factory.next_id()),
            recorded_date=started.isoformat(),
            height_inches=round(by_code["8302-2"] / 2.54, 1),
            weight_lbs=round(by_code["29463-7"] * 2.20462, 1),
            blood_pressure_systolic=int(by_code["8480-6"]),
            blood_pressure_diastolic=int(by_code["8462-4"]),
            pulse_rate=int(by_code["8867-4"]),
            respiratory_rate=int(by_code["9279-1"]),
            temperature_fahrenheit=by_code["8310-5"],
            oxygen_saturation=int(by_code["2708-6"]),
        )
    return NextGenEncounter(
        encounter_id=str(factory.next_id()),
        person_id=patient.person_id,
        encounter_date=started.isoformat(),
        encounter_type=factory.choice(ENCOUNTER_TYPES),
        encounter_status=status,
        rendering_provider_id=provider.id,
        rendering_provider_name=f"{provider.first_name} {provider.last_name}",
        location_id=facility.id,
        location_name=facility.name,
        chief_complaint=factory.choice(ref.ENCOUNTER_REASONS),
        checkout_date=started.isoformat() if status in ("Closed", "Billed") else None,
        diagnoses=[
            NextGenDiagnosis(icd_code=d.code, description=d.display, sequence_number=i,
                             diagnosis_type="Primary" if i == 1 else "Secondary")
            for i, d in enumerate(factory.sample(ref.DIAGNOSES, 1, 3), start=1)
        ],
        vitals=vitals,
    )


def _lab_order(factory, patient: NextGenPatient) -> NextGenLabOrder:
    panel = factory.lab_panel()
    ordered = factory.recent_datetime(days=180)
    results = [
        NextGenLabResult(
            result_id=str(factory.next_id()),
            loinc_code=lab.test.code,
            test_name=lab.test.display,
            result_value=str(lab.value),
            result_unit=lab.test.unit,
            reference_range_low=lab.test.low,
            reference_range_high=lab.test.high,
            abnormal_flag=lab.interpretation,
        )
        for lab in factory.lab_values(*DEPENDENT_COUNTS["results"])
    ]
    return NextGenLabOrder(
        order_id=str(factory.next_id()),
        person_id=patient.person_id,
        order_date=ordered.isoformat(),
        panel_code=panel.code,
        panel_name=panel.name,
        ordering_provider_id=factory.provider().id,
        performing_lab_name=factory.choice(("Quest Diagnostics", "LabCorp")),
        result_date=ordered.isoformat(),
        results=results,
    )


def generate_nextgen_record(factory: SyntheticDataFactory, practice_id: str = "0001") -> NextGenNativeRecord:
    patient = generate_nextgen_patient(factory, practice_id)

    problems = [
        NextGenProblem(
            problem_id=str(factory.next_id()),
            person_id=patient.person_id,
            icd_code=d.code,
            description=d.display,
            status=factory.choice(PROBLEM_STATUSES),
            onset_date=factory.recent_datetime(days=3650).date().isoformat(),
        )
        for d in factory.sample(ref.DIAGNOSES, *DEPENDENT_COUNTS["problems"])
    ]
    allergies = [
        NextGenAllergy(
            allergy_id=str(factory.next_id()),
            person_id=patient.person_id,
            allergen_name=a.display,
            allergen_type=a.category,
            allergen_code=a.code,
            reaction_description=a.reaction,
            reaction_severity=factory.choice(("mild", "moderate", "severe")),
            status=factory.choice(ALLERGY_STATUSES),
            verified=factory.chance(0.7),
        )
        for a in factory.sample(ref.ALLERGENS, *DEPENDENT_COUNTS["allergies"])
    ]
    medications = [
        NextGenMedication(
            medication_id=str(factory.next_id()),
            person_id=patient.person_id,
            drug_name=m.display,
            drug_code=m.rxnorm,
            dosage=m.dosage,
            route="oral",
            frequency=m.frequency,
            sig=f"Take {m.dosage} by mouth {m.frequency}",
            status=factory.choice(MEDICATION_STATUSES),
            prescription_date=factory.recent_datetime().date().isoformat(),
            prescribing_provider_id=factory.provider().id,
        )
        for m in factory.sample(ref.MEDICATIONS, *DEPENDENT_COUNTS["medications"])
    ]

    return NextGenNativeRecord(
        patient=patient,
        encounters=[_encounter(factory, patient)
                    for _ in range(factory.between(DEPENDENT_COUNTS["encounters"]))],
        problems=problems,
        allergies=allergies,
        medications=medications,
        lab_orders=[_lab_order(factory, patient)
                    for _ in range(factory.between(DEPENDENT_COUNTS["lab_orders"]))],
    )


def generate_nextgen_records(count: int, seed: Optional[int] = None,
                             factory: Optional[SyntheticDataFactory] = None) -> List[NextGenNativeRecord]:
    factory = factory or SyntheticDataFactory(seed)
    return [generate_nextgen_record(factory) for _ in range(count)]
