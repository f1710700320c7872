"""Synthetic interface message feed: a random mix of admits, updates and lab results."""

from datetime import timedelta
from typing import List, Optional

from ehr_sync.generators import reference_data as ref
from ehr_sync.generators.common import SyntheticDataFactory
from ehr_sync.hl7v2.messages import (
    CodedDiagnosis,
    Facility,
    InterfaceMessage,
    InterfaceMessageEncoder,
    LabObservation,
    LabOrder,
    MessageType,
    PatientIdentity,
    Practitioner,
    VisitInfo,
)

LAB_RESULT_COUNT = (3, 10)
VISIT_CLASSES = ("AMB", "AMB", "EMER", "IMP", "VR")


def _patient(factory: SyntheticDataFactory, mrn_prefix: str) -> PatientIdentity:
    person = factory.person()
    return PatientIdentity(
        local_id=str(factory.next_id()),
        mrn=f"{mrn_prefix}{factory.digits(7)}",
        family_name=person.family_name,
        given_name=person.given_name,
        middle_name=person.middle_name,
        birth_date=person.birth_date,
        gender=person.gender,
        race_code=person.race_code,
        ethnicity_code=person.ethnicity_code,
        marital_status=person.marital_status,
        street=person.street,
        city=person.city,
        state=person.state,
        postal_code=person.postal_code,
        phone=person.home_phone,
        language=person.language,
        ssn=person.ssn,
    )


def _practitioner(provider: ref.Provider) -> Practitioner:
    return Practitioner(provider.id, provider.last_name, provider.first_name, provider.npi)


def _visit(factory: SyntheticDataFactory) -> VisitInfo:
    start = factory.recent_datetime(days=30)
    finished = factory.chance(0.6)
    facility = factory.facility()
    return VisitInfo(
        visit_number=f"V{factory.next_id()}",
        encounter_class=factory.choice(VISIT_CLASSES),
        status="finished" if finished else "in-progress",
        start=start,
        end=start + timedelta(minutes=factory.random.randint(15, 240)) if finished else None,
        attending=_practitioner(factory.provider()),
        facility=Facility(facility.id, facility.name),
    )


def generate_interface_message(factory: SyntheticDataFactory, encoder: InterfaceMessageEncoder,
                               mrn_prefix: str,
                               message_type: Optional[MessageType] = None) -> InterfaceMessage:
    message_type = message_type or factory.choice(list(MessageType))
    patient = _patient(factory, mrn_prefix)

    if message_type is MessageType.ADT_A01:
        diagnosis = factory.diagnosis()
        return encoder.admit(patient, _visit(factory), CodedDiagnosis(diagnosis.code, diagnosis.display))
    if message_type is MessageType.ADT_A08:
        return encoder.update(patient, _visit(factory))

    panel = factory.lab_panel()
    order = LabOrder(
        placer_number=f"ORD{factory.next_id()}",
        filler_number=f"FIL{factory.next_id()}",
        panel_code=panel.code,
        panel_name=panel.name,
        ordering_provider=_practitioner(factory.provider()),
    )
    observations = [
        LabObservation(
            code=lab.test.code,
            display=lab.test.display,
            value=lab.value,
            unit=lab.test.unit,
            low=lab.test.low,
            high=lab.test.high,
            interpretation=lab.interpretation,
        )
        for lab in factory.lab_values(*LAB_RESULT_COUNT)
    ]
    return encoder.lab_result(patient, order, observations, observed_at=factory.recent_datetime(days=7))


def generate_interface_messages(count: int, sending_application: str, sending_facility: str,
                                mrn_prefix: str, seed: Optional[int] = None,
                                factory: Optional[SyntheticDataFactory] = None) -> List[InterfaceMessage]:
    factory = factory or SyntheticDataFactory(seed)
    encoder = InterfaceMessageEncoder(sending_application, sending_facility)
    return [generate_interface_message(factory, encoder, mrn_prefix) for _ in range(count)]
