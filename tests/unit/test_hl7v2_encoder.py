"""Unit tests for the interface message encoder and decoder"""
from datetime import date, datetime

import pytest

from ehr_sync.hl7v2.encoding import MessageError, decode, escape, unescape, validate
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

FIXED_NOW = datetime(2024, 3, 1, 9, 30, 0)


@pytest.fixture
def encoder():
    return InterfaceMessageEncoder("ATHENA_EHR", "ATHENA_FACILITY", clock=lambda: FIXED_NOW)


@pytest.fixture
def patient():
    return PatientIdentity(
        local_id="100234",
        mrn="ATH1234567",
        family_name="Smith",
        given_name="Jane",
        birth_date=date(1980, 5, 17),
        gender="female",
        race_code="2106-3",
        marital_status="M",
        phone="(555) 123-4567",
    )


@pytest.fixture
def visit():
    return VisitInfo(
        visit_number="V1001",
        encounter_class="AMB",
        status="finished",
        start=datetime(2024, 2, 28, 14, 0, 0),
        end=datetime(2024, 2, 28, 14, 45, 0),
        attending=Practitioner("P9", "House", "Gregory", npi="1234567890"),
        facility=Facility("F1", "Main Street Clinic"),
    )


def _order():
    return LabOrder("ORD1", "FIL1", "24323-8", "Comprehensive metabolic panel",
                    Practitioner("P9", "House", "Gregory"))


def _observations(flags):
    return [
        LabObservation(f"2345-{i}", f"Analyte {i}", 100 + i, "mg/dL", low=70, high=110, interpretation=flag)
        for i, flag in enumerate(flags)
    ]


def test_admit_with_diagnosis_has_dg1(encoder, patient, visit):
    """Test ADT^A01 carries MSH, EVN, PID, PV1 and DG1 in order"""
    message = encoder.admit(patient, visit, CodedDiagnosis("E11.9", "Type 2 diabetes mellitus"))

    assert message.message_type is MessageType.ADT_A01
    assert decode(message.raw).segment_ids == ["MSH", "EVN", "PID", "PV1", "DG1"]


def test_admit_without_diagnosis_omits_dg1(encoder, patient, visit):
    message = encoder.admit(patient, visit)

    assert decode(message.raw).segment_ids == ["MSH", "EVN", "PID", "PV1"]


def test_header_has_fixed_field_count_and_message_type(encoder, patient, visit):
    """Test MSH is padded to twelve fields with the message type in MSH-9"""
    message = encoder.admit(patient, visit)
    header = message.raw.split("\r")[0]
    fields = header.split("|")

    assert len(fields) == 12
    assert fields[1] == "^~\\&"
    assert fields[2] == "ATHENA_EHR"
    assert fields[6] == "20240301093000"
    assert fields[8] == "ADT^A01"
    assert fields[9] == message.control_id
    assert fields[11] == "2.5.1"


def test_update_message_type(encoder, patient, visit):
    message = encoder.update(patient, visit)

    assert message.message_type is MessageType.ADT_A08
    assert decode(message.raw).message_code == "ADT^A08"


def test_lab_result_has_one_note_per_abnormal_result(encoder, patient):
    """Test ORU^R01 with five results writes an NTE after each abnormal OBX only"""
    observations = _observations(["N", "H", "N", "L", "HH"])
    message = encoder.lab_result(patient, _order(), observations)
    segment_ids = decode(message.raw).segment_ids

    assert segment_ids[:4] == ["MSH", "PID", "ORC", "OBR"]
    assert segment_ids.count("OBR") == 1
    assert segment_ids.count("OBX") == 5
    assert segment_ids.count("NTE") == 3
    # every NTE directly follows an abnormal OBX
    for index, segment_id in enumerate(segment_ids):
        if segment_id == "NTE":
            assert segment_ids[index - 1] == "OBX"


def test_lab_result_notes_describe_direction(encoder, patient):
    message = encoder.lab_result(patient, _order(), _observations(["H", "L"]))
    notes = [s.value("comment") for s in decode(message.raw).segments_of("NTE")]

    assert notes == [
        "Result above normal range. Please review.",
        "Result below normal range. Please review.",
    ]


def test_undirected_and_unknown_flags(encoder, patient):
    """Test A gets a neutral note while empty and unknown flags count as normal"""
    message = encoder.lab_result(patient, _order(), _observations(["A", "", "ZZ", "h"]))
    parsed = decode(message.raw)
    notes = [s.value("comment") for s in parsed.segments_of("NTE")]

    assert notes == [
        "Result outside normal range. Please review.",
        "Result above normal range. Please review.",
    ]
    assert [s.value("abnormal_flags") for s in parsed.segments_of("OBX")] == ["A", "N", "N", "H"]


def test_lab_result_requires_observations(encoder, patient):
    with pytest.raises(MessageError):
        encoder.lab_result(patient, _order(), [])


def test_decode_recovers_patient_and_visit(encoder, patient, visit):
    """Test decoding a built message yields the original field values"""
    message = encoder.admit(patient, visit)
    parsed = decode(message.raw)
    pid = parsed.segment("PID")
    pv1 = parsed.segment("PV1")

    assert parsed.control_id == message.control_id
    assert pid.component("patient_identifier_list", 0) == "ATH1234567"
    assert pid.component("patient_name", 0) == "Smith"
    assert pid.component("patient_name", 1) == "Jane"
    assert pid.value("date_of_birth") == "19800517"
    assert pid.value("administrative_sex") == "F"
    assert pid.component("phone_home", 0) == "5551234567"
    assert pid.value("patient_account_number") == "100234"
    assert pv1.value("visit_number") == "V1001"
    assert pv1.value("patient_class") == "O"
    assert pv1.value("visit_indicator") == "V"


def test_delimiters_in_values_are_escaped(encoder, patient, visit):
    """Test a name containing delimiter characters survives encoding"""
    patient.family_name = "O^Brien|Smith"
    message = encoder.admit(patient, visit)

    assert "O\\S\\Brien\\F\\Smith" in message.raw
    assert decode(message.raw).segment("PID").component("patient_name", 0) == "O^Brien|Smith"


def test_escape_round_trip():
    text = "a|b^c~d\\e&f"

    assert unescape(escape(text)) == text
    assert "|" not in escape(text)


def test_unknown_codes_fall_back(encoder, patient, visit):
    patient.gender = "robot"
    patient.race_code = "9999-9"
    pid = decode(encoder.admit(patient, visit).raw).segment("PID")

    assert pid.value("administrative_sex") == "U"
    assert pid.component("race", 0) == "UNK"


def test_control_ids_are_unique(encoder, patient, visit):
    control_ids = {encoder.update(patient, visit).control_id for _ in range(200)}

    assert len(control_ids) == 200


def test_from_raw_validates_and_reads_header(encoder, patient, visit):
    message = encoder.admit(patient, visit)
    restored = InterfaceMessage.from_raw(message.raw)

    assert restored.message_type is MessageType.ADT_A01
    assert restored.control_id == message.control_id
    assert restored.patient_id == "100234"


def test_validate_rejects_wrong_segment_order(encoder, patient, visit):
    message = encoder.admit(patient, visit)
    segments = message.raw.split("\r")
    shuffled = "\r".join([segments[0], segments[2], segments[1], segments[3]])

    with pytest.raises(MessageError):
        validate(decode(shuffled))


def test_decode_rejects_missing_header():
    with pytest.raises(MessageError):
        decode("PID|1||123")
