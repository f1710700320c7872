"""Unit tests for the native, message and document transformers"""
from datetime import date, datetime

import pytest

from ehr_sync.domain.errors import ConfigurationError, TransformError
from ehr_sync.domain.native.elation import ElationNativeRecord
from ehr_sync.domain.records import ClinicalDocument
from ehr_sync.domain.systems import PROVENANCE_SYSTEM, Encoding, SourceSystem
from ehr_sync.generators.athena import generate_athena_records
from ehr_sync.generators.elation import generate_elation_records
from ehr_sync.generators.nextgen import generate_nextgen_records
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
from ehr_sync.transformers.athena import transform_athena_record
from ehr_sync.transformers.documents import transform_document
from ehr_sync.transformers.elation import transform_elation_record
from ehr_sync.transformers.messages import transform_interface_message
from ehr_sync.transformers.nextgen import transform_nextgen_record
from ehr_sync.transformers.registry import get_transformer

NATIVE = [
    (SourceSystem.ATHENA, generate_athena_records, transform_athena_record),
    (SourceSystem.ELATION, generate_elation_records, transform_elation_record),
    (SourceSystem.NEXTGEN, generate_nextgen_records, transform_nextgen_record),
]


def _assert_provenance(bundle, system):
    for entry in bundle:
        tags = [t for t in entry.resource["meta"]["tag"] if t["system"] == PROVENANCE_SYSTEM]
        assert len(tags) == 1
        assert tags[0]["code"] == system.value
        assert entry.resource["identifier"][0]["system"] == f"urn:{system.value}:{entry.resource_type}"


@pytest.mark.parametrize("system,generate,transform", NATIVE)
def test_native_record_becomes_one_patient_with_dependents(system, generate, transform):
    """Test a native record maps to one root Patient referenced by every dependent"""
    record = generate(1, seed=21)[0]
    bundle = transform(record)
    root = bundle.entries[0]

    assert root.resource_type == "Patient"
    assert len(bundle.of_type("Patient")) == 1
    assert root.resource["identifier"][0]["value"] == str(record.local_id)
    assert len(bundle) > 1
    _assert_provenance(bundle, system)

    for entry in bundle.entries[1:]:
        subject = entry.resource.get("subject") or entry.resource.get("patient")
        assert subject["reference"] == root.full_url
        assert subject["type"] == "Patient"


@pytest.mark.parametrize("system,generate,transform", NATIVE)
def test_entries_are_conditional_upserts(system, generate, transform):
    """Test re-transforming a record yields the same upsert keys"""
    record = generate(1, seed=4)[0]
    first, second = transform(record), transform(record)

    assert [e.full_url for e in first] == [e.full_url for e in second]
    for entry in first:
        ident = entry.resource["identifier"][0]
        assert entry.method == "PUT"
        assert entry.url == f"{entry.resource_type}?identifier={ident['system']}|{ident['value']}"
        assert entry.full_url.startswith("urn:uuid:")


def test_athena_missing_required_field_raises():
    record = generate_athena_records(1, seed=1)[0]
    record.patient.lastname = ""

    with pytest.raises(TransformError, match="lastname"):
        transform_athena_record(record)


def test_elation_missing_required_field_raises():
    record = generate_elation_records(1, seed=1)[0]
    record.patient.first_name = None

    with pytest.raises(TransformError, match="first_name"):
        transform_elation_record(record)


def test_nextgen_dependent_of_other_patient_raises():
    """Test a dependent pointing at another patient fails the whole record"""
    record = generate_nextgen_records(1, seed=1)[0]
    record.encounters[0].person_id = "someone-else"

    with pytest.raises(TransformError, match="someone-else"):
        transform_nextgen_record(record)


def test_unknown_codes_fall_back():
    record = generate_athena_records(1, seed=8)[0]
    record.patient.sex = "Z"
    record.encounters[0].encounterstatus = "NOT_A_STATUS"
    bundle = transform_athena_record(record)

    assert bundle.of_type("Patient")[0]["gender"] == "unknown"
    assert bundle.of_type("Encounter")[0]["status"] == "unknown"


def test_native_json_decoding_reports_missing_fields():
    with pytest.raises(TransformError):
        ElationNativeRecord.from_dict({"patient": {"id": 1}})


def _patient():
    return PatientIdentity(
        local_id="55501", mrn="NXG7654321", family_name="Doe", given_name="John",
        birth_date=date(1975, 1, 2), gender="male",
    )


def _visit():
    return VisitInfo(
        visit_number="V77", encounter_class="EMER", status="in-progress",
        start=datetime(2024, 4, 1, 8, 0, 0),
        attending=Practitioner("P1", "Grey", "Meredith"),
        facility=Facility("F2", "General Hospital"),
    )


def test_admit_message_maps_patient_encounter_and_condition():
    encoder = InterfaceMessageEncoder("NEXTGEN_EHR", "NEXTGEN_FACILITY")
    message = encoder.admit(_patient(), _visit(), CodedDiagnosis("I10", "Essential hypertension"))
    bundle = transform_interface_message(SourceSystem.NEXTGEN, message)

    assert [e.resource_type for e in bundle] == ["Patient", "Encounter", "Condition"]
    _assert_provenance(bundle, SourceSystem.NEXTGEN)
    patient = bundle.of_type("Patient")[0]
    encounter = bundle.of_type("Encounter")[0]
    condition = bundle.of_type("Condition")[0]
    assert patient["identifier"][0]["value"] == "NXG7654321"
    assert patient["gender"] == "male"
    assert encounter["identifier"][0]["value"] == "V77"
    assert encounter["class"]["code"] == "EMER"
    assert encounter["status"] == "in-progress"
    assert condition["identifier"][0]["value"] == "V77-I10"
    assert condition["subject"]["reference"] == bundle.entries[0].full_url


def test_lab_result_message_maps_observations_and_report():
    encoder = InterfaceMessageEncoder("ATHENA_EHR", "ATHENA_FACILITY")
    order = LabOrder("ORD5", "FIL5", "58410-2", "CBC panel", Practitioner("P1", "Grey", "Meredith"))
    observations = [
        LabObservation("718-7", "Hemoglobin", 10.2, "g/dL", low=12, high=16, interpretation="L"),
        LabObservation("6690-2", "Leukocytes", 7.1, "10*3/uL", low=4.5, high=11, interpretation="N"),
    ]
    message = encoder.lab_result(_patient(), order, observations)
    bundle = transform_interface_message(SourceSystem.ATHENA, message)

    assert message.message_type is MessageType.ORU_R01
    assert len(bundle.of_type("Observation")) == 2
    report = bundle.of_type("DiagnosticReport")[0]
    assert report["identifier"][0]["value"] == "FIL5"
    assert len(report["result"]) == 2
    low, normal = bundle.of_type("Observation")
    assert low["valueQuantity"]["value"] == 10.2
    assert low["interpretation"][0]["coding"][0]["code"] == "L"
    assert low["note"][0]["text"].startswith("Result below normal range")
    assert "note" not in normal


def test_undecodable_message_raises_transform_error():
    message = InterfaceMessage(
        message_type=MessageType.ADT_A01, control_id="BROKEN1",
        raw="PID|1||123", timestamp=datetime(2024, 1, 1),
    )

    with pytest.raises(TransformError, match="BROKEN1"):
        transform_interface_message(SourceSystem.ATHENA, message)


def _document():
    return ClinicalDocument(document_id="DOC-1", template_type="CCD", xml="<ClinicalDocument/>")


def test_document_resources_are_retagged():
    """Test converter output gets our provenance and identifier namespace"""
    parsed = {
        "resourceType": "Bundle",
        "entry": [
            {"fullUrl": "urn:uuid:abc", "resource": {
                "resourceType": "Patient", "id": "abc",
                "meta": {"tag": [{"system": PROVENANCE_SYSTEM, "code": "stale"},
                                 {"system": "http://other", "code": "keep"}]},
                "identifier": [{"system": "urn:mrn", "value": "42"}],
            }},
            {"resource": {"resourceType": "Observation", "status": "final"}},
        ],
    }
    bundle = transform_document(SourceSystem.ELATION, _document(), parsed)
    patient, observation = bundle.entries

    assert patient.url == "Patient/abc"
    assert patient.full_url == "urn:uuid:abc"
    assert {"system": "http://other", "code": "keep"} in patient.resource["meta"]["tag"]
    assert [t["code"] for t in patient.resource["meta"]["tag"] if t["system"] == PROVENANCE_SYSTEM] == ["elation"]
    assert patient.resource["identifier"][0] == {"system": "urn:elation:Patient", "value": "DOC-1-abc"}
    assert patient.resource["identifier"][1] == {"system": "urn:mrn", "value": "42"}
    assert observation.url == "Observation?identifier=urn:elation:Observation|DOC-1-1"
    # converter output is not mutated
    assert parsed["entry"][0]["resource"]["meta"]["tag"][0]["code"] == "stale"


def test_document_without_bundle_raises():
    with pytest.raises(TransformError):
        transform_document(SourceSystem.ATHENA, _document(), {"resourceType": "OperationOutcome"})


def test_document_with_non_object_entry_raises():
    with pytest.raises(TransformError, match="entry 0"):
        transform_document(SourceSystem.ATHENA, _document(), {"resourceType": "Bundle", "entry": ["oops"]})


def test_registry_returns_bound_transformers():
    assert get_transformer("athena", Encoding.NATIVE_JSON) is transform_athena_record
    assert get_transformer(SourceSystem.NEXTGEN, "native-json") is transform_nextgen_record

    message_transform = get_transformer("elation", Encoding.MESSAGE)
    encoder = InterfaceMessageEncoder("ELATION_EHR", "ELATION_FACILITY")
    bundle = message_transform(encoder.update(_patient(), _visit()))
    _assert_provenance(bundle, SourceSystem.ELATION)


def test_registry_rejects_unknown_pairs():
    with pytest.raises(ConfigurationError):
        get_transformer("epic", Encoding.NATIVE_JSON)
    with pytest.raises(ConfigurationError):
        get_transformer("athena", "fax")
