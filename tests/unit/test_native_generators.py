"""Unit tests for the synthetic record generators"""
import pytest

from ehr_sync.adapters.native_store import NativeRecordStore
from ehr_sync.adapters.sources.synthetic import SyntheticRecordSource
from ehr_sync.domain.records import NATIVE_RECORD_TYPES
from ehr_sync.domain.systems import SourceSystem
from ehr_sync.generators import athena, elation, nextgen
from ehr_sync.generators.snapshots import generate_snapshot
from ehr_sync.hl7v2.encoding import decode, validate


def _within(items, bounds):
    low, high = bounds
    return low <= len(items) <= high


def test_athena_records_respect_dependent_bounds():
    records = athena.generate_athena_records(10, seed=7)
    bounds = athena.DEPENDENT_COUNTS

    assert len(records) == 10
    for record in records:
        assert _within(record.encounters, bounds["encounters"])
        assert _within(record.problems, bounds["problems"])
        assert _within(record.allergies, bounds["allergies"])
        assert _within(record.medications, bounds["medications"])
        assert _within(record.vitals, bounds["vitals"])
        assert _within(record.labresults, bounds["labresults"])


def test_elation_records_respect_dependent_bounds():
    bounds = elation.DEPENDENT_COUNTS
    for record in elation.generate_elation_records(10, seed=7):
        assert _within(record.visit_notes, bounds["visit_notes"])
        assert _within(record.problems, bounds["problems"])
        assert _within(record.lab_orders, bounds["lab_orders"])


def test_nextgen_records_respect_dependent_bounds():
    bounds = nextgen.DEPENDENT_COUNTS
    for record in nextgen.generate_nextgen_records(10, seed=7):
        assert _within(record.encounters, bounds["encounters"])
        assert _within(record.medications, bounds["medications"])
        assert _within(record.lab_orders, bounds["lab_orders"])


@pytest.mark.parametrize("generate", [
    athena.generate_athena_records,
    elation.generate_elation_records,
    nextgen.generate_nextgen_records,
])
def test_dependents_reference_their_root_record(generate):
    """Test every dependent points at the patient it is shipped with"""
    for record in generate(5, seed=3):
        references = list(record.dependent_references())
        assert references
        assert all(str(patient) == str(record.local_id) for _, patient in references)


@pytest.mark.parametrize("generate", [
    athena.generate_athena_records,
    elation.generate_elation_records,
    nextgen.generate_nextgen_records,
])
def test_patient_ids_are_unique_within_a_batch(generate):
    ids = [record.local_id for record in generate(20, seed=11)]

    assert len(set(ids)) == 20


def test_seed_reproduces_the_batch():
    first = athena.generate_athena_records(3, seed=99)
    second = athena.generate_athena_records(3, seed=99)

    assert [r.local_id for r in first] == [r.local_id for r in second]
    assert [r.patient.lastname for r in first] == [r.patient.lastname for r in second]


@pytest.mark.parametrize("system", list(SourceSystem))
def test_generated_records_survive_json_round_trip(system):
    """Test generated records decode from the JSON a live source would send"""
    snapshot = generate_snapshot(system, 2, document_count=0, message_count=0, seed=5)
    record_type = NATIVE_RECORD_TYPES[system]

    for record in snapshot.records:
        restored = record_type.from_dict(record.to_dict())
        assert restored.local_id == record.local_id


def test_snapshot_messages_are_valid():
    snapshot = generate_snapshot(SourceSystem.NEXTGEN, 1, document_count=2, message_count=6, seed=1)

    assert len(snapshot.documents) == 2
    assert len(snapshot.messages) == 6
    for message in snapshot.messages:
        validate(decode(message.raw))
        assert message.raw.split("|")[2] == "NEXTGEN_EHR"


def test_snapshot_documents_carry_template_and_xml():
    snapshot = generate_snapshot(SourceSystem.ELATION, 1, document_count=3, message_count=0, seed=2)

    for document in snapshot.documents:
        assert document.template_oid is not None
        assert document.xml.lstrip().startswith("<")
        assert "ClinicalDocument" in document.xml


def test_regenerate_swaps_the_whole_snapshot():
    """Test regeneration replaces records, documents and messages together"""
    store = NativeRecordStore()
    source = SyntheticRecordSource(
        SourceSystem.ATHENA, store,
        {"patient_count": 2, "document_count": 1, "message_count": 1, "seed": 1},
    )
    before = source.regenerate()
    after = source.regenerate(patient_count=4, seed=2)

    current = store.snapshot(SourceSystem.ATHENA)
    assert current is after
    assert len(before.records) == 2
    assert len(current.records) == 4
    assert len(current.documents) == 1
    assert len(current.messages) == 1
    for record in current.records:
        assert all(str(p) == record.local_id for _, p in record.dependent_references())
