"""Pipe-delimited interface messages -> canonical resources."""

import logging
from typing import Optional

from ehr_sync.codes import (
    ADMINISTRATIVE_GENDER,
    CONDITION_CATEGORY,
    CONDITION_CLINICAL,
    DIAGNOSTIC_SERVICE_SECTION,
    ENCOUNTER_CLASS,
    ICD10,
    LOINC,
    codeable_concept,
    encounter_class_coding,
    interpretation_concept,
    marital_status_concept,
)
from ehr_sync.domain.bundle import TransactionBundle
from ehr_sync.domain.errors import TransformError
from ehr_sync.domain.systems import SourceSystem
from ehr_sync.hl7v2.encoding import (
    MessageError,
    ParsedMessage,
    Segment,
    decode,
    parse_timestamp,
    validate,
)
from ehr_sync.hl7v2.messages import InterfaceMessage
from ehr_sync.transformers.base import (
    BundleBuilder,
    address,
    category,
    communication,
    observation_category,
    quantity,
    race_ethnicity_extensions,
    reference_range,
    split_range,
    telecom,
)

logger = logging.getLogger(__name__)

UNKNOWN_CODES = ("", "UNK")
RESULT_STATUS = {"F": "final", "P": "preliminary", "C": "corrected", "X": "cancelled"}


def _timestamp(segment: Segment, field: str) -> Optional[str]:
    parsed = parse_timestamp(segment.value(field))
    return parsed.isoformat() if parsed else None


def _coded(segment: Segment, field: str):
    code, display = segment.component(field, 0), segment.component(field, 1)
    if code in UNKNOWN_CODES:
        return None, None
    return code, display or None


def _patient(builder: BundleBuilder, pid: Segment):
    mrn = pid.component("patient_identifier_list", 0)
    if not mrn:
        raise TransformError("PID segment without a patient identifier")
    family, given = pid.component("patient_name", 0), pid.component("patient_name", 1)
    middle = pid.component("patient_name", 2)
    birth = pid.value("date_of_birth")
    race_code, race_display = _coded(pid, "race")
    ethnicity_code, ethnicity_display = _coded(pid, "ethnic_group")
    marital = pid.component("marital_status", 0)

    root = builder.add(
        "Patient", mrn,
        name=[{"use": "official", "family": family, "given": [n for n in (given, middle) if n]}],
        gender=ADMINISTRATIVE_GENDER.lookup(pid.value("administrative_sex")),
        birthDate=f"{birth[:4]}-{birth[4:6]}-{birth[6:8]}" if len(birth) >= 8 else None,
        telecom=telecom(pid.component("phone_home", 0) or None),
        address=address(
            pid.component("patient_address", 0),
            pid.component("patient_address", 2),
            pid.component("patient_address", 3),
            pid.component("patient_address", 4),
            pid.component("patient_address", 5) or None,
        ),
        maritalStatus=marital_status_concept(marital) if marital else None,
        communication=communication(pid.value("primary_language")),
        extension=race_ethnicity_extensions(race_code, race_display, ethnicity_code, ethnicity_display),
    )
    account = pid.value("patient_account_number")
    if account:
        root.resource["identifier"].append({"type": {"text": "Account number"}, "value": account})
    display = " ".join(n for n in (given, family) if n)
    return BundleBuilder.reference(root, display or None)


def _visit(builder: BundleBuilder, message: ParsedMessage, subject):
    pv1 = message.segment("PV1")
    visit_number = pv1.value("visit_number")
    if not visit_number:
        raise TransformError("PV1 segment without a visit number")
    class_code, _ = ENCOUNTER_CLASS.lookup(pv1.value("patient_class"))
    start, end = _timestamp(pv1, "admit_date_time"), _timestamp(pv1, "discharge_date_time")
    attending_id = pv1.component("attending_doctor", 0)
    attending = " ".join(n for n in (pv1.component("attending_doctor", 2),
                                     pv1.component("attending_doctor", 1)) if n)
    encounter = builder.add(
        "Encounter", visit_number,
        status="finished" if pv1.value("visit_indicator") == "V" else "in-progress",
        **{"class": encounter_class_coding(class_code)},
        subject=subject,
        period={k: v for k, v in (("start", start), ("end", end)) if v},
        participant=[{"individual": {"display": attending, "identifier": {"value": attending_id}}}]
        if attending_id else None,
        location=[{"location": {"display": pv1.component("assigned_patient_location", 0)}}]
        if pv1.component("assigned_patient_location", 0) else None,
    )

    diagnoses = []
    for dg1 in message.segments_of("DG1"):
        code, display = _coded(dg1, "diagnosis_code")
        if code is None:
            raise TransformError("DG1 segment without a diagnosis code")
        condition = builder.add(
            "Condition", f"{visit_number}-{code}",
            clinicalStatus=codeable_concept(CONDITION_CLINICAL, "active"),
            category=category(CONDITION_CATEGORY, "encounter-diagnosis", "Encounter Diagnosis"),
            code=codeable_concept(ICD10, code, display or dg1.value("diagnosis_description")),
            subject=subject,
            encounter=BundleBuilder.reference(encounter),
            recordedDate=_timestamp(dg1, "diagnosis_date_time"),
        )
        rank = dg1.value("diagnosis_priority")
        diagnoses.append({
            "condition": BundleBuilder.reference(condition),
            "rank": int(rank) if rank.isdigit() else None,
        })
    if diagnoses:
        encounter.resource["diagnosis"] = [{k: v for k, v in d.items() if v is not None} for d in diagnoses]


def _lab_result(builder: BundleBuilder, message: ParsedMessage, subject):
    obr = message.segment("OBR")
    order_number = obr.value("filler_order_number") or obr.value("placer_order_number")
    if not order_number:
        raise TransformError("OBR segment without an order number")
    observed = _timestamp(obr, "observation_date_time")

    # NTE segments annotate the OBX immediately before them
    notes = {}
    current = None
    for segment in message.segments:
        if segment.segment_id == "OBX":
            current = segment
        elif segment.segment_id == "NTE" and current is not None:
            notes.setdefault(id(current), []).append(segment.value("comment"))

    results = []
    for obx in message.segments_of("OBX"):
        code, display = _coded(obx, "observation_identifier")
        if code is None:
            raise TransformError("OBX segment without an observation identifier")
        units = obx.value("units") or None
        low, high = split_range(obx.value("references_range"))
        comments = notes.get(id(obx), [])
        observation = builder.add(
            "Observation", f"{order_number}-{code}",
            status=RESULT_STATUS.get(obx.value("observation_result_status"), "final"),
            category=observation_category("laboratory"),
            code=codeable_concept(LOINC, code, display),
            subject=subject,
            effectiveDateTime=_timestamp(obx, "date_time_of_observation") or observed,
            valueQuantity=quantity(obx.value("observation_value"), units),
            referenceRange=reference_range(low, high, units),
            interpretation=[interpretation_concept(obx.value("abnormal_flags"))],
            note=[{"text": text} for text in comments if text],
        )
        results.append(BundleBuilder.reference(observation))

    panel_code, panel_name = _coded(obr, "universal_service_identifier")
    builder.add(
        "DiagnosticReport", order_number,
        status=RESULT_STATUS.get(obr.value("result_status"), "final"),
        category=category(DIAGNOSTIC_SERVICE_SECTION, "LAB", "Laboratory"),
        code=codeable_concept(LOINC, panel_code, panel_name) if panel_code else {"text": "Laboratory report"},
        subject=subject,
        effectiveDateTime=observed,
        issued=observed,
        result=results,
    )


def transform_interface_message(system: SourceSystem, message: InterfaceMessage) -> TransactionBundle:
    """Decode, validate and map one ADT or ORU message into a transaction bundle."""
    try:
        parsed = decode(message.raw)
        profile = validate(parsed)
    except MessageError as e:
        raise TransformError(f"Message {message.control_id}: {e}") from e

    builder = BundleBuilder(system)
    subject = _patient(builder, parsed.segment("PID"))
    if profile.message_type == "ADT":
        _visit(builder, parsed, subject)
    else:
        _lab_result(builder, parsed, subject)

    logger.debug(f"{profile.code} {parsed.control_id} -> {len(builder.bundle)} resources")
    return builder.bundle
