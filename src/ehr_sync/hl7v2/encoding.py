"""Encoding and decoding of pipe-delimited interface messages."""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, List, Mapping, Optional, Sequence, Union

from ehr_sync.hl7v2.grammar import (
    COMPONENT_SEPARATOR,
    ENCODING_CHARACTERS,
    ESCAPE_CHARACTER,
    FIELD_SEPARATOR,
    MSH,
    PROFILES,
    REPETITION_SEPARATOR,
    SEGMENT_SEPARATOR,
    SEGMENTS,
    SUBCOMPONENT_SEPARATOR,
    MessageProfile,
    SegmentSpec,
)

_ESCAPES = (
    (ESCAPE_CHARACTER, "\\E\\"),
    (FIELD_SEPARATOR, "\\F\\"),
    (COMPONENT_SEPARATOR, "\\S\\"),
    (SUBCOMPONENT_SEPARATOR, "\\T\\"),
    (REPETITION_SEPARATOR, "\\R\\"),
)
_UNESCAPE_PATTERN = re.compile(r"\\([EFSTR])\\")
_UNESCAPES = {sequence[1]: char for char, sequence in _ESCAPES}

Value = Union[None, str, int, float, Sequence[Any]]


def escape(text: str) -> str:
    """Escape delimiter characters occurring inside a data value."""
    for char, sequence in _ESCAPES:
        text = text.replace(char, sequence)
    return text


def unescape(text: str) -> str:
    return _UNESCAPE_PATTERN.sub(lambda m: _UNESCAPES[m.group(1)], text)


def format_timestamp(value: Optional[datetime]) -> str:
    return value.strftime("%Y%m%d%H%M%S") if value else ""


def format_date(value: Optional[date]) -> str:
    return value.strftime("%Y%m%d") if value else ""


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse DTM values of 8, 12 or 14 digits, returning None if unparseable."""
    digits = (value or "").split("+")[0].split("-")[0].split(".")[0]
    formats = {8: "%Y%m%d", 12: "%Y%m%d%H%M", 14: "%Y%m%d%H%M%S"}
    fmt = formats.get(len(digits))
    if not fmt:
        return None
    try:
        return datetime.strptime(digits, fmt)
    except ValueError:
        return None


def _encode_atom(value) -> str:
    if value is None:
        return ""
    return escape(str(value))


def _encode_component(value) -> str:
    if isinstance(value, (tuple, list)):
        return SUBCOMPONENT_SEPARATOR.join(_encode_atom(v) for v in value)
    return _encode_atom(value)


def encode_field(value: Value, composite: bool = False) -> str:
    if isinstance(value, (tuple, list)):
        if not composite:
            raise ValueError(f"Simple field cannot hold components: {value!r}")
        return COMPONENT_SEPARATOR.join(_encode_component(v) for v in value)
    return _encode_atom(value)


def encode_segment(spec: SegmentSpec, values: Mapping[str, Value]) -> str:
    """Render one segment from named field values, padding unset positions."""
    slots = [""] * spec.length
    slots[0] = spec.segment_id
    for name, value in values.items():
        field = spec.field(name)
        slots[field.position] = encode_field(value, field.composite)
    if spec.segment_id == MSH.segment_id:
        slots[MSH.field("encoding_characters").position] = ENCODING_CHARACTERS
    return FIELD_SEPARATOR.join(slots)


class MessageError(ValueError):
    """Raised when a message cannot be decoded or violates its profile."""
    pass


@dataclass
class Segment:
    segment_id: str
    fields: List[str]

    @property
    def spec(self) -> Optional[SegmentSpec]:
        return SEGMENTS.get(self.segment_id)

    def _position(self, field: Union[int, str]) -> int:
        if isinstance(field, int):
            return field
        if self.spec is None:
            raise KeyError(f"No field table for segment {self.segment_id}")
        return self.spec.field(field).position

    def raw(self, field: Union[int, str]) -> str:
        position = self._position(field)
        return self.fields[position] if position < len(self.fields) else ""

    def value(self, field: Union[int, str]) -> str:
        if self.segment_id == MSH.segment_id and self._position(field) == 1:
            return self.raw(1)
        return unescape(self.raw(field))

    def components(self, field: Union[int, str]) -> List[str]:
        return [unescape(c) for c in self.raw(field).split(COMPONENT_SEPARATOR)]

    def component(self, field: Union[int, str], index: int) -> str:
        components = self.components(field)
        return components[index] if index < len(components) else ""

    def subcomponents(self, field: Union[int, str], index: int) -> List[str]:
        components = self.raw(field).split(COMPONENT_SEPARATOR)
        if index >= len(components):
            return []
        return [unescape(s) for s in components[index].split(SUBCOMPONENT_SEPARATOR)]


@dataclass
class ParsedMessage:
    segments: List[Segment]

    @property
    def header(self) -> Segment:
        return self.segments[0]

    @property
    def segment_ids(self) -> List[str]:
        return [segment.segment_id for segment in self.segments]

    @property
    def message_code(self) -> str:
        return COMPONENT_SEPARATOR.join(self.header.components("message_type")[:2])

    @property
    def control_id(self) -> str:
        return self.header.value("message_control_id")

    @property
    def timestamp(self) -> Optional[datetime]:
        return parse_timestamp(self.header.value("date_time_of_message"))

    @property
    def profile(self) -> Optional[MessageProfile]:
        return PROFILES.get(self.message_code)

    def segment(self, segment_id: str) -> Optional[Segment]:
        for segment in self.segments:
            if segment.segment_id == segment_id:
                return segment
        return None

    def segments_of(self, segment_id: str) -> List[Segment]:
        return [s for s in self.segments if s.segment_id == segment_id]


def decode(raw: str) -> ParsedMessage:
    """Split a raw message into segments and fields.

    Carriage returns are the segment separator; bare newlines are tolerated.
    """
    lines = [line for line in re.split(r"\r\n|\r|\n", raw or "") if line.strip()]
    if not lines or not lines[0].startswith(MSH.segment_id):
        raise MessageError("Message does not start with an MSH segment")
    if lines[0][3:4] != FIELD_SEPARATOR:
        raise MessageError(f"Unsupported field separator {lines[0][3:4]!r}")

    segments = []
    for line in lines:
        parts = line.split(FIELD_SEPARATOR)
        segments.append(Segment(segment_id=parts[0], fields=parts))

    declared = segments[0].raw(1)
    if declared != ENCODING_CHARACTERS:
        raise MessageError(f"Unsupported encoding characters {declared!r}")
    return ParsedMessage(segments)


def validate(message: ParsedMessage) -> MessageProfile:
    """Check the segment sequence against the profile of the message type."""
    profile = message.profile
    if profile is None:
        raise MessageError(f"Unsupported message type {message.message_code!r}")
    if not profile.matches(message.segment_ids):
        raise MessageError(
            f"{profile.code} segment sequence {'-'.join(message.segment_ids)} "
            f"does not match {profile.structure}"
        )
    return profile
