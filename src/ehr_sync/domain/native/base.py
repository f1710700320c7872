"""Helpers for decoding native JSON payloads into per-system dataclasses."""

from dataclasses import MISSING, fields
from typing import Any, Dict, List, Type, TypeVar

from ehr_sync.domain.errors import TransformError

T = TypeVar("T")


def required_fields(cls) -> List[str]:
    return [
        f.name for f in fields(cls)
        if f.default is MISSING and f.default_factory is MISSING
    ]


def build(cls: Type[T], data: Dict[str, Any], **nested) -> T:
    """Instantiate ``cls`` from a JSON mapping.

    Unknown keys are ignored, missing required keys raise TransformError.
    ``nested`` supplies already decoded values for nested fields.
    """
    if not isinstance(data, dict):
        raise TransformError(f"{cls.__name__}: expected an object, got {type(data).__name__}")

    missing = [name for name in required_fields(cls) if name not in data and name not in nested]
    if missing:
        raise TransformError(f"{cls.__name__}: missing required field(s) {', '.join(missing)}")

    names = {f.name for f in fields(cls)}
    values = {key: value for key, value in data.items() if key in names}
    values.update(nested)
    return cls(**values)


def build_list(cls: Type[T], items) -> List[T]:
    return [cls.from_dict(item) if hasattr(cls, "from_dict") else build(cls, item)
            for item in (items or [])]


def ensure_mapping(cls, data) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise TransformError(f"{cls.__name__}: expected an object, got {type(data).__name__}")
    return data
