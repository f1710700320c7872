"""Lookup of the transformer for a (source system, encoding) pair."""

from functools import partial
from typing import Callable, Dict, Tuple

from ehr_sync.domain.errors import ConfigurationError
from ehr_sync.domain.systems import Encoding, SourceSystem, parse_system
from ehr_sync.transformers.athena import transform_athena_record
from ehr_sync.transformers.documents import transform_document
from ehr_sync.transformers.elation import transform_elation_record
from ehr_sync.transformers.messages import transform_interface_message
from ehr_sync.transformers.nextgen import transform_nextgen_record

TRANSFORMERS: Dict[Tuple[SourceSystem, Encoding], Callable] = {
    (SourceSystem.ATHENA, Encoding.NATIVE_JSON): transform_athena_record,
    (SourceSystem.ELATION, Encoding.NATIVE_JSON): transform_elation_record,
    (SourceSystem.NEXTGEN, Encoding.NATIVE_JSON): transform_nextgen_record,
}
for _system in SourceSystem:
    TRANSFORMERS[(_system, Encoding.MESSAGE)] = partial(transform_interface_message, _system)
    TRANSFORMERS[(_system, Encoding.DOCUMENT)] = partial(transform_document, _system)


def get_transformer(system, encoding) -> Callable:
    """Return the transformer bound to ``system``; unknown pairs are a configuration error."""
    system = parse_system(system)
    try:
        return TRANSFORMERS[(system, Encoding(encoding))]
    except (KeyError, ValueError) as e:
        raise ConfigurationError(f"No transformer registered for {system.value}/{encoding}") from e
