"""
Views for read operations - separate from command/write path.
Following Cosmic Python pattern: views bypass the domain model for reads.
"""
import logging
from typing import Any, Dict, Optional

from ehr_sync.domain.systems import parse_system
from ehr_sync.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


async def get_sync_events(uow: AbstractUnitOfWork, system: Optional[str] = None,
                          limit: int = 20, offset: int = 0) -> Dict[str, Any]:
    """
    Page through the sync event log, newest first.

    Raises:
        ConfigurationError: If ``system`` is not a known source system
    """
    system_key = parse_system(system).value if system else None
    limit = max(0, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)
    events, total = await uow.event_log.list(system=system_key, limit=limit, offset=offset)

    return {
        "events": [event.to_dict() for event in events],
        "total": total,
        "limit": limit,
        "offset": offset,
        "has_more": offset + len(events) < total,
    }
