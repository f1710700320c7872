"""Submits transaction bundles and folds the per-entry responses."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ehr_sync.adapters.fhir_client import AbstractFHIRClient
from ehr_sync.domain.bundle import TransactionBundle
from ehr_sync.domain.errors import ExecutionError

logger = logging.getLogger(__name__)


@dataclass
class BundleOutcome:
    resource_count: int = 0
    errors: List[str] = field(default_factory=list)
    resource_types: Dict[str, int] = field(default_factory=dict)

    @property
    def error(self) -> Optional[ExecutionError]:
        if not self.errors:
            return None
        return ExecutionError(self.errors, self.resource_count)


def _status_code(status: str) -> Optional[int]:
    # entry.response.status looks like "201 Created"
    head = str(status or "").strip().split(" ", 1)[0]
    return int(head) if head.isdigit() else None


def _entry_error(index: int, entry, response) -> str:
    url = entry.url if entry is not None else f"entry {index}"
    status = response.get("status", "no status")
    issues = (response.get("outcome") or {}).get("issue") or []
    detail = "; ".join(
        issue.get("diagnostics") or (issue.get("details") or {}).get("text", "") for issue in issues
    ).strip("; ")
    return f"{url}: {status}" + (f" ({detail})" if detail else "")


class BundleExecutor:
    """One atomic submission per bundle; transport failures propagate."""

    def __init__(self, client: AbstractFHIRClient):
        self.client = client

    async def execute(self, bundle: TransactionBundle) -> BundleOutcome:
        if len(bundle) == 0:
            return BundleOutcome()

        response = await self.client.execute_batch(bundle.to_fhir())
        response_entries = (response or {}).get("entry") or []

        accepted = 0
        types: Counter = Counter()
        errors = []
        for index, entry in enumerate(bundle.entries):
            reply = response_entries[index] if index < len(response_entries) else {}
            reply = reply.get("response") if isinstance(reply, dict) else None
            if not isinstance(reply, dict):
                # null or malformed replies count as entries without status
                reply = {}
            code = _status_code(reply.get("status"))
            if code is not None and 200 <= code < 300:
                accepted += 1
                types[entry.resource_type] += 1
            else:
                errors.append(_entry_error(index, entry, reply))

        if errors:
            logger.warning(f"Store rejected {len(errors)} of {len(bundle)} entries")
        logger.info(f"Bundle executed: {accepted} resources accepted")
        return BundleOutcome(resource_count=accepted, errors=errors, resource_types=dict(types))
