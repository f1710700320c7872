"""Transaction bundle submitted atomically to the clinical data store."""

from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional


@dataclass
class BundleEntry:
    """A canonical resource paired with the operation the store should apply."""
    resource: Dict[str, Any]
    method: str
    url: str
    full_url: str

    @property
    def resource_type(self) -> str:
        return self.resource["resourceType"]

    def to_fhir(self) -> Dict[str, Any]:
        return {
            "fullUrl": self.full_url,
            "resource": self.resource,
            "request": {"method": self.method, "url": self.url},
        }


class TransactionBundle:
    """Ordered list of bundle entries, applied all-or-nothing by the store."""

    def __init__(self, entries: Optional[List[BundleEntry]] = None):
        self.entries: List[BundleEntry] = list(entries or [])

    def add(self, entry: BundleEntry) -> BundleEntry:
        self.entries.append(entry)
        return entry

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[BundleEntry]:
        return iter(self.entries)

    @property
    def resources(self) -> List[Dict[str, Any]]:
        return [entry.resource for entry in self.entries]

    def resource_types(self) -> Dict[str, int]:
        return dict(Counter(entry.resource_type for entry in self.entries))

    def of_type(self, resource_type: str) -> List[Dict[str, Any]]:
        return [e.resource for e in self.entries if e.resource_type == resource_type]

    def to_fhir(self) -> Dict[str, Any]:
        return {
            "resourceType": "Bundle",
            "type": "transaction",
            "entry": [entry.to_fhir() for entry in self.entries],
        }
