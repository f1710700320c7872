"""
Re-tagging of resources parsed out of clinical XML documents.

Structural parsing belongs to the document converter; this module only
normalizes its output into the same transaction bundle shape the other
encodings produce.
"""

import copy
import logging
from typing import Any, Dict

from ehr_sync.domain.bundle import BundleEntry, TransactionBundle
from ehr_sync.domain.errors import TransformError
from ehr_sync.domain.records import ClinicalDocument
from ehr_sync.domain.systems import PROVENANCE_SYSTEM, SourceSystem, provenance_tag
from ehr_sync.transformers.base import identifier, identifier_system, resource_uuid

logger = logging.getLogger(__name__)


def _retag(system: SourceSystem, resource: Dict[str, Any], local_id: str) -> Dict[str, Any]:
    resource = copy.deepcopy(resource)
    meta = resource.setdefault("meta", {})
    tags = [tag for tag in meta.get("tag", []) if tag.get("system") != PROVENANCE_SYSTEM]
    meta["tag"] = tags + [provenance_tag(system)]

    namespace = identifier_system(system, resource["resourceType"])
    identifiers = [i for i in resource.get("identifier", []) if i.get("system") != namespace]
    resource["identifier"] = [identifier(system, resource["resourceType"], local_id)] + identifiers
    return resource


def transform_document(system: SourceSystem, document: ClinicalDocument,
                       parsed_bundle: Dict[str, Any]) -> TransactionBundle:
    """Tag every resource of a converted document with its source system."""
    system = SourceSystem(system)
    if not isinstance(parsed_bundle, dict) or parsed_bundle.get("resourceType") != "Bundle":
        raise TransformError(f"Document {document.document_id}: converter did not return a Bundle")

    bundle = TransactionBundle()
    for index, entry in enumerate(parsed_bundle.get("entry") or []):
        if not isinstance(entry, dict):
            raise TransformError(f"Document {document.document_id}: entry {index} is not an object")
        resource = entry.get("resource") or {}
        resource_type = resource.get("resourceType")
        if not resource_type:
            raise TransformError(f"Document {document.document_id}: entry {index} has no resourceType")

        resource_id = resource.get("id")
        local_id = f"{document.document_id}-{resource_id or index}"
        retagged = _retag(system, resource, local_id)
        if resource_id:
            url = f"{resource_type}/{resource_id}"
            full_url = entry.get("fullUrl") or f"urn:uuid:{resource_id}"
        else:
            ident = retagged["identifier"][0]
            url = f"{resource_type}?identifier={ident['system']}|{ident['value']}"
            full_url = entry.get("fullUrl") or f"urn:uuid:{resource_uuid(system, resource_type, local_id)}"
        bundle.add(BundleEntry(resource=retagged, method="PUT", url=url, full_url=full_url))

    logger.debug(
        f"{document.template_type} document {document.document_id} -> {len(bundle)} resources"
    )
    return bundle
