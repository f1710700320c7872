"""Document converter - adapter turning C-CDA XML into a FHIR bundle."""

import abc
import logging
from typing import Any, Dict, Optional

import httpx

import config
from ehr_sync.domain.errors import TransportError

logger = logging.getLogger(__name__)

TEMPLATE_COLLECTION = "microsofthealth/ccdatemplates:default"
ROOT_TEMPLATES = {
    "CCD": "CCD",
    "DischargeSummary": "DischargeSummary",
    "ProgressNote": "ProgressNote",
}


class AbstractDocumentParser(abc.ABC):
    @abc.abstractmethod
    async def parse(self, xml: str, template_type: str = "CCD") -> Dict[str, Any]:
        """Return the FHIR bundle the converter derived from ``xml``."""
        raise NotImplementedError

    async def aclose(self):
        pass


class HTTPDocumentConverter(AbstractDocumentParser):
    """Calls the ``$convert-data`` operation of a FHIR converter service."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 client: Optional[httpx.AsyncClient] = None):
        converter_config = config.get_document_converter_config()
        self.base_url = (base_url or converter_config["base_url"]).rstrip("/")
        self.timeout = timeout or converter_config["timeout"]
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout)

    async def parse(self, xml, template_type="CCD"):
        parameters = {
            "resourceType": "Parameters",
            "parameter": [
                {"name": "inputData", "valueString": xml},
                {"name": "inputDataType", "valueString": "Ccda"},
                {"name": "templateCollectionReference", "valueString": TEMPLATE_COLLECTION},
                {"name": "rootTemplate", "valueString": ROOT_TEMPLATES.get(template_type, "CCD")},
            ],
        }
        url = f"{self.base_url}/$convert-data"
        try:
            response = await self._client.post(url, json=parameters)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Document conversion failed with HTTP {e.response.status_code}")
            raise TransportError(f"Document converter returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Network error calling document converter: {e}")
            raise TransportError(f"Document converter unreachable: {e}") from e
        try:
            return response.json()
        except ValueError as e:
            logger.error("Document converter returned a body that is not JSON")
            raise TransportError("Document converter returned an unreadable body") from e

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()
