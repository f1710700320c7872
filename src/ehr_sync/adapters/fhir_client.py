"""Clinical data store client - adapter for the FHIR R4 REST API."""

import abc
import logging
from typing import Any, Dict, List, Optional

import httpx

import config
from ehr_sync.domain.errors import TransportError

logger = logging.getLogger(__name__)

FHIR_JSON = "application/fhir+json"


class FHIRClientError(TransportError):
    """Exception raised for errors talking to the clinical data store."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AbstractFHIRClient(abc.ABC):
    """Abstract base class for clinical data store clients."""

    @abc.abstractmethod
    async def create(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    @abc.abstractmethod
    async def read(self, resource_type: str, resource_id: str) -> Dict[str, Any]:
        raise NotImplementedError

    @abc.abstractmethod
    async def update(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    @abc.abstractmethod
    async def search(self, resource_type: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        raise NotImplementedError

    @abc.abstractmethod
    async def execute_batch(self, bundle: Dict[str, Any]) -> Dict[str, Any]:
        """
        Submit a transaction or batch bundle in one call.

        Returns:
            The response bundle, one entry per submitted entry

        Raises:
            FHIRClientError: If the call itself fails (network, auth, 4xx/5xx)
        """
        raise NotImplementedError

    async def aclose(self):
        pass


class HTTPFHIRClient(AbstractFHIRClient):
    """HTTP client for the clinical data store, consuming a bearer credential."""

    def __init__(self, base_url: Optional[str] = None, access_token: Optional[str] = None,
                 timeout: Optional[float] = None, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize store client.

        Args:
            base_url: FHIR base URL. If None, uses config.
            access_token: Bearer token sent with every request
            timeout: Request timeout in seconds
            client: Pre-built httpx client, mostly for tests
        """
        store_config = config.get_fhir_store_config()
        self.base_url = (base_url or store_config["base_url"]).rstrip("/")
        self.access_token = access_token or store_config["access_token"]
        self.timeout = timeout or store_config["timeout"]
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": FHIR_JSON, "Content-Type": FHIR_JSON}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}" if path else self.base_url
        try:
            response = await self._client.request(method, url, headers=self._headers(), **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"{method} {url} failed with HTTP {status}")
            raise FHIRClientError(f"{method} {path or '/'} returned HTTP {status}", status) from e
        except httpx.HTTPError as e:
            logger.error(f"Network error on {method} {url}: {e}")
            raise FHIRClientError(f"Network error: {e}") from e
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{method} {url} returned a body that is not JSON")
            raise FHIRClientError(
                f"{method} {path or '/'} returned an unreadable body", response.status_code
            ) from e

    async def create(self, resource):
        return await self._request("POST", resource["resourceType"], json=resource)

    async def read(self, resource_type, resource_id):
        return await self._request("GET", f"{resource_type}/{resource_id}")

    async def update(self, resource):
        return await self._request("PUT", f"{resource['resourceType']}/{resource['id']}", json=resource)

    async def search(self, resource_type, params=None):
        bundle = await self._request("GET", resource_type, params=params or {})
        return [entry["resource"] for entry in bundle.get("entry", []) if "resource" in entry]

    async def execute_batch(self, bundle):
        logger.info(f"Submitting {bundle.get('type')} bundle with {len(bundle.get('entry', []))} entries")
        return await self._request("POST", "", json=bundle)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()
