"""Live source system adapter - OAuth2 client credentials plus paged JSON fetches."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx

import config
from ehr_sync.adapters.sources.base import AbstractRecordSource, AuthResult, Page
from ehr_sync.domain.errors import ConfigurationError, TransportError
from ehr_sync.domain.records import ClinicalDocument
from ehr_sync.domain.systems import SourceSystem
from ehr_sync.transformers.base import parse_datetime

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth2/token"
RECORDS_PATH = "/records"
DOCUMENTS_PATH = "/documents"
MESSAGES_PATH = "/messages"


class HTTPRecordSource(AbstractRecordSource):
    """
    Pulls one source system over HTTP.

    Native records are returned as the raw JSON mappings and messages as raw
    text; decoding them is part of the per-item transform so a malformed item
    fails alone instead of the whole page.
    """

    def __init__(self, system: SourceSystem, base_url: Optional[str] = None,
                 client_id: Optional[str] = None, client_secret: Optional[str] = None,
                 timeout: Optional[float] = None, client: Optional[httpx.AsyncClient] = None):
        super().__init__(system)
        source_config = config.get_source_system_config(self.system.value)
        self.base_url = (base_url or source_config["base_url"]).rstrip("/")
        if not self.base_url:
            raise ConfigurationError(f"No base URL configured for {self.system.value}")
        self.client_id = client_id or source_config["client_id"]
        self.client_secret = client_secret or source_config["client_secret"]
        self.timeout = timeout or source_config["timeout"]
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout)

    async def authenticate(self):
        try:
            response = await self._client.post(
                f"{self.base_url}{TOKEN_PATH}",
                data={"grant_type": "client_credentials"},
                auth=(self.client_id, self.client_secret),
            )
            response.raise_for_status()
            payload = response.json()
            access_token = payload["access_token"]
            expires_in = int(payload.get("expires_in", 3600))
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Authentication against {self.system.value} failed: {e}")
            raise TransportError(f"{self.system.value} authentication failed: {e}") from e

        return AuthResult(
            access_token=access_token,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )

    async def _get_page(self, path: str, limit: int, offset: int) -> Dict[str, Any]:
        auth = await self.ensure_authenticated()
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.get(
                url,
                params={"limit": limit, "offset": offset},
                headers={"Authorization": f"Bearer {auth.access_token}"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Fetching {url} failed: {e}")
            raise TransportError(f"GET {path} on {self.system.value} failed: {e}") from e
        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"{url} returned a body that is not JSON")
            raise TransportError(f"GET {path} on {self.system.value} returned an unreadable body") from e
        if not isinstance(payload, dict):
            raise TransportError(f"GET {path} on {self.system.value} returned an unexpected payload")
        return payload

    @staticmethod
    def _as_page(payload: Dict[str, Any], items, limit, offset) -> Page:
        return Page(data=items, total=int(payload.get("total", len(items))),
                    limit=limit, offset=offset)

    async def fetch_native_records(self, limit=100, offset=0):
        payload = await self._get_page(RECORDS_PATH, limit, offset)
        return self._as_page(payload, list(payload.get("data", [])), limit, offset)

    async def fetch_documents(self, limit=100, offset=0):
        payload = await self._get_page(DOCUMENTS_PATH, limit, offset)
        documents = [
            ClinicalDocument(
                document_id=str(item.get("document_id") or item.get("id", "")),
                template_type=item.get("template_type", "CCD"),
                xml=item.get("xml", ""),
                patient_id=item.get("patient_id"),
                created_at=parse_datetime(item.get("created_at")),
                metadata=dict(item.get("metadata") or {}),
            )
            for item in payload.get("data", [])
        ]
        return self._as_page(payload, documents, limit, offset)

    async def fetch_messages(self, limit=100, offset=0):
        payload = await self._get_page(MESSAGES_PATH, limit, offset)
        # a dict without "raw" becomes an empty message that fails as its own item
        messages = [
            str(item.get("raw", "")) if isinstance(item, dict) else str(item)
            for item in payload.get("data", [])
        ]
        return self._as_page(payload, messages, limit, offset)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()
