"""Contract every source system adapter fulfils, synthetic or live."""

import abc
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Generic, List, Optional, TypeVar

from ehr_sync.domain.records import ClinicalDocument, NativeRecord
from ehr_sync.domain.systems import SourceSystem
from ehr_sync.hl7v2.messages import InterfaceMessage

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 100
# refresh a little before the credential actually expires
EXPIRY_MARGIN = timedelta(seconds=30)


@dataclass
class AuthResult:
    access_token: str
    expires_at: datetime

    @property
    def expired(self) -> bool:
        return datetime.now(timezone.utc) >= self.expires_at - EXPIRY_MARGIN


@dataclass
class Page(Generic[T]):
    data: List[T]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.data) < self.total


class AbstractRecordSource(abc.ABC):
    """Pull interface over one source system's three encodings."""

    def __init__(self, system: SourceSystem):
        self.system = SourceSystem(system)
        self._auth: Optional[AuthResult] = None

    @abc.abstractmethod
    async def authenticate(self) -> AuthResult:
        raise NotImplementedError

    async def ensure_authenticated(self) -> AuthResult:
        """Return the cached credential, authenticating again once it expires."""
        if self._auth is None or self._auth.expired:
            logger.info(f"Authenticating against {self.system.value}")
            self._auth = await self.authenticate()
        return self._auth

    @abc.abstractmethod
    async def fetch_native_records(self, limit: int = DEFAULT_PAGE_SIZE,
                                   offset: int = 0) -> Page[NativeRecord]:
        raise NotImplementedError

    @abc.abstractmethod
    async def fetch_documents(self, limit: int = DEFAULT_PAGE_SIZE,
                              offset: int = 0) -> Page[ClinicalDocument]:
        raise NotImplementedError

    @abc.abstractmethod
    async def fetch_messages(self, limit: int = DEFAULT_PAGE_SIZE,
                             offset: int = 0) -> Page[InterfaceMessage]:
        raise NotImplementedError

    async def fetch_all(self, fetch) -> list:
        """Drain every page of one of the ``fetch_*`` methods."""
        items, offset = [], 0
        while True:
            page = await fetch(limit=DEFAULT_PAGE_SIZE, offset=offset)
            items.extend(page.data)
            offset += len(page.data)
            if not page.has_more or not page.data:
                return items

    async def aclose(self):
        pass
