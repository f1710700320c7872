"""Source system served from generated data held in a NativeRecordStore."""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import config
from ehr_sync.adapters.native_store import NativeRecordStore, SystemSnapshot
from ehr_sync.adapters.sources.base import AbstractRecordSource, AuthResult, Page
from ehr_sync.domain.systems import SourceSystem
from ehr_sync.generators.snapshots import generate_snapshot

logger = logging.getLogger(__name__)

TOKEN_LIFETIME = timedelta(hours=1)


class SyntheticRecordSource(AbstractRecordSource):
    """
    Mock source system.

    The first fetch generates a snapshot sized by the mock data config if the
    store has none yet; ``regenerate`` swaps it for a fresh one.
    """

    def __init__(self, system: SourceSystem, store: NativeRecordStore,
                 mock_config: Optional[Dict[str, Any]] = None):
        super().__init__(system)
        self.store = store
        self.mock_config = mock_config or config.get_mock_data_config()

    async def authenticate(self):
        return AuthResult(
            access_token=f"mock-{self.system.value}-{secrets.token_hex(8)}",
            expires_at=datetime.now(timezone.utc) + TOKEN_LIFETIME,
        )

    def _snapshot(self) -> SystemSnapshot:
        if not self.store.has_snapshot(self.system):
            self.regenerate()
        return self.store.snapshot(self.system)

    def regenerate(self, patient_count: Optional[int] = None,
                   seed: Optional[int] = None) -> SystemSnapshot:
        """Replace the whole record set of this system, returning the new snapshot."""
        snapshot = generate_snapshot(
            self.system,
            patient_count if patient_count is not None else self.mock_config["patient_count"],
            document_count=self.mock_config["document_count"],
            message_count=self.mock_config["message_count"],
            seed=seed if seed is not None else self.mock_config["seed"],
        )
        self.store.replace(self.system, snapshot)
        return snapshot

    @staticmethod
    def _page(items, limit, offset) -> Page:
        return Page(data=list(items[offset:offset + limit]), total=len(items), limit=limit, offset=offset)

    async def fetch_native_records(self, limit=100, offset=0):
        await self.ensure_authenticated()
        return self._page(self._snapshot().records, limit, offset)

    async def fetch_documents(self, limit=100, offset=0):
        await self.ensure_authenticated()
        return self._page(self._snapshot().documents, limit, offset)

    async def fetch_messages(self, limit=100, offset=0):
        await self.ensure_authenticated()
        return self._page(self._snapshot().messages, limit, offset)
