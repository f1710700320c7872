"""
Capped, newest-first log of sync events.

Two interchangeable backings: a process local ring buffer and a Redis list
kept at a fixed length with LPUSH + LTRIM in one MULTI/EXEC, so concurrent
system pipelines never lose entries.
"""

import abc
import json
import logging
import threading
from collections import deque
from typing import Any, Dict, List, Optional, Tuple

import redis.asyncio as aioredis

import config
from ehr_sync.domain.model import SyncEvent

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 100


def _page(events: List[SyncEvent], system: Optional[str], limit: int,
          offset: int) -> Tuple[List[SyncEvent], int]:
    if system:
        events = [event for event in events if event.system == system]
    offset = max(offset, 0)
    return events[offset:offset + max(limit, 0)], len(events)


def _check_capacity(max_events: int) -> int:
    if max_events < 1:
        raise ValueError(f"Sync event log capacity must be at least 1, got {max_events}")
    return max_events


class AbstractSyncEventLog(abc.ABC):
    max_events: int

    @abc.abstractmethod
    async def append(self, event: SyncEvent):
        raise NotImplementedError

    @abc.abstractmethod
    async def list(self, system: Optional[str] = None, limit: int = 20,
                   offset: int = 0) -> Tuple[List[SyncEvent], int]:
        """Return one page of events (newest first) and the filtered total."""
        raise NotImplementedError

    @abc.abstractmethod
    async def clear(self):
        raise NotImplementedError

    async def extend(self, events):
        for event in events:
            await self.append(event)

    async def aclose(self):
        pass


class InMemorySyncEventLog(AbstractSyncEventLog):
    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS):
        self.max_events = _check_capacity(max_events)
        self._events: deque = deque(maxlen=max_events)
        self._lock = threading.Lock()

    async def append(self, event):
        with self._lock:
            self._events.appendleft(event)

    async def list(self, system=None, limit=20, offset=0):
        with self._lock:
            events = list(self._events)
        return _page(events, system, limit, offset)

    async def clear(self):
        with self._lock:
            self._events.clear()


class RedisSyncEventLog(AbstractSyncEventLog):
    """Redis list backing; index 0 is always the newest event."""

    def __init__(self, client: aioredis.Redis, key: str = "sync:events",
                 max_events: int = DEFAULT_MAX_EVENTS, ttl_seconds: Optional[int] = None):
        self.client = client
        self.key = key
        self.max_events = _check_capacity(max_events)
        self.ttl_seconds = ttl_seconds

    async def append(self, event):
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.lpush(self.key, json.dumps(event.to_dict()))
            pipe.ltrim(self.key, 0, self.max_events - 1)
            if self.ttl_seconds:
                pipe.expire(self.key, self.ttl_seconds)
            await pipe.execute()

    async def list(self, system=None, limit=20, offset=0):
        raw = await self.client.lrange(self.key, 0, self.max_events - 1)
        events = []
        for item in raw:
            try:
                events.append(SyncEvent.from_dict(json.loads(item)))
            except (ValueError, KeyError) as e:
                logger.warning(f"Skipping unreadable sync event in {self.key}: {e}")
        return _page(events, system, limit, offset)

    async def clear(self):
        await self.client.delete(self.key)

    async def aclose(self):
        await self.client.aclose()


def build_event_log(log_config: Optional[Dict[str, Any]] = None) -> AbstractSyncEventLog:
    log_config = log_config or config.get_event_log_config()
    _check_capacity(log_config["max_events"])
    if log_config["backend"] == "redis":
        logger.info(f"Using Redis sync event log at {config.get_redis_url()} ({log_config['key']})")
        client = aioredis.from_url(config.get_redis_url(), decode_responses=True)
        return RedisSyncEventLog(
            client,
            key=log_config["key"],
            max_events=log_config["max_events"],
            ttl_seconds=log_config["ttl_seconds"],
        )
    return InMemorySyncEventLog(log_config["max_events"])
