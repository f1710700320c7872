"""Unit tests for the sync event log backings"""
import asyncio

import fakeredis.aioredis
import pytest

from ehr_sync.adapters.event_log import InMemorySyncEventLog, RedisSyncEventLog, build_event_log
from ehr_sync.domain.model import ItemKind, SyncAction, SyncStatus, new_sync_event


def _event(system="athena", resource_id="1", status=SyncStatus.SUCCESS):
    return new_sync_event(system, ItemKind.PATIENT, SyncAction.CREATED, resource_id, status)


@pytest.fixture(params=["memory", "redis"])
def make_log(request):
    """Factory building either backing with the given capacity."""
    def make(max_events=100):
        if request.param == "memory":
            return InMemorySyncEventLog(max_events=max_events)
        client = fakeredis.aioredis.FakeRedis(decode_responses=True)
        return RedisSyncEventLog(client, key="test:sync:events", max_events=max_events)
    return make


@pytest.mark.asyncio
async def test_newest_event_comes_first(make_log):
    log = make_log()
    for index in range(3):
        await log.append(_event(resource_id=str(index)))

    events, total = await log.list()

    assert total == 3
    assert [e.resource_id for e in events] == ["2", "1", "0"]


@pytest.mark.asyncio
async def test_log_is_capped_and_drops_oldest(make_log):
    """Test the log never holds more than max_events entries"""
    log = make_log(max_events=5)
    for index in range(8):
        await log.append(_event(resource_id=str(index)))

    events, total = await log.list(limit=100)

    assert total == 5
    assert [e.resource_id for e in events] == ["7", "6", "5", "4", "3"]


@pytest.mark.asyncio
@pytest.mark.parametrize("appends, cap", [(30, 100), (30, 10)])
async def test_concurrent_appends_from_parallel_systems(make_log, appends, cap):
    """Test appends racing from three system pipelines are neither lost nor duplicated"""
    log = make_log(max_events=cap)
    systems = ["athena", "elation", "nextgen"]

    await asyncio.gather(*(
        log.append(_event(system=systems[index % 3], resource_id=str(index)))
        for index in range(appends)
    ))
    events, total = await log.list(limit=100)

    assert total == min(appends, cap)
    assert len({e.id for e in events}) == len(events) == total


@pytest.mark.parametrize("max_events", [0, -1])
def test_capacity_must_be_positive(make_log, max_events):
    with pytest.raises(ValueError):
        make_log(max_events=max_events)


@pytest.mark.asyncio
async def test_filter_by_system_and_paginate(make_log):
    log = make_log()
    for index in range(6):
        await log.append(_event(system="athena" if index % 2 else "nextgen", resource_id=str(index)))

    events, total = await log.list(system="athena", limit=2, offset=1)

    assert total == 3
    assert [e.resource_id for e in events] == ["3", "1"]
    assert all(e.system == "athena" for e in events)


@pytest.mark.asyncio
async def test_offset_past_end_is_empty(make_log):
    log = make_log()
    await log.extend([_event(), _event()])

    events, total = await log.list(offset=10)

    assert events == []
    assert total == 2


@pytest.mark.asyncio
async def test_clear_empties_the_log(make_log):
    log = make_log()
    await log.append(_event())
    await log.clear()

    events, total = await log.list()

    assert events == []
    assert total == 0


@pytest.mark.asyncio
async def test_redis_round_trip_keeps_event_fields():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    log = RedisSyncEventLog(client, key="test:sync:roundtrip", ttl_seconds=60)
    event = new_sync_event("elation", ItemKind.OBSERVATION, SyncAction.UPDATED, "MSG1",
                           SyncStatus.FAILED, details="store rejected entry")
    await log.append(event)

    [restored], _ = await log.list()

    assert restored == event
    assert await client.ttl("test:sync:roundtrip") > 0


@pytest.mark.asyncio
async def test_redis_skips_unreadable_entries():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    log = RedisSyncEventLog(client, key="test:sync:garbage")
    await log.append(_event(resource_id="good"))
    await client.lpush("test:sync:garbage", "not json")

    events, total = await log.list()

    assert [e.resource_id for e in events] == ["good"]
    assert total == 1


def test_build_event_log_defaults_to_memory():
    log = build_event_log({"backend": "memory", "max_events": 42, "key": "unused", "ttl_seconds": None})

    assert isinstance(log, InMemorySyncEventLog)
    assert log.max_events == 42


def test_build_event_log_rejects_zero_capacity():
    with pytest.raises(ValueError):
        build_event_log({"backend": "redis", "max_events": 0, "key": "sync:events", "ttl_seconds": None})
