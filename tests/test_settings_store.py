import json

import pytest
import redis.asyncio as redis

from hrassess.core.cache import SETTINGS_SNAPSHOT_KEY, SettingsCache
from hrassess.core.database import make_engine, make_session_factory
from hrassess.core.errors import InfrastructureError
from hrassess.models.orm import AppSetting
from hrassess.services.settings_store import SettingsStore


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.data = {}
        self.fail = fail

    async def get(self, key):
        if self.fail:
            raise redis.ConnectionError("redis down")
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        if self.fail:
            raise redis.ConnectionError("redis down")
        self.data[key] = value
        return True

    async def delete(self, key):
        if self.fail:
            raise redis.ConnectionError("redis down")
        self.data.pop(key, None)
        return 1


async def write(store: SettingsStore, key, value):
    async with store.session_factory() as session:
        async with session.begin():
            await store.upsert(session, key, value)


async def test_empty_store_returns_defaults(session_factory):
    store = SettingsStore(session_factory)
    snapshot = await store.get_all()
    assert snapshot["minimum_passing_score"] == 70
    assert snapshot["mg1_enabled"] is True


async def test_upsert_overwrites_and_decodes(session_factory):
    store = SettingsStore(session_factory)
    await write(store, "minimum_passing_score", 80)
    await write(store, "minimum_passing_score", 85)
    await write(store, "mg2_enabled", False)

    async with session_factory() as session:
        raw = await store.read_raw(session)
    assert raw == {"minimum_passing_score": "85", "mg2_enabled": "false"}

    snapshot = await store.get_all()
    assert snapshot["minimum_passing_score"] == 85
    assert snapshot["mg2_enabled"] is False


async def test_snapshot_is_served_from_cache_until_invalidated(session_factory):
    cache = SettingsCache(client=FakeRedis())
    store = SettingsStore(session_factory, cache)

    await store.get_all()
    assert json.loads(cache.redis.data[SETTINGS_SNAPSHOT_KEY])["minimum_passing_score"] == 70

    await write(store, "minimum_passing_score", 90)
    assert (await store.get_all())["minimum_passing_score"] == 70

    await store.invalidate()
    assert (await store.get_all())["minimum_passing_score"] == 90


async def test_cache_errors_fall_back_to_database(session_factory):
    store = SettingsStore(session_factory, SettingsCache(client=FakeRedis(fail=True)))
    await write(store, "hard_mode_threshold", 95)

    assert (await store.get_all())["hard_mode_threshold"] == 95
    await store.invalidate()


async def test_missing_table_serves_defaults(engine, session_factory):
    async with engine.begin() as conn:
        await conn.run_sync(AppSetting.__table__.drop)

    snapshot = await SettingsStore(session_factory).get_all()

    assert snapshot["minimum_passing_score"] == 70


async def test_unreachable_database_is_an_infrastructure_error(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'nope.db'}")
    with pytest.raises(InfrastructureError):
        await SettingsStore(make_session_factory(engine)).get_all()
    await engine.dispose()
