"""
Typed access to the ``app_settings`` key/value table.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy import inspect, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hrassess.core.cache import SettingsCache
from hrassess.core.errors import InfrastructureError
from hrassess.models.orm import AppSetting
from hrassess.services.settings_schema import SettingValue, decode_value, default_settings, encode_value

logger = logging.getLogger(__name__)


def dialect_insert(session: AsyncSession, table):
    """Return the dialect's ``insert`` so ``ON CONFLICT`` clauses are available."""
    if session.bind.dialect.name == "postgresql":
        return postgresql.insert(table)
    return sqlite.insert(table)


class SettingsStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], cache: Optional[SettingsCache] = None):
        self.session_factory = session_factory
        self.cache = cache

    async def get_all(self) -> Dict[str, SettingValue]:
        """Defaults overlaid with every stored row, decoded to bool/number/string."""
        if self.cache is not None:
            cached = await self.cache.get_snapshot()
            if cached is not None:
                return cached

        try:
            async with self.session_factory() as session:
                stored = await self.read_raw(session)
        except SQLAlchemyError as exc:
            if not await self._table_exists():
                logger.warning("Settings table is missing, serving defaults")
                return default_settings()
            logger.error("Loading settings failed: %s", exc, exc_info=True)
            raise InfrastructureError("Error loading settings") from exc

        snapshot: Dict[str, SettingValue] = default_settings()
        for key, text in stored.items():
            snapshot[key] = decode_value(key, text)

        if self.cache is not None:
            await self.cache.set_snapshot(snapshot)
        return snapshot

    async def _table_exists(self) -> bool:
        try:
            async with self.session_factory() as session:
                conn = await session.connection()
                return await conn.run_sync(lambda sync_conn: inspect(sync_conn).has_table(AppSetting.__tablename__))
        except SQLAlchemyError:
            # cannot tell, so report the original failure
            return True

    async def read_raw(self, session: AsyncSession) -> Dict[str, str]:
        rows = (await session.execute(select(AppSetting.setting_key, AppSetting.setting_value))).all()
        return {key: value for key, value in rows}

    async def upsert(self, session: AsyncSession, key: str, value: Any) -> None:
        """Insert or overwrite one key in a single statement."""
        stmt = dialect_insert(session, AppSetting).values(setting_key=key, setting_value=encode_value(value))
        stmt = stmt.on_conflict_do_update(
            index_elements=[AppSetting.setting_key],
            set_={"setting_value": stmt.excluded.setting_value},
        )
        await session.execute(stmt)

    async def invalidate(self) -> None:
        if self.cache is not None:
            await self.cache.invalidate()
