"""
Apply a settings update and push the new state to every open stream.
"""
import logging
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from hrassess.core.errors import InfrastructureError
from hrassess.models.orm import ActivityType
from hrassess.services.activity_log import record_activity
from hrassess.services.broadcast import SettingsBroadcaster
from hrassess.services.naming import NamingConvention, to_internal, translate
from hrassess.services.settings_schema import encode_value, validate_update
from hrassess.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)


class SettingsSyncService:
    def __init__(self, store: SettingsStore, broadcaster: SettingsBroadcaster):
        self.store = store
        self.broadcaster = broadcaster

    async def get_settings(self, convention: NamingConvention = NamingConvention.INTERNAL) -> Dict[str, Any]:
        return translate(await self.store.get_all(), convention)

    async def update_settings(
        self,
        raw: Mapping[str, Any],
        actor_id: Optional[int] = None,
        convention: NamingConvention = NamingConvention.INTERNAL,
    ) -> Dict[str, Any]:
        """Persist ``raw`` (either naming convention) and broadcast the result.

        All keys are written in one transaction. Nothing is broadcast when the
        write fails. Returns the fresh snapshot in ``convention``.
        """
        values = validate_update(to_internal(raw))

        try:
            async with self.store.session_factory() as session:
                async with session.begin():
                    current = await self.store.read_raw(session)
                    for key, value in values.items():
                        new_text = encode_value(value)
                        old_text = current.get(key)
                        if old_text != new_text:
                            record_activity(
                                session,
                                ActivityType.SETTING_UPDATED,
                                f'Setting "{key}" changed from "{old_text or "empty"}" to "{new_text}"',
                                actor_id,
                            )
                        await self.store.upsert(session, key, value)
        except SQLAlchemyError as exc:
            logger.error("Saving settings failed: %s", exc, exc_info=True)
            raise InfrastructureError("Error saving settings") from exc

        logger.info("Settings saved successfully: %d settings", len(values))
        await self.store.invalidate()
        snapshot = await self.broadcaster.broadcast_current(self.store.get_all)
        return translate(snapshot, convention)
