from fastapi import Request

from hrassess.services.broadcast import SettingsBroadcaster
from hrassess.services.hr_sync import HRSyncService
from hrassess.services.settings_store import SettingsStore
from hrassess.services.settings_sync import SettingsSyncService


def get_broadcaster(request: Request) -> SettingsBroadcaster:
    return request.app.state.broadcaster


def get_settings_store(request: Request) -> SettingsStore:
    return request.app.state.settings_store


def get_settings_service(request: Request) -> SettingsSyncService:
    return request.app.state.settings_service


def get_hr_sync_service(request: Request) -> HRSyncService:
    return request.app.state.hr_sync_service
