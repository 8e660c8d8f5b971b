from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request

from hrassess.api.deps import get_broadcaster, get_settings_service
from hrassess.api.streaming import open_settings_stream
from hrassess.core.auth import require_admin, require_stream_admin
from hrassess.models.orm import User
from hrassess.services.broadcast import SettingsBroadcaster
from hrassess.services.naming import NamingConvention
from hrassess.services.settings_sync import SettingsSyncService

router = APIRouter()


@router.get("/settings", dependencies=[Depends(require_admin)])
async def get_settings(service: SettingsSyncService = Depends(get_settings_service)):
    data = await service.get_settings(NamingConvention.INTERNAL)
    return {"success": True, "message": "Settings loaded successfully", "data": data}


@router.post("/settings")
async def update_settings(
    payload: Dict[str, Any] = Body(...),
    admin: User = Depends(require_admin),
    service: SettingsSyncService = Depends(get_settings_service),
):
    data = await service.update_settings(payload, actor_id=admin.id, convention=NamingConvention.INTERNAL)
    return {"success": True, "message": "Settings updated successfully", "data": data}


@router.get("/settings/stream", dependencies=[Depends(require_stream_admin)])
async def stream_settings(
    request: Request,
    broadcaster: SettingsBroadcaster = Depends(get_broadcaster),
    service: SettingsSyncService = Depends(get_settings_service),
):
    return await open_settings_stream(request, broadcaster, service, NamingConvention.INTERNAL)
