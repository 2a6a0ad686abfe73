"""Media cleanup queue inspection and retry, restricted to administrators."""

from typing import Optional

from fastapi import APIRouter, Query

from timeline_studio.dependencies import MediaCleanupServiceDep, RequesterDep, SettingsDep
from timeline_studio.models import CleanupReport, CleanupTask
from timeline_studio.services import access

router = APIRouter()


@router.get("/media-cleanup", response_model=list[CleanupTask])
async def list_pending_cleanup(
    service: MediaCleanupServiceDep,
    requester: RequesterDep,
    settings: SettingsDep,
):
    access.require_admin(requester, settings.ADMIN_USER_IDS)
    return await service.pending()


@router.post("/media-cleanup", response_model=CleanupReport)
async def drain_cleanup(
    service: MediaCleanupServiceDep,
    requester: RequesterDep,
    settings: SettingsDep,
    limit: Optional[int] = Query(default=None, ge=1),
):
    access.require_admin(requester, settings.ADMIN_USER_IDS)
    return await service.drain(limit=limit)
