"""Background image library endpoints."""

from fastapi import APIRouter

from timeline_studio.dependencies import BackgroundServiceDep, RequesterDep
from timeline_studio.models import BackgroundUpload, BackgroundUploadCreate

router = APIRouter()


@router.get("/", response_model=list[BackgroundUpload])
async def list_backgrounds(requester: RequesterDep, service: BackgroundServiceDep):
    return await service.list(requester)


@router.post("/", response_model=BackgroundUpload, status_code=201)
async def upload_background(
    body: BackgroundUploadCreate,
    requester: RequesterDep,
    service: BackgroundServiceDep,
):
    return await service.upload(requester, body.image, compress=body.compress)


@router.delete("/{path:path}")
async def delete_background(path: str, requester: RequesterDep, service: BackgroundServiceDep):
    await service.delete(requester, path)
    return {"status": "deleted", "path": path}
