"""Timeline and collaborator endpoints."""

from typing import Optional

from fastapi import APIRouter, Query

from timeline_studio.dependencies import RequesterDep, TimelineRepositoryDep
from timeline_studio.models import (
    Collaborator,
    CollaboratorCreate,
    CollaboratorRoleUpdate,
    PrivacyUpdate,
    SaveResult,
    TimelineDraft,
    TimelineSummary,
    TimelineView,
)

router = APIRouter()


@router.get("/", response_model=list[TimelineSummary])
async def list_timelines(requester: RequesterDep, repository: TimelineRepositoryDep):
    return await repository.list(requester)


@router.post("/", response_model=SaveResult, status_code=201)
async def save_timeline(
    body: TimelineDraft,
    requester: RequesterDep,
    repository: TimelineRepositoryDep,
):
    return await repository.save(requester, body)


@router.get("/public", response_model=list[TimelineSummary])
async def list_public_timelines(
    repository: TimelineRepositoryDep,
    limit: Optional[int] = Query(default=None, ge=1),
):
    return await repository.list_public(limit)


@router.get("/shared", response_model=list[TimelineSummary])
async def list_shared_timelines(requester: RequesterDep, repository: TimelineRepositoryDep):
    return await repository.list_shared(requester)


@router.get("/{timeline_id}", response_model=TimelineView)
async def load_timeline(
    timeline_id: str,
    requester: RequesterDep,
    repository: TimelineRepositoryDep,
):
    return await repository.load(requester, timeline_id)


@router.put("/{timeline_id}", response_model=SaveResult)
async def update_timeline(
    timeline_id: str,
    body: TimelineDraft,
    requester: RequesterDep,
    repository: TimelineRepositoryDep,
):
    return await repository.update(requester, timeline_id, body)


@router.delete("/{timeline_id}")
async def delete_timeline(
    timeline_id: str,
    requester: RequesterDep,
    repository: TimelineRepositoryDep,
):
    await repository.delete(requester, timeline_id)
    return {"status": "deleted", "timeline_id": timeline_id}


@router.put("/{timeline_id}/privacy", response_model=TimelineView)
async def update_privacy(
    timeline_id: str,
    body: PrivacyUpdate,
    requester: RequesterDep,
    repository: TimelineRepositoryDep,
):
    return await repository.update_privacy(requester, timeline_id, body.is_public)


# ── Collaborators ──

@router.get("/{timeline_id}/collaborators", response_model=list[Collaborator])
async def list_collaborators(
    timeline_id: str,
    requester: RequesterDep,
    repository: TimelineRepositoryDep,
):
    return await repository.list_collaborators(requester, timeline_id)


@router.post("/{timeline_id}/collaborators", response_model=list[Collaborator], status_code=201)
async def add_collaborator(
    timeline_id: str,
    body: CollaboratorCreate,
    requester: RequesterDep,
    repository: TimelineRepositoryDep,
):
    return await repository.add_collaborator(requester, timeline_id, body.email, body.role)


@router.put("/{timeline_id}/collaborators/{email}", response_model=list[Collaborator])
async def update_collaborator_role(
    timeline_id: str,
    email: str,
    body: CollaboratorRoleUpdate,
    requester: RequesterDep,
    repository: TimelineRepositoryDep,
):
    return await repository.update_collaborator_role(requester, timeline_id, email, body.role)


@router.delete("/{timeline_id}/collaborators/{email}", response_model=list[Collaborator])
async def remove_collaborator(
    timeline_id: str,
    email: str,
    requester: RequesterDep,
    repository: TimelineRepositoryDep,
):
    return await repository.remove_collaborator(requester, timeline_id, email)
