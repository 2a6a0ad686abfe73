"""
Dependency injection for FastAPI routes.

Provides typed service dependencies and the requester identity taken from the
headers set by the upstream auth proxy.
"""

from typing import Annotated, Optional
from fastapi import Depends, Header, Request

from timeline_studio.config import Settings
from timeline_studio.models import Requester
from timeline_studio.services.backgrounds import BackgroundImageService
from timeline_studio.services.media_cleanup import MediaCleanupService
from timeline_studio.services.timeline import TimelineRepository


def get_timeline_repository(request: Request) -> TimelineRepository:
    return request.app.state.timeline_repository


def get_background_service(request: Request) -> BackgroundImageService:
    return request.app.state.background_service


def get_media_cleanup_service(request: Request) -> MediaCleanupService:
    return request.app.state.media_cleanup_service


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_requester(
    x_user_id: Annotated[Optional[str], Header()] = None,
    x_user_email: Annotated[Optional[str], Header()] = None,
    x_user_name: Annotated[Optional[str], Header()] = None,
) -> Optional[Requester]:
    """
    Build the requester from auth proxy headers.

    :return: The requester, or None for anonymous requests
    :rtype: Requester | None
    """
    if not x_user_id or not x_user_id.strip():
        return None
    return Requester(
        id=x_user_id.strip(),
        email=x_user_email.strip() if x_user_email else None,
        display_name=x_user_name,
    )


TimelineRepositoryDep = Annotated[TimelineRepository, Depends(get_timeline_repository)]
BackgroundServiceDep = Annotated[BackgroundImageService, Depends(get_background_service)]
MediaCleanupServiceDep = Annotated[MediaCleanupService, Depends(get_media_cleanup_service)]
RequesterDep = Annotated[Optional[Requester], Depends(get_requester)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
