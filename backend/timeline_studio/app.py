"""
Timeline Studio - FastAPI Backend
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from timeline_studio.config import Settings, get_settings
from timeline_studio.database.db import init_db
from timeline_studio.errors import TimelineError
from timeline_studio.logging import setup_logging, get_logger
from timeline_studio.routers import backgrounds, maintenance, timelines
from timeline_studio.services.backgrounds import BackgroundImageService
from timeline_studio.services.blob_store import LocalBlobStore
from timeline_studio.services.media import MediaLifecycleManager
from timeline_studio.services.media_cleanup import MediaCleanupService
from timeline_studio.services.timeline import TimelineRepository

logger = get_logger('main')


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    setup_logging(settings.DEBUG)
    logger.info("Starting Timeline Studio API")

    await init_db(settings.DATABASE_PATH)
    logger.info("Database initialized")

    # Initialize services
    blob_store = LocalBlobStore(settings.MEDIA_ROOT, base_url=settings.MEDIA_BASE_URL)
    app.state.blob_store = blob_store

    app.state.media_cleanup_service = MediaCleanupService(
        db_path=settings.DATABASE_PATH,
        blob_store=blob_store,
        max_attempts=settings.CLEANUP_MAX_ATTEMPTS,
    )
    app.state.timeline_repository = TimelineRepository(
        db_path=settings.DATABASE_PATH,
        media=MediaLifecycleManager(blob_store, max_image_bytes=settings.MAX_IMAGE_BYTES),
        cleanup=app.state.media_cleanup_service,
        max_timelines_per_user=settings.MAX_TIMELINES_PER_USER,
        public_list_default=settings.PUBLIC_LIST_DEFAULT,
        public_list_max=settings.PUBLIC_LIST_MAX,
    )
    app.state.background_service = BackgroundImageService(
        blob_store=blob_store,
        max_bytes=settings.MAX_IMAGE_BYTES,
        max_width=settings.BACKGROUND_MAX_WIDTH,
        max_height=settings.BACKGROUND_MAX_HEIGHT,
        jpeg_quality=settings.BACKGROUND_JPEG_QUALITY,
    )
    logger.info("Services initialized")

    # Retry deletions left over from a previous run
    report = await app.state.media_cleanup_service.drain()
    if report.failed:
        logger.warning(f"{len(report.failed)} blob deletion(s) still pending after startup drain")

    yield

    logger.info("Shutting down application")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Timeline Studio API",
        description="Collaborative timelines with rich-text events and images",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TimelineError)
    async def timeline_error_handler(request: Request, exc: TimelineError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    app.include_router(timelines.router, prefix="/api/timelines", tags=["Timelines"])
    app.include_router(backgrounds.router, prefix="/api/backgrounds", tags=["Backgrounds"])
    app.include_router(maintenance.router, prefix="/api/maintenance", tags=["Maintenance"])

    media_root = Path(settings.MEDIA_ROOT)
    media_root.mkdir(parents=True, exist_ok=True)
    app.mount(settings.MEDIA_BASE_URL, StaticFiles(directory=media_root), name="media")

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "timeline-studio",
        }

    @app.get("/")
    async def root():
        return {
            "name": "Timeline Studio API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health"
        }

    return app
