"""
FastAPI application factory and configuration.
"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from chathub.api import auth, data, health, instances, metrics, users, webhook
from chathub.api.metrics import MetricsMiddleware, set_startup_time
from chathub.core.config import Settings, get_settings
from chathub.core.database import Database
from chathub.core.logging import get_logger, setup_logging
from chathub.models.user import UserRole
from chathub.realtime import router as realtime
from chathub.realtime.hub import RealtimeHub
from chathub.repositories.users import UserRepository
from chathub.schemas.entities import UserCreate
from chathub.services.media import MediaFetcher
from chathub.services.provider import EvolutionClient


def seed_admin(database: Database, settings: Settings) -> None:
    """Create the configured admin account if no user has its email yet."""
    logger = get_logger(__name__)
    with database.session() as db:
        repository = UserRepository(db)
        if repository.get_by_email(settings.admin_email) is not None:
            return
        repository.create(UserCreate(
            email=settings.admin_email,
            password=settings.admin_password,
            name=settings.admin_name,
            role=UserRole.ADMIN,
        ))
        logger.info("Seed admin created", extra={"extra_data": {"email": settings.admin_email}})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger = get_logger(__name__)
    logger.info("Starting application...")

    database: Database = app.state.database
    database.create_all()
    seed_admin(database, app.state.settings)
    logger.info("Database initialized")

    set_startup_time(app.state.settings.app_version)

    yield

    logger.info("Shutting down application...")
    database.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    setup_logging(settings)
    logger = get_logger(__name__)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Multi-tenant WhatsApp webhook ingestion and admin dashboard API",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = Database(settings.database_url, echo=settings.debug)
    app.state.hub = RealtimeHub()
    app.state.media_fetcher = MediaFetcher(
        settings.media_root,
        url_prefix=settings.media_url_prefix,
        timeout=settings.media_download_timeout,
        retention_days=settings.media_retention_days,
    )
    app.state.provider = (
        EvolutionClient(settings.evolution_api_url, settings.evolution_api_key, timeout=settings.provider_timeout)
        if settings.is_provider_configured
        else None
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        max_age=settings.session_max_age,
        same_site="lax",
    )

    app.include_router(webhook.router)
    app.include_router(auth.router)
    app.include_router(data.router)
    app.include_router(users.router)
    app.include_router(instances.router)
    app.include_router(realtime.router)
    app.include_router(health.router)
    app.include_router(metrics.router)

    Path(settings.media_root).mkdir(parents=True, exist_ok=True)
    app.state.media_fetcher.ensure_directories()
    app.mount(settings.media_url_prefix, StaticFiles(directory=settings.media_root), name="uploads")

    logger.info(
        "Application created",
        extra={
            "extra_data": {
                "app_name": settings.app_name,
                "version": settings.app_version,
                "debug": settings.debug,
                "provider_configured": settings.is_provider_configured,
            }
        }
    )

    return app


# Create the application instance
app = create_app()
