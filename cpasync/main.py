"""FastAPI application entry point."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
import paramiko
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from cpasync.api.cpa import router as cpa_router
from cpasync.config import Settings
from cpasync.cpa_repo.client import CpaRepoClient
from cpasync.database import create_engine
from cpasync.exceptions import DuplicateDocumentIdError, RepositoryDataError
from cpasync.filestore.registry import create_file_store_factory
from cpasync.models.base import Base
from cpasync.services.activation_service import CpaActivateService
from cpasync.services.archive_service import CpaArchiveRepository
from cpasync.services.scheduler_service import JobScheduler
from cpasync.services.sync_service import CpaSyncService

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)
    logging.getLogger("paramiko").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_scheduler(
    settings: Settings,
    sync_service: CpaSyncService,
    activate_service: CpaActivateService | None,
) -> JobScheduler:
    """Register the periodic sync job, and the standalone activation job if enabled."""
    scheduler = JobScheduler()
    scheduler.add(
        "Sync CPA",
        sync_service.sync,
        settings.sync_interval_seconds,
        settings.scheduler_startup_delay_seconds,
    )
    if settings.standalone_activation_enabled:
        if activate_service is None:
            logger.warning("Standalone activation enabled but no CPA archive configured")
        else:
            scheduler.add(
                "Activate CPA",
                activate_service.activate_pending_cpas,
                settings.activate_interval_seconds,
                settings.scheduler_startup_delay_seconds,
            )
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings
    settings.validate_runtime_settings()
    _configure_logging(settings.debug)
    logger.info("Starting CPA sync (debug=%s)", settings.debug)

    engine = None
    archive_repository: CpaArchiveRepository | None = None
    if settings.archive_enabled:
        db_url = settings.database_url
        if db_url.startswith("sqlite") and "///" in db_url:
            db_path = db_url.split("///", 1)[-1]
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            engine, session_factory = create_engine(settings)
            app.state.engine = engine
            app.state.session_factory = session_factory
        except Exception as exc:
            logger.critical(
                "Failed to initialize database: %s. Check database URL and permissions.", exc
            )
            raise

        if settings.database_create_schema:
            try:
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            except Exception as exc:
                logger.critical("Failed to create database schema: %s.", exc)
                raise

        archive_repository = CpaArchiveRepository(session_factory)
    else:
        logger.warning("DATABASE_URL is empty: CPA archive and activation are disabled")
    app.state.archive_repository = archive_repository

    try:
        file_store_factory = create_file_store_factory(settings)
    except Exception as exc:
        logger.critical("Failed to configure file store: %s.", exc)
        raise

    repo_client = CpaRepoClient.from_settings(settings)
    app.state.repo_client = repo_client

    activate_service = (
        CpaActivateService.from_settings(settings, archive_repository, file_store_factory)
        if archive_repository is not None
        else None
    )
    app.state.activate_service = activate_service

    sync_service = CpaSyncService(repo_client, file_store_factory, activate_service)
    app.state.sync_service = sync_service

    scheduler = build_scheduler(settings, sync_service, activate_service)
    app.state.scheduler = scheduler
    if settings.scheduler_enabled:
        scheduler.start()
    else:
        logger.info("Scheduler disabled; sync runs only on request")

    yield

    try:
        await scheduler.stop()
    except Exception as exc:
        logger.error("Error during scheduler shutdown: %s", exc, exc_info=True)

    try:
        await repo_client.close()
    except Exception as exc:
        logger.error("Error during CPA repository client shutdown: %s", exc, exc_info=True)

    if engine is not None:
        try:
            await engine.dispose()
        except Exception as exc:
            logger.error("Error during engine disposal: %s", exc, exc_info=True)

    logger.info("CPA sync stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="CPA sync",
        description="Keeps the CPA repository in step with the CPA file share",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings

    app.include_router(cpa_router)

    # Global exception handlers

    @app.exception_handler(DuplicateDocumentIdError)
    async def duplicate_id_handler(request: Request, exc: DuplicateDocumentIdError) -> JSONResponse:
        logger.error(
            "DuplicateDocumentIdError in %s %s: %s", request.method, request.url.path, exc
        )
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(httpx.HTTPError)
    async def repository_error_handler(request: Request, exc: httpx.HTTPError) -> JSONResponse:
        logger.error(
            "CPA repository error in %s %s: %s", request.method, request.url.path, exc
        )
        return JSONResponse(
            status_code=502,
            content={"detail": "CPA repository request failed"},
        )

    @app.exception_handler(paramiko.SSHException)
    async def ssh_error_handler(request: Request, exc: paramiko.SSHException) -> JSONResponse:
        logger.error("SSHException in %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=502,
            content={"detail": "File store unavailable"},
        )

    @app.exception_handler(OSError)
    async def os_error_handler(request: Request, exc: OSError) -> JSONResponse:
        logger.error("OSError in %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=502,
            content={"detail": "File store operation failed"},
        )

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
        logger.error(
            "OperationalError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc
        )
        return JSONResponse(
            status_code=503,
            content={"detail": "Database temporarily unavailable"},
        )

    @app.exception_handler(RepositoryDataError)
    async def repository_data_error_handler(
        request: Request, exc: RepositoryDataError
    ) -> JSONResponse:
        logger.error(
            "RepositoryDataError in %s %s: %s", request.method, request.url.path, exc
        )
        return JSONResponse(
            status_code=502,
            content={"detail": "CPA repository returned invalid data"},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.error("ValueError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        message = str(exc) or "Invalid value"
        return JSONResponse(
            status_code=422,
            content={"detail": message},
        )

    return app


app = create_app()


def cli_entry() -> None:
    """CLI entry point for running the server."""
    import uvicorn

    settings: Settings = app.state.settings
    uvicorn.run(
        "cpasync.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
