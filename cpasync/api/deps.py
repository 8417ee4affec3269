"""Shared API dependencies: services from app state and API token auth."""

from __future__ import annotations

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cpasync.config import Settings
from cpasync.services.activation_service import CpaActivateService
from cpasync.services.archive_service import CpaArchiveRepository
from cpasync.services.sync_service import CpaSyncService

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_sync_service(request: Request) -> CpaSyncService:
    """Get the CPA sync service from app state."""
    service: CpaSyncService = request.app.state.sync_service
    return service


def _require_archive(request: Request) -> None:
    if getattr(request.app.state, "archive_repository", None) is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="CPA archive database is not configured",
        )


def get_activate_service(request: Request) -> CpaActivateService:
    """Get the CPA activation service; 503 if no archive database is configured."""
    _require_archive(request)
    service: CpaActivateService = request.app.state.activate_service
    return service


def get_archive_repository(request: Request) -> CpaArchiveRepository:
    """Get the CPA archive repository; 503 if no archive database is configured."""
    _require_archive(request)
    repository: CpaArchiveRepository = request.app.state.archive_repository
    return repository


async def require_api_token(
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> None:
    """Require the configured API bearer token. Open when no token is configured."""
    if settings.api_token is None:
        return
    expected = settings.api_token.get_secret_value()
    if credentials is None or not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
