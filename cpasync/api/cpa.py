"""Manual triggers for CPA sync and activation."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from cpasync.api.deps import (
    get_activate_service,
    get_archive_repository,
    get_sync_service,
    require_api_token,
)
from cpasync.schemas.cpa import (
    ActivationOutcomeResponse,
    ActivationReportResponse,
    QuarantineCountResponse,
    SyncResultResponse,
)
from cpasync.services.activation_service import CpaActivateService
from cpasync.services.archive_service import CpaArchiveRepository
from cpasync.services.sync_service import CpaSyncService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/cpa",
    tags=["cpa"],
    dependencies=[Depends(require_api_token)],
)


@router.post("/sync", response_model=SyncResultResponse)
async def run_sync(
    sync_service: Annotated[CpaSyncService, Depends(get_sync_service)],
) -> SyncResultResponse:
    """Run one CPA sync now."""
    logger.info("Sync requested through API")
    result = await sync_service.sync()
    return SyncResultResponse(
        upserted=result.upserted,
        deleted=result.deleted,
        unchanged=result.unchanged,
        activated=result.activated,
        activation_failures=result.activation_failures,
    )


@router.post("/activate", response_model=ActivationReportResponse)
async def run_activation(
    activate_service: Annotated[CpaActivateService, Depends(get_activate_service)],
) -> ActivationReportResponse:
    """Activate every due quarantined CPA now."""
    logger.info("Activation requested through API")
    report = await activate_service.activate_pending_cpas()
    return ActivationReportResponse(
        outcomes=[
            ActivationOutcomeResponse(
                filename=outcome.filename,
                state=str(outcome.state),
                cpa_id=outcome.cpa_id,
                error=outcome.error,
            )
            for outcome in report.outcomes
        ],
        activated=report.activated,
        failed=report.failed,
    )


@router.get("/archive/quarantined", response_model=QuarantineCountResponse)
async def count_quarantined(
    archive_repository: Annotated[CpaArchiveRepository, Depends(get_archive_repository)],
) -> QuarantineCountResponse:
    """Count quarantined archive generations."""
    return QuarantineCountResponse(quarantined=await archive_repository.count_quarantined())
