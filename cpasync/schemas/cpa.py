"""CPA sync and activation schemas."""

from __future__ import annotations

from pydantic import BaseModel


class SyncResultResponse(BaseModel):
    """Outcome of one sync run."""

    upserted: list[str]
    deleted: list[str]
    unchanged: list[str]
    activated: list[str]
    activation_failures: list[str]


class ActivationOutcomeResponse(BaseModel):
    """Outcome of activating one quarantine file."""

    filename: str
    state: str
    cpa_id: str | None = None
    error: str | None = None


class ActivationReportResponse(BaseModel):
    """Outcome of one activation pass."""

    outcomes: list[ActivationOutcomeResponse]
    activated: list[str]
    failed: list[str]


class QuarantineCountResponse(BaseModel):
    """Number of quarantined archive generations."""

    quarantined: int
