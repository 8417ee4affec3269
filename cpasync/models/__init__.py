"""SQLAlchemy ORM models for CPA sync."""

from cpasync.models.base import Base
from cpasync.models.cpa import LIVE_FIELDS, ArchivedCpaRecord, PartnerCpa

__all__ = [
    "LIVE_FIELDS",
    "ArchivedCpaRecord",
    "Base",
    "PartnerCpa",
]
