"""CPA archive and live record models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from cpasync.models.base import Base

# Columns copied from an archive generation onto the live CPA row.
LIVE_FIELDS = (
    "partner_id",
    "partner_cpp_id",
    "nav_cpp_id",
    "partner_subjectdn",
    "partner_endpoint",
    "mail_receiver",
    "mottak_id",
    "valid_from",
    "valid_to",
)


class ArchivedCpaRecord(Base):
    """One immutable generation of a CPA's state.

    The row with the highest ``id`` for a ``cpa_id`` is that CPA's current
    state. Rows are only ever inserted, except for marking a row deleted and
    re-stamping a freshly copied row during activation.
    """

    __tablename__ = "partner_cpa_archive"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cpa_id: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    partner_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    partner_cpp_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    nav_cpp_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    quarantined: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    partner_subjectdn: Mapped[str | None] = mapped_column(Text, nullable=True)
    partner_endpoint: Mapped[str | None] = mapped_column(Text, nullable=True)
    created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    created_by: Mapped[str | None] = mapped_column(String(256), nullable=True)
    mottak_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    mail_receiver: Mapped[str | None] = mapped_column(String(256), nullable=True)
    valid_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    valid_to: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class PartnerCpa(Base):
    """The live CPA row consumers read, one per active CPA id."""

    __tablename__ = "partner_cpa"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cpa_id: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    partner_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    partner_cpp_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    nav_cpp_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    partner_subjectdn: Mapped[str | None] = mapped_column(Text, nullable=True)
    partner_endpoint: Mapped[str | None] = mapped_column(Text, nullable=True)
    mail_receiver: Mapped[str | None] = mapped_column(String(256), nullable=True)
    mottak_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    valid_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    valid_to: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
