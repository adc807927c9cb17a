"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for SLA module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
All timestamps are stored as UTC.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Boolean, Integer, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from casewatch.infrastructure.database import Base


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SlaConfigurationModel(Base):
    """
    Database model for SlaConfiguration.

    Maps to the 'sla_configurations' table.
    """
    __tablename__ = "sla_configurations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Scope (null = wildcard)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    case_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    response_deadline_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    resolution_deadline_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Audit
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utc_now)
    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class SlaTrackingRecordModel(Base):
    """
    Database model for SlaTrackingRecord.

    Maps to the 'sla_tracking_records' table. ``version`` is the optimistic
    concurrency stamp checked by every conditional update.
    """
    __tablename__ = "sla_tracking_records"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Case reference (1:1)
    case_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    case_number: Mapped[str] = mapped_column(String(100), nullable=False)
    case_type: Mapped[str] = mapped_column(String(50), nullable=False)
    store_id: Mapped[str] = mapped_column(String(255), nullable=False)
    store_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    configuration_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)

    # Frozen deadlines
    case_created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    first_response_deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    resolution_deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Events
    first_responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Breach flags
    first_response_breached: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolution_breached: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    last_breach_check_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utc_now)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("ix_sla_tracking_store_created", "store_id", "case_created_at"),
        Index("ix_sla_tracking_created", "case_created_at"),
        Index("ix_sla_tracking_open_breaches", "resolved_at", "first_response_breached", "resolution_breached"),
    )
