"""
SLA Infrastructure Repositories
=================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database. Repositories hand out domain entities, never
ORM models.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update, func, and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from casewatch.core import DuplicateTrackingRecordException, ResourceNotFoundException, ensure_utc
from casewatch.shared.infrastructure.logging import get_logger
from casewatch.sla.application.services import ISlaConfigurationRepository, ISlaTrackingRepository
from casewatch.sla.domain import SlaConfiguration, SlaTrackingRecord
from casewatch.sla.infrastructure.models import SlaConfigurationModel, SlaTrackingRecordModel

logger = get_logger(__name__)


def _as_uuid(value: Optional[str]) -> Optional[UUID]:
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


# ========== Mapping ==========

def _configuration_to_domain(model: SlaConfigurationModel) -> SlaConfiguration:
    return SlaConfiguration(
        id=str(model.id),
        name=model.name,
        category=model.category,
        case_type=model.case_type,
        response_deadline_hours=model.response_deadline_hours,
        resolution_deadline_hours=model.resolution_deadline_hours,
        priority=model.priority,
        is_active=model.is_active,
        created_at=model.created_at,
        created_by=model.created_by,
        updated_at=model.updated_at,
        updated_by=model.updated_by,
    )


def _record_to_domain(model: SlaTrackingRecordModel) -> SlaTrackingRecord:
    return SlaTrackingRecord(
        id=str(model.id),
        case_id=model.case_id,
        case_number=model.case_number,
        case_type=model.case_type,
        store_id=model.store_id,
        store_name=model.store_name,
        category=model.category,
        configuration_id=str(model.configuration_id) if model.configuration_id else None,
        case_created_at=model.case_created_at,
        first_response_deadline=model.first_response_deadline,
        resolution_deadline=model.resolution_deadline,
        first_responded_at=model.first_responded_at,
        resolved_at=model.resolved_at,
        first_response_breached=model.first_response_breached,
        resolution_breached=model.resolution_breached,
        last_breach_check_at=model.last_breach_check_at,
        last_updated_at=model.last_updated_at,
        version=model.version,
    )


# ========== Configuration Repository ==========

class SQLAlchemySlaConfigurationRepository(ISlaConfigurationRepository):
    """SQLAlchemy implementation of the SLA configuration store."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_model(self, configuration_id: str) -> Optional[SlaConfigurationModel]:
        config_uuid = _as_uuid(configuration_id)
        if config_uuid is None:
            return None
        return await self._session.get(SlaConfigurationModel, config_uuid)

    async def get_by_id(self, configuration_id: str) -> Optional[SlaConfiguration]:
        model = await self._get_model(configuration_id)
        return _configuration_to_domain(model) if model else None

    async def list_active(self) -> List[SlaConfiguration]:
        stmt = (
            select(SlaConfigurationModel)
            .where(SlaConfigurationModel.is_active.is_(True))
            .order_by(SlaConfigurationModel.priority.desc(), SlaConfigurationModel.name.asc())
        )
        result = await self._session.execute(stmt)
        return [_configuration_to_domain(m) for m in result.scalars().all()]

    async def add(self, configuration: SlaConfiguration) -> SlaConfiguration:
        model = SlaConfigurationModel(
            id=_as_uuid(configuration.id),
            name=configuration.name,
            category=configuration.category,
            case_type=configuration.case_type,
            response_deadline_hours=configuration.response_deadline_hours,
            resolution_deadline_hours=configuration.resolution_deadline_hours,
            priority=configuration.priority,
            is_active=configuration.is_active,
            created_at=configuration.created_at,
            created_by=configuration.created_by,
        )
        self._session.add(model)
        await self._session.flush()

        configuration.id = str(model.id)
        return configuration

    async def update(self, configuration: SlaConfiguration) -> SlaConfiguration:
        model = await self._get_model(configuration.id)
        if model is None:
            raise ResourceNotFoundException("SLA configuration", configuration.id)

        model.name = configuration.name
        model.category = configuration.category
        model.case_type = configuration.case_type
        model.response_deadline_hours = configuration.response_deadline_hours
        model.resolution_deadline_hours = configuration.resolution_deadline_hours
        model.priority = configuration.priority
        model.is_active = configuration.is_active
        model.updated_at = configuration.updated_at
        model.updated_by = configuration.updated_by

        await self._session.flush()
        return configuration

    async def count(self) -> int:
        result = await self._session.execute(select(func.count()).select_from(SlaConfigurationModel))
        return result.scalar_one()

    async def delete(self, configuration_id: str) -> bool:
        model = await self._get_model(configuration_id)
        if model is None:
            return False
        await self._session.delete(model)
        await self._session.flush()
        return True

    async def commit(self) -> None:
        await self._session.commit()


# ========== Tracking Repository ==========

class SQLAlchemySlaTrackingRepository(ISlaTrackingRepository):
    """
    SQLAlchemy implementation of the SLA tracking repository.

    State changes go through ``update_if_version``, a single conditional
    UPDATE on (case_id, version).
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_case_id(self, case_id: str) -> Optional[SlaTrackingRecord]:
        stmt = (
            select(SlaTrackingRecordModel)
            .where(SlaTrackingRecordModel.case_id == case_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _record_to_domain(model) if model else None

    async def exists_by_case_id(self, case_id: str) -> bool:
        stmt = select(SlaTrackingRecordModel.id).where(SlaTrackingRecordModel.case_id == case_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def add(self, record: SlaTrackingRecord) -> SlaTrackingRecord:
        model = SlaTrackingRecordModel(
            case_id=record.case_id,
            case_number=record.case_number,
            case_type=record.case_type,
            store_id=record.store_id,
            store_name=record.store_name,
            category=record.category,
            configuration_id=_as_uuid(record.configuration_id),
            case_created_at=record.case_created_at,
            first_response_deadline=record.first_response_deadline,
            resolution_deadline=record.resolution_deadline,
            first_responded_at=record.first_responded_at,
            resolved_at=record.resolved_at,
            first_response_breached=record.first_response_breached,
            resolution_breached=record.resolution_breached,
            last_breach_check_at=record.last_breach_check_at,
            last_updated_at=record.last_updated_at,
            version=record.version,
        )
        self._session.add(model)
        try:
            await self._session.flush()
        except IntegrityError as e:
            await self._session.rollback()
            logger.info(
                "Concurrent insert for tracked case",
                extra={"case_id": record.case_id, "error": str(e.orig)}
            )
            raise DuplicateTrackingRecordException(record.case_id) from e

        record.id = str(model.id)
        return record

    async def update_if_version(self, record: SlaTrackingRecord, expected_version: int) -> bool:
        stmt = (
            update(SlaTrackingRecordModel)
            .where(
                SlaTrackingRecordModel.case_id == record.case_id,
                SlaTrackingRecordModel.version == expected_version,
            )
            .values(
                first_responded_at=record.first_responded_at,
                resolved_at=record.resolved_at,
                first_response_breached=record.first_response_breached,
                resolution_breached=record.resolution_breached,
                last_breach_check_at=record.last_breach_check_at,
                last_updated_at=record.last_updated_at,
                version=expected_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            return False

        record.version = expected_version + 1
        return True

    async def list_breach_candidates(
        self,
        now: datetime,
        limit: int,
        after_id: Optional[str] = None
    ) -> List[SlaTrackingRecord]:
        now = ensure_utc(now)
        m = SlaTrackingRecordModel
        first_response_due = and_(
            m.first_responded_at.is_(None),
            m.first_response_breached.is_(False),
            m.first_response_deadline < now,
        )
        resolution_due = and_(
            m.resolution_breached.is_(False),
            m.resolution_deadline < now,
        )
        stmt = select(m).where(m.resolved_at.is_(None), or_(first_response_due, resolution_due))

        after_uuid = _as_uuid(after_id)
        if after_uuid is not None:
            stmt = stmt.where(m.id > after_uuid)

        stmt = stmt.order_by(m.id.asc()).limit(limit).execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        return [_record_to_domain(model) for model in result.scalars().all()]

    async def list_by_date_range(
        self,
        start_date: datetime,
        end_date: datetime,
        store_id: Optional[str] = None
    ) -> List[SlaTrackingRecord]:
        m = SlaTrackingRecordModel
        stmt = select(m).where(
            m.case_created_at >= ensure_utc(start_date),
            m.case_created_at <= ensure_utc(end_date),
        )
        if store_id is not None:
            stmt = stmt.where(m.store_id == store_id)
        stmt = stmt.order_by(m.case_created_at.desc()).execution_options(populate_existing=True)

        result = await self._session.execute(stmt)
        return [_record_to_domain(model) for model in result.scalars().all()]

    async def list_breached(self) -> List[SlaTrackingRecord]:
        m = SlaTrackingRecordModel
        stmt = (
            select(m)
            .where(
                m.resolved_at.is_(None),
                or_(m.first_response_breached.is_(True), m.resolution_breached.is_(True)),
            )
            .order_by(m.case_created_at.desc())
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_record_to_domain(model) for model in result.scalars().all()]

    async def commit(self) -> None:
        await self._session.commit()
