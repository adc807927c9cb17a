"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: SlaTrackingService owns the SLA lifecycle of a case
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations

Every public operation returns a ``ServiceResult``. Business-rule violations
come back as failures carrying an ``ErrorCode``; infrastructure errors
propagate.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from casewatch.config import VALID_CASE_TYPES, settings
from casewatch.core import (
    ApplicationException,
    ConcurrencyConflictException,
    DuplicateTrackingRecordException,
    ResourceNotFoundException,
    ServiceResult,
    ValidationException,
    ensure_utc,
    utc_now,
)
from casewatch.shared.infrastructure.logging import get_logger
from casewatch.sla.domain import (
    DeadlineResolver,
    SlaConfiguration,
    SlaDashboardStatistics,
    SlaStatisticsCalculator,
    SlaStoreStatistics,
    SlaTrackingRecord,
)

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ISlaConfigurationRepository(ABC):
    """Interface for SLA configuration data access."""

    @abstractmethod
    async def get_by_id(self, configuration_id: str) -> Optional[SlaConfiguration]:
        """Get configuration by ID."""

    @abstractmethod
    async def list_active(self) -> List[SlaConfiguration]:
        """Active configurations, priority descending then name."""

    @abstractmethod
    async def add(self, configuration: SlaConfiguration) -> SlaConfiguration:
        """Insert a configuration and assign its ID."""

    @abstractmethod
    async def update(self, configuration: SlaConfiguration) -> SlaConfiguration:
        """Overwrite an existing configuration."""

    @abstractmethod
    async def count(self) -> int:
        """Number of stored configurations, active or not."""

    @abstractmethod
    async def delete(self, configuration_id: str) -> bool:
        """Delete a configuration. Returns False when it did not exist."""

    @abstractmethod
    async def commit(self) -> None:
        """Commit the current unit of work."""


class ISlaTrackingRepository(ABC):
    """Interface for SLA tracking record data access."""

    @abstractmethod
    async def get_by_case_id(self, case_id: str) -> Optional[SlaTrackingRecord]:
        """Get the tracking record for a case, freshly read."""

    @abstractmethod
    async def exists_by_case_id(self, case_id: str) -> bool:
        """Check if a case is already tracked."""

    @abstractmethod
    async def add(self, record: SlaTrackingRecord) -> SlaTrackingRecord:
        """
        Insert a new record and assign its ID.

        Raises:
            DuplicateTrackingRecordException: case_id already tracked
        """

    @abstractmethod
    async def update_if_version(self, record: SlaTrackingRecord, expected_version: int) -> bool:
        """
        Conditional write: persist ``record`` only if the stored version is
        still ``expected_version``. On success ``record.version`` is bumped.
        """

    @abstractmethod
    async def list_breach_candidates(
        self,
        now: datetime,
        limit: int,
        after_id: Optional[str] = None
    ) -> List[SlaTrackingRecord]:
        """Non-terminal records with a flag due at ``now``, ordered by ID after ``after_id``."""

    @abstractmethod
    async def list_by_date_range(
        self,
        start_date: datetime,
        end_date: datetime,
        store_id: Optional[str] = None
    ) -> List[SlaTrackingRecord]:
        """Records whose case was created within [start_date, end_date]."""

    @abstractmethod
    async def list_breached(self) -> List[SlaTrackingRecord]:
        """Non-terminal breached records, newest case first."""

    @abstractmethod
    async def commit(self) -> None:
        """Commit the current unit of work."""


# ========== Application Services ==========

class SlaTrackingService:
    """
    Service for SLA tracking of marketplace cases.

    Coordinates deadline resolution, event recording, the periodic breach
    sweep, statistics and configuration management.
    """

    def __init__(
        self,
        tracking_repository: ISlaTrackingRepository,
        configuration_repository: ISlaConfigurationRepository,
        batch_size: Optional[int] = None,
        max_update_retries: Optional[int] = None
    ):
        if tracking_repository is None:
            raise ValueError("Tracking repository not configured")
        if configuration_repository is None:
            raise ValueError("Configuration repository not configured")

        self._tracking_repo = tracking_repository
        self._config_repo = configuration_repository
        self._batch_size = batch_size or settings.sla_sweep_batch_size
        self._max_retries = max_update_retries or settings.sla_max_update_retries

    # ========== Tracking Records ==========

    async def create_tracking_record(
        self,
        case_id: str,
        case_number: str,
        case_type: str,
        store_id: str,
        store_name: str,
        case_created_at: datetime,
        category: Optional[str] = None
    ) -> ServiceResult[SlaTrackingRecord]:
        """
        Start SLA tracking for a newly opened case.

        Deadlines are resolved once here and frozen on the record.
        """
        errors = [
            f"{name} is required"
            for name, value in (
                ("case_id", case_id),
                ("case_number", case_number),
                ("case_type", case_type),
                ("store_id", store_id),
            )
            if not value or not str(value).strip()
        ]
        known_types = {t.casefold() for t in VALID_CASE_TYPES}
        if case_type and str(case_type).strip() and str(case_type).casefold() not in known_types:
            errors.append(f"case_type must be one of {VALID_CASE_TYPES}")
        if case_created_at is None:
            errors.append("case_created_at is required")
        if errors:
            return ServiceResult.from_exception(ValidationException("Invalid tracking request", errors))

        try:
            if await self._tracking_repo.exists_by_case_id(case_id):
                raise DuplicateTrackingRecordException(case_id)

            configurations = await self._config_repo.list_active()
            deadlines = DeadlineResolver.resolve(
                category, case_created_at, configurations, case_type=case_type
            )

            now = utc_now()
            record = SlaTrackingRecord(
                id=None,
                case_id=case_id,
                case_number=case_number,
                case_type=case_type,
                store_id=store_id,
                store_name=store_name or "",
                category=category,
                configuration_id=deadlines.configuration_id,
                case_created_at=case_created_at,
                first_response_deadline=deadlines.response_deadline,
                resolution_deadline=deadlines.resolution_deadline,
                last_updated_at=now,
            )
            record = await self._tracking_repo.add(record)
            await self._tracking_repo.commit()
        except ApplicationException as e:
            logger.info(
                "SLA tracking record not created",
                extra={"case_id": case_id, "error_code": e.error_code, "reason": e.message}
            )
            return ServiceResult.from_exception(e)

        logger.info(
            "SLA tracking record created",
            extra={
                "case_id": case_id,
                "store_id": store_id,
                "configuration_id": record.configuration_id,
                "first_response_deadline": record.first_response_deadline.isoformat(),
                "resolution_deadline": record.resolution_deadline.isoformat(),
            }
        )
        return ServiceResult.success(record)

    async def get_tracking_record(self, case_id: str) -> ServiceResult[SlaTrackingRecord]:
        record = await self._tracking_repo.get_by_case_id(case_id)
        if record is None:
            return ServiceResult.from_exception(ResourceNotFoundException("SLA tracking record", case_id))
        return ServiceResult.success(record)

    async def record_first_response(
        self,
        case_id: str,
        responded_at: datetime
    ) -> ServiceResult[SlaTrackingRecord]:
        """
        Record the seller's first response.

        Idempotent: the first stored timestamp wins. A response on a resolved
        case is accepted as a no-op.
        """
        return await self._record_event(
            case_id,
            responded_at,
            event="first_response",
            apply=lambda record, at, now: record.record_first_response(at, now),
        )

    async def record_resolution(
        self,
        case_id: str,
        resolved_at: datetime
    ) -> ServiceResult[SlaTrackingRecord]:
        """Record case resolution. The record becomes terminal."""
        return await self._record_event(
            case_id,
            resolved_at,
            event="resolution",
            apply=lambda record, at, now: record.record_resolution(at, now),
        )

    async def _record_event(self, case_id, occurred_at, event, apply) -> ServiceResult[SlaTrackingRecord]:
        if occurred_at is None:
            return ServiceResult.from_exception(
                ValidationException(f"{event} timestamp is required")
            )
        occurred_at = ensure_utc(occurred_at)

        for attempt in range(1, self._max_retries + 1):
            record = await self._tracking_repo.get_by_case_id(case_id)
            if record is None:
                return ServiceResult.from_exception(
                    ResourceNotFoundException("SLA tracking record", case_id)
                )
            if occurred_at < record.case_created_at:
                return ServiceResult.from_exception(ValidationException(
                    f"{event} timestamp cannot be before the case was created",
                    details={"case_id": case_id, "case_created_at": record.case_created_at.isoformat()}
                ))

            expected_version = record.version
            if not apply(record, occurred_at, utc_now()):
                logger.debug(
                    "SLA event already recorded",
                    extra={"case_id": case_id, "event": event, "state": record.state}
                )
                return ServiceResult.success(record)

            if await self._tracking_repo.update_if_version(record, expected_version):
                await self._tracking_repo.commit()
                logger.info(
                    "SLA event recorded",
                    extra={
                        "case_id": case_id,
                        "event": event,
                        "occurred_at": occurred_at.isoformat(),
                        "first_response_breached": record.first_response_breached,
                        "resolution_breached": record.resolution_breached,
                    }
                )
                return ServiceResult.success(record)

            logger.debug(
                "SLA record changed concurrently, retrying",
                extra={"case_id": case_id, "event": event, "attempt": attempt}
            )

        error = ConcurrencyConflictException("SLA tracking record", case_id, self._max_retries)
        logger.warning(error.message, extra={"case_id": case_id, "event": event})
        return ServiceResult.from_exception(error)

    # ========== Breach Sweep ==========

    async def check_and_update_breaches(self, now: Optional[datetime] = None) -> ServiceResult[int]:
        """
        Flag every open record whose deadline has passed at ``now``.

        Records are read in keyset batches and each flag change is a
        version-checked write; a lost race reloads and re-evaluates the
        record. Each batch is committed before the next is read.

        Returns:
            Number of records newly flagged. Re-running with the same ``now``
            returns 0.
        """
        now = ensure_utc(now) if now is not None else utc_now()
        flagged = 0
        conflicts = 0
        after_id = None

        while True:
            batch = await self._tracking_repo.list_breach_candidates(now, self._batch_size, after_id)
            for record in batch:
                outcome = await self._flag_record(record, now)
                if outcome is None:
                    conflicts += 1
                elif outcome:
                    flagged += 1
            await self._tracking_repo.commit()

            if len(batch) < self._batch_size:
                break
            after_id = batch[-1].id

        logger.info(
            "SLA breach sweep completed",
            extra={"now": now.isoformat(), "records_flagged": flagged, "conflicts": conflicts}
        )
        return ServiceResult.success(flagged)

    async def _flag_record(self, record: SlaTrackingRecord, now: datetime) -> Optional[bool]:
        """True if flagged, False if nothing was due, None if retries ran out."""
        for attempt in range(1, self._max_retries + 1):
            evaluation = record.evaluate_breaches(now)
            if not evaluation.any:
                return False

            expected_version = record.version
            record.apply_breaches(evaluation, now)
            if await self._tracking_repo.update_if_version(record, expected_version):
                logger.warning(
                    "SLA breach detected",
                    extra={
                        "case_id": record.case_id,
                        "store_id": record.store_id,
                        "first_response_breached": evaluation.first_response,
                        "resolution_breached": evaluation.resolution,
                    }
                )
                return True

            reloaded = await self._tracking_repo.get_by_case_id(record.case_id)
            if reloaded is None:
                return False
            record = reloaded

        logger.warning(
            "SLA breach update abandoned after concurrent modifications",
            extra={"case_id": record.case_id, "attempts": self._max_retries}
        )
        return None

    # ========== Statistics ==========

    async def get_dashboard_statistics(
        self,
        start_date: datetime,
        end_date: datetime
    ) -> ServiceResult[SlaDashboardStatistics]:
        invalid = self._validate_range(start_date, end_date)
        if invalid:
            return invalid
        records = await self._tracking_repo.list_by_date_range(start_date, end_date)
        return ServiceResult.success(SlaStatisticsCalculator.dashboard(records, start_date, end_date))

    async def get_seller_statistics(
        self,
        start_date: datetime,
        end_date: datetime
    ) -> ServiceResult[List[SlaStoreStatistics]]:
        invalid = self._validate_range(start_date, end_date)
        if invalid:
            return invalid
        records = await self._tracking_repo.list_by_date_range(start_date, end_date)
        return ServiceResult.success(SlaStatisticsCalculator.by_store(records))

    async def get_store_statistics(
        self,
        store_id: str,
        start_date: datetime,
        end_date: datetime
    ) -> ServiceResult[SlaStoreStatistics]:
        invalid = self._validate_range(start_date, end_date)
        if invalid:
            return invalid
        records = await self._tracking_repo.list_by_date_range(start_date, end_date, store_id=store_id)
        return ServiceResult.success(SlaStatisticsCalculator.for_store(store_id, records))

    async def get_breached_cases(self) -> ServiceResult[List[SlaTrackingRecord]]:
        return ServiceResult.success(await self._tracking_repo.list_breached())

    @staticmethod
    def _validate_range(start_date: datetime, end_date: datetime) -> Optional[ServiceResult]:
        if start_date is None or end_date is None:
            return ServiceResult.from_exception(ValidationException("start_date and end_date are required"))
        if ensure_utc(start_date) > ensure_utc(end_date):
            return ServiceResult.from_exception(ValidationException(
                "start_date cannot be after end_date",
                details={"start_date": ensure_utc(start_date).isoformat(), "end_date": ensure_utc(end_date).isoformat()}
            ))
        return None

    # ========== Configuration Management ==========

    async def get_sla_configurations(self) -> ServiceResult[List[SlaConfiguration]]:
        return ServiceResult.success(await self._config_repo.list_active())

    async def save_sla_configuration(
        self,
        configuration: SlaConfiguration,
        admin_user_id: str
    ) -> ServiceResult[SlaConfiguration]:
        """
        Create (empty ID) or update an SLA configuration.

        Existing tracking records keep the deadlines they were created with.
        """
        errors = configuration.validate()
        if errors:
            return ServiceResult.from_exception(ValidationException("Invalid SLA configuration", errors))

        now = utc_now()
        if not configuration.id:
            configuration.id = str(uuid4())
            configuration.created_at = now
            configuration.created_by = admin_user_id
            configuration.updated_at = None
            configuration.updated_by = None
            saved = await self._config_repo.add(configuration)
            action = "created"
        else:
            existing = await self._config_repo.get_by_id(configuration.id)
            if existing is None:
                return ServiceResult.from_exception(
                    ResourceNotFoundException("SLA configuration", configuration.id)
                )
            configuration.created_at = existing.created_at
            configuration.created_by = existing.created_by
            configuration.updated_at = now
            configuration.updated_by = admin_user_id
            saved = await self._config_repo.update(configuration)
            action = "updated"

        await self._config_repo.commit()
        logger.info(
            f"SLA configuration {action}",
            extra={
                "configuration_id": saved.id,
                "configuration_name": saved.name,
                "category": saved.category,
                "admin_user_id": admin_user_id,
            }
        )
        return ServiceResult.success(saved)

    async def delete_sla_configuration(self, configuration_id: str) -> ServiceResult[None]:
        if not await self._config_repo.delete(configuration_id):
            return ServiceResult.from_exception(
                ResourceNotFoundException("SLA configuration", configuration_id)
            )
        await self._config_repo.commit()
        logger.info("SLA configuration deleted", extra={"configuration_id": configuration_id})
        return ServiceResult.success(None)
