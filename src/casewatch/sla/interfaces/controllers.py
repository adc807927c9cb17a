"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA tracking endpoints.

Controllers are thin - they delegate to SlaTrackingService and translate
failed results into HTTP errors.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from casewatch.config import ErrorCode
from casewatch.core import ServiceResult, utc_now
from casewatch.infrastructure.database import get_session
from casewatch.shared.infrastructure.logging import get_logger
from casewatch.sla.application import (
    SlaTrackingService,
    CreateTrackingRecordRequest,
    FirstResponseRequest,
    ResolutionRequest,
    BreachCheckRequest,
    SlaConfigurationRequest,
    TrackingRecordResponse,
    BreachCheckResponse,
    DashboardStatisticsResponse,
    StoreStatisticsResponse,
    SlaConfigurationResponse,
    SlaDashboardResponse,
)
from casewatch.sla.domain import date_range_for_period
from casewatch.sla.infrastructure import (
    SQLAlchemySlaConfigurationRepository,
    SQLAlchemySlaTrackingRepository,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA Tracking"])

ERROR_STATUS = {
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.NO_APPLICABLE_CONFIGURATION: 422,
    ErrorCode.DUPLICATE_TRACKING_RECORD: status.HTTP_409_CONFLICT,
    ErrorCode.CONCURRENCY_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.RECORD_NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


# ========== Dependencies ==========

async def get_sla_tracking_service(
    session: AsyncSession = Depends(get_session)
) -> SlaTrackingService:
    """Build the SLA tracking service for one request."""
    return SlaTrackingService(
        SQLAlchemySlaTrackingRepository(session),
        SQLAlchemySlaConfigurationRepository(session),
    )


def unwrap(result: ServiceResult):
    """Return the result value or raise the mapped HTTPException."""
    if result.succeeded:
        return result.value
    error = result.error
    raise HTTPException(
        status_code=ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail={"code": error.code, "message": error.message, "details": error.details},
    )


def resolve_date_range(
    period: Optional[str],
    start_date: Optional[datetime],
    end_date: Optional[datetime]
) -> Tuple[datetime, datetime]:
    """
    Explicit dates win over ``period``. A lone bound is completed with a
    period-length window anchored on that bound; no bounds means the
    period ending now.
    """
    if start_date and end_date:
        return start_date, end_date
    if end_date:
        return date_range_for_period(period, end_date)
    window_start, window_end = date_range_for_period(period, utc_now())
    if start_date:
        return start_date, start_date + (window_end - window_start)
    return window_start, window_end


PERIOD_QUERY = Query(None, description="Reporting window: 7d, 30d or 90d (default 30d)")
START_QUERY = Query(None, description="Range start (inclusive, UTC)")
END_QUERY = Query(None, description="Range end (inclusive, UTC)")


# ========== Tracking Records ==========

@router.post(
    "/tracking-records",
    response_model=TrackingRecordResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start SLA tracking for a case",
    description="""
    Resolve the applicable SLA configuration for a new case and freeze its
    first-response and resolution deadlines.

    Errors: 409 if the case is already tracked, 422 if no active
    configuration applies.
    """
)
async def create_tracking_record(
    request: CreateTrackingRecordRequest,
    service: SlaTrackingService = Depends(get_sla_tracking_service)
):
    record = unwrap(await service.create_tracking_record(
        case_id=request.case_id,
        case_number=request.case_number,
        case_type=request.case_type,
        store_id=request.store_id,
        store_name=request.store_name,
        case_created_at=request.case_created_at,
        category=request.category,
    ))
    return TrackingRecordResponse.from_domain(record)


@router.get(
    "/tracking-records/{case_id}",
    response_model=TrackingRecordResponse,
    summary="Get SLA tracking record for a case"
)
async def get_tracking_record(
    case_id: str,
    service: SlaTrackingService = Depends(get_sla_tracking_service)
):
    return TrackingRecordResponse.from_domain(unwrap(await service.get_tracking_record(case_id)))


@router.post(
    "/tracking-records/{case_id}/first-response",
    response_model=TrackingRecordResponse,
    summary="Record the seller's first response",
    description="Idempotent: the first stored response time is kept."
)
async def record_first_response(
    case_id: str,
    request: FirstResponseRequest,
    service: SlaTrackingService = Depends(get_sla_tracking_service)
):
    record = unwrap(await service.record_first_response(case_id, request.responded_at or utc_now()))
    return TrackingRecordResponse.from_domain(record)


@router.post(
    "/tracking-records/{case_id}/resolution",
    response_model=TrackingRecordResponse,
    summary="Record case resolution",
    description="Idempotent. The record becomes terminal and leaves the breach sweep."
)
async def record_resolution(
    case_id: str,
    request: ResolutionRequest,
    service: SlaTrackingService = Depends(get_sla_tracking_service)
):
    record = unwrap(await service.record_resolution(case_id, request.resolved_at or utc_now()))
    return TrackingRecordResponse.from_domain(record)


# ========== Breach Sweep ==========

@router.post(
    "/breach-checks",
    response_model=BreachCheckResponse,
    summary="Run the breach sweep now",
    description="Flags every open record whose deadline has passed. Safe to repeat."
)
async def run_breach_check(
    request: Optional[BreachCheckRequest] = None,
    service: SlaTrackingService = Depends(get_sla_tracking_service)
):
    now = (request.now if request else None) or utc_now()
    flagged = unwrap(await service.check_and_update_breaches(now))
    return BreachCheckResponse(records_flagged=flagged, checked_at=now)


@router.get(
    "/breaches",
    response_model=List[TrackingRecordResponse],
    summary="List open breached cases",
    description="Open cases with either breach flag set, newest case first."
)
async def get_breached_cases(
    service: SlaTrackingService = Depends(get_sla_tracking_service)
):
    records = unwrap(await service.get_breached_cases())
    return [TrackingRecordResponse.from_domain(r) for r in records]


# ========== Statistics ==========

@router.get(
    "/statistics",
    response_model=DashboardStatisticsResponse,
    summary="Platform-wide SLA statistics"
)
async def get_dashboard_statistics(
    period: Optional[str] = PERIOD_QUERY,
    start_date: Optional[datetime] = START_QUERY,
    end_date: Optional[datetime] = END_QUERY,
    service: SlaTrackingService = Depends(get_sla_tracking_service)
):
    start, end = resolve_date_range(period, start_date, end_date)
    return DashboardStatisticsResponse.from_domain(
        unwrap(await service.get_dashboard_statistics(start, end))
    )


@router.get(
    "/sellers/statistics",
    response_model=List[StoreStatisticsResponse],
    summary="SLA statistics per seller",
    description="Ordered by number of cases (descending), then store name."
)
async def get_seller_statistics(
    period: Optional[str] = PERIOD_QUERY,
    start_date: Optional[datetime] = START_QUERY,
    end_date: Optional[datetime] = END_QUERY,
    service: SlaTrackingService = Depends(get_sla_tracking_service)
):
    start, end = resolve_date_range(period, start_date, end_date)
    stats = unwrap(await service.get_seller_statistics(start, end))
    return [StoreStatisticsResponse.from_domain(s) for s in stats]


@router.get(
    "/sellers/{store_id}/statistics",
    response_model=StoreStatisticsResponse,
    summary="SLA statistics for one seller"
)
async def get_store_statistics(
    store_id: str,
    period: Optional[str] = PERIOD_QUERY,
    start_date: Optional[datetime] = START_QUERY,
    end_date: Optional[datetime] = END_QUERY,
    service: SlaTrackingService = Depends(get_sla_tracking_service)
):
    start, end = resolve_date_range(period, start_date, end_date)
    return StoreStatisticsResponse.from_domain(
        unwrap(await service.get_store_statistics(store_id, start, end))
    )


@router.get(
    "/dashboard",
    response_model=SlaDashboardResponse,
    summary="Admin SLA dashboard",
    description="""
    Statistics, open breaches, per-seller statistics and active
    configurations in one response.
    """
)
async def get_dashboard(
    period: Optional[str] = PERIOD_QUERY,
    start_date: Optional[datetime] = START_QUERY,
    end_date: Optional[datetime] = END_QUERY,
    service: SlaTrackingService = Depends(get_sla_tracking_service)
):
    start, end = resolve_date_range(period, start_date, end_date)

    statistics = unwrap(await service.get_dashboard_statistics(start, end))
    breached = unwrap(await service.get_breached_cases())
    sellers = unwrap(await service.get_seller_statistics(start, end))
    configurations = unwrap(await service.get_sla_configurations())

    return SlaDashboardResponse(
        period=None if start_date or end_date else (period or "30d"),
        statistics=DashboardStatisticsResponse.from_domain(statistics),
        breached_cases=[TrackingRecordResponse.from_domain(r) for r in breached],
        seller_statistics=[StoreStatisticsResponse.from_domain(s) for s in sellers],
        configurations=[SlaConfigurationResponse.from_domain(c) for c in configurations],
    )


# ========== Configuration Management ==========

@router.get(
    "/configurations",
    response_model=List[SlaConfigurationResponse],
    summary="List active SLA configurations"
)
async def list_configurations(
    service: SlaTrackingService = Depends(get_sla_tracking_service)
):
    configurations = unwrap(await service.get_sla_configurations())
    return [SlaConfigurationResponse.from_domain(c) for c in configurations]


@router.post(
    "/configurations",
    response_model=SlaConfigurationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an SLA configuration"
)
async def create_configuration(
    request: SlaConfigurationRequest,
    admin_user_id: str = Header(..., alias="X-Admin-User-Id"),
    service: SlaTrackingService = Depends(get_sla_tracking_service)
):
    saved = unwrap(await service.save_sla_configuration(request.to_domain(), admin_user_id))
    return SlaConfigurationResponse.from_domain(saved)


@router.put(
    "/configurations/{configuration_id}",
    response_model=SlaConfigurationResponse,
    summary="Update an SLA configuration",
    description="Existing tracking records keep the deadlines they were created with."
)
async def update_configuration(
    configuration_id: str,
    request: SlaConfigurationRequest,
    admin_user_id: str = Header(..., alias="X-Admin-User-Id"),
    service: SlaTrackingService = Depends(get_sla_tracking_service)
):
    saved = unwrap(await service.save_sla_configuration(request.to_domain(configuration_id), admin_user_id))
    return SlaConfigurationResponse.from_domain(saved)


@router.delete(
    "/configurations/{configuration_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an SLA configuration"
)
async def delete_configuration(
    configuration_id: str,
    service: SlaTrackingService = Depends(get_sla_tracking_service)
):
    unwrap(await service.delete_sla_configuration(configuration_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Export router for inclusion in main app
sla_router = router
