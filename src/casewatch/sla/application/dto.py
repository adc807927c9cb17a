"""
SLA Application DTOs
=====================

Data Transfer Objects for SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from casewatch.sla.domain import (
    SlaConfiguration,
    SlaDashboardStatistics,
    SlaStoreStatistics,
    SlaTrackingRecord,
)


# ========== Type Aliases for Literals ==========
SLAStateStr = Literal["open", "responded", "resolved"]
SlaStatusStr = Literal[
    "pending", "responded", "first_response_breached",
    "resolution_breached", "resolved_within_sla", "closed"
]


# ========== Request DTOs ==========

class CreateTrackingRecordRequest(BaseModel):
    """Request model for starting SLA tracking on a case."""
    case_id: str = Field(..., min_length=1, max_length=255, description="Case identifier")
    case_number: str = Field(..., min_length=1, max_length=100, description="Human-readable case number")
    case_type: str = Field(..., min_length=1, max_length=50, description="Return, Complaint or Dispute")
    store_id: str = Field(..., min_length=1, max_length=255, description="Store the case is raised against")
    store_name: str = Field(default="", max_length=255, description="Store display name")
    case_created_at: datetime = Field(..., description="When the case was opened")
    category: Optional[str] = Field(None, max_length=100, description="Case category; omit for global rules")


class FirstResponseRequest(BaseModel):
    """Request model for recording the seller's first response."""
    responded_at: Optional[datetime] = Field(None, description="Response time; defaults to now")


class ResolutionRequest(BaseModel):
    """Request model for recording case resolution."""
    resolved_at: Optional[datetime] = Field(None, description="Resolution time; defaults to now")


class BreachCheckRequest(BaseModel):
    """Request model for triggering a breach sweep."""
    now: Optional[datetime] = Field(None, description="Evaluation instant; defaults to now")


class SlaConfigurationRequest(BaseModel):
    """Request model for creating or updating an SLA configuration."""
    name: str = Field(..., min_length=1, max_length=100)
    category: Optional[str] = Field(None, max_length=100, description="Null for a global rule")
    case_type: Optional[str] = Field(None, max_length=50, description="Null for any case type")
    response_deadline_hours: int = Field(..., gt=0)
    resolution_deadline_hours: int = Field(..., gt=0)
    priority: int = Field(default=0)
    is_active: bool = Field(default=True)

    @field_validator("category", "case_type")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank scope fields as wildcards."""
        if v is not None and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_deadline_order(self) -> "SlaConfigurationRequest":
        if self.response_deadline_hours > self.resolution_deadline_hours:
            raise ValueError("response_deadline_hours cannot exceed resolution_deadline_hours")
        return self

    def to_domain(self, configuration_id: Optional[str] = None) -> SlaConfiguration:
        return SlaConfiguration(
            id=configuration_id,
            name=self.name,
            category=self.category,
            case_type=self.case_type,
            response_deadline_hours=self.response_deadline_hours,
            resolution_deadline_hours=self.resolution_deadline_hours,
            priority=self.priority,
            is_active=self.is_active,
        )


# ========== Response DTOs ==========

class TrackingRecordResponse(BaseModel):
    """Response model for a tracking record."""
    id: str
    case_id: str
    case_number: str
    case_type: str
    store_id: str
    store_name: str
    category: Optional[str] = None
    configuration_id: Optional[str] = None
    state: SLAStateStr
    status: SlaStatusStr
    case_created_at: datetime
    first_response_deadline: datetime
    resolution_deadline: datetime
    first_responded_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    first_response_breached: bool
    resolution_breached: bool
    last_breach_check_at: Optional[datetime] = None
    response_time_hours: Optional[float] = None
    resolution_time_hours: Optional[float] = None

    @classmethod
    def from_domain(cls, record: SlaTrackingRecord) -> "TrackingRecordResponse":
        return cls(
            id=record.id,
            case_id=record.case_id,
            case_number=record.case_number,
            case_type=record.case_type,
            store_id=record.store_id,
            store_name=record.store_name,
            category=record.category,
            configuration_id=record.configuration_id,
            state=record.state,
            status=record.status,
            case_created_at=record.case_created_at,
            first_response_deadline=record.first_response_deadline,
            resolution_deadline=record.resolution_deadline,
            first_responded_at=record.first_responded_at,
            resolved_at=record.resolved_at,
            first_response_breached=record.first_response_breached,
            resolution_breached=record.resolution_breached,
            last_breach_check_at=record.last_breach_check_at,
            response_time_hours=record.response_time_hours,
            resolution_time_hours=record.resolution_time_hours,
        )


class BreachCheckResponse(BaseModel):
    """Response model for a breach sweep."""
    records_flagged: int = Field(..., description="Records newly flagged by this sweep")
    checked_at: datetime


class DashboardStatisticsResponse(BaseModel):
    """Platform-wide SLA statistics."""
    start_date: datetime
    end_date: datetime
    total_cases: int
    open_cases: int
    cases_resolved_within_sla: int
    cases_responded_within_sla: int
    currently_breached_cases: int
    total_first_response_breaches: int
    total_resolution_breaches: int
    average_response_time_hours: float
    average_resolution_time_hours: float
    sla_compliance_percentage: float
    first_response_compliance_percentage: float

    @classmethod
    def from_domain(cls, stats: SlaDashboardStatistics) -> "DashboardStatisticsResponse":
        return cls(
            start_date=stats.start_date,
            end_date=stats.end_date,
            total_cases=stats.total_cases,
            open_cases=stats.open_cases,
            cases_resolved_within_sla=stats.cases_resolved_within_sla,
            cases_responded_within_sla=stats.cases_responded_within_sla,
            currently_breached_cases=stats.currently_breached_cases,
            total_first_response_breaches=stats.total_first_response_breaches,
            total_resolution_breaches=stats.total_resolution_breaches,
            average_response_time_hours=stats.average_response_time_hours,
            average_resolution_time_hours=stats.average_resolution_time_hours,
            sla_compliance_percentage=stats.sla_compliance_percentage,
            first_response_compliance_percentage=stats.first_response_compliance_percentage,
        )


class StoreStatisticsResponse(BaseModel):
    """SLA statistics for one store."""
    store_id: str
    store_name: str
    total_cases: int
    open_cases: int
    cases_resolved_within_sla: int
    cases_responded_within_sla: int
    currently_breached_cases: int
    first_response_breaches: int
    resolution_breaches: int
    average_response_time_hours: float
    average_resolution_time_hours: float
    sla_compliance_percentage: float
    first_response_compliance_percentage: float

    @classmethod
    def from_domain(cls, stats: SlaStoreStatistics) -> "StoreStatisticsResponse":
        return cls(
            store_id=stats.store_id,
            store_name=stats.store_name,
            total_cases=stats.total_cases,
            open_cases=stats.open_cases,
            cases_resolved_within_sla=stats.cases_resolved_within_sla,
            cases_responded_within_sla=stats.cases_responded_within_sla,
            currently_breached_cases=stats.currently_breached_cases,
            first_response_breaches=stats.first_response_breaches,
            resolution_breaches=stats.resolution_breaches,
            average_response_time_hours=stats.average_response_time_hours,
            average_resolution_time_hours=stats.average_resolution_time_hours,
            sla_compliance_percentage=stats.sla_compliance_percentage,
            first_response_compliance_percentage=stats.first_response_compliance_percentage,
        )


class SlaConfigurationResponse(BaseModel):
    """Response model for an SLA configuration."""
    id: str
    name: str
    category: Optional[str] = None
    case_type: Optional[str] = None
    response_deadline_hours: int
    resolution_deadline_hours: int
    priority: int
    is_active: bool
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    @classmethod
    def from_domain(cls, configuration: SlaConfiguration) -> "SlaConfigurationResponse":
        return cls(
            id=configuration.id,
            name=configuration.name,
            category=configuration.category,
            case_type=configuration.case_type,
            response_deadline_hours=configuration.response_deadline_hours,
            resolution_deadline_hours=configuration.resolution_deadline_hours,
            priority=configuration.priority,
            is_active=configuration.is_active,
            created_at=configuration.created_at,
            created_by=configuration.created_by,
            updated_at=configuration.updated_at,
            updated_by=configuration.updated_by,
        )


class SlaDashboardResponse(BaseModel):
    """Everything the admin SLA dashboard shows in one call."""
    period: Optional[str] = None
    statistics: DashboardStatisticsResponse
    breached_cases: List[TrackingRecordResponse] = Field(default_factory=list)
    seller_statistics: List[StoreStatisticsResponse] = Field(default_factory=list)
    configurations: List[SlaConfigurationResponse] = Field(default_factory=list)
