"""
SLA Application Layer
======================

Application layer for SLA tracking module.

Contains:
- Services: Orchestrate business logic and coordinate with repositories
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from casewatch.sla.application.dto import (
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
from casewatch.sla.application.services import (
    SlaTrackingService,
    ISlaConfigurationRepository,
    ISlaTrackingRepository,
)

__all__ = [
    # DTOs
    "CreateTrackingRecordRequest",
    "FirstResponseRequest",
    "ResolutionRequest",
    "BreachCheckRequest",
    "SlaConfigurationRequest",
    "TrackingRecordResponse",
    "BreachCheckResponse",
    "DashboardStatisticsResponse",
    "StoreStatisticsResponse",
    "SlaConfigurationResponse",
    "SlaDashboardResponse",
    # Services
    "SlaTrackingService",
    # Repository Interfaces
    "ISlaConfigurationRepository",
    "ISlaTrackingRepository",
]
