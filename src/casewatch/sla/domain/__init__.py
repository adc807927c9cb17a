"""
SLA Domain Layer
================

Domain layer for SLA tracking.

Contains:
- Entities: SlaTrackingRecord (per-case state machine), SlaConfiguration
- Value Objects: ResolvedDeadlines, statistics views
- Domain Services: DeadlineResolver, SlaStatisticsCalculator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from casewatch.sla.domain.entities import (
    SlaConfiguration,
    SlaTrackingRecord,
    BreachEvaluation,
)
from casewatch.sla.domain.value_objects import (
    DeadlineResolver,
    ResolvedDeadlines,
    SlaDashboardStatistics,
    SlaStoreStatistics,
    SlaStatisticsCalculator,
    date_range_for_period,
)

__all__ = [
    # Entities
    "SlaConfiguration",
    "SlaTrackingRecord",
    "BreachEvaluation",
    # Value Objects & Services
    "DeadlineResolver",
    "ResolvedDeadlines",
    "SlaDashboardStatistics",
    "SlaStoreStatistics",
    "SlaStatisticsCalculator",
    "date_range_for_period",
]
