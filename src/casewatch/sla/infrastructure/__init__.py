"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA tracking:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer
- External: YAML configuration seeding, breach sweep scheduler
"""

from casewatch.sla.infrastructure.models import SlaConfigurationModel, SlaTrackingRecordModel
from casewatch.sla.infrastructure.repositories import (
    SQLAlchemySlaConfigurationRepository,
    SQLAlchemySlaTrackingRepository,
)
from casewatch.sla.infrastructure.external import YAMLConfigurationSeeder, SLAScheduler

__all__ = [
    "SlaConfigurationModel",
    "SlaTrackingRecordModel",
    "SQLAlchemySlaConfigurationRepository",
    "SQLAlchemySlaTrackingRepository",
    "YAMLConfigurationSeeder",
    "SLAScheduler",
]
