"""
SLA Background Services
=======================

The scheduled breach sweep.

Each run opens its own database session, runs
``SlaTrackingService.check_and_update_breaches`` and pushes the outcome to
Grafana when an exporter is configured.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from casewatch.core import utc_now
from casewatch.infrastructure.database import get_session_context
from casewatch.shared.infrastructure.grafana import GrafanaOTLPExporter
from casewatch.shared.infrastructure.logging import get_logger, log_latency
from casewatch.sla.application import SlaTrackingService
from casewatch.sla.infrastructure.repositories import (
    SQLAlchemySlaConfigurationRepository,
    SQLAlchemySlaTrackingRepository,
)

logger = get_logger(__name__)


class SlaBreachSweepJob:
    """
    Runs the breach sweep for the scheduler.

    Overlapping runs are safe: every flag change is a version-checked write.
    """

    def __init__(
        self,
        exporter: Optional[GrafanaOTLPExporter] = None,
        batch_size: Optional[int] = None,
        max_update_retries: Optional[int] = None
    ):
        self._exporter = exporter
        self._batch_size = batch_size
        self._max_update_retries = max_update_retries

    async def run(self, session: AsyncSession, now: Optional[datetime] = None) -> dict:
        """
        Run one sweep in ``session``.

        Returns:
            Summary with records_flagged and latency_ms
        """
        service = SlaTrackingService(
            SQLAlchemySlaTrackingRepository(session),
            SQLAlchemySlaConfigurationRepository(session),
            batch_size=self._batch_size,
            max_update_retries=self._max_update_retries,
        )
        now = now or utc_now()

        with log_latency(logger, "sla_breach_sweep", now=now.isoformat()) as timing:
            result = await service.check_and_update_breaches(now)

        flagged = result.value if result.succeeded else 0
        if self._exporter is not None and self._exporter.is_enabled():
            await self._exporter.export_sweep_metrics(flagged, timing["latency_ms"])

        return {"records_flagged": flagged, "latency_ms": timing["latency_ms"]}

    async def __call__(self) -> None:
        """Scheduler entry point."""
        try:
            async with get_session_context() as session:
                await self.run(session)
        except Exception as e:
            # The scheduler retries on its next tick
            logger.exception("SLA breach sweep failed", extra={"error": str(e)})
