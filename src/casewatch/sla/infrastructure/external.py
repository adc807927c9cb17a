"""
SLA External Integrations
==========================

Integrations around the SLA tracking service:
- YAML seed file with the default SLA configurations
- APScheduler for the periodic breach sweep
"""

from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from casewatch.core import ConfigurationException, utc_now
from casewatch.shared.infrastructure.logging import get_logger
from casewatch.sla.application.services import ISlaConfigurationRepository
from casewatch.sla.domain import SlaConfiguration

logger = get_logger(__name__)

SEED_USER = "system"


class YAMLConfigurationSeeder:
    """
    Loads default SLA configurations from YAML into an empty store.

    The file is read once at startup. Once any configuration exists the
    store belongs to administrators and the file is ignored.

    Expected layout::

        configurations:
          - name: Global default
            response_deadline_hours: 24
            resolution_deadline_hours: 72
          - name: Disputes
            case_type: Dispute
            response_deadline_hours: 12
            resolution_deadline_hours: 48
            priority: 10
    """

    def __init__(self, config_path: Path):
        self._config_path = Path(config_path)

    def load(self) -> List[SlaConfiguration]:
        """Parse and validate the seed file. A missing file yields no configurations."""
        if not self._config_path.exists():
            logger.warning(f"SLA seed file not found: {self._config_path}")
            return []

        with open(self._config_path, "r") as f:
            data = yaml.safe_load(f) or {}

        entries = data.get("configurations", [])
        if not isinstance(entries, list):
            raise ConfigurationException(
                "'configurations' must be a list",
                {"path": str(self._config_path)}
            )

        return [self._parse(index, entry) for index, entry in enumerate(entries)]

    def _parse(self, index: int, entry: Dict[str, Any]) -> SlaConfiguration:
        try:
            configuration = SlaConfiguration(
                id=None,
                name=str(entry["name"]),
                category=entry.get("category"),
                case_type=entry.get("case_type"),
                response_deadline_hours=int(entry["response_deadline_hours"]),
                resolution_deadline_hours=int(entry["resolution_deadline_hours"]),
                priority=int(entry.get("priority", 0)),
                is_active=bool(entry.get("is_active", True)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationException(
                f"Invalid SLA configuration at index {index}: {e}",
                {"path": str(self._config_path), "index": index}
            ) from e

        errors = configuration.validate()
        if errors:
            raise ConfigurationException(
                f"Invalid SLA configuration '{configuration.name}'",
                {"path": str(self._config_path), "index": index, "errors": errors}
            )
        return configuration

    async def seed(self, repository: ISlaConfigurationRepository) -> int:
        """
        Insert the seed configurations if the store is empty.

        Returns:
            Number of configurations inserted
        """
        existing = await repository.count()
        if existing:
            logger.debug("SLA configurations already present, skipping seed", extra={"count": existing})
            return 0

        now = utc_now()
        configurations = self.load()
        for configuration in configurations:
            configuration.created_at = now
            configuration.created_by = SEED_USER
            await repository.add(configuration)
        await repository.commit()

        logger.info(
            "Seeded SLA configurations",
            extra={"count": len(configurations), "path": str(self._config_path)}
        )
        return len(configurations)


class SLAScheduler:
    """
    Wrapper for APScheduler running the breach sweep.

    Manages the lifecycle of the scheduler and its single job.
    """

    def __init__(self, interval_seconds: int = 300):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[Any]]) -> None:
        """Start the scheduler with the given coroutine function."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id="sla_breach_sweep",
            name="SLA Breach Sweep",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "SLA scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
