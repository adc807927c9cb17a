"""
SLA Value Objects
==================

Immutable value objects and stateless domain services for SLA tracking.

- DeadlineResolver: picks the applicable configuration and computes deadlines
- SlaStatisticsCalculator: aggregates tracking records into dashboard views
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from casewatch.config import TIME_PERIOD_DAYS, DEFAULT_TIME_PERIOD
from casewatch.core.clock import ensure_utc
from casewatch.core.exceptions import NoApplicableConfigurationException
from casewatch.sla.domain.entities import SlaConfiguration, SlaTrackingRecord

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class ResolvedDeadlines:
    """Deadlines computed for one case, plus the configuration they came from."""
    response_deadline: datetime
    resolution_deadline: datetime
    configuration_id: Optional[str]


class DeadlineResolver:
    """
    Pure functions for deadline computation.

    Selection builds an explicit ranked candidate list and takes the first
    entry. Rank, highest first:

    1. category-specific before global (category is null)
    2. case-type-specific before case-type wildcard
    3. priority
    4. most recently created
    """

    @staticmethod
    def rank_candidates(
        category: Optional[str],
        configurations: Iterable[SlaConfiguration],
        case_type: Optional[str] = None
    ) -> List[SlaConfiguration]:
        """Return the applicable configurations, best match first."""
        candidates = [c for c in configurations if c.applies_to(category, case_type)]

        def rank(config: SlaConfiguration) -> Tuple[bool, bool, int, datetime, str]:
            return (
                config.category is not None,
                config.case_type is not None,
                config.priority,
                config.created_at or _EPOCH,
                config.id or "",
            )

        return sorted(candidates, key=rank, reverse=True)

    @staticmethod
    def resolve(
        category: Optional[str],
        created_at: datetime,
        configurations: Sequence[SlaConfiguration],
        case_type: Optional[str] = None
    ) -> ResolvedDeadlines:
        """
        Compute response and resolution deadlines for a case.

        Args:
            category: Case category, or None for uncategorised cases
            created_at: When the case was opened
            configurations: Candidate configurations (inactive ones are ignored)
            case_type: Optional case type for type-scoped configurations

        Returns:
            ResolvedDeadlines

        Raises:
            NoApplicableConfigurationException: nothing matched
        """
        ranked = DeadlineResolver.rank_candidates(category, configurations, case_type)
        if not ranked:
            raise NoApplicableConfigurationException(category=category, case_type=case_type)

        selected = ranked[0]
        created_at = ensure_utc(created_at)
        return ResolvedDeadlines(
            response_deadline=created_at + timedelta(hours=selected.response_deadline_hours),
            resolution_deadline=created_at + timedelta(hours=selected.resolution_deadline_hours),
            configuration_id=selected.id,
        )


def _percentage(count: int, total: int) -> float:
    return round(count / total * 100, 2) if total > 0 else 0.0


def _mean_hours(values: List[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


@dataclass
class SlaStoreStatistics:
    """Aggregate SLA statistics for one store."""

    store_id: str
    store_name: str = ""
    total_cases: int = 0
    open_cases: int = 0
    cases_resolved_within_sla: int = 0
    cases_responded_within_sla: int = 0
    currently_breached_cases: int = 0
    first_response_breaches: int = 0
    resolution_breaches: int = 0
    average_response_time_hours: float = 0.0
    average_resolution_time_hours: float = 0.0

    @property
    def sla_compliance_percentage(self) -> float:
        return _percentage(self.cases_resolved_within_sla, self.total_cases)

    @property
    def first_response_compliance_percentage(self) -> float:
        return _percentage(self.cases_responded_within_sla, self.total_cases)


@dataclass
class SlaDashboardStatistics:
    """Aggregate SLA statistics for the admin dashboard."""

    start_date: datetime
    end_date: datetime
    total_cases: int = 0
    open_cases: int = 0
    cases_resolved_within_sla: int = 0
    cases_responded_within_sla: int = 0
    currently_breached_cases: int = 0
    total_first_response_breaches: int = 0
    total_resolution_breaches: int = 0
    average_response_time_hours: float = 0.0
    average_resolution_time_hours: float = 0.0

    @property
    def sla_compliance_percentage(self) -> float:
        return _percentage(self.cases_resolved_within_sla, self.total_cases)

    @property
    def first_response_compliance_percentage(self) -> float:
        return _percentage(self.cases_responded_within_sla, self.total_cases)


@dataclass
class _Tally:
    total: int = 0
    open: int = 0
    resolved_within_sla: int = 0
    responded_within_sla: int = 0
    currently_breached: int = 0
    first_response_breaches: int = 0
    resolution_breaches: int = 0
    response_hours: List[float] = field(default_factory=list)
    resolution_hours: List[float] = field(default_factory=list)

    def add(self, record: SlaTrackingRecord) -> None:
        self.total += 1
        if not record.is_terminal:
            self.open += 1
        elif not record.resolution_breached:
            self.resolved_within_sla += 1
        if record.first_responded_at is not None and not record.first_response_breached:
            self.responded_within_sla += 1
        if record.is_currently_breached:
            self.currently_breached += 1
        if record.first_response_breached:
            self.first_response_breaches += 1
        if record.resolution_breached:
            self.resolution_breaches += 1
        if record.response_time_hours is not None:
            self.response_hours.append(record.response_time_hours)
        if record.resolution_time_hours is not None:
            self.resolution_hours.append(record.resolution_time_hours)


class SlaStatisticsCalculator:
    """Stateless aggregation of tracking records."""

    @staticmethod
    def dashboard(
        records: Iterable[SlaTrackingRecord],
        start_date: datetime,
        end_date: datetime
    ) -> SlaDashboardStatistics:
        tally = _Tally()
        for record in records:
            tally.add(record)

        return SlaDashboardStatistics(
            start_date=ensure_utc(start_date),
            end_date=ensure_utc(end_date),
            total_cases=tally.total,
            open_cases=tally.open,
            cases_resolved_within_sla=tally.resolved_within_sla,
            cases_responded_within_sla=tally.responded_within_sla,
            currently_breached_cases=tally.currently_breached,
            total_first_response_breaches=tally.first_response_breaches,
            total_resolution_breaches=tally.resolution_breaches,
            average_response_time_hours=_mean_hours(tally.response_hours),
            average_resolution_time_hours=_mean_hours(tally.resolution_hours),
        )

    @staticmethod
    def by_store(records: Iterable[SlaTrackingRecord]) -> List[SlaStoreStatistics]:
        """Per-store statistics, most cases first, then by store name."""
        tallies: Dict[str, _Tally] = OrderedDict()
        names: Dict[str, str] = {}
        for record in records:
            tallies.setdefault(record.store_id, _Tally()).add(record)
            names.setdefault(record.store_id, record.store_name)

        statistics = [
            SlaStatisticsCalculator._store(store_id, names[store_id], tally)
            for store_id, tally in tallies.items()
        ]
        statistics.sort(key=lambda s: s.store_name)
        statistics.sort(key=lambda s: s.total_cases, reverse=True)
        return statistics

    @staticmethod
    def for_store(store_id: str, records: Iterable[SlaTrackingRecord]) -> SlaStoreStatistics:
        tally = _Tally()
        name = ""
        for record in records:
            if record.store_id != store_id:
                continue
            name = name or record.store_name
            tally.add(record)
        return SlaStatisticsCalculator._store(store_id, name, tally)

    @staticmethod
    def _store(store_id: str, store_name: str, tally: _Tally) -> SlaStoreStatistics:
        return SlaStoreStatistics(
            store_id=store_id,
            store_name=store_name,
            total_cases=tally.total,
            open_cases=tally.open,
            cases_resolved_within_sla=tally.resolved_within_sla,
            cases_responded_within_sla=tally.responded_within_sla,
            currently_breached_cases=tally.currently_breached,
            first_response_breaches=tally.first_response_breaches,
            resolution_breaches=tally.resolution_breaches,
            average_response_time_hours=_mean_hours(tally.response_hours),
            average_resolution_time_hours=_mean_hours(tally.resolution_hours),
        )


def date_range_for_period(period: Optional[str], now: datetime) -> Tuple[datetime, datetime]:
    """
    Translate a dashboard period ("7d", "30d", "90d") into a UTC range ending
    at ``now``. Unknown periods fall back to 30 days.
    """
    days = TIME_PERIOD_DAYS.get(period or DEFAULT_TIME_PERIOD, TIME_PERIOD_DAYS[DEFAULT_TIME_PERIOD])
    end_date = ensure_utc(now)
    return end_date - timedelta(days=days), end_date
