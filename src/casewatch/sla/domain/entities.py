"""
SLA Domain Entities
====================

Pure Python domain entities for SLA tracking.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List

from casewatch.config import VALID_CASE_TYPES, SLAState, SlaStatus
from casewatch.core.clock import ensure_utc


@dataclass
class SlaConfiguration:
    """
    Administrator-defined SLA rule.

    A configuration with no category (or no case type) is a wildcard for that
    dimension. Deadlines computed from it are frozen on the tracking record,
    so later edits never touch existing cases.
    """

    id: Optional[str]
    name: str
    response_deadline_hours: int
    resolution_deadline_hours: int
    category: Optional[str] = None
    case_type: Optional[str] = None
    priority: int = 0
    is_active: bool = True

    # Audit
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    def __post_init__(self):
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)

    def validate(self) -> List[str]:
        """Return the list of rule violations (empty when valid)."""
        errors = []
        if not self.name or not self.name.strip():
            errors.append("name is required")
        elif len(self.name) > 100:
            errors.append("name must be at most 100 characters")
        if self.response_deadline_hours <= 0:
            errors.append("response_deadline_hours must be greater than 0")
        if self.resolution_deadline_hours <= 0:
            errors.append("resolution_deadline_hours must be greater than 0")
        if self.response_deadline_hours > self.resolution_deadline_hours:
            errors.append("response_deadline_hours cannot exceed resolution_deadline_hours")
        if self.case_type is not None and not any(_same_label(t, self.case_type) for t in VALID_CASE_TYPES):
            errors.append(f"case_type must be one of {VALID_CASE_TYPES}")
        return errors

    def applies_to(self, category: Optional[str], case_type: Optional[str]) -> bool:
        """Whether this configuration may be used for a case."""
        if not self.is_active:
            return False
        if self.category is not None and not _same_label(self.category, category):
            return False
        if self.case_type is not None and not _same_label(self.case_type, case_type):
            return False
        return True


def _same_label(configured: str, requested: Optional[str]) -> bool:
    return requested is not None and configured.casefold() == requested.casefold()


@dataclass(frozen=True)
class BreachEvaluation:
    """Flags that a sweep at a given instant would newly raise."""
    first_response: bool = False
    resolution: bool = False

    @property
    def any(self) -> bool:
        return self.first_response or self.resolution


@dataclass
class SlaTrackingRecord:
    """
    Per-case SLA tracking state.

    States: open -> responded -> resolved. The two breach flags are an
    orthogonal overlay on the non-terminal states and only ever move from
    False to True. Deadlines are fixed at creation.
    """

    # Identity
    id: Optional[str]
    case_id: str
    case_number: str
    case_type: str
    store_id: str
    store_name: str

    # Deadlines
    case_created_at: datetime
    first_response_deadline: datetime
    resolution_deadline: datetime

    category: Optional[str] = None
    configuration_id: Optional[str] = None

    # Events
    first_responded_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    # Breach flags (monotonic)
    first_response_breached: bool = False
    resolution_breached: bool = False

    # Last sweep that raised a flag; rows with nothing newly due are not rewritten
    last_breach_check_at: Optional[datetime] = None
    last_updated_at: Optional[datetime] = None
    version: int = 1

    def __post_init__(self):
        self.case_created_at = ensure_utc(self.case_created_at)
        self.first_response_deadline = ensure_utc(self.first_response_deadline)
        self.resolution_deadline = ensure_utc(self.resolution_deadline)
        self.first_responded_at = ensure_utc(self.first_responded_at)
        self.resolved_at = ensure_utc(self.resolved_at)
        self.last_breach_check_at = ensure_utc(self.last_breach_check_at)
        self.last_updated_at = ensure_utc(self.last_updated_at)

        if self.first_response_deadline < self.case_created_at:
            raise ValueError("first_response_deadline cannot be before case_created_at")
        if self.resolution_deadline < self.first_response_deadline:
            raise ValueError("resolution_deadline cannot be before first_response_deadline")

    @property
    def state(self) -> str:
        if self.resolved_at is not None:
            return SLAState.RESOLVED
        if self.first_responded_at is not None:
            return SLAState.RESPONDED
        return SLAState.OPEN

    @property
    def is_terminal(self) -> bool:
        return self.resolved_at is not None

    @property
    def is_breached(self) -> bool:
        return self.first_response_breached or self.resolution_breached

    @property
    def is_currently_breached(self) -> bool:
        """Breached and still waiting on the seller."""
        return not self.is_terminal and self.is_breached

    @property
    def status(self) -> str:
        """Single display status combining state and breach flags."""
        if self.is_terminal:
            if self.is_breached:
                return SlaStatus.CLOSED
            return SlaStatus.RESOLVED_WITHIN_SLA
        if self.resolution_breached:
            return SlaStatus.RESOLUTION_BREACHED
        if self.first_response_breached:
            return SlaStatus.FIRST_RESPONSE_BREACHED
        if self.first_responded_at is not None:
            return SlaStatus.RESPONDED
        return SlaStatus.PENDING

    @property
    def response_time_hours(self) -> Optional[float]:
        if self.first_responded_at is None:
            return None
        return (self.first_responded_at - self.case_created_at).total_seconds() / 3600

    @property
    def resolution_time_hours(self) -> Optional[float]:
        if self.resolved_at is None:
            return None
        return (self.resolved_at - self.case_created_at).total_seconds() / 3600

    def record_first_response(self, responded_at: datetime, now: datetime) -> bool:
        """
        Store the seller's first response.

        Returns False when nothing changed: a response is already stored or
        the record is terminal. A response after the deadline raises the
        first-response flag in the same transition.
        """
        if self.first_responded_at is not None or self.is_terminal:
            return False

        responded_at = ensure_utc(responded_at)
        if responded_at < self.case_created_at:
            raise ValueError("responded_at cannot be before case_created_at")

        if responded_at > self.first_response_deadline:
            self.first_response_breached = True
        self.first_responded_at = responded_at
        self.last_updated_at = ensure_utc(now)
        return True

    def record_resolution(self, resolved_at: datetime, now: datetime) -> bool:
        """
        Store the resolution and make the record terminal.

        Flags still due at ``resolved_at`` are raised before the record
        closes, since no later sweep will look at it again.
        """
        if self.is_terminal:
            return False

        resolved_at = ensure_utc(resolved_at)
        if resolved_at < self.case_created_at:
            raise ValueError("resolved_at cannot be before case_created_at")

        due = self.evaluate_breaches(resolved_at)
        if due.first_response:
            self.first_response_breached = True
        if due.resolution:
            self.resolution_breached = True
        self.resolved_at = resolved_at
        self.last_updated_at = ensure_utc(now)
        return True

    def evaluate_breaches(self, now: datetime) -> BreachEvaluation:
        """Flags that are due at ``now`` and not yet raised. Pure."""
        if self.is_terminal:
            return BreachEvaluation()

        now = ensure_utc(now)
        first_response_due = (
            self.first_responded_at is None
            and not self.first_response_breached
            and now > self.first_response_deadline
        )
        resolution_due = (
            not self.resolution_breached
            and now > self.resolution_deadline
        )
        return BreachEvaluation(first_response=first_response_due, resolution=resolution_due)

    def apply_breaches(self, evaluation: BreachEvaluation, now: datetime) -> bool:
        """Raise the evaluated flags. Never lowers a flag."""
        if not evaluation.any or self.is_terminal:
            return False
        now = ensure_utc(now)
        if evaluation.first_response:
            self.first_response_breached = True
        if evaluation.resolution:
            self.resolution_breached = True
        self.last_breach_check_at = now
        self.last_updated_at = now
        return True

