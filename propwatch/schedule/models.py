"""Domain structures for recurrence rules."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import enum
import zoneinfo

import msgspec

from propwatch.common.time import load_zone
from propwatch.schedule.recurrence import Period, Weekday  # noqa: TC001


class RuleStatus(enum.StrEnum):
    """Lifecycle state of a recurrence rule."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


@dc.dataclass(frozen=True, slots=True)
class RuleKey:
    """Composite identity of a rule: tenant plus immutable creation instant."""

    tenant_id: str
    created_at: dt.datetime

    def __str__(self) -> str:
        """Render as ``tenant/created_at`` for log messages."""
        return f"{self.tenant_id}/{self.created_at.isoformat()}"


class RecurrenceRule(msgspec.Struct, kw_only=True, frozen=True):
    """Persisted recurrence configuration for one property.

    Attributes
    ----------
    tenant_id
        Owning tenant; first half of the identity.
    created_at
        Creation instant in UTC; second half of the identity. Never changes.
    property_id
        Property the reports are generated for.
    employee_id
        Employee who created the rule.
    start_date
        Calendar date the recurrence is anchored to.
    period
        Interval added on each advancement.
    target_weekday
        Weekday every occurrence falls on, ``0 = Sunday``.
    execution_time
        Wall-clock time-of-day the rule fires at, in ``timezone``.
    auto_generate
        Rules with ``False`` here are stored but never selected as due.
    status
        Lifecycle state; only active rules are selected as due.
    next_execution_at
        Next due instant in UTC.
    execution_count
        Number of fully successful runs.
    last_execution_at
        Completion instant of the most recent successful run.
    timezone
        IANA zone the weekday and time-of-day are interpreted in.
    property_name
        Cached display name of the property, when known.
    processing_until
        Lease held by a sweep while it processes the rule, if any.
    updated_at
        Last modification instant.

    """

    tenant_id: str
    created_at: dt.datetime
    property_id: str
    employee_id: str
    start_date: dt.date
    period: Period
    target_weekday: Weekday
    execution_time: dt.time
    auto_generate: bool
    status: RuleStatus
    next_execution_at: dt.datetime
    execution_count: int = 0
    last_execution_at: dt.datetime | None = None
    timezone: str = "UTC"
    property_name: str | None = None
    processing_until: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    @property
    def key(self) -> RuleKey:
        """Composite identity of this rule."""
        return RuleKey(tenant_id=self.tenant_id, created_at=self.created_at)

    @property
    def zone(self) -> zoneinfo.ZoneInfo:
        """Resolved timezone for recurrence arithmetic."""
        return load_zone(self.timezone)

    def is_eligible(self) -> bool:
        """Return whether the rule may ever be selected as due."""
        return self.status is RuleStatus.ACTIVE and self.auto_generate

    def is_due(self, as_of: dt.datetime) -> bool:
        """Return whether the rule is due at ``as_of``."""
        return self.is_eligible() and self.next_execution_at <= as_of
