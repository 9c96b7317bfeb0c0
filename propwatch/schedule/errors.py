"""Errors raised by recurrence rules and the rule store."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt


class ScheduleError(Exception):
    """Base class for scheduling errors."""


class RuleConfigError(ScheduleError):
    """Raised when a rule's recurrence settings are invalid.

    These are rejected when a rule is created or updated and never reach a
    sweep.

    Attributes
    ----------
    field
        Name of the offending setting.

    """

    def __init__(self, message: str, *, field: str) -> None:
        """Initialise with a message and the offending field name."""
        self.field = field
        super().__init__(message)

    @classmethod
    def invalid_weekday(cls, value: object) -> RuleConfigError:
        """Create error for a weekday outside ``0..6``."""
        return cls(
            f"Invalid target weekday {value!r}. Must be an integer from "
            "0 (Sunday) to 6 (Saturday)",
            field="target_weekday",
        )

    @classmethod
    def invalid_period(cls, value: object) -> RuleConfigError:
        """Create error for an unknown period label."""
        return cls(
            f"Invalid period {value!r}. Valid options are: 'one_week', 'two_weeks'",
            field="period",
        )

    @classmethod
    def invalid_execution_time(cls, value: object) -> RuleConfigError:
        """Create error for an unparsable time-of-day."""
        return cls(
            f"Invalid execution time {value!r}. Expected 24-hour 'HH:MM'",
            field="execution_time",
        )

    @classmethod
    def invalid_timezone(cls, value: object) -> RuleConfigError:
        """Create error for an unknown IANA zone."""
        return cls(f"Unknown timezone {value!r}", field="timezone")

    @classmethod
    def invalid_status(cls, value: object) -> RuleConfigError:
        """Create error for an unknown status label."""
        return cls(
            f"Invalid status {value!r}. Valid options are: "
            "'active', 'paused', 'completed'",
            field="status",
        )

    @classmethod
    def invalid_start_date(cls, value: object) -> RuleConfigError:
        """Create error for an unparsable anchor date."""
        return cls(
            f"Invalid start date {value!r}. Expected ISO 'YYYY-MM-DD'",
            field="start_date",
        )

    @classmethod
    def missing(cls, field: str) -> RuleConfigError:
        """Create error for a required setting that was not supplied."""
        return cls(f"{field} is required", field=field)


class RuleNotFoundError(ScheduleError):
    """Raised when a rule identity no longer exists in the store."""

    def __init__(self, tenant_id: str, created_at: dt.datetime) -> None:
        """Initialise with the composite rule identity."""
        self.tenant_id = tenant_id
        self.created_at = created_at
        super().__init__(
            f"No recurrence rule for tenant {tenant_id!r} "
            f"created at {created_at.isoformat()}"
        )


class StaleRuleError(ScheduleError):
    """Raised when a conditional rule update loses to a concurrent writer."""

    def __init__(self, tenant_id: str, created_at: dt.datetime, detail: str) -> None:
        """Initialise with the rule identity and what was expected."""
        self.tenant_id = tenant_id
        self.created_at = created_at
        super().__init__(
            f"Recurrence rule {tenant_id!r}/{created_at.isoformat()} was "
            f"modified concurrently: {detail}"
        )
