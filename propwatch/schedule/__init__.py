"""Recurrence rules: arithmetic, storage, advancement, and administration.

Public API
----------
RecurrenceRule
    Persisted recurrence configuration for one property.
RuleStore
    Protocol (port) for reading rules and applying conditional updates.
SqlAlchemyRuleStore
    ``RuleStore`` adapter on the ``recurrence_rules`` table.
ScheduleAdvancer
    Commits the move to the next occurrence after a successful run.
RuleService
    Validated create, update, pause, resume, and delete operations.
compute_first, compute_next
    Pure occurrence arithmetic.

"""

from propwatch.schedule.advancer import ScheduleAdvancer, plan_advancement
from propwatch.schedule.errors import (
    RuleConfigError,
    RuleNotFoundError,
    ScheduleError,
    StaleRuleError,
)
from propwatch.schedule.models import RecurrenceRule, RuleKey, RuleStatus
from propwatch.schedule.recurrence import (
    DEFAULT_EXECUTION_TIME,
    Period,
    Weekday,
    compute_first,
    compute_next,
)
from propwatch.schedule.service import RuleService, RuleSettings
from propwatch.schedule.storage import RecurrenceRuleRecord
from propwatch.schedule.store import Advancement, RuleStore, SqlAlchemyRuleStore

__all__ = [
    "DEFAULT_EXECUTION_TIME",
    "Advancement",
    "Period",
    "RecurrenceRule",
    "RecurrenceRuleRecord",
    "RuleConfigError",
    "RuleKey",
    "RuleNotFoundError",
    "RuleService",
    "RuleSettings",
    "RuleStatus",
    "RuleStore",
    "ScheduleAdvancer",
    "ScheduleError",
    "SqlAlchemyRuleStore",
    "StaleRuleError",
    "Weekday",
    "compute_first",
    "compute_next",
    "plan_advancement",
]
