"""Move a rule to its next occurrence after a successful run."""

from __future__ import annotations

import typing as typ

from propwatch.common.time import ensure_utc
from propwatch.schedule.recurrence import compute_next
from propwatch.schedule.store import Advancement

if typ.TYPE_CHECKING:
    import datetime as dt

    from propwatch.schedule.models import RecurrenceRule
    from propwatch.schedule.store import RuleStore


def plan_advancement(
    rule: RecurrenceRule, completion_instant: dt.datetime
) -> Advancement:
    """Return the advancement that records a run completed at ``completion_instant``.

    The new due instant is the first occurrence after both the occurrence
    being completed and ``completion_instant``, so a rule never repeats an
    instant and never lands in the past.
    """
    completed_at = ensure_utc(completion_instant, field="completion_instant")
    next_at = compute_next(
        rule.next_execution_at,
        rule.target_weekday,
        rule.execution_time,
        rule.period,
        from_instant=max(completed_at, rule.next_execution_at),
        tz=rule.zone,
    )
    return Advancement(
        expected_next=rule.next_execution_at,
        expected_count=rule.execution_count,
        next_execution_at=next_at,
        execution_count=rule.execution_count + 1,
        last_execution_at=completed_at,
    )


class ScheduleAdvancer:
    """Commit rule advancements through a :class:`RuleStore`.

    The store applies the update only while the rule still holds the
    ``next_execution_at`` and ``execution_count`` values read by the sweep, so
    a concurrent advance, pause, or delete is never overwritten.
    """

    def __init__(self, store: RuleStore) -> None:
        """Bind the advancer to a rule store."""
        self._store = store

    async def advance(
        self, rule: RecurrenceRule, completion_instant: dt.datetime
    ) -> RecurrenceRule:
        """Advance ``rule`` past ``completion_instant`` and return the stored rule.

        Raises
        ------
        RuleNotFoundError
            If the rule was deleted after it was listed.
        StaleRuleError
            If another writer changed the rule's due state first.

        """
        return await self._store.advance(
            rule.key, plan_advancement(rule, completion_instant)
        )
