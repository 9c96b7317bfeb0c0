"""Outcome records returned by batch sweeps."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum

import msgspec


class PipelineStage(enum.StrEnum):
    """Steps a due rule passes through, in order."""

    CLAIM = "claim"
    AGGREGATE = "aggregate"
    SYNTHESIZE = "synthesize"
    PERSIST = "persist"
    ADVANCE = "advance"


class OutcomeStatus(enum.StrEnum):
    """How processing of one rule ended."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class RuleOutcome(msgspec.Struct, kw_only=True, frozen=True):
    """Result of processing one due rule.

    Attributes
    ----------
    tenant_id
        Owning tenant.
    rule_created_at
        Rule identity within the tenant.
    property_id
        Property the rule reports on.
    status
        How processing ended.
    stage
        Last stage reached; for failures, the stage that failed.
    occurrence_at
        The due instant that was processed.
    report_id
        Stored report, when persistence succeeded.
    next_execution_at
        New due instant, when the rule was advanced.
    error
        Failure or skip reason.

    """

    tenant_id: str
    rule_created_at: dt.datetime
    property_id: str
    status: OutcomeStatus
    stage: PipelineStage
    occurrence_at: dt.datetime
    report_id: str | None = None
    next_execution_at: dt.datetime | None = None
    error: str | None = None


class SweepSummary(msgspec.Struct, kw_only=True, frozen=True):
    """Everything one sweep of one tenant did."""

    tenant_id: str
    as_of: dt.datetime
    outcomes: tuple[RuleOutcome, ...] = ()

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    @property
    def completed(self) -> int:
        """Number of rules that produced a report and advanced."""
        return self._count(OutcomeStatus.COMPLETED)

    @property
    def failed(self) -> int:
        """Number of rules left due for retry."""
        return self._count(OutcomeStatus.FAILED)

    @property
    def skipped(self) -> int:
        """Number of rules not processed by this sweep."""
        return self._count(OutcomeStatus.SKIPPED)
