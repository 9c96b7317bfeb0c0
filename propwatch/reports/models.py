"""Report structures handed to and returned from the persister."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import typing as typ

import msgspec

from propwatch.inquiries.models import PropertyCounters
from propwatch.synthesis.models import InteractionSummary

if typ.TYPE_CHECKING:
    from propwatch.inquiries.models import PropertyContext
    from propwatch.schedule.models import RecurrenceRule
    from propwatch.synthesis.models import SynthesisResult


class ReportDraft(msgspec.Struct, kw_only=True, frozen=True):
    """A fully synthesized report that has not been stored yet.

    Attributes
    ----------
    tenant_id
        Owning tenant.
    property_id
        Property the report describes.
    property_name
        Display name at synthesis time.
    rule_created_at
        Identity of the rule whose occurrence produced the report.
    occurrence_at
        Due instant that produced the report; with the rule identity it
        uniquely identifies the report.
    period_start
        Inclusive start of the reporting window.
    period_end
        Exclusive end of the reporting window.
    narrative
        Overall narrative.
    interactions
        Per-event summaries, oldest first.
    counters
        Activity statistics for the window.
    synthesizer
        Narrative backend identifier.

    """

    tenant_id: str
    property_id: str
    property_name: str
    rule_created_at: dt.datetime
    occurrence_at: dt.datetime
    period_start: dt.datetime
    period_end: dt.datetime
    narrative: str
    interactions: tuple[InteractionSummary, ...] = ()
    counters: PropertyCounters = msgspec.field(default_factory=PropertyCounters)
    synthesizer: str | None = None

    @classmethod
    def assemble(
        cls,
        rule: RecurrenceRule,
        context: PropertyContext,
        result: SynthesisResult,
    ) -> ReportDraft:
        """Combine a rule occurrence with its synthesis result."""
        return cls(
            tenant_id=rule.tenant_id,
            property_id=rule.property_id,
            property_name=context.property_name,
            rule_created_at=rule.created_at,
            occurrence_at=rule.next_execution_at,
            period_start=context.window_start,
            period_end=context.window_end,
            narrative=result.narrative,
            interactions=result.summaries,
            counters=result.counters,
            synthesizer=result.synthesizer,
        )


class Report(msgspec.Struct, kw_only=True, frozen=True):
    """A stored report."""

    id: str
    tenant_id: str
    property_id: str
    property_name: str
    rule_created_at: dt.datetime
    occurrence_at: dt.datetime
    period_start: dt.datetime
    period_end: dt.datetime
    narrative: str
    interactions: tuple[InteractionSummary, ...]
    counters: PropertyCounters
    synthesizer: str | None
    generated_at: dt.datetime
