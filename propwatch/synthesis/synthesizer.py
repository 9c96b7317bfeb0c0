"""Turn a window of interaction events into report text.

Synthesis makes two sequential calls to a :class:`NarrativeService`:

1. per-event summarization, whose results are matched back to the submitted
   events by ``event_id`` (the service may reorder them), and
2. the aggregate narrative, written from the window counters and the
   summarized events.

Any failure in either call aborts synthesis as a whole; a result is only
returned when both calls succeeded and every event has exactly one summary.

When the window holds no events the summarization call is skipped and the
narrative call is still made. A blank narrative for an empty window is
replaced by :data:`GENERIC_EMPTY_NARRATIVE`.
"""

from __future__ import annotations

import typing as typ

from propwatch.logging import get_logger, log_debug
from propwatch.synthesis.errors import SynthesisResponseShapeError
from propwatch.synthesis.models import (
    InteractionSummary,
    NarrativeCounters,
    NarrativeRequest,
    NarrativeRequestEvent,
    SummaryRequest,
    SummaryRequestEvent,
    SummaryResponseEvent,
    SynthesisResult,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from propwatch.inquiries.models import InteractionEvent, PropertyContext
    from propwatch.synthesis.protocol import NarrativeService

logger = get_logger(__name__)

GENERIC_EMPTY_NARRATIVE = (
    "No customer interactions were recorded for this property during the "
    "reporting period."
)


def build_summary_request(
    context: PropertyContext, events: cabc.Sequence[InteractionEvent]
) -> SummaryRequest:
    """Build the per-event summarization body."""
    return SummaryRequest(
        events=[
            SummaryRequestEvent(
                event_id=event.event_id,
                customer_id=event.customer_id,
                customer_name=event.customer_name,
                property_name=context.property_name,
                event_type=event.event_type,
                title=event.title,
                content=event.content,
                category=event.category.value,
                date=event.occurred_at.isoformat(),
                is_first_interaction=event.is_first_interaction,
            )
            for event in events
        ]
    )


def build_narrative_request(
    context: PropertyContext, summaries: cabc.Sequence[InteractionSummary]
) -> NarrativeRequest:
    """Build the aggregate narrative body from summarized events."""
    return NarrativeRequest(
        property_id=context.property_id,
        property_name=context.property_name,
        counters=NarrativeCounters.from_counters(context.counters),
        period_start=context.window_start.isoformat(),
        period_end=context.window_end.isoformat(),
        events=[
            NarrativeRequestEvent(
                customer_id=summary.customer_id,
                customer_name=summary.customer_name,
                timestamp=summary.occurred_at.isoformat(),
                category=summary.category.value,
                content=summary.content,
            )
            for summary in summaries
        ],
    )


def match_summaries(
    events: cabc.Sequence[InteractionEvent],
    returned: cabc.Sequence[SummaryResponseEvent],
) -> list[InteractionSummary]:
    """Pair each event with its summary by ``event_id``.

    The result follows the order of ``events``, regardless of the order the
    service returned them in.

    Raises
    ------
    SynthesisResponseShapeError
        If an id is returned twice, an unknown id is returned, an event is
        left without a summary, or a summary is blank.

    """
    by_id: dict[str, SummaryResponseEvent] = {}
    for item in returned:
        if item.event_id in by_id:
            raise SynthesisResponseShapeError.duplicate_event(item.event_id)
        by_id[item.event_id] = item

    submitted = {event.event_id for event in events}
    if unknown := by_id.keys() - submitted:
        raise SynthesisResponseShapeError.unknown_events(unknown)
    if missing := submitted - by_id.keys():
        raise SynthesisResponseShapeError.missing_events(missing)

    summaries: list[InteractionSummary] = []
    for event in events:
        content = by_id[event.event_id].content.strip()
        if not content:
            raise SynthesisResponseShapeError.missing(
                f"events[{event.event_id}].content"
            )
        summaries.append(
            InteractionSummary(
                event_id=event.event_id,
                customer_id=event.customer_id,
                customer_name=event.customer_name,
                occurred_at=event.occurred_at,
                category=event.category,
                title=event.title,
                content=content,
                is_first_interaction=event.is_first_interaction,
            )
        )
    return summaries


class ReportSynthesizer:
    """Produce a :class:`SynthesisResult` for one reporting window.

    Parameters
    ----------
    service
        Narrative backend to call. No call is retried here; a failed rule is
        retried by a later sweep.

    """

    def __init__(self, service: NarrativeService) -> None:
        """Bind the synthesizer to a narrative backend."""
        self._service = service

    @property
    def service(self) -> NarrativeService:
        """The narrative backend in use."""
        return self._service

    async def synthesize(
        self, context: PropertyContext, events: cabc.Sequence[InteractionEvent]
    ) -> SynthesisResult:
        """Summarize ``events`` and compose the window narrative.

        Raises
        ------
        SynthesisAPIError
            If either remote call fails, times out, or is refused.
        SynthesisResponseShapeError
            If either response is malformed or incomplete.

        """
        summaries: list[InteractionSummary] = []
        if events:
            response = await self._service.summarize_events(
                build_summary_request(context, events)
            )
            summaries = match_summaries(events, response.events)
        else:
            log_debug(
                logger,
                "No events for property %s; skipping per-event summarization",
                context.property_id,
            )

        narrative_response = await self._service.compose_narrative(
            build_narrative_request(context, summaries)
        )
        narrative = narrative_response.narrative.strip()
        if not narrative:
            if summaries:
                raise SynthesisResponseShapeError.missing("narrative")
            narrative = GENERIC_EMPTY_NARRATIVE

        return SynthesisResult(
            narrative=narrative,
            summaries=tuple(summaries),
            counters=context.counters,
            synthesizer=self._service.name,
        )
