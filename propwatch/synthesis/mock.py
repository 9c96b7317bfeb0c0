"""Mock implementation of NarrativeService for testing and development."""

from __future__ import annotations

import typing as typ

from propwatch.synthesis.models import (
    NarrativeRequest,
    NarrativeResponse,
    SummaryRequest,
    SummaryResponse,
    SummaryResponseEvent,
)

T = typ.TypeVar("T")

_SUMMARY_CONTENT_LIMIT = 200
_DEFAULT_HISTORY_LIMIT = 100


class MockNarrativeService:
    """Deterministic stand-in for the remote narrative service.

    Summaries are built from each event's title and content; the narrative is
    a template filled from the window counters. The most recent requests are
    recorded so callers can inspect what would have been sent.

    Parameters
    ----------
    history_limit
        Number of requests of each kind to keep; older ones are dropped.

    Examples
    --------
    >>> import asyncio
    >>> from propwatch.synthesis import MockNarrativeService
    >>> service = MockNarrativeService()
    >>> response = asyncio.run(service.compose_narrative(request))
    >>> response.narrative.startswith("Between")
    True

    """

    def __init__(self, *, history_limit: int = _DEFAULT_HISTORY_LIMIT) -> None:
        """Start with empty request logs."""
        self._history_limit = history_limit
        self.summary_requests: list[SummaryRequest] = []
        self.narrative_requests: list[NarrativeRequest] = []

    def _record(self, history: list[T], request: T) -> None:
        history.append(request)
        overflow = len(history) - self._history_limit
        if overflow > 0:
            del history[:overflow]

    @property
    def name(self) -> str:
        """Backend identifier recorded on reports."""
        return "mock"

    async def summarize_events(self, request: SummaryRequest) -> SummaryResponse:
        """Summarize each event as ``title: content``, first contacts flagged."""
        self._record(self.summary_requests, request)
        events = []
        for event in request.events:
            content = f"{event.title}: {event.content}".strip()
            if len(content) > _SUMMARY_CONTENT_LIMIT:
                content = content[: _SUMMARY_CONTENT_LIMIT - 3] + "..."
            if event.is_first_interaction:
                content = f"First contact. {content}"
            events.append(
                SummaryResponseEvent(
                    event_id=event.event_id,
                    customer_id=event.customer_id,
                    customer_name=event.customer_name,
                    content=content,
                )
            )
        return SummaryResponse(events=events)

    async def compose_narrative(self, request: NarrativeRequest) -> NarrativeResponse:
        """Describe the window's activity from its counters."""
        self._record(self.narrative_requests, request)
        counters = request.counters
        if not request.events:
            narrative = (
                f"Between {request.period_start} and {request.period_end} "
                f"{request.property_name} received no customer interactions. "
                f"The listing was viewed {counters.views} time(s)."
            )
        else:
            customers = len({event.customer_id for event in request.events})
            narrative = (
                f"Between {request.period_start} and {request.period_end} "
                f"{request.property_name} recorded {len(request.events)} "
                f"interaction(s) from {customers} customer(s): "
                f"{counters.inquiries} inquiry(ies), {counters.meetings} "
                f"meeting(s), and {counters.viewings} viewing(s). "
                f"The listing was viewed {counters.views} time(s)."
            )
        return NarrativeResponse(narrative=narrative)
