"""Unit tests for report synthesis."""

from __future__ import annotations

import datetime as dt

import pytest

from propwatch.inquiries.models import (
    InteractionEvent,
    PropertyContext,
    PropertyCounters,
)
from propwatch.inquiries.storage import InquiryCategory
from propwatch.synthesis.errors import SynthesisAPIError, SynthesisResponseShapeError
from propwatch.synthesis.mock import MockNarrativeService
from propwatch.synthesis.models import SummaryRequest, SummaryResponseEvent
from propwatch.synthesis.synthesizer import (
    GENERIC_EMPTY_NARRATIVE,
    ReportSynthesizer,
    build_narrative_request,
    match_summaries,
)
from tests.helpers.narrative_fakes import (
    ReversingNarrativeService,
    ScriptedNarrativeService,
)

WINDOW_START = dt.datetime(2024, 12, 1, 9, 0, tzinfo=dt.UTC)
WINDOW_END = dt.datetime(2024, 12, 8, 9, 0, tzinfo=dt.UTC)


def _event(event_id: str, *, hour: int = 10, **overrides: object) -> InteractionEvent:
    values: dict[str, object] = {
        "event_id": event_id,
        "customer_id": f"customer-{event_id}",
        "customer_name": "Tanaka Yuki",
        "occurred_at": dt.datetime(2024, 12, 2, hour, 0, tzinfo=dt.UTC),
        "category": InquiryCategory.GENERAL_INQUIRY,
        "event_type": "email",
        "title": f"Title {event_id}",
        "content": f"Content {event_id}",
    }
    values.update(overrides)
    return InteractionEvent(**values)  # type: ignore[arg-type]


def _context(events: list[InteractionEvent]) -> PropertyContext:
    return PropertyContext(
        tenant_id="tenant-1",
        property_id="property-1",
        property_name="Harbour View",
        window_start=WINDOW_START,
        window_end=WINDOW_END,
        counters=PropertyCounters.from_events(events, views=12),
    )


def _returning(*ids: str) -> list[SummaryResponseEvent]:
    return [SummaryResponseEvent(event_id=event_id, content="ok") for event_id in ids]


class TestMatchSummaries:
    """Tests for pairing summaries with events by id."""

    def test_order_follows_submitted_events(self) -> None:
        """Summaries returned out of order are mapped back by event_id."""
        events = [_event("a"), _event("b"), _event("c")]
        returned = [
            SummaryResponseEvent(event_id="c", content="third"),
            SummaryResponseEvent(event_id="a", content="first"),
            SummaryResponseEvent(event_id="b", content="second"),
        ]
        summaries = match_summaries(events, returned)
        assert [(s.event_id, s.content) for s in summaries] == [
            ("a", "first"),
            ("b", "second"),
            ("c", "third"),
        ]

    @pytest.mark.parametrize(
        ("returned_ids", "message"),
        [
            pytest.param(("a", "a", "b"), "more than once", id="duplicate"),
            pytest.param(("a", "b", "z"), "unknown events: z", id="unknown"),
            pytest.param(("a",), "no summary for events: b", id="missing"),
        ],
    )
    def test_rejects_mismatched_ids(
        self, returned_ids: tuple[str, ...], message: str
    ) -> None:
        """Any id mismatch invalidates the whole response."""
        with pytest.raises(SynthesisResponseShapeError, match=message):
            match_summaries([_event("a"), _event("b")], _returning(*returned_ids))

    def test_rejects_blank_summary(self) -> None:
        """Each event needs non-blank summary text."""
        with pytest.raises(SynthesisResponseShapeError, match="content"):
            match_summaries(
                [_event("a")], [SummaryResponseEvent(event_id="a", content="  ")]
            )


class TestReportSynthesizer:
    """Tests for the two-call synthesis flow."""

    @pytest.mark.asyncio
    async def test_reordered_service_output_is_mapped_by_id(self) -> None:
        """A backend that reverses its output still yields aligned summaries."""
        events = [_event("a", hour=9), _event("b", hour=10, is_first_interaction=True)]
        result = await ReportSynthesizer(ReversingNarrativeService()).synthesize(
            _context(events), events
        )
        assert [summary.event_id for summary in result.summaries] == ["a", "b"]
        assert result.summaries[1].content.startswith("First contact.")
        assert result.synthesizer == "mock"

    @pytest.mark.asyncio
    async def test_narrative_request_carries_counters_and_summaries(self) -> None:
        """The second call is built from summarized events and counters."""
        service = MockNarrativeService()
        events = [
            _event("a"),
            _event("b", category=InquiryCategory.VIEWING),
        ]
        result = await ReportSynthesizer(service).synthesize(_context(events), events)

        (request,) = service.narrative_requests
        assert request.counters.views == 12
        assert request.counters.inquiries == 1
        assert request.counters.viewings == 1
        assert [event.content for event in request.events] == [
            summary.content for summary in result.summaries
        ]
        assert request.period_end == WINDOW_END.isoformat()

    @pytest.mark.asyncio
    async def test_empty_window_skips_summaries_and_composes_narrative(self) -> None:
        """No events means one narrative call and an empty summary list."""
        service = ScriptedNarrativeService(narrative="")
        result = await ReportSynthesizer(service).synthesize(_context([]), [])

        assert service.summary_requests == [], "Nothing to summarize"
        assert len(service.narrative_requests) == 1
        assert result.summaries == ()
        assert result.narrative == GENERIC_EMPTY_NARRATIVE

    @pytest.mark.asyncio
    async def test_blank_narrative_with_events_is_rejected(self) -> None:
        """A window with events must produce real narrative text."""
        events = [_event("a")]
        with pytest.raises(SynthesisResponseShapeError, match="narrative"):
            await ReportSynthesizer(
                ScriptedNarrativeService(narrative="   ")
            ).synthesize(_context(events), events)

    @pytest.mark.asyncio
    async def test_summary_failure_skips_narrative_call(self) -> None:
        """A failed first call aborts before the second is made."""
        service = ScriptedNarrativeService(
            fail_summaries=SynthesisAPIError.http_error("summarize_events", 502)
        )
        events = [_event("a")]
        with pytest.raises(SynthesisAPIError) as excinfo:
            await ReportSynthesizer(service).synthesize(_context(events), events)
        assert excinfo.value.status_code == 502
        assert service.narrative_requests == []

    @pytest.mark.asyncio
    async def test_wrong_ids_from_service_fail_synthesis(self) -> None:
        """Unknown ids returned by the backend abort synthesis."""

        def wrong_ids(request: SummaryRequest) -> list[SummaryResponseEvent]:
            return _returning(*(f"x-{e.event_id}" for e in request.events))

        events = [_event("a")]
        with pytest.raises(SynthesisResponseShapeError):
            await ReportSynthesizer(
                ScriptedNarrativeService(summaries=wrong_ids)
            ).synthesize(_context(events), events)


def test_build_narrative_request_with_no_summaries() -> None:
    """An empty window still sends the period and counters."""
    request = build_narrative_request(_context([]), [])
    assert request.events == []
    assert request.property_name == "Harbour View"
    assert request.period_start == WINDOW_START.isoformat()
