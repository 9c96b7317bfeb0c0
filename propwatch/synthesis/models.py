"""Wire payloads for the narrative service and the synthesized result.

Request and response structures mirror the JSON documents exchanged with the
remote service. Response structures tolerate unknown fields; required fields
that are missing fail decoding.
"""

from __future__ import annotations

import datetime as dt  # noqa: TC003

import msgspec

from propwatch.inquiries.models import PropertyCounters
from propwatch.inquiries.storage import InquiryCategory  # noqa: TC001


class SummaryRequestEvent(msgspec.Struct, kw_only=True, frozen=True):
    """One event submitted for per-event summarization."""

    event_id: str
    customer_id: str | None
    customer_name: str
    property_name: str
    event_type: str
    title: str
    content: str
    category: str
    date: str
    is_first_interaction: bool


class SummaryRequest(msgspec.Struct, kw_only=True, frozen=True):
    """Body of the per-event summarization call."""

    events: list[SummaryRequestEvent]


class SummaryResponseEvent(msgspec.Struct, kw_only=True, frozen=True):
    """One summarized event; matched to its request by ``event_id``."""

    event_id: str
    content: str
    customer_id: str | None = None
    customer_name: str | None = None


class SummaryResponse(msgspec.Struct, kw_only=True, frozen=True):
    """Body returned by the per-event summarization call."""

    events: list[SummaryResponseEvent]


class NarrativeCounters(msgspec.Struct, kw_only=True, frozen=True):
    """Activity statistics sent with the narrative call."""

    views: int
    inquiries: int
    meetings: int
    viewings: int

    @classmethod
    def from_counters(cls, counters: PropertyCounters) -> NarrativeCounters:
        """Copy the domain counters into their wire form."""
        return cls(
            views=counters.views,
            inquiries=counters.inquiries,
            meetings=counters.meetings,
            viewings=counters.viewings,
        )


class NarrativeRequestEvent(msgspec.Struct, kw_only=True, frozen=True):
    """One event as listed in the narrative call."""

    customer_id: str | None
    customer_name: str
    timestamp: str
    category: str
    content: str


class NarrativeRequest(msgspec.Struct, kw_only=True, frozen=True):
    """Body of the aggregate narrative call."""

    property_id: str
    property_name: str
    counters: NarrativeCounters
    period_start: str
    period_end: str
    events: list[NarrativeRequestEvent]


class NarrativeResponse(msgspec.Struct, kw_only=True, frozen=True):
    """Body returned by the aggregate narrative call."""

    narrative: str


class InteractionSummary(msgspec.Struct, kw_only=True, frozen=True):
    """A summarized customer interaction as stored on a report.

    Attributes
    ----------
    event_id
        Identifier of the inquiry this summary describes.
    customer_id
        Customer reference, if any.
    customer_name
        Display name at the time of synthesis.
    occurred_at
        When the interaction happened.
    category
        Interaction category.
    title
        Short subject line.
    content
        Summary text returned by the narrative service.
    is_first_interaction
        Whether this was the customer's first contact about the property.

    """

    event_id: str
    customer_id: str | None
    customer_name: str
    occurred_at: dt.datetime
    category: InquiryCategory
    title: str
    content: str
    is_first_interaction: bool = False


class SynthesisResult(msgspec.Struct, kw_only=True, frozen=True):
    """Complete output of synthesis for one reporting window.

    Attributes
    ----------
    narrative
        Overall narrative; never blank.
    summaries
        Per-event summaries in the order the events occurred.
    counters
        Activity statistics the narrative was written from.
    synthesizer
        Identifier of the narrative backend that produced the text.

    """

    narrative: str
    summaries: tuple[InteractionSummary, ...]
    counters: PropertyCounters
    synthesizer: str
