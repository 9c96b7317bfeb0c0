"""Structures describing the customer activity behind a report."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import typing as typ

import msgspec

from propwatch.inquiries.storage import InquiryCategory

if typ.TYPE_CHECKING:
    import collections.abc as cabc

UNKNOWN_CUSTOMER_NAME = "Unknown customer"

_INQUIRY_CATEGORIES = frozenset(
    {InquiryCategory.NEW_INQUIRY, InquiryCategory.GENERAL_INQUIRY}
)


class InteractionEvent(msgspec.Struct, kw_only=True, frozen=True):
    """One customer interaction inside a reporting window.

    Attributes
    ----------
    event_id
        Identifier of the underlying inquiry; unique within a window.
    customer_id
        Customer reference, or ``None`` when the customer was removed.
    customer_name
        Display name; :data:`UNKNOWN_CUSTOMER_NAME` when no name is known.
    occurred_at
        When the interaction happened, in UTC.
    category
        What the interaction was about.
    event_type
        Channel the interaction came through (``email``, ``phone``...).
    title
        Short subject line.
    content
        Free-text notes recorded by staff.
    is_first_interaction
        ``True`` when this is the customer's earliest recorded interaction
        with the property.

    """

    event_id: str
    customer_id: str | None
    customer_name: str
    occurred_at: dt.datetime
    category: InquiryCategory
    event_type: str
    title: str
    content: str
    is_first_interaction: bool = False


class PropertyCounters(msgspec.Struct, kw_only=True, frozen=True):
    """Activity statistics sent with the aggregate narrative request."""

    views: int = 0
    inquiries: int = 0
    meetings: int = 0
    viewings: int = 0

    @classmethod
    def from_events(
        cls, events: cabc.Iterable[InteractionEvent], *, views: int = 0
    ) -> PropertyCounters:
        """Tally interactions per category.

        ``views`` comes from the property itself; the other counters are
        derived from the events.
        """
        inquiries = meetings = viewings = 0
        for event in events:
            if event.category in _INQUIRY_CATEGORIES:
                inquiries += 1
            elif event.category is InquiryCategory.BUSINESS_MEETING:
                meetings += 1
            elif event.category is InquiryCategory.VIEWING:
                viewings += 1
        return cls(
            views=views, inquiries=inquiries, meetings=meetings, viewings=viewings
        )


class PropertyContext(msgspec.Struct, kw_only=True, frozen=True):
    """Identifies the property and window a report is synthesized for.

    Attributes
    ----------
    tenant_id
        Owning tenant.
    property_id
        Property being reported on.
    property_name
        Display name used in prompts and the stored report.
    window_start
        Inclusive start of the reporting window, UTC.
    window_end
        Exclusive end of the reporting window, UTC. This is the due
        occurrence that triggered the report.
    counters
        Activity statistics for the window.

    """

    tenant_id: str
    property_id: str
    property_name: str
    window_start: dt.datetime
    window_end: dt.datetime
    counters: PropertyCounters = msgspec.field(default_factory=PropertyCounters)


class PropertySnapshot(msgspec.Struct, kw_only=True, frozen=True):
    """The property fields the pipeline needs."""

    property_id: str
    name: str
    views_count: int = 0


def customer_display_name(last_name: str | None, first_name: str | None) -> str:
    """Join family and given names, falling back to a placeholder."""
    parts = [part.strip() for part in (last_name, first_name) if part and part.strip()]
    return " ".join(parts) if parts else UNKNOWN_CUSTOMER_NAME
