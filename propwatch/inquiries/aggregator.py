"""Collect the inquiries that fall inside a reporting window.

An empty window is a normal outcome and yields an empty list. Soft-deleted
inquiries, and inquiries on soft-deleted properties, are never returned.

Usage
-----
>>> aggregator = SqlAlchemyEventAggregator(session_factory)
>>> events = await aggregator.collect(
...     "tenant-1", "property-7", window_start=start, window_end=end
... )

"""

from __future__ import annotations

import typing as typ

from sqlalchemy import select

from propwatch.inquiries.errors import PropertyNotFoundError
from propwatch.inquiries.models import (
    InteractionEvent,
    PropertySnapshot,
    customer_display_name,
)
from propwatch.inquiries.storage import InquiryRecord, PropertyRecord
from propwatch.logging import get_logger, log_debug

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)

_DEFAULT_TITLE = "Inquiry"


@typ.runtime_checkable
class EventAggregator(typ.Protocol):
    """Port for reading property details and window events."""

    async def load_property(self, tenant_id: str, property_id: str) -> PropertySnapshot:
        """Return the property or raise :class:`PropertyNotFoundError`."""
        ...

    async def collect(
        self,
        tenant_id: str,
        property_id: str,
        window_start: dt.datetime,
        window_end: dt.datetime,
    ) -> list[InteractionEvent]:
        """Return the events in ``[window_start, window_end)`` oldest first."""
        ...


class SqlAlchemyEventAggregator:
    """``EventAggregator`` reading the ``inquiries`` and ``properties`` tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Bind the aggregator to a session factory."""
        self._session_factory = session_factory

    async def load_property(self, tenant_id: str, property_id: str) -> PropertySnapshot:
        """Return the live property row as a snapshot.

        Raises
        ------
        PropertyNotFoundError
            If the property does not exist for the tenant or was deleted.

        """
        stmt = select(PropertyRecord).where(
            PropertyRecord.id == property_id,
            PropertyRecord.tenant_id == tenant_id,
            PropertyRecord.deleted_at.is_(None),
        )
        async with self._session_factory() as session:
            record = await session.scalar(stmt)
        if record is None:
            raise PropertyNotFoundError(tenant_id, property_id)
        return PropertySnapshot(
            property_id=record.id, name=record.name, views_count=record.views_count
        )

    async def collect(
        self,
        tenant_id: str,
        property_id: str,
        window_start: dt.datetime,
        window_end: dt.datetime,
    ) -> list[InteractionEvent]:
        """Return inquiries in ``[window_start, window_end)``, oldest first.

        Each event is flagged with ``is_first_interaction`` when it is the
        customer's earliest live inquiry about the property, looking back past
        the window start.
        """
        if window_end <= window_start:
            msg = (
                f"window_end ({window_end.isoformat()}) must be after "
                f"window_start ({window_start.isoformat()})"
            )
            raise ValueError(msg)

        stmt = (
            select(InquiryRecord)
            .where(
                InquiryRecord.tenant_id == tenant_id,
                InquiryRecord.property_id == property_id,
                InquiryRecord.deleted_at.is_(None),
                InquiryRecord.inquired_at >= window_start,
                InquiryRecord.inquired_at < window_end,
            )
            .order_by(InquiryRecord.inquired_at, InquiryRecord.id)
        )
        async with self._session_factory() as session:
            records = list((await session.scalars(stmt)).unique())
            first_ids = await self._first_inquiry_ids(
                session,
                tenant_id,
                property_id,
                {record.customer_id for record in records if record.customer_id},
                window_end,
            )

        events = [
            _to_event(record, is_first=record.id in first_ids) for record in records
        ]
        log_debug(
            logger,
            "Collected %d event(s) for property %s in [%s, %s)",
            len(events),
            property_id,
            window_start.isoformat(),
            window_end.isoformat(),
        )
        return events

    async def _first_inquiry_ids(
        self,
        session: AsyncSession,
        tenant_id: str,
        property_id: str,
        customer_ids: set[str],
        window_end: dt.datetime,
    ) -> set[str]:
        """Return the id of each customer's earliest inquiry on the property."""
        if not customer_ids:
            return set()
        stmt = (
            select(InquiryRecord.id, InquiryRecord.customer_id)
            .where(
                InquiryRecord.tenant_id == tenant_id,
                InquiryRecord.property_id == property_id,
                InquiryRecord.deleted_at.is_(None),
                InquiryRecord.customer_id.in_(customer_ids),
                InquiryRecord.inquired_at < window_end,
            )
            .order_by(
                InquiryRecord.customer_id,
                InquiryRecord.inquired_at,
                InquiryRecord.id,
            )
        )
        first_by_customer: dict[str, str] = {}
        for inquiry_id, customer_id in await session.execute(stmt):
            first_by_customer.setdefault(customer_id, inquiry_id)
        return set(first_by_customer.values())


def _to_event(record: InquiryRecord, *, is_first: bool) -> InteractionEvent:
    customer = record.customer
    if customer is not None and customer.deleted_at is None:
        name = customer_display_name(customer.last_name, customer.first_name)
    else:
        name = customer_display_name(None, None)
    return InteractionEvent(
        event_id=record.id,
        customer_id=record.customer_id,
        customer_name=name,
        occurred_at=record.inquired_at,
        category=record.category,
        event_type=record.inquiry_type,
        title=record.title or _DEFAULT_TITLE,
        content=record.summary,
        is_first_interaction=is_first,
    )
