"""Store synthesized reports.

Persistence is idempotent per due occurrence: a report is keyed by the rule
identity and the occurrence instant, and storing the same occurrence twice
returns the first report's id instead of creating a duplicate. A sweep that
crashed between persisting a report and advancing its rule therefore retries
safely.

Usage
-----
>>> persister = SqlAlchemyReportPersister(session_factory)
>>> report_id = await persister.persist(draft)

"""

from __future__ import annotations

import typing as typ

import msgspec
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from propwatch.inquiries.models import PropertyCounters
from propwatch.logging import get_logger, log_info, log_warning
from propwatch.reports.errors import (
    IncompleteReportError,
    ReportNotFoundError,
    ReportPersistenceError,
)
from propwatch.reports.models import Report
from propwatch.reports.storage import ReportRecord
from propwatch.synthesis.models import InteractionSummary

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from propwatch.reports.models import ReportDraft

logger = get_logger(__name__)


@typ.runtime_checkable
class ReportPersister(typ.Protocol):
    """Port for writing reports."""

    async def persist(self, draft: ReportDraft) -> str:
        """Store ``draft`` and return the report id."""
        ...


def _to_report(record: ReportRecord) -> Report:
    return Report(
        id=record.id,
        tenant_id=record.tenant_id,
        property_id=record.property_id,
        property_name=record.property_name,
        rule_created_at=record.rule_created_at,
        occurrence_at=record.occurrence_at,
        period_start=record.period_start,
        period_end=record.period_end,
        narrative=record.narrative,
        interactions=tuple(
            msgspec.convert(record.interactions, type=list[InteractionSummary])
        ),
        counters=PropertyCounters(
            views=record.views_count,
            inquiries=record.inquiries_count,
            meetings=record.business_meeting_count,
            viewings=record.viewing_count,
        ),
        synthesizer=record.synthesizer,
        generated_at=record.generated_at,
    )


class SqlAlchemyReportPersister:
    """``ReportPersister`` backed by the ``reports`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Bind the persister to a session factory."""
        self._session_factory = session_factory

    async def persist(self, draft: ReportDraft) -> str:
        """Store ``draft`` unless its occurrence already has a report.

        Returns
        -------
        str
            Id of the new report, or of the report already stored for the
            same occurrence.

        Raises
        ------
        IncompleteReportError
            If the draft has no narrative.
        ReportPersistenceError
            If the database write fails.

        """
        if not draft.narrative.strip():
            raise IncompleteReportError.blank_narrative()

        try:
            existing_id = await self._find_existing(draft)
            if existing_id is not None:
                log_warning(
                    logger,
                    "Report %s already stored for %s occurrence %s; reusing it",
                    existing_id,
                    draft.property_id,
                    draft.occurrence_at.isoformat(),
                )
                return existing_id
            report_id = await self._insert(draft)
        except IntegrityError as exc:
            # Lost a race with another writer for the same occurrence.
            existing_id = await self._find_existing(draft)
            if existing_id is None:
                raise ReportPersistenceError(
                    draft.tenant_id, draft.occurrence_at, str(exc.orig)
                ) from exc
            return existing_id
        except SQLAlchemyError as exc:
            raise ReportPersistenceError(
                draft.tenant_id, draft.occurrence_at, str(exc)
            ) from exc

        log_info(
            logger,
            "Stored report %s for property %s window [%s, %s) with %d interaction(s)",
            report_id,
            draft.property_id,
            draft.period_start.isoformat(),
            draft.period_end.isoformat(),
            len(draft.interactions),
        )
        return report_id

    async def get(self, tenant_id: str, report_id: str) -> Report:
        """Return one stored report.

        Raises
        ------
        ReportNotFoundError
            If no report with ``report_id`` exists for the tenant.

        """
        async with self._session_factory() as session:
            record = await session.get(ReportRecord, report_id)
        if record is None or record.tenant_id != tenant_id:
            raise ReportNotFoundError(tenant_id, report_id)
        return _to_report(record)

    async def list_for_property(
        self, tenant_id: str, property_id: str, *, limit: int = 20
    ) -> list[Report]:
        """Return the newest reports for a property, newest first."""
        stmt = (
            select(ReportRecord)
            .where(
                ReportRecord.tenant_id == tenant_id,
                ReportRecord.property_id == property_id,
            )
            .order_by(ReportRecord.occurrence_at.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            return [_to_report(record) for record in await session.scalars(stmt)]

    async def _find_existing(self, draft: ReportDraft) -> str | None:
        stmt = select(ReportRecord.id).where(
            ReportRecord.tenant_id == draft.tenant_id,
            ReportRecord.rule_created_at == draft.rule_created_at,
            ReportRecord.occurrence_at == draft.occurrence_at,
        )
        async with self._session_factory() as session:
            return await session.scalar(stmt)

    async def _insert(self, draft: ReportDraft) -> str:
        record = ReportRecord(
            tenant_id=draft.tenant_id,
            property_id=draft.property_id,
            property_name=draft.property_name,
            rule_created_at=draft.rule_created_at,
            occurrence_at=draft.occurrence_at,
            period_start=draft.period_start,
            period_end=draft.period_end,
            narrative=draft.narrative,
            interactions=msgspec.to_builtins(list(draft.interactions)),
            views_count=draft.counters.views,
            inquiries_count=draft.counters.inquiries,
            business_meeting_count=draft.counters.meetings,
            viewing_count=draft.counters.viewings,
            synthesizer=draft.synthesizer,
        )
        async with self._session_factory() as session, session.begin():
            session.add(record)
            await session.flush()
            return record.id
