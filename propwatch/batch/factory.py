"""Wire a :class:`BatchSweepService` on the SQLAlchemy adapters.

Shared by the Dramatiq actors, the HTTP API, and the ``propwatch-sweep``
command so every entry point sweeps through the same pipeline.
"""

from __future__ import annotations

import typing as typ

from propwatch.batch.config import BatchConfig
from propwatch.batch.service import BatchSweepDependencies, BatchSweepService
from propwatch.inquiries.aggregator import SqlAlchemyEventAggregator
from propwatch.reports.persister import SqlAlchemyReportPersister
from propwatch.schedule.store import SqlAlchemyRuleStore
from propwatch.synthesis.factory import create_narrative_service
from propwatch.synthesis.synthesizer import ReportSynthesizer

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from propwatch.synthesis.protocol import NarrativeService

__all__ = ["build_sweep_service"]


def build_sweep_service(
    session_factory: async_sessionmaker[AsyncSession],
    config: BatchConfig | None = None,
    narrative_service: NarrativeService | None = None,
) -> BatchSweepService:
    """Build a sweep service from a session factory and the environment.

    Parameters
    ----------
    session_factory
        Async session factory for database access.
    config
        Batch configuration; read with :meth:`BatchConfig.from_env` when
        omitted.
    narrative_service
        Narrative backend; chosen by :func:`create_narrative_service` when
        omitted.

    """
    dependencies = BatchSweepDependencies(
        store=SqlAlchemyRuleStore(session_factory),
        aggregator=SqlAlchemyEventAggregator(session_factory),
        synthesizer=ReportSynthesizer(narrative_service or create_narrative_service()),
        persister=SqlAlchemyReportPersister(session_factory),
    )
    return BatchSweepService(dependencies, config=config or BatchConfig.from_env())
