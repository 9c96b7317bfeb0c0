"""Build API dependencies from a session factory and the environment.

The sweep service is wired exactly as the Dramatiq actors wire it, so an
on-demand sweep behaves like a scheduled one.

Usage
-----
::

    from propwatch.api.factory import build_app_dependencies

    deps = build_app_dependencies(session_factory)

"""

from __future__ import annotations

import typing as typ

from propwatch.api.app import AppDependencies
from propwatch.batch.config import BatchConfig
from propwatch.batch.factory import build_sweep_service
from propwatch.reports.persister import SqlAlchemyReportPersister
from propwatch.schedule.service import RuleService
from propwatch.schedule.store import SqlAlchemyRuleStore

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

__all__ = ["build_app_dependencies"]


def build_app_dependencies(
    session_factory: async_sessionmaker[AsyncSession],
    config: BatchConfig | None = None,
) -> AppDependencies:
    """Assemble :class:`AppDependencies` on SQLAlchemy adapters.

    Parameters
    ----------
    session_factory
        Async session factory for database access.
    config
        Batch configuration; read from the environment when omitted.

    """
    batch_config = config or BatchConfig.from_env()
    return AppDependencies(
        session_factory=session_factory,
        rule_service=RuleService(SqlAlchemyRuleStore(session_factory)),
        sweep_service=build_sweep_service(session_factory, batch_config),
        report_persister=SqlAlchemyReportPersister(session_factory),
        default_timezone=batch_config.default_timezone,
    )
