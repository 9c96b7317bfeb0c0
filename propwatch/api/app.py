"""Application factory for the propwatch Falcon ASGI application.

``create_app()`` always registers the health probes. When database-backed
dependencies are supplied it also registers rule administration, sweep,
and report routes.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create a full app::

    from propwatch.api.factory import build_app_dependencies

    app = create_app(build_app_dependencies(session_factory))

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from propwatch.api.errors import register_error_handlers
from propwatch.api.health.resources import HealthResource, ReadyResource

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from propwatch.batch.service import BatchSweepService
    from propwatch.reports.persister import SqlAlchemyReportPersister
    from propwatch.schedule.service import RuleService

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Collaborators of the domain routes.

    Attributes
    ----------
    session_factory
        Async session factory; used by the readiness probe.
    rule_service
        Rule administration service.
    sweep_service
        Batch sweep orchestrator used for on-demand sweeps.
    report_persister
        Report store used for report lookups.
    default_timezone
        Zone assigned to rules created without one.

    """

    session_factory: async_sessionmaker[AsyncSession]
    rule_service: RuleService
    sweep_service: BatchSweepService
    report_persister: SqlAlchemyReportPersister
    default_timezone: str = "UTC"


def _add_domain_routes(app: falcon.asgi.App, deps: AppDependencies) -> None:
    from propwatch.api.rules.resources import (
        RuleActionResource,
        RuleCollectionResource,
        RuleResource,
    )
    from propwatch.api.sweeps.resources import (
        PropertyReportsResource,
        ReportResource,
        SweepResource,
    )

    app.add_route(
        "/tenants/{tenant_id}/rules",
        RuleCollectionResource(
            deps.rule_service, default_timezone=deps.default_timezone
        ),
    )
    app.add_route(
        "/tenants/{tenant_id}/rules/{created_at}",
        RuleResource(deps.rule_service, default_timezone=deps.default_timezone),
    )
    app.add_route(
        "/tenants/{tenant_id}/rules/{created_at}/{action}",
        RuleActionResource(deps.rule_service),
    )
    app.add_route("/tenants/{tenant_id}/sweeps", SweepResource(deps.sweep_service))
    app.add_route(
        "/tenants/{tenant_id}/properties/{property_id}/reports",
        PropertyReportsResource(deps.report_persister),
    )
    app.add_route(
        "/tenants/{tenant_id}/reports/{report_id}",
        ReportResource(deps.report_persister),
    )


def create_app(dependencies: AppDependencies | None = None) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional domain dependencies. When ``None``, only ``/health`` and
        ``/ready`` are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    app = falcon.asgi.App()

    app.add_route("/health", HealthResource())
    app.add_route(
        "/ready",
        ReadyResource(dependencies.session_factory if dependencies else None),
    )

    if dependencies is not None:
        _add_domain_routes(app, dependencies)

    register_error_handlers(app)
    return app
