"""Dramatiq actors that run batch sweeps.

An external timer (cron, a Kubernetes CronJob, or any scheduler able to
enqueue Dramatiq messages) sends one of these actors periodically. The
actors themselves hold no schedule.

Usage
-----
Sweep one tenant:

>>> run_sweep_job.send(
...     database_url="postgresql+asyncpg://...",
...     tenant_id="tenant-1",
... )

Sweep every tenant with due rules:

>>> run_all_sweeps_job.send(database_url="postgresql+asyncpg://...")

"""

from __future__ import annotations

import asyncio
import threading
import typing as typ

import dramatiq
import msgspec
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from propwatch.batch._broker import ensure_broker_configured
from propwatch.batch.factory import build_sweep_service
from propwatch.common.time import parse_aware_iso

if typ.TYPE_CHECKING:
    import datetime as dt

    from propwatch.batch.models import SweepSummary
    from propwatch.batch.service import BatchSweepService

SessionFactory: typ.TypeAlias = async_sessionmaker[AsyncSession]

T = typ.TypeVar("T")

# Module-level caches for reusing expensive resources across actor invocations
_ENGINE_CACHE: dict[str, AsyncEngine] = {}
_SESSION_FACTORY_CACHE: dict[str, SessionFactory] = {}
_SERVICE_CACHE: dict[str, BatchSweepService] = {}
_CACHE_LOCK = threading.Lock()


def _ensure_session_factory_locked(database_url: str) -> SessionFactory:
    """Return the cached session factory for *database_url*.

    Precondition: the caller **must** hold ``_CACHE_LOCK``.
    """
    if database_url not in _SESSION_FACTORY_CACHE:
        if database_url not in _ENGINE_CACHE:
            _ENGINE_CACHE[database_url] = create_async_engine(database_url)
        _SESSION_FACTORY_CACHE[database_url] = async_sessionmaker(
            _ENGINE_CACHE[database_url], expire_on_commit=False
        )
    return _SESSION_FACTORY_CACHE[database_url]


def _get_or_create_service(database_url: str) -> BatchSweepService:
    """Get or create a BatchSweepService with cached dependencies.

    Thread-safe: uses a lock to prevent race conditions in Dramatiq workers.
    """
    with _CACHE_LOCK:
        if database_url not in _SERVICE_CACHE:
            session_factory = _ensure_session_factory_locked(database_url)
            _SERVICE_CACHE[database_url] = build_sweep_service(session_factory)
        return _SERVICE_CACHE[database_url]


def _run_actor_async(
    database_url: str,
    as_of_iso: str | None,
    async_fn: typ.Callable[[BatchSweepService, dt.datetime | None], typ.Awaitable[T]],
) -> T:
    """Execute common async scaffolding for Dramatiq actors.

    Parameters
    ----------
    database_url
        SQLAlchemy URL for the database.
    as_of_iso
        Optional ISO 8601 cut-off; must carry an offset.
    async_fn
        Async function to execute with ``(service, as_of)``.

    """
    ensure_broker_configured()
    as_of = None if as_of_iso is None else parse_aware_iso(as_of_iso, field="as_of_iso")
    service = _get_or_create_service(database_url)
    return asyncio.run(async_fn(service, as_of))


def _summary_payload(summary: SweepSummary) -> dict[str, typ.Any]:
    """Return ``summary`` as the JSON document a result backend would store."""
    return msgspec.json.decode(msgspec.json.encode(summary))


@dramatiq.actor
def run_sweep_job(
    database_url: str,
    tenant_id: str,
    *,
    as_of_iso: str | None = None,
) -> dict[str, typ.Any]:
    """Dramatiq actor sweeping the due rules of one tenant.

    Parameters
    ----------
    database_url
        SQLAlchemy URL for the database.
    tenant_id
        Tenant to sweep.
    as_of_iso
        Optional ISO 8601 cut-off (e.g. ``'2024-12-08T09:00:00Z'``);
        defaults to now.

    Returns
    -------
    dict[str, Any]
        The sweep summary as JSON-compatible builtins.

    Raises
    ------
    ValueError
        If ``as_of_iso`` is provided without timezone information.

    """

    async def execute(
        service: BatchSweepService, as_of: dt.datetime | None
    ) -> dict[str, typ.Any]:
        return _summary_payload(await service.run_sweep(tenant_id, as_of))

    return _run_actor_async(database_url, as_of_iso, execute)


@dramatiq.actor
def run_all_sweeps_job(
    database_url: str,
    *,
    as_of_iso: str | None = None,
) -> list[dict[str, typ.Any]]:
    """Dramatiq actor sweeping every tenant that has due rules.

    Raises
    ------
    MultiTenantSweepError
        If listing due rules failed for at least one tenant. Other tenants
        are still swept first.

    """

    async def execute(
        service: BatchSweepService, as_of: dt.datetime | None
    ) -> list[dict[str, typ.Any]]:
        summaries = await service.sweep_all_tenants(as_of)
        return [_summary_payload(summary) for summary in summaries]

    return _run_actor_async(database_url, as_of_iso, execute)
