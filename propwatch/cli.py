"""Run one batch sweep and exit; meant to be invoked by an external timer."""

from __future__ import annotations

import argparse
import asyncio
import os
import typing as typ

import msgspec
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from propwatch.batch.errors import MultiTenantSweepError
from propwatch.batch.factory import build_sweep_service
from propwatch.common.storage import init_storage
from propwatch.common.time import parse_aware_iso
from propwatch.logging import configure_logging, get_logger, log_error, log_warning
from propwatch.synthesis.factory import create_narrative_service
from propwatch.synthesis.http_client import HttpNarrativeService

if typ.TYPE_CHECKING:
    import datetime as dt

    from propwatch.batch.models import SweepSummary

logger = get_logger(__name__)

_EXIT_OK = 0
_EXIT_RULE_FAILURES = 1
_EXIT_USAGE = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="propwatch-sweep", description=__doc__)
    scope = parser.add_mutually_exclusive_group(required=True)
    scope.add_argument("--tenant", help="Sweep the due rules of this tenant")
    scope.add_argument(
        "--all",
        action="store_true",
        dest="all_tenants",
        help="Sweep every tenant that has due rules",
    )
    parser.add_argument(
        "--as-of",
        default=None,
        help="ISO 8601 cut-off with offset (default: now)",
    )
    parser.add_argument(
        "--database-url",
        default=os.environ.get("PROPWATCH_DATABASE_URL"),
        help="SQLAlchemy async URL (default: $PROPWATCH_DATABASE_URL)",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables before sweeping",
    )
    return parser


async def _sweep(
    database_url: str,
    *,
    tenant_id: str | None,
    as_of: dt.datetime | None,
    init_db: bool,
) -> list[SweepSummary]:
    engine = create_async_engine(database_url)
    narrative = create_narrative_service()
    try:
        if init_db:
            await init_storage(engine)
        service = build_sweep_service(
            async_sessionmaker(engine, expire_on_commit=False),
            narrative_service=narrative,
        )
        if tenant_id is not None:
            return [await service.run_sweep(tenant_id, as_of)]
        return await service.sweep_all_tenants(as_of)
    finally:
        if isinstance(narrative, HttpNarrativeService):
            await narrative.aclose()
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    """Sweep due rules and print one JSON summary per tenant.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        ``0`` when every processed rule completed or was skipped, ``1`` when
        any rule or tenant failed (failed rules stay due and are retried by
        the next invocation), ``2`` on invalid arguments.

    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    log_level = os.environ.get("PROPWATCH_LOG_LEVEL", "INFO")
    level, invalid_level = configure_logging(log_level)
    if invalid_level:
        log_warning(
            logger,
            "Invalid PROPWATCH_LOG_LEVEL %r, falling back to %s",
            log_level,
            level,
        )

    if not args.database_url:
        parser.error("--database-url or PROPWATCH_DATABASE_URL is required")
    try:
        as_of = (
            None
            if args.as_of is None
            else parse_aware_iso(args.as_of, field="--as-of")
        )
    except ValueError as exc:
        print(f"error: {exc}")
        return _EXIT_USAGE

    exit_code = _EXIT_OK
    try:
        summaries = asyncio.run(
            _sweep(
                args.database_url,
                tenant_id=args.tenant,
                as_of=as_of,
                init_db=args.init_db,
            )
        )
    except MultiTenantSweepError as exc:
        log_error(logger, "%s", exc)
        summaries = list(exc.summaries)
        exit_code = _EXIT_RULE_FAILURES

    for summary in summaries:
        print(msgspec.json.encode(summary).decode())
        if summary.failed:
            exit_code = _EXIT_RULE_FAILURES
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
