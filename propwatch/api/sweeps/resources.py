"""On-demand sweep trigger and stored report lookups.

Routes
------
``POST /tenants/{tenant_id}/sweeps``
    Sweep the tenant's due rules now, through the same pipeline the
    scheduled actors use. An optional ``{"as_of": "<ISO 8601>"}`` body
    moves the due-ness cut-off.
``GET /tenants/{tenant_id}/properties/{property_id}/reports``
    Newest stored reports of a property; ``?limit=`` caps the count.
``GET /tenants/{tenant_id}/reports/{report_id}``
    One stored report.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/tenants/{tenant_id}/sweeps", SweepResource(sweep_service))

"""

from __future__ import annotations

import typing as typ

import falcon

from propwatch.api._media import parse_instant, read_object, to_media

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from propwatch.batch.models import SweepSummary
    from propwatch.batch.service import BatchSweepService
    from propwatch.reports.persister import SqlAlchemyReportPersister

__all__ = ["PropertyReportsResource", "ReportResource", "SweepResource"]

_DEFAULT_REPORT_LIMIT = 20
_MAX_REPORT_LIMIT = 100


def _serialize_summary(summary: SweepSummary) -> dict[str, typ.Any]:
    """Serialize a sweep summary with per-status totals."""
    media = to_media(summary)
    media["completed"] = summary.completed
    media["failed"] = summary.failed
    media["skipped"] = summary.skipped
    return media


class SweepResource:
    """Trigger a sweep of one tenant."""

    def __init__(self, sweep_service: BatchSweepService) -> None:
        """Bind the resource to a sweep service."""
        self._sweeps = sweep_service

    async def on_post(self, req: Request, resp: Response, *, tenant_id: str) -> None:
        """Handle POST: run the sweep and return its summary.

        Per-rule failures are reported inside the summary; the response is
        HTTP 200 whenever the sweep itself ran.
        """
        payload = await read_object(req, required=False)
        as_of = None
        if payload.get("as_of") is not None:
            as_of = parse_instant(payload["as_of"], field="as_of")
        summary = await self._sweeps.run_sweep(tenant_id, as_of)
        resp.media = _serialize_summary(summary)
        resp.status = falcon.HTTP_200


class PropertyReportsResource:
    """List stored reports of one property."""

    def __init__(self, persister: SqlAlchemyReportPersister) -> None:
        """Bind the resource to the report store."""
        self._reports = persister

    async def on_get(
        self, req: Request, resp: Response, *, tenant_id: str, property_id: str
    ) -> None:
        """Handle GET: return ``{"reports": [...]}``, newest first."""
        limit = req.get_param_as_int(
            "limit", min_value=1, max_value=_MAX_REPORT_LIMIT
        )
        reports = await self._reports.list_for_property(
            tenant_id, property_id, limit=limit or _DEFAULT_REPORT_LIMIT
        )
        resp.media = {"reports": to_media(reports)}
        resp.status = falcon.HTTP_200


class ReportResource:
    """Fetch one stored report."""

    def __init__(self, persister: SqlAlchemyReportPersister) -> None:
        """Bind the resource to the report store."""
        self._reports = persister

    async def on_get(
        self, _req: Request, resp: Response, *, tenant_id: str, report_id: str
    ) -> None:
        """Handle GET: return the report or 404."""
        report = await self._reports.get(tenant_id, report_id)
        resp.media = to_media(report)
        resp.status = falcon.HTTP_200
