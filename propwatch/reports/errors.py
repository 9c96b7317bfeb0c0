"""Errors specific to report persistence."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt


class ReportError(Exception):
    """Base class for report errors."""


class ReportPersistenceError(ReportError):
    """Raised when a report cannot be written.

    The rule that produced the report is not advanced, so the occurrence is
    retried by the next sweep.
    """

    def __init__(self, tenant_id: str, occurrence_at: dt.datetime, reason: str) -> None:
        """Initialise with the occurrence that failed and why."""
        self.tenant_id = tenant_id
        self.occurrence_at = occurrence_at
        self.reason = reason
        super().__init__(
            f"Failed to persist report for tenant {tenant_id} occurrence "
            f"{occurrence_at.isoformat()}: {reason}"
        )


class IncompleteReportError(ReportError):
    """Raised when a report is missing its narrative and cannot be stored."""

    @classmethod
    def blank_narrative(cls) -> IncompleteReportError:
        """Create error for a report whose narrative is empty."""
        return cls("Report narrative must be non-empty")


class ReportNotFoundError(ReportError):
    """Raised when a report identifier does not exist for a tenant."""

    def __init__(self, tenant_id: str, report_id: str) -> None:
        """Initialise with the missing report identifier."""
        self.tenant_id = tenant_id
        self.report_id = report_id
        super().__init__(f"Report not found: {report_id} (tenant {tenant_id})")
