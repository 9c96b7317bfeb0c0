"""Synthesized property reports and their persistence."""

from propwatch.reports.errors import (
    IncompleteReportError,
    ReportError,
    ReportNotFoundError,
    ReportPersistenceError,
)
from propwatch.reports.models import Report, ReportDraft
from propwatch.reports.persister import ReportPersister, SqlAlchemyReportPersister
from propwatch.reports.storage import ReportRecord

__all__ = [
    "IncompleteReportError",
    "Report",
    "ReportDraft",
    "ReportError",
    "ReportNotFoundError",
    "ReportPersistenceError",
    "ReportPersister",
    "ReportRecord",
    "SqlAlchemyReportPersister",
]
