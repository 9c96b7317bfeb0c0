"""Batch sweeps over due recurrence rules.

Public API
----------
BatchSweepService
    Runs ``claim -> aggregate -> synthesize -> persist -> advance`` for each
    due rule with per-rule failure isolation.
BatchConfig
    Concurrency, lease, and timeout settings.
SweepSummary, RuleOutcome
    What a sweep did, per rule.

The Dramatiq actors live in :mod:`propwatch.batch.actor` and are not
imported here, so importing this package never needs a broker.
"""

from propwatch.batch.config import BatchConfig
from propwatch.batch.errors import BatchError, MultiTenantSweepError, StageTimeoutError
from propwatch.batch.factory import build_sweep_service
from propwatch.batch.models import (
    OutcomeStatus,
    PipelineStage,
    RuleOutcome,
    SweepSummary,
)
from propwatch.batch.observability import BatchEventLogger, BatchEventType
from propwatch.batch.service import (
    BatchSweepDependencies,
    BatchSweepService,
    ReportingWindow,
    reporting_window,
)

__all__ = [
    "BatchConfig",
    "BatchError",
    "BatchEventLogger",
    "BatchEventType",
    "BatchSweepDependencies",
    "BatchSweepService",
    "MultiTenantSweepError",
    "OutcomeStatus",
    "PipelineStage",
    "ReportingWindow",
    "RuleOutcome",
    "StageTimeoutError",
    "SweepSummary",
    "build_sweep_service",
    "reporting_window",
]
