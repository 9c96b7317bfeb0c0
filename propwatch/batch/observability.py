"""Emit structured observability events for batch sweeps.

This module defines event identifiers and a logger wrapper used by
``BatchSweepService`` to report sweep and per-rule lifecycle telemetry.
Operators observe failures here; nothing is surfaced to end users.

Usage
-----
>>> event_logger = BatchEventLogger()
>>> event_logger.log_sweep_started(tenant_id="tenant-1", as_of=now, due_count=3)

"""

from __future__ import annotations

import enum
import typing as typ

from propwatch.logging import get_logger, log_error, log_info, log_warning

if typ.TYPE_CHECKING:
    import datetime as dt

    from propwatch.batch.models import PipelineStage, SweepSummary
    from propwatch.schedule.models import RuleKey

logger = get_logger(__name__)


class BatchEventType(enum.StrEnum):
    """Structured log event types for batch sweeps."""

    SWEEP_STARTED = "batch.sweep.started"
    SWEEP_COMPLETED = "batch.sweep.completed"
    RULE_STARTED = "batch.rule.started"
    RULE_COMPLETED = "batch.rule.completed"
    RULE_FAILED = "batch.rule.failed"
    RULE_SKIPPED = "batch.rule.skipped"


class BatchEventLogger:
    """Emit structured batch events via femtologging."""

    def log_sweep_started(
        self, *, tenant_id: str, as_of: dt.datetime, due_count: int
    ) -> None:
        """Log the start of a tenant sweep and how many rules are due."""
        log_info(
            logger,
            "[%s] tenant_id=%s as_of=%s due_count=%d",
            BatchEventType.SWEEP_STARTED,
            tenant_id,
            as_of.isoformat(),
            due_count,
        )

    def log_sweep_completed(
        self, *, summary: SweepSummary, duration: dt.timedelta
    ) -> None:
        """Log the per-status totals of a finished sweep.

        Parameters
        ----------
        summary
            Outcomes of the sweep.
        duration
            Elapsed time of the whole sweep.

        """
        log_info(
            logger,
            "[%s] tenant_id=%s completed=%d failed=%d skipped=%d "
            "duration_seconds=%.3f",
            BatchEventType.SWEEP_COMPLETED,
            summary.tenant_id,
            summary.completed,
            summary.failed,
            summary.skipped,
            duration.total_seconds(),
        )

    def log_rule_started(
        self, *, rule_key: RuleKey, property_id: str, occurrence_at: dt.datetime
    ) -> None:
        """Log the start of processing for one due occurrence."""
        log_info(
            logger,
            "[%s] rule=%s property_id=%s occurrence_at=%s",
            BatchEventType.RULE_STARTED,
            rule_key,
            property_id,
            occurrence_at.isoformat(),
        )

    def log_rule_completed(
        self,
        *,
        rule_key: RuleKey,
        report_id: str,
        next_execution_at: dt.datetime,
        duration: dt.timedelta,
    ) -> None:
        """Log a rule that produced a report and advanced."""
        log_info(
            logger,
            "[%s] rule=%s report_id=%s next_execution_at=%s duration_seconds=%.3f",
            BatchEventType.RULE_COMPLETED,
            rule_key,
            report_id,
            next_execution_at.isoformat(),
            duration.total_seconds(),
        )

    def log_rule_failed(
        self,
        *,
        rule_key: RuleKey,
        stage: PipelineStage,
        error: BaseException,
        duration: dt.timedelta,
    ) -> None:
        """Log a rule whose run failed and was left due for retry.

        Parameters
        ----------
        rule_key
            Identity of the failed rule.
        stage
            Pipeline stage that raised.
        error
            Raised exception.
        duration
            Elapsed time between rule start and failure.

        """
        log_error(
            logger,
            "[%s] rule=%s stage=%s duration_seconds=%.3f "
            "error_type=%s error_message=%s",
            BatchEventType.RULE_FAILED,
            rule_key,
            stage,
            duration.total_seconds(),
            type(error).__name__,
            str(error),
            exc_info=error,
        )

    def log_rule_skipped(
        self, *, rule_key: RuleKey, stage: PipelineStage, reason: str
    ) -> None:
        """Log a rule this sweep did not process."""
        log_warning(
            logger,
            "[%s] rule=%s stage=%s reason=%s",
            BatchEventType.RULE_SKIPPED,
            rule_key,
            stage,
            reason,
        )
