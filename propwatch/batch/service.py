"""Batch sweep orchestrator for recurring property reports.

A sweep lists the rules that are due for a tenant and runs each one through
the pipeline ``claim -> aggregate -> synthesize -> persist -> advance``.
Rules are independent: a failure at any stage ends only that rule's run,
releases its processing lease, and leaves ``next_execution_at`` and
``execution_count`` untouched. An unadvanced rule is still due, so the next
sweep retries it; there is no other retry mechanism.

The orchestrator has no clock of its own. It is invoked by an external timer
(the ``propwatch-sweep`` command or the Dramatiq actors) and reads the
current instant from an injected clock.

Usage
-----
>>> dependencies = BatchSweepDependencies(
...     store=SqlAlchemyRuleStore(session_factory),
...     aggregator=SqlAlchemyEventAggregator(session_factory),
...     synthesizer=ReportSynthesizer(MockNarrativeService()),
...     persister=SqlAlchemyReportPersister(session_factory),
... )
>>> service = BatchSweepService(dependencies, config=BatchConfig())
>>> summary = await service.run_sweep("tenant-1")
>>> summary.completed, summary.failed
(3, 0)

"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import datetime as dt
import time
import typing as typ

from propwatch.batch.config import BatchConfig
from propwatch.batch.errors import MultiTenantSweepError, StageTimeoutError
from propwatch.batch.models import (
    OutcomeStatus,
    PipelineStage,
    RuleOutcome,
    SweepSummary,
)
from propwatch.batch.observability import BatchEventLogger
from propwatch.common.time import ensure_utc, utcnow
from propwatch.inquiries.errors import PropertyNotFoundError
from propwatch.inquiries.models import PropertyContext, PropertyCounters
from propwatch.logging import get_logger, log_exception, log_warning
from propwatch.reports.models import ReportDraft
from propwatch.schedule.advancer import ScheduleAdvancer
from propwatch.schedule.errors import RuleNotFoundError

T = typ.TypeVar("T")

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from propwatch.inquiries.aggregator import EventAggregator
    from propwatch.inquiries.models import InteractionEvent
    from propwatch.reports.persister import ReportPersister
    from propwatch.schedule.models import RecurrenceRule
    from propwatch.schedule.store import RuleStore
    from propwatch.synthesis.synthesizer import ReportSynthesizer

logger = get_logger(__name__)


@dc.dataclass(frozen=True, slots=True)
class BatchSweepDependencies:
    """Collaborators of :class:`BatchSweepService`.

    Attributes
    ----------
    store
        Rule store used to list, claim, release, and advance rules.
    aggregator
        Source of property details and window events.
    synthesizer
        Produces the narrative and per-event summaries.
    persister
        Stores finished reports.
    advancer
        Commits advancements; built from ``store`` when omitted.

    """

    store: RuleStore
    aggregator: EventAggregator
    synthesizer: ReportSynthesizer
    persister: ReportPersister
    advancer: ScheduleAdvancer | None = None


@dc.dataclass(frozen=True, slots=True)
class ReportingWindow:
    """Time window covered by one report.

    Attributes
    ----------
    start
        Start of the window (inclusive).
    end
        End of the window (exclusive); the due occurrence itself.

    """

    start: dt.datetime
    end: dt.datetime


def reporting_window(rule: RecurrenceRule) -> ReportingWindow:
    """Return ``[occurrence - period, occurrence)`` for the rule's due instant.

    The subtraction is done on the local wall clock, so a window spanning a
    daylight-saving change still starts at the rule's time-of-day.
    """
    end = rule.next_execution_at
    local_end = end.astimezone(rule.zone)
    start = (local_end - dt.timedelta(days=rule.period.days)).astimezone(dt.UTC)
    return ReportingWindow(start=start, end=end)


def dedupe_rules(rules: cabc.Iterable[RecurrenceRule]) -> list[RecurrenceRule]:
    """Drop repeated rule identities, keeping the first of each."""
    seen: set[tuple[str, dt.datetime]] = set()
    unique: list[RecurrenceRule] = []
    for rule in rules:
        identity = (rule.tenant_id, rule.created_at)
        if identity in seen:
            continue
        seen.add(identity)
        unique.append(rule)
    return unique


def _describe(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}"


def _elapsed(started: float) -> dt.timedelta:
    return dt.timedelta(seconds=time.perf_counter() - started)


class BatchSweepService:
    """Process due recurrence rules with per-rule failure isolation.

    Within one sweep, at most ``config.max_concurrency`` rules are processed
    concurrently. Two workers never process the same rule at once: each
    rule is claimed with a conditional lease first, and advancement is a
    conditional update on the values the sweep read.
    """

    def __init__(
        self,
        dependencies: BatchSweepDependencies,
        config: BatchConfig | None = None,
        event_logger: BatchEventLogger | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Configure the service with dependencies.

        Parameters
        ----------
        dependencies
            Pipeline collaborators grouped into a single parameter object.
        config
            Optional batch configuration; uses defaults if not provided.
        event_logger
            Structured event logger; a default one is created if omitted.
        clock
            Source of the current instant.

        """
        self._store = dependencies.store
        self._aggregator = dependencies.aggregator
        self._synthesizer = dependencies.synthesizer
        self._persister = dependencies.persister
        self._advancer = dependencies.advancer or ScheduleAdvancer(dependencies.store)
        self._config = config or BatchConfig()
        self._events = event_logger or BatchEventLogger()
        self._clock = clock

    @property
    def config(self) -> BatchConfig:
        """Active configuration."""
        return self._config

    async def run_sweep(
        self, tenant_id: str, as_of: dt.datetime | None = None
    ) -> SweepSummary:
        """Process every rule of ``tenant_id`` that is due at ``as_of``.

        Parameters
        ----------
        tenant_id
            Tenant to sweep.
        as_of
            Due-ness cut-off; defaults to the clock's current instant.

        Returns
        -------
        SweepSummary
            One outcome per distinct due rule.

        Raises
        ------
        Exception
            Only when the due rules cannot be listed. Per-rule failures are
            recorded in the summary instead.

        """
        cutoff = self._clock() if as_of is None else ensure_utc(as_of, field="as_of")
        started = time.perf_counter()
        rules = dedupe_rules(await self._store.list_due(tenant_id, cutoff))
        self._events.log_sweep_started(
            tenant_id=tenant_id, as_of=cutoff, due_count=len(rules)
        )

        semaphore = asyncio.Semaphore(self._config.max_concurrency)

        async def bounded(rule: RecurrenceRule) -> RuleOutcome:
            async with semaphore:
                return await self._process_rule(rule)

        gathered = await asyncio.gather(
            *(bounded(rule) for rule in rules), return_exceptions=True
        )
        summary = SweepSummary(
            tenant_id=tenant_id,
            as_of=cutoff,
            outcomes=tuple(self._collect_outcomes(rules, gathered)),
        )
        self._events.log_sweep_completed(summary=summary, duration=_elapsed(started))
        return summary

    async def sweep_all_tenants(
        self, as_of: dt.datetime | None = None
    ) -> list[SweepSummary]:
        """Sweep every tenant that has at least one due rule.

        Tenants are swept one after another. A tenant whose sweep fails
        outright does not stop the others.

        Raises
        ------
        MultiTenantSweepError
            After all tenants were attempted, if any tenant sweep raised.

        """
        cutoff = self._clock() if as_of is None else ensure_utc(as_of, field="as_of")
        summaries: list[SweepSummary] = []
        failures: dict[str, Exception] = {}
        for tenant_id in await self._store.list_due_tenants(cutoff):
            try:
                summaries.append(await self.run_sweep(tenant_id, cutoff))
            except Exception as exc:  # noqa: BLE001
                log_exception(logger, f"Sweep failed for tenant {tenant_id}", exc)
                failures[tenant_id] = exc
        if failures:
            raise MultiTenantSweepError(failures, summaries)
        return summaries

    def _collect_outcomes(
        self,
        rules: cabc.Sequence[RecurrenceRule],
        gathered: cabc.Sequence[RuleOutcome | BaseException],
    ) -> list[RuleOutcome]:
        outcomes: list[RuleOutcome] = []
        for rule, result in zip(rules, gathered, strict=True):
            if isinstance(result, RuleOutcome):
                outcomes.append(result)
            elif isinstance(result, Exception):
                log_exception(logger, f"Unhandled error processing {rule.key}", result)
                outcomes.append(
                    self._outcome(
                        rule,
                        OutcomeStatus.FAILED,
                        PipelineStage.CLAIM,
                        error=_describe(result),
                    )
                )
            else:
                # Re-raise system-level exceptions (e.g., KeyboardInterrupt)
                raise result
        return outcomes

    @staticmethod
    def _outcome(
        rule: RecurrenceRule,
        status: OutcomeStatus,
        stage: PipelineStage,
        **details: typ.Any,  # noqa: ANN401
    ) -> RuleOutcome:
        return RuleOutcome(
            tenant_id=rule.tenant_id,
            rule_created_at=rule.created_at,
            property_id=rule.property_id,
            status=status,
            stage=stage,
            occurrence_at=rule.next_execution_at,
            **details,
        )

    def _skip(
        self,
        rule: RecurrenceRule,
        stage: PipelineStage,
        reason: str,
        report_id: str | None = None,
    ) -> RuleOutcome:
        self._events.log_rule_skipped(rule_key=rule.key, stage=stage, reason=reason)
        return self._outcome(
            rule, OutcomeStatus.SKIPPED, stage, error=reason, report_id=report_id
        )

    async def _within_budget(
        self, stage: PipelineStage, awaitable: cabc.Awaitable[T]
    ) -> T:
        timeout_s = self._config.stage_timeout_s
        try:
            async with asyncio.timeout(timeout_s):
                return await awaitable
        except TimeoutError as exc:
            raise StageTimeoutError(stage, timeout_s) from exc

    async def _gather_events(
        self, rule: RecurrenceRule
    ) -> tuple[PropertyContext, list[InteractionEvent]]:
        window = reporting_window(rule)
        snapshot = await self._aggregator.load_property(
            rule.tenant_id, rule.property_id
        )
        events = await self._aggregator.collect(
            rule.tenant_id, rule.property_id, window.start, window.end
        )
        context = PropertyContext(
            tenant_id=rule.tenant_id,
            property_id=rule.property_id,
            property_name=rule.property_name or snapshot.name,
            window_start=window.start,
            window_end=window.end,
            counters=PropertyCounters.from_events(
                events, views=snapshot.views_count
            ),
        )
        return context, events

    async def _release(self, rule: RecurrenceRule, lease_until: dt.datetime) -> None:
        try:
            await self._store.release(rule.key, lease_until=lease_until)
        except Exception as exc:  # noqa: BLE001
            # The lease expires on its own; the original failure is what matters.
            log_warning(
                logger,
                "Could not release lease on %s: %s",
                rule.key,
                _describe(exc),
            )

    async def _process_rule(self, rule: RecurrenceRule) -> RuleOutcome:
        """Run the full pipeline for one due occurrence and never raise."""
        started = time.perf_counter()
        now = self._clock()
        lease_until = now + self._config.lease

        try:
            claimed = await self._store.claim(
                rule.key,
                expected_next=rule.next_execution_at,
                as_of=now,
                lease_until=lease_until,
            )
        except RuleNotFoundError as exc:
            return self._skip(rule, PipelineStage.CLAIM, str(exc))
        except Exception as exc:  # noqa: BLE001
            self._events.log_rule_failed(
                rule_key=rule.key,
                stage=PipelineStage.CLAIM,
                error=exc,
                duration=_elapsed(started),
            )
            return self._outcome(
                rule, OutcomeStatus.FAILED, PipelineStage.CLAIM, error=_describe(exc)
            )
        if not claimed:
            return self._skip(
                rule,
                PipelineStage.CLAIM,
                "rule is being processed or was already advanced elsewhere",
            )

        self._events.log_rule_started(
            rule_key=rule.key,
            property_id=rule.property_id,
            occurrence_at=rule.next_execution_at,
        )
        stage = PipelineStage.AGGREGATE
        report_id: str | None = None
        try:
            context, events = await self._within_budget(
                stage, self._gather_events(rule)
            )
            stage = PipelineStage.SYNTHESIZE
            result = await self._within_budget(
                stage, self._synthesizer.synthesize(context, events)
            )
            stage = PipelineStage.PERSIST
            report_id = await self._persister.persist(
                ReportDraft.assemble(rule, context, result)
            )
            stage = PipelineStage.ADVANCE
            advanced = await self._advancer.advance(rule, self._clock())
        except RuleNotFoundError as exc:
            # Deleted mid-run; there is nothing left to advance or release.
            return self._skip(rule, stage, str(exc), report_id=report_id)
        except PropertyNotFoundError as exc:
            await self._release(rule, lease_until)
            return self._skip(rule, stage, str(exc))
        except Exception as exc:  # noqa: BLE001
            await self._release(rule, lease_until)
            self._events.log_rule_failed(
                rule_key=rule.key, stage=stage, error=exc, duration=_elapsed(started)
            )
            return self._outcome(
                rule,
                OutcomeStatus.FAILED,
                stage,
                report_id=report_id,
                error=_describe(exc),
            )

        self._events.log_rule_completed(
            rule_key=rule.key,
            report_id=report_id,
            next_execution_at=advanced.next_execution_at,
            duration=_elapsed(started),
        )
        return self._outcome(
            rule,
            OutcomeStatus.COMPLETED,
            PipelineStage.ADVANCE,
            report_id=report_id,
            next_execution_at=advanced.next_execution_at,
        )
