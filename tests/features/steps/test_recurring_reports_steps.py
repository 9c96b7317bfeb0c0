"""Step definitions for recurring property report scenarios."""

from __future__ import annotations

import asyncio
import datetime as dt
import typing as typ

from pytest_bdd import given, parsers, scenario, then, when

from propwatch.batch import BatchSweepDependencies, BatchSweepService
from propwatch.inquiries.aggregator import SqlAlchemyEventAggregator
from propwatch.reports.persister import SqlAlchemyReportPersister
from propwatch.schedule.recurrence import Period
from propwatch.schedule.store import SqlAlchemyRuleStore
from propwatch.synthesis.mock import MockNarrativeService
from propwatch.synthesis.synthesizer import ReportSynthesizer
from tests.helpers.builders import (
    TENANT,
    InquirySpec,
    make_rule,
    seed_customer,
    seed_inquiries,
    seed_property,
)
from tests.helpers.narrative_fakes import ScriptedNarrativeService, http_failure

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from propwatch.batch.models import SweepSummary
    from propwatch.reports.models import Report
    from propwatch.schedule.models import RecurrenceRule
    from propwatch.synthesis.protocol import NarrativeService

_INSTANT_FORMAT = "%Y-%m-%d %H:%M UTC"


def _instant(raw: str) -> dt.datetime:
    return dt.datetime.strptime(raw, _INSTANT_FORMAT).replace(tzinfo=dt.UTC)


class SweepContext(typ.TypedDict, total=False):
    """Mutable context shared between steps."""

    session_factory: async_sessionmaker[AsyncSession]
    narrative: NarrativeService
    rule: RecurrenceRule
    summary: SweepSummary


@scenario(
    "../recurring_reports.feature",
    "Weekly rule produces a report and advances one week",
)
def test_weekly_rule_scenario() -> None:
    """Wrapper for pytest-bdd scenario."""


@scenario("../recurring_reports.feature", "Fortnightly rule advances two weeks")
def test_fortnightly_rule_scenario() -> None:
    """Wrapper for pytest-bdd scenario."""


@scenario(
    "../recurring_reports.feature",
    "Narrative failure leaves the rule due for the next sweep",
)
def test_narrative_failure_scenario() -> None:
    """Wrapper for pytest-bdd scenario."""


@scenario("../recurring_reports.feature", "A quiet week still produces a report")
def test_quiet_week_scenario() -> None:
    """Wrapper for pytest-bdd scenario."""


@given(
    parsers.parse("a property with customer inquiries in the week before {day}"),
    target_fixture="sweep_context",
)
def given_property_with_inquiries(
    bdd_session_factory: async_sessionmaker[AsyncSession], day: str
) -> SweepContext:
    """Seed a property with two inquiries from one customer."""
    occurrence = dt.datetime.fromisoformat(day).replace(hour=9, tzinfo=dt.UTC)

    async def _setup() -> None:
        await seed_property(bdd_session_factory, views_count=25)
        await seed_customer(bdd_session_factory, customer_id="cust-1")
        await seed_inquiries(
            bdd_session_factory,
            [
                InquirySpec(
                    inquired_at=occurrence - dt.timedelta(days=5),
                    customer_id="cust-1",
                ),
                InquirySpec(
                    inquired_at=occurrence - dt.timedelta(days=1),
                    customer_id="cust-1",
                    title="Viewing request",
                ),
            ],
        )

    asyncio.run(_setup())
    return {
        "session_factory": bdd_session_factory,
        "narrative": MockNarrativeService(),
    }


@given("a property with no inquiries", target_fixture="sweep_context")
def given_property_without_inquiries(
    bdd_session_factory: async_sessionmaker[AsyncSession],
) -> SweepContext:
    """Seed a property that nobody asked about."""
    asyncio.run(seed_property(bdd_session_factory))
    return {
        "session_factory": bdd_session_factory,
        "narrative": ScriptedNarrativeService(narrative=""),
    }


@given(parsers.parse('an active "{period}" Sunday rule due at {due}'))
def given_active_rule(sweep_context: SweepContext, period: str, due: str) -> None:
    """Store an active rule due at the given instant."""
    rule = make_rule(period=Period.parse(period), next_execution_at=_instant(due))
    sweep_context["rule"] = asyncio.run(
        SqlAlchemyRuleStore(sweep_context["session_factory"]).create(rule)
    )


@given("the narrative service is unavailable")
def given_narrative_unavailable(sweep_context: SweepContext) -> None:
    """Make every summarization call fail."""
    sweep_context["narrative"] = ScriptedNarrativeService(
        fail_summaries=http_failure(503)
    )


@when(parsers.parse("the batch sweep runs at {moment}"))
def when_sweep_runs(sweep_context: SweepContext, moment: str) -> None:
    """Sweep the tenant with the clock fixed at ``moment``."""
    now = _instant(moment)
    session_factory = sweep_context["session_factory"]
    dependencies = BatchSweepDependencies(
        store=SqlAlchemyRuleStore(session_factory),
        aggregator=SqlAlchemyEventAggregator(session_factory),
        synthesizer=ReportSynthesizer(sweep_context["narrative"]),
        persister=SqlAlchemyReportPersister(session_factory),
    )
    service = BatchSweepService(dependencies, clock=lambda: now)
    sweep_context["summary"] = asyncio.run(service.run_sweep(TENANT))


def _reports(sweep_context: SweepContext) -> list[Report]:
    persister = SqlAlchemyReportPersister(sweep_context["session_factory"])
    return asyncio.run(persister.list_for_property(TENANT, "property-1"))


def _stored_rule(sweep_context: SweepContext) -> RecurrenceRule:
    store = SqlAlchemyRuleStore(sweep_context["session_factory"])
    rule = asyncio.run(store.get(sweep_context["rule"].key))
    assert rule is not None, "Rule should still exist"
    return rule


@then(parsers.parse("{count:d} report is stored for the property"))
@then(parsers.parse("{count:d} reports are stored for the property"))
def then_reports_stored(sweep_context: SweepContext, count: int) -> None:
    """Check how many reports exist for the property."""
    reports = _reports(sweep_context)
    assert len(reports) == count, f"Expected {count} report(s), got {len(reports)}"


@then(parsers.parse("the report covers {count:d} interactions"))
def then_report_interactions(sweep_context: SweepContext, count: int) -> None:
    """Check the number of summarized interactions on the report."""
    (report,) = _reports(sweep_context)
    assert len(report.interactions) == count
    assert report.narrative.strip(), "Every stored report has a narrative"


@then(parsers.parse("the rule is next due at {due}"))
def then_rule_next_due(sweep_context: SweepContext, due: str) -> None:
    """Check the rule's stored due instant."""
    assert _stored_rule(sweep_context).next_execution_at == _instant(due)


@then(parsers.parse("the rule execution count is {count:d}"))
def then_rule_execution_count(sweep_context: SweepContext, count: int) -> None:
    """Check how many successful runs were recorded."""
    assert _stored_rule(sweep_context).execution_count == count


@then(parsers.parse("the sweep reports {count:d} failed rule"))
def then_sweep_failed(sweep_context: SweepContext, count: int) -> None:
    """Check the failure total of the sweep summary."""
    assert sweep_context["summary"].failed == count
