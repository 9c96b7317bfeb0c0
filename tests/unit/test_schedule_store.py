"""Unit tests for the SQLAlchemy rule store and the schedule advancer."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from propwatch.schedule.advancer import ScheduleAdvancer, plan_advancement
from propwatch.schedule.errors import RuleNotFoundError, StaleRuleError
from propwatch.schedule.models import RuleKey, RuleStatus
from propwatch.schedule.recurrence import Period
from propwatch.schedule.store import RuleStore, SqlAlchemyRuleStore
from tests.helpers.builders import CREATED_AT, FIRST_DUE, TENANT, make_rule

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

LEASE = dt.timedelta(minutes=15)


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> SqlAlchemyRuleStore:
    """Return a rule store on the test database."""
    return SqlAlchemyRuleStore(session_factory)


class TestRuleStoreQueries:
    """Tests for reading rules back."""

    @pytest.mark.asyncio
    async def test_adapter_satisfies_port(self, store: SqlAlchemyRuleStore) -> None:
        """The SQLAlchemy adapter implements the RuleStore protocol."""
        assert isinstance(store, RuleStore)

    @pytest.mark.asyncio
    async def test_create_round_trips_all_fields(
        self, store: SqlAlchemyRuleStore
    ) -> None:
        """A created rule reads back unchanged apart from bookkeeping."""
        rule = make_rule(timezone="Europe/London", property_name="Harbour View")
        await store.create(rule)

        loaded = await store.get(rule.key)

        assert loaded is not None, "Created rule should be readable"
        assert loaded.next_execution_at == FIRST_DUE
        assert loaded.execution_time == dt.time(9, 0)
        assert loaded.timezone == "Europe/London"
        assert loaded.property_name == "Harbour View"
        assert loaded.created_at.tzinfo is not None, "Datetimes come back aware"

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store: SqlAlchemyRuleStore) -> None:
        """Unknown identities are reported as None."""
        assert await store.get(RuleKey(TENANT, CREATED_AT)) is None

    @pytest.mark.asyncio
    async def test_list_due_filters_and_orders(
        self, store: SqlAlchemyRuleStore
    ) -> None:
        """Only active, auto-generating rules due at as_of are listed."""
        later = FIRST_DUE + dt.timedelta(hours=1)
        await store.create(make_rule(next_execution_at=later))
        await store.create(
            make_rule(created_at=CREATED_AT + dt.timedelta(seconds=1))
        )
        await store.create(
            make_rule(
                created_at=CREATED_AT + dt.timedelta(seconds=2),
                status=RuleStatus.PAUSED,
            )
        )
        await store.create(
            make_rule(
                created_at=CREATED_AT + dt.timedelta(seconds=3), auto_generate=False
            )
        )
        await store.create(
            make_rule(
                created_at=CREATED_AT + dt.timedelta(seconds=4),
                next_execution_at=FIRST_DUE + dt.timedelta(days=1),
            )
        )
        await store.create(make_rule(tenant_id="tenant-2"))

        due = await store.list_due(TENANT, later)

        assert [rule.next_execution_at for rule in due] == [FIRST_DUE, later], (
            "Due rules should be listed earliest first"
        )
        assert await store.list_due_tenants(later) == [TENANT, "tenant-2"]


class TestRuleStoreConditionalUpdates:
    """Tests for claim, release, and advance guards."""

    @pytest.mark.asyncio
    async def test_claim_is_exclusive_until_lease_expires(
        self, store: SqlAlchemyRuleStore
    ) -> None:
        """A second claim fails while the first lease is live."""
        rule = await store.create(make_rule())
        now = FIRST_DUE + dt.timedelta(minutes=1)
        claim = {"expected_next": FIRST_DUE, "lease_until": now + LEASE}

        assert await store.claim(rule.key, as_of=now, **claim) is True
        assert await store.claim(rule.key, as_of=now, **claim) is False, (
            "A live lease must block a second claim"
        )
        expired = now + LEASE + dt.timedelta(seconds=1)
        assert await store.claim(
            rule.key,
            expected_next=FIRST_DUE,
            as_of=expired,
            lease_until=expired + LEASE,
        ), "An expired lease may be taken over"

    @pytest.mark.asyncio
    async def test_claim_fails_for_advanced_occurrence(
        self, store: SqlAlchemyRuleStore
    ) -> None:
        """A stale expected_next cannot be claimed."""
        rule = await store.create(make_rule())
        stale = FIRST_DUE - dt.timedelta(days=7)
        assert not await store.claim(
            rule.key,
            expected_next=stale,
            as_of=FIRST_DUE,
            lease_until=FIRST_DUE + LEASE,
        )

    @pytest.mark.asyncio
    async def test_claim_missing_rule_raises(self, store: SqlAlchemyRuleStore) -> None:
        """Claiming a deleted rule is reported distinctly."""
        with pytest.raises(RuleNotFoundError):
            await store.claim(
                RuleKey(TENANT, CREATED_AT),
                expected_next=FIRST_DUE,
                as_of=FIRST_DUE,
                lease_until=FIRST_DUE + LEASE,
            )

    @pytest.mark.asyncio
    async def test_release_only_clears_own_lease(
        self, store: SqlAlchemyRuleStore
    ) -> None:
        """Releasing with another lease value leaves the lease in place."""
        rule = await store.create(make_rule())
        lease_until = FIRST_DUE + LEASE
        await store.claim(
            rule.key, expected_next=FIRST_DUE, as_of=FIRST_DUE, lease_until=lease_until
        )

        await store.release(rule.key, lease_until=lease_until + dt.timedelta(seconds=1))
        held = await store.get(rule.key)
        assert held is not None
        assert held.processing_until == lease_until, "Foreign release is a no-op"

        await store.release(rule.key, lease_until=lease_until)
        released = await store.get(rule.key)
        assert released is not None
        assert released.processing_until is None
        assert released.next_execution_at == FIRST_DUE, "Release never advances"

    @pytest.mark.asyncio
    async def test_advance_commits_and_clears_lease(
        self, store: SqlAlchemyRuleStore
    ) -> None:
        """A matching advance updates counters and due date together."""
        rule = await store.create(make_rule())
        completed = FIRST_DUE + dt.timedelta(minutes=2)
        await store.claim(
            rule.key,
            expected_next=FIRST_DUE,
            as_of=completed,
            lease_until=completed + LEASE,
        )

        advanced = await ScheduleAdvancer(store).advance(rule, completed)

        assert advanced.next_execution_at == dt.datetime(
            2024, 12, 8, 9, 0, tzinfo=dt.UTC
        )
        assert advanced.execution_count == 1
        assert advanced.last_execution_at == completed
        assert advanced.processing_until is None

    @pytest.mark.asyncio
    async def test_second_advance_of_same_occurrence_is_stale(
        self, store: SqlAlchemyRuleStore
    ) -> None:
        """Replaying an advancement never moves the rule twice."""
        rule = await store.create(make_rule())
        advancer = ScheduleAdvancer(store)
        await advancer.advance(rule, FIRST_DUE)

        with pytest.raises(StaleRuleError):
            await advancer.advance(rule, FIRST_DUE)

        stored = await store.get(rule.key)
        assert stored is not None
        assert stored.execution_count == 1, "Count must not be incremented twice"

    @pytest.mark.asyncio
    async def test_advance_deleted_rule_raises_not_found(
        self, store: SqlAlchemyRuleStore
    ) -> None:
        """Advancing a deleted rule is reported as not found, not stale."""
        rule = await store.create(make_rule())
        assert await store.delete(rule.key)

        with pytest.raises(RuleNotFoundError):
            await ScheduleAdvancer(store).advance(rule, FIRST_DUE)


class TestPlanAdvancement:
    """Tests for the pure advancement plan."""

    def test_plan_carries_expected_values(self) -> None:
        """The plan guards on the values read and increments the count."""
        rule = make_rule(execution_count=4)
        plan = plan_advancement(rule, FIRST_DUE + dt.timedelta(minutes=1))
        assert plan.expected_next == FIRST_DUE
        assert plan.expected_count == 4
        assert plan.execution_count == 5

    def test_late_completion_skips_missed_occurrences(self) -> None:
        """A run finishing after the next occurrence skips ahead."""
        rule = make_rule(period=Period.TWO_WEEKS)
        late = dt.datetime(2024, 12, 16, tzinfo=dt.UTC)
        plan = plan_advancement(rule, late)
        assert plan.next_execution_at == dt.datetime(2024, 12, 29, 9, 0, tzinfo=dt.UTC)

    def test_rejects_naive_completion(self) -> None:
        """Completion instants must be aware."""
        with pytest.raises(ValueError, match="completion_instant"):
            plan_advancement(make_rule(), dt.datetime(2024, 12, 1, 10))  # noqa: DTZ001
