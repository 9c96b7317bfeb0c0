"""Rule Store port and its SQLAlchemy adapter.

The scheduler only needs a handful of primitives from storage: read one rule,
list the rules that are due, and apply conditional (compare-and-swap)
updates. ``RuleStore`` names those primitives; ``SqlAlchemyRuleStore``
implements them on the ``recurrence_rules`` table.

Usage
-----
>>> store = SqlAlchemyRuleStore(session_factory)
>>> due = await store.list_due("tenant-1", as_of=now)
>>> claimed = await store.claim(
...     due[0].key,
...     expected_next=due[0].next_execution_at,
...     as_of=now,
...     lease_until=now + dt.timedelta(minutes=15),
... )

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from sqlalchemy import delete, or_, select, update

from propwatch.common.time import utcnow
from propwatch.schedule.errors import RuleNotFoundError, StaleRuleError
from propwatch.schedule.models import RecurrenceRule, RuleKey, RuleStatus
from propwatch.schedule.recurrence import (
    Weekday,
    format_execution_time,
    parse_execution_time,
)
from propwatch.schedule.storage import RecurrenceRuleRecord

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


@dc.dataclass(frozen=True, slots=True)
class Advancement:
    """Values committed by a successful advancement.

    Attributes
    ----------
    expected_next
        ``next_execution_at`` the caller read; the update only applies while
        the stored value still matches.
    expected_count
        ``execution_count`` the caller read, checked the same way.
    next_execution_at
        New due instant.
    execution_count
        New run counter.
    last_execution_at
        Completion instant of the run being recorded.

    """

    expected_next: dt.datetime
    expected_count: int
    next_execution_at: dt.datetime
    execution_count: int
    last_execution_at: dt.datetime


@typ.runtime_checkable
class RuleStore(typ.Protocol):
    """Persistence port for recurrence rules."""

    async def create(self, rule: RecurrenceRule) -> RecurrenceRule:
        """Insert a new rule and return it as stored."""
        ...

    async def get(self, key: RuleKey) -> RecurrenceRule | None:
        """Return the rule with ``key`` or ``None`` when it does not exist."""
        ...

    async def list_due(
        self, tenant_id: str, as_of: dt.datetime
    ) -> list[RecurrenceRule]:
        """Return active, auto-generating rules due at or before ``as_of``."""
        ...

    async def claim(
        self,
        key: RuleKey,
        *,
        expected_next: dt.datetime,
        as_of: dt.datetime,
        lease_until: dt.datetime,
    ) -> bool:
        """Take the processing lease for one due occurrence.

        Returns ``False`` when another worker holds an unexpired lease or the
        occurrence has already been advanced.
        """
        ...

    async def list_due_tenants(self, as_of: dt.datetime) -> list[str]:
        """Return tenants with at least one due rule at ``as_of``."""
        ...

    async def release(self, key: RuleKey, *, lease_until: dt.datetime) -> None:
        """Drop a lease taken by :meth:`claim`, leaving the due date untouched."""
        ...

    async def advance(self, key: RuleKey, advancement: Advancement) -> RecurrenceRule:
        """Atomically commit an advancement guarded by the expected values.

        Raises
        ------
        RuleNotFoundError
            If the rule was deleted.
        StaleRuleError
            If ``next_execution_at`` or ``execution_count`` changed underneath.

        """
        ...


def _to_rule(record: RecurrenceRuleRecord) -> RecurrenceRule:
    return RecurrenceRule(
        tenant_id=record.tenant_id,
        created_at=record.created_at,
        property_id=record.property_id,
        employee_id=record.employee_id,
        start_date=record.start_date,
        period=record.period,
        target_weekday=Weekday(record.target_weekday),
        execution_time=parse_execution_time(record.execution_time),
        auto_generate=record.auto_generate,
        status=record.status,
        next_execution_at=record.next_execution_at,
        execution_count=record.execution_count,
        last_execution_at=record.last_execution_at,
        timezone=record.timezone,
        property_name=record.property_name,
        processing_until=record.processing_until,
        updated_at=record.updated_at,
    )


def _settings_values(rule: RecurrenceRule) -> dict[str, object]:
    """Columns an administrator may change after creation."""
    return {
        "property_id": rule.property_id,
        "property_name": rule.property_name,
        "start_date": rule.start_date,
        "period": rule.period,
        "target_weekday": int(rule.target_weekday),
        "execution_time": format_execution_time(rule.execution_time),
        "timezone": rule.timezone,
        "auto_generate": rule.auto_generate,
        "status": rule.status,
        "next_execution_at": rule.next_execution_at,
    }


def _identity(key: RuleKey) -> tuple[typ.Any, ...]:
    return (
        RecurrenceRuleRecord.tenant_id == key.tenant_id,
        RecurrenceRuleRecord.created_at == key.created_at,
    )


class SqlAlchemyRuleStore:
    """``RuleStore`` backed by the ``recurrence_rules`` table.

    Each operation runs in its own short transaction. Conditional updates are
    single ``UPDATE ... WHERE`` statements, so concurrent workers cannot both
    succeed on the same expected state.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Bind the store to a session factory."""
        self._session_factory = session_factory

    async def create(self, rule: RecurrenceRule) -> RecurrenceRule:
        """Insert ``rule``; the identity must be unused."""
        record = RecurrenceRuleRecord(
            tenant_id=rule.tenant_id,
            created_at=rule.created_at,
            employee_id=rule.employee_id,
            execution_count=rule.execution_count,
            last_execution_at=rule.last_execution_at,
            **_settings_values(rule),
        )
        async with self._session_factory() as session, session.begin():
            session.add(record)
            await session.flush()
            return _to_rule(record)

    async def get(self, key: RuleKey) -> RecurrenceRule | None:
        """Return the rule with ``key`` if it exists."""
        async with self._session_factory() as session:
            record = await session.get(
                RecurrenceRuleRecord, (key.tenant_id, key.created_at)
            )
            return None if record is None else _to_rule(record)

    async def list_for_tenant(self, tenant_id: str) -> list[RecurrenceRule]:
        """Return every rule of a tenant, oldest first."""
        stmt = (
            select(RecurrenceRuleRecord)
            .where(RecurrenceRuleRecord.tenant_id == tenant_id)
            .order_by(RecurrenceRuleRecord.created_at)
        )
        async with self._session_factory() as session:
            return [_to_rule(record) for record in await session.scalars(stmt)]

    async def list_due(
        self, tenant_id: str, as_of: dt.datetime
    ) -> list[RecurrenceRule]:
        """Return rules eligible and due at ``as_of``, earliest first."""
        stmt = (
            select(RecurrenceRuleRecord)
            .where(
                RecurrenceRuleRecord.tenant_id == tenant_id,
                RecurrenceRuleRecord.status == RuleStatus.ACTIVE,
                RecurrenceRuleRecord.auto_generate.is_(True),
                RecurrenceRuleRecord.next_execution_at <= as_of,
            )
            .order_by(
                RecurrenceRuleRecord.next_execution_at,
                RecurrenceRuleRecord.created_at,
            )
        )
        async with self._session_factory() as session:
            return [_to_rule(record) for record in await session.scalars(stmt)]

    async def list_due_tenants(self, as_of: dt.datetime) -> list[str]:
        """Return tenants that have at least one due rule at ``as_of``."""
        stmt = (
            select(RecurrenceRuleRecord.tenant_id)
            .where(
                RecurrenceRuleRecord.status == RuleStatus.ACTIVE,
                RecurrenceRuleRecord.auto_generate.is_(True),
                RecurrenceRuleRecord.next_execution_at <= as_of,
            )
            .distinct()
            .order_by(RecurrenceRuleRecord.tenant_id)
        )
        async with self._session_factory() as session:
            return list(await session.scalars(stmt))

    async def claim(
        self,
        key: RuleKey,
        *,
        expected_next: dt.datetime,
        as_of: dt.datetime,
        lease_until: dt.datetime,
    ) -> bool:
        """Set the processing lease if it is free and the occurrence unchanged."""
        stmt = (
            update(RecurrenceRuleRecord)
            .where(
                *_identity(key),
                RecurrenceRuleRecord.next_execution_at == expected_next,
                or_(
                    RecurrenceRuleRecord.processing_until.is_(None),
                    RecurrenceRuleRecord.processing_until <= as_of,
                ),
            )
            .values(processing_until=lease_until)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
            if result.rowcount == 1:
                return True
            if await session.get(
                RecurrenceRuleRecord, (key.tenant_id, key.created_at)
            ) is None:
                raise RuleNotFoundError(key.tenant_id, key.created_at)
            return False

    async def release(self, key: RuleKey, *, lease_until: dt.datetime) -> None:
        """Clear the lease if it is still the one set to ``lease_until``.

        A lease that expired and was taken over by another worker is left
        alone. A missing rule is ignored.
        """
        stmt = (
            update(RecurrenceRuleRecord)
            .where(
                *_identity(key),
                RecurrenceRuleRecord.processing_until == lease_until,
            )
            .values(processing_until=None)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session, session.begin():
            await session.execute(stmt)

    async def advance(self, key: RuleKey, advancement: Advancement) -> RecurrenceRule:
        """Commit ``advancement`` only if the expected state still holds."""
        stmt = (
            update(RecurrenceRuleRecord)
            .where(
                *_identity(key),
                RecurrenceRuleRecord.next_execution_at == advancement.expected_next,
                RecurrenceRuleRecord.execution_count == advancement.expected_count,
            )
            .values(
                next_execution_at=advancement.next_execution_at,
                execution_count=advancement.execution_count,
                last_execution_at=advancement.last_execution_at,
                processing_until=None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
            record = await session.get(
                RecurrenceRuleRecord,
                (key.tenant_id, key.created_at),
                populate_existing=True,
            )
            if record is None:
                raise RuleNotFoundError(key.tenant_id, key.created_at)
            if result.rowcount != 1:
                detail = (
                    f"expected next_execution_at="
                    f"{advancement.expected_next.isoformat()} and "
                    f"execution_count={advancement.expected_count}, found "
                    f"{record.next_execution_at.isoformat()} and "
                    f"{record.execution_count}"
                )
                raise StaleRuleError(key.tenant_id, key.created_at, detail)
            return _to_rule(record)

    async def save_settings(
        self,
        rule: RecurrenceRule,
        *,
        expected_next: dt.datetime,
        expected_count: int,
    ) -> RecurrenceRule:
        """Overwrite the administrator-editable settings of ``rule``.

        The write only applies while the stored ``next_execution_at`` and
        ``execution_count`` still equal the values the caller read, so an
        advancement committed by a sweep in the meantime is never rolled back.
        Run counters, the creation instant, and the processing lease are not
        touched.

        Raises
        ------
        RuleNotFoundError
            If the rule does not exist.
        StaleRuleError
            If the rule was advanced after the caller read it.

        """
        stmt = (
            update(RecurrenceRuleRecord)
            .where(
                *_identity(rule.key),
                RecurrenceRuleRecord.next_execution_at == expected_next,
                RecurrenceRuleRecord.execution_count == expected_count,
            )
            .values(**_settings_values(rule), updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
            record = await session.get(
                RecurrenceRuleRecord,
                (rule.tenant_id, rule.created_at),
                populate_existing=True,
            )
            if record is None:
                raise RuleNotFoundError(rule.tenant_id, rule.created_at)
            if result.rowcount != 1:
                detail = (
                    f"expected next_execution_at={expected_next.isoformat()} "
                    f"and execution_count={expected_count}, found "
                    f"{record.next_execution_at.isoformat()} and "
                    f"{record.execution_count}"
                )
                raise StaleRuleError(rule.tenant_id, rule.created_at, detail)
            return _to_rule(record)

    async def delete(self, key: RuleKey) -> bool:
        """Remove a rule; returns whether a row was deleted."""
        stmt = (
            delete(RecurrenceRuleRecord)
            .where(*_identity(key))
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
            return result.rowcount == 1
