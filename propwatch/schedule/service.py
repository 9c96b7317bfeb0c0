"""Administrative operations on recurrence rules.

``RuleService`` validates rule settings, computes the first occurrence, and
applies pause, resume, update, and delete requests. Settings are validated
before anything is stored, so a misconfigured rule never reaches a sweep.
"""

from __future__ import annotations

import datetime as dt
import typing as typ

import msgspec

from propwatch.common.time import load_zone, utcnow
from propwatch.logging import get_logger, log_info
from propwatch.schedule.errors import RuleConfigError, RuleNotFoundError
from propwatch.schedule.models import RecurrenceRule, RuleKey, RuleStatus
from propwatch.schedule.recurrence import (
    DEFAULT_EXECUTION_TIME,
    Period,
    Weekday,
    compute_first,
    compute_next,
    parse_execution_time,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from propwatch.schedule.store import SqlAlchemyRuleStore

logger = get_logger(__name__)

_MAX_IDENTIFIER_LENGTH = 64


class RuleSettings(msgspec.Struct, kw_only=True, frozen=True):
    """Validated, administrator-editable settings of a rule."""

    property_id: str
    start_date: dt.date
    period: Period
    target_weekday: Weekday
    execution_time: dt.time = DEFAULT_EXECUTION_TIME
    auto_generate: bool = True
    timezone: str = "UTC"
    property_name: str | None = None

    @classmethod
    def parse(
        cls,
        payload: cabc.Mapping[str, object],
        *,
        default_timezone: str = "UTC",
    ) -> RuleSettings:
        """Validate a loosely-typed mapping, such as a decoded JSON body.

        Raises
        ------
        RuleConfigError
            If any setting is missing or invalid.

        """
        property_id = _require_identifier(payload, "property_id")
        if "start_date" not in payload:
            raise RuleConfigError.missing("start_date")
        if "period" not in payload:
            raise RuleConfigError.missing("period")
        if "target_weekday" not in payload:
            raise RuleConfigError.missing("target_weekday")

        auto_generate = payload.get("auto_generate", True)
        if not isinstance(auto_generate, bool):
            raise RuleConfigError(
                f"auto_generate must be a boolean, got {auto_generate!r}",
                field="auto_generate",
            )
        property_name = payload.get("property_name")
        if property_name is not None and not isinstance(property_name, str):
            raise RuleConfigError(
                f"property_name must be a string, got {property_name!r}",
                field="property_name",
            )

        return cls(
            property_id=property_id,
            start_date=_parse_start_date(payload["start_date"]),
            period=Period.parse(payload["period"]),
            target_weekday=Weekday.parse(payload["target_weekday"]),
            execution_time=parse_execution_time(payload.get("execution_time")),
            auto_generate=auto_generate,
            timezone=_parse_timezone(payload.get("timezone") or default_timezone),
            property_name=property_name,
        )

    @property
    def zone(self) -> dt.tzinfo:
        """Resolved timezone."""
        return load_zone(self.timezone)

    def first_occurrence(self) -> dt.datetime:
        """Return the first due instant these settings produce."""
        return compute_first(
            self.start_date, self.target_weekday, self.execution_time, self.zone
        )

    def schedule_matches(self, rule: RecurrenceRule) -> bool:
        """Return whether ``rule`` already follows this recurrence."""
        return (
            self.start_date == rule.start_date
            and self.period is rule.period
            and self.target_weekday is rule.target_weekday
            and self.execution_time == rule.execution_time
            and self.timezone == rule.timezone
        )


def _require_identifier(payload: cabc.Mapping[str, object], field: str) -> str:
    value = payload.get(field)
    if value is None:
        raise RuleConfigError.missing(field)
    if not isinstance(value, str) or not value.strip():
        raise RuleConfigError(f"{field} must be a non-empty string", field=field)
    if len(value) > _MAX_IDENTIFIER_LENGTH:
        raise RuleConfigError(
            f"{field} must be at most {_MAX_IDENTIFIER_LENGTH} characters",
            field=field,
        )
    return value.strip()


def _parse_start_date(value: object) -> dt.date:
    if isinstance(value, dt.datetime):
        raise RuleConfigError.invalid_start_date(value)
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str):
        raise RuleConfigError.invalid_start_date(value)
    try:
        return dt.date.fromisoformat(value.strip())
    except ValueError as exc:
        raise RuleConfigError.invalid_start_date(value) from exc


def _parse_timezone(value: object) -> str:
    if not isinstance(value, str):
        raise RuleConfigError.invalid_timezone(value)
    try:
        load_zone(value)
    except ValueError as exc:
        raise RuleConfigError.invalid_timezone(value) from exc
    return value


class RuleService:
    """Create and administer recurrence rules.

    Parameters
    ----------
    store
        Rule store the service reads and writes.
    clock
        Source of the current instant; injected so tests control time.

    """

    def __init__(
        self,
        store: SqlAlchemyRuleStore,
        *,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Bind the service to a store and a clock."""
        self._store = store
        self._clock = clock

    async def create(
        self, tenant_id: str, employee_id: str, settings: RuleSettings
    ) -> RecurrenceRule:
        """Store a new active rule whose first occurrence is aligned to the weekday.

        The creation instant becomes half of the rule identity.
        """
        rule = RecurrenceRule(
            tenant_id=tenant_id,
            created_at=self._clock(),
            property_id=settings.property_id,
            property_name=settings.property_name,
            employee_id=employee_id,
            start_date=settings.start_date,
            period=settings.period,
            target_weekday=settings.target_weekday,
            execution_time=settings.execution_time,
            auto_generate=settings.auto_generate,
            timezone=settings.timezone,
            status=RuleStatus.ACTIVE,
            next_execution_at=settings.first_occurrence(),
        )
        stored = await self._store.create(rule)
        log_info(
            logger,
            "Created recurrence rule %s for property %s, first due %s",
            stored.key,
            stored.property_id,
            stored.next_execution_at.isoformat(),
        )
        return stored

    async def get(self, tenant_id: str, created_at: dt.datetime) -> RecurrenceRule:
        """Return one rule.

        Raises
        ------
        RuleNotFoundError
            If no such rule exists.

        """
        rule = await self._store.get(RuleKey(tenant_id, created_at))
        if rule is None:
            raise RuleNotFoundError(tenant_id, created_at)
        return rule

    async def list_rules(self, tenant_id: str) -> list[RecurrenceRule]:
        """Return all rules of a tenant, oldest first."""
        return await self._store.list_for_tenant(tenant_id)

    async def update(
        self, tenant_id: str, created_at: dt.datetime, settings: RuleSettings
    ) -> RecurrenceRule:
        """Replace a rule's settings.

        When the recurrence itself changes, the due instant is recomputed from
        the new anchor date and moved past the last completed run so that an
        occurrence already reported is not produced again.
        """
        rule = await self.get(tenant_id, created_at)
        next_at = rule.next_execution_at
        if not settings.schedule_matches(rule):
            next_at = settings.first_occurrence()
            if rule.last_execution_at is not None and next_at <= rule.last_execution_at:
                next_at = compute_next(
                    next_at,
                    settings.target_weekday,
                    settings.execution_time,
                    settings.period,
                    from_instant=rule.last_execution_at,
                    tz=settings.zone,
                )
        updated = msgspec.structs.replace(
            rule,
            property_id=settings.property_id,
            property_name=settings.property_name,
            start_date=settings.start_date,
            period=settings.period,
            target_weekday=settings.target_weekday,
            execution_time=settings.execution_time,
            auto_generate=settings.auto_generate,
            timezone=settings.timezone,
            next_execution_at=next_at,
        )
        return await self._save(rule, updated)

    async def pause(self, tenant_id: str, created_at: dt.datetime) -> RecurrenceRule:
        """Stop a rule from being selected as due."""
        return await self._set_status(tenant_id, created_at, RuleStatus.PAUSED)

    async def complete(
        self, tenant_id: str, created_at: dt.datetime
    ) -> RecurrenceRule:
        """Retire a rule permanently; it is kept for its history."""
        return await self._set_status(tenant_id, created_at, RuleStatus.COMPLETED)

    async def resume(self, tenant_id: str, created_at: dt.datetime) -> RecurrenceRule:
        """Reactivate a rule.

        Occurrences that fell due while the rule was paused are not replayed:
        a due instant in the past is rolled forward to the first occurrence
        after now.
        """
        rule = await self.get(tenant_id, created_at)
        now = self._clock()
        next_at = rule.next_execution_at
        if next_at <= now:
            next_at = compute_next(
                next_at,
                rule.target_weekday,
                rule.execution_time,
                rule.period,
                from_instant=now,
                tz=rule.zone,
            )
        updated = msgspec.structs.replace(
            rule, status=RuleStatus.ACTIVE, next_execution_at=next_at
        )
        return await self._save(rule, updated)

    async def delete(self, tenant_id: str, created_at: dt.datetime) -> None:
        """Remove a rule.

        Raises
        ------
        RuleNotFoundError
            If no such rule exists.

        """
        key = RuleKey(tenant_id, created_at)
        if not await self._store.delete(key):
            raise RuleNotFoundError(tenant_id, created_at)
        log_info(logger, "Deleted recurrence rule %s", key)

    async def _set_status(
        self, tenant_id: str, created_at: dt.datetime, status: RuleStatus
    ) -> RecurrenceRule:
        rule = await self.get(tenant_id, created_at)
        if rule.status is status:
            return rule
        return await self._save(rule, msgspec.structs.replace(rule, status=status))

    async def _save(
        self, read: RecurrenceRule, updated: RecurrenceRule
    ) -> RecurrenceRule:
        """Write ``updated`` unless a sweep advanced the rule since ``read``."""
        return await self._store.save_settings(
            updated,
            expected_next=read.next_execution_at,
            expected_count=read.execution_count,
        )
