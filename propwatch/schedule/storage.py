"""Table for persisted recurrence rules."""

from __future__ import annotations

import datetime as dt  # noqa: TC003

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Enum,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from propwatch.common.storage import Base, UTCDateTime
from propwatch.common.time import utcnow
from propwatch.schedule.models import RuleStatus
from propwatch.schedule.recurrence import Period


def _enum_values(enum_cls: type) -> list[str]:
    return [member.value for member in enum_cls]  # type: ignore[attr-defined]


class RecurrenceRuleRecord(Base):
    """Row form of :class:`propwatch.schedule.models.RecurrenceRule`.

    The primary key is ``(tenant_id, created_at)``; ``created_at`` doubles as
    the per-tenant sort key and is never updated.
    """

    __tablename__ = "recurrence_rules"
    __table_args__ = (
        Index(
            "ix_recurrence_rules_due",
            "tenant_id",
            "status",
            "auto_generate",
            "next_execution_at",
        ),
        Index("ix_recurrence_rules_property", "tenant_id", "property_id"),
        CheckConstraint(
            "target_weekday >= 0 AND target_weekday <= 6",
            name="ck_recurrence_rules_weekday",
        ),
        CheckConstraint(
            "execution_count >= 0",
            name="ck_recurrence_rules_execution_count",
        ),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), primary_key=True)
    property_id: Mapped[str] = mapped_column(String(64), nullable=False)
    property_name: Mapped[str | None] = mapped_column(String(255), default=None)
    employee_id: Mapped[str] = mapped_column(String(64), nullable=False)
    start_date: Mapped[dt.date] = mapped_column(Date(), nullable=False)
    period: Mapped[Period] = mapped_column(
        Enum(
            Period,
            native_enum=False,
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    target_weekday: Mapped[int] = mapped_column(Integer, nullable=False)
    execution_time: Mapped[str] = mapped_column(String(5), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    auto_generate: Mapped[bool] = mapped_column(Boolean, nullable=False)
    status: Mapped[RuleStatus] = mapped_column(
        Enum(
            RuleStatus,
            native_enum=False,
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    next_execution_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), nullable=False
    )
    execution_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_execution_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    processing_until: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )
