"""Table for synthesized property reports."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import typing as typ
import uuid

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from propwatch.common.storage import Base, UTCDateTime
from propwatch.common.time import utcnow


class ReportRecord(Base):
    """An immutable report produced for one due occurrence of a rule.

    ``(tenant_id, rule_created_at, occurrence_at)`` is unique, so a retried
    sweep can never store a second report for the same occurrence.
    """

    __tablename__ = "reports"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "rule_created_at",
            "occurrence_at",
            name="uq_reports_rule_occurrence",
        ),
        Index(
            "ix_reports_property_generated_at",
            "tenant_id",
            "property_id",
            "generated_at",
        ),
        CheckConstraint("period_end > period_start", name="ck_reports_period_bounds"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    property_id: Mapped[str] = mapped_column(String(64), nullable=False)
    property_name: Mapped[str] = mapped_column(String(255), nullable=False)
    rule_created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)
    occurrence_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)
    period_start: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)
    period_end: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)
    narrative: Mapped[str] = mapped_column(Text(), nullable=False)
    interactions: Mapped[list[dict[str, typ.Any]]] = mapped_column(
        JSON, default=list, nullable=False
    )
    views_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    inquiries_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    business_meeting_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    viewing_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    synthesizer: Mapped[str | None] = mapped_column(String(128), default=None)
    generated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
