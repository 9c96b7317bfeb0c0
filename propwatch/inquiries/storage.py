"""Tables for properties, customers, and the inquiries recorded against them.

These tables are written by the rest of the system; the scheduler only reads
them. Rows are soft-deleted through ``deleted_at`` and must be ignored once
that column is set.
"""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum
import uuid

from sqlalchemy import (
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from propwatch.common.storage import Base, UTCDateTime
from propwatch.common.time import utcnow


class InquiryCategory(enum.StrEnum):
    """What a customer interaction was about."""

    NEW_INQUIRY = "new_inquiry"
    GENERAL_INQUIRY = "general_inquiry"
    BUSINESS_MEETING = "business_meeting"
    VIEWING = "viewing"


class PropertyRecord(Base):
    """A property reports are generated for."""

    __tablename__ = "properties"
    __table_args__ = (
        Index("ix_properties_tenant", "tenant_id"),
        CheckConstraint("views_count >= 0", name="ck_properties_views_count"),
    )

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    views_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    deleted_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)


class CustomerRecord(Base):
    """A customer who contacts the agency about properties."""

    __tablename__ = "customers"
    __table_args__ = (Index("ix_customers_tenant", "tenant_id"),)

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    last_name: Mapped[str | None] = mapped_column(String(128), default=None)
    first_name: Mapped[str | None] = mapped_column(String(128), default=None)
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    deleted_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)


class InquiryRecord(Base):
    """One customer interaction about one property."""

    __tablename__ = "inquiries"
    __table_args__ = (
        Index(
            "ix_inquiries_property_time", "tenant_id", "property_id", "inquired_at"
        ),
        Index("ix_inquiries_customer", "tenant_id", "customer_id", "property_id"),
    )

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    customer_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("customers.id", ondelete="SET NULL"), default=None
    )
    property_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    inquired_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)
    title: Mapped[str | None] = mapped_column(String(255), default=None)
    category: Mapped[InquiryCategory] = mapped_column(
        Enum(
            InquiryCategory,
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            validate_strings=True,
        ),
        nullable=False,
        default=InquiryCategory.GENERAL_INQUIRY,
    )
    inquiry_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default="email"
    )
    method: Mapped[str | None] = mapped_column(String(32), default=None)
    summary: Mapped[str] = mapped_column(Text(), nullable=False, default="")
    deleted_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)

    customer: Mapped[CustomerRecord | None] = relationship(lazy="joined")
