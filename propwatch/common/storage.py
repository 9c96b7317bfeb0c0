"""Declarative base and column types shared by every propwatch table."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine


class TimezoneAwareRequiredError(ValueError):
    """Raised when a naive datetime is bound to a ``UTCDateTime`` column."""

    @classmethod
    def for_value(cls, value: dt.datetime) -> TimezoneAwareRequiredError:
        """Build the error for a specific naive value."""
        return cls(f"timezone-aware datetime required, got {value.isoformat()}")


class Base(DeclarativeBase):
    """Declarative base for rules, inquiries, and reports."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError.for_value(value)
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


async def init_storage(engine: AsyncEngine) -> None:
    """Create every propwatch table that is absent."""
    # Imported for their side effect of registering tables on Base.metadata.
    from propwatch.inquiries import storage as _inquiries  # noqa: F401
    from propwatch.reports import storage as _reports  # noqa: F401
    from propwatch.schedule import storage as _schedule  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
