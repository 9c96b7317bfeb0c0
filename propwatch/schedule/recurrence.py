"""Pure recurrence arithmetic for weekly report rules.

Rules fire on a fixed weekday at a fixed wall-clock time, every one or two
weeks. All arithmetic is done on calendar dates in the rule's timezone and
only then converted to UTC, so an occurrence keeps its weekday and its
time-of-day across daylight-saving transitions.

Weekdays are numbered ``0 = Sunday`` through ``6 = Saturday``.

Examples
--------
>>> import datetime as dt
>>> first = compute_first(
...     dt.date(2024, 12, 1), Weekday.SUNDAY, dt.time(9, 0)
... )
>>> first.isoformat()
'2024-12-01T09:00:00+00:00'
>>> compute_next(
...     first, Weekday.SUNDAY, dt.time(9, 0), Period.ONE_WEEK, from_instant=first
... ).isoformat()
'2024-12-08T09:00:00+00:00'

"""

from __future__ import annotations

import datetime as dt
import enum
import re

from propwatch.schedule.errors import RuleConfigError

_DAYS_PER_WEEK = 7
_EXECUTION_TIME_PATTERN = re.compile(r"^(?P<hour>[01]\d|2[0-3]):(?P<minute>[0-5]\d)$")

DEFAULT_EXECUTION_TIME = dt.time(1, 0)


class Weekday(enum.IntEnum):
    """Day of week, Sunday first."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def parse(cls, value: object) -> Weekday:
        """Validate ``value`` as a weekday number.

        Only integers are accepted; numeric strings and booleans are rejected
        so that a misconfigured payload cannot silently coerce to a day.

        Raises
        ------
        RuleConfigError
            If ``value`` is not an integer in ``0..6``.

        """
        if isinstance(value, bool) or not isinstance(value, int):
            raise RuleConfigError.invalid_weekday(value)
        try:
            return cls(value)
        except ValueError as exc:
            raise RuleConfigError.invalid_weekday(value) from exc

    @classmethod
    def of(cls, day: dt.date) -> Weekday:
        """Return the weekday of a calendar date."""
        # date.weekday() counts from Monday = 0.
        return cls((day.weekday() + 1) % _DAYS_PER_WEEK)


class Period(enum.StrEnum):
    """Interval between two occurrences of a rule."""

    ONE_WEEK = "one_week"
    TWO_WEEKS = "two_weeks"

    @property
    def days(self) -> int:
        """Length of the period in days."""
        return _PERIOD_DAYS[self]

    @classmethod
    def parse(cls, value: object) -> Period:
        """Validate ``value`` as a period label.

        Raises
        ------
        RuleConfigError
            If ``value`` is not one of the enumerated labels.

        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise RuleConfigError.invalid_period(value)
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise RuleConfigError.invalid_period(value) from exc


_PERIOD_DAYS: dict[Period, int] = {Period.ONE_WEEK: 7, Period.TWO_WEEKS: 14}


def parse_execution_time(value: object) -> dt.time:
    """Parse a 24-hour ``HH:MM`` string into a ``datetime.time``.

    ``None`` yields :data:`DEFAULT_EXECUTION_TIME`. A ``datetime.time`` is
    accepted when it has no seconds, microseconds, or tzinfo.

    Raises
    ------
    RuleConfigError
        If the value is not a valid time-of-day.

    """
    if value is None:
        return DEFAULT_EXECUTION_TIME
    if isinstance(value, dt.time):
        if value.second or value.microsecond or value.tzinfo is not None:
            raise RuleConfigError.invalid_execution_time(value)
        return value
    if not isinstance(value, str):
        raise RuleConfigError.invalid_execution_time(value)
    match = _EXECUTION_TIME_PATTERN.match(value.strip())
    if match is None:
        raise RuleConfigError.invalid_execution_time(value)
    return dt.time(int(match["hour"]), int(match["minute"]))


def format_execution_time(value: dt.time) -> str:
    """Render a time-of-day as ``HH:MM``."""
    return f"{value.hour:02d}:{value.minute:02d}"


def days_until_weekday(day: dt.date, target_weekday: Weekday | int) -> int:
    """Return ``(target - current + 7) mod 7`` for ``day``.

    The result is zero when ``day`` already falls on ``target_weekday``.
    """
    target = Weekday.parse(target_weekday)
    return (target - Weekday.of(day) + _DAYS_PER_WEEK) % _DAYS_PER_WEEK


def align_to_weekday(day: dt.date, target_weekday: Weekday | int) -> dt.date:
    """Return the first date on or after ``day`` that falls on the weekday."""
    return day + dt.timedelta(days=days_until_weekday(day, target_weekday))


def _local_date(value: dt.date | dt.datetime, tz: dt.tzinfo) -> dt.date:
    if isinstance(value, dt.datetime):
        if value.tzinfo is None:
            msg = f"anchor must be timezone-aware, got {value.isoformat()}"
            raise ValueError(msg)
        return value.astimezone(tz).date()
    return value


def _instant(day: dt.date, execution_time: dt.time, tz: dt.tzinfo) -> dt.datetime:
    return dt.datetime.combine(day, execution_time, tzinfo=tz).astimezone(dt.UTC)


def compute_first(
    start_date: dt.date,
    target_weekday: Weekday | int,
    execution_time: dt.time,
    tz: dt.tzinfo = dt.UTC,
) -> dt.datetime:
    """Return the first occurrence of a newly created rule.

    The anchor date is moved forward to ``target_weekday`` (staying put when
    it already matches) and combined with ``execution_time`` in ``tz``. No
    period is added.

    Parameters
    ----------
    start_date
        Calendar date the rule is anchored to.
    target_weekday
        Weekday every occurrence must fall on.
    execution_time
        Wall-clock time-of-day in ``tz``.
    tz
        Timezone the date and time are interpreted in.

    Returns
    -------
    datetime.datetime
        The first occurrence, normalized to UTC.

    """
    first_day = align_to_weekday(start_date, target_weekday)
    return _instant(first_day, parse_execution_time(execution_time), tz)


def compute_next(  # noqa: PLR0913
    anchor: dt.date | dt.datetime,
    target_weekday: Weekday | int,
    execution_time: dt.time,
    period: Period | str,
    from_instant: dt.datetime,
    tz: dt.tzinfo = dt.UTC,
) -> dt.datetime:
    """Return the occurrence that follows ``anchor`` and ``from_instant``.

    ``anchor`` is the occurrence being completed (or any date in its week).
    It is aligned to ``target_weekday`` and then moved forward by at least one
    whole period, and by further whole periods until the result is strictly
    after ``from_instant``. Occurrences missed while nothing ran are skipped,
    and the same instant is never produced twice.

    Parameters
    ----------
    anchor
        Previous occurrence; datetimes are read in ``tz``.
    target_weekday
        Weekday every occurrence must fall on.
    execution_time
        Wall-clock time-of-day in ``tz``.
    period
        Interval between occurrences.
    from_instant
        Aware instant the result must be strictly after, usually the moment
        the previous run completed.
    tz
        Timezone the rule is interpreted in.

    Returns
    -------
    datetime.datetime
        The next occurrence, normalized to UTC.

    Raises
    ------
    RuleConfigError
        If the weekday, time, or period is invalid.
    ValueError
        If ``from_instant`` or a datetime ``anchor`` is naive.

    """
    if from_instant.tzinfo is None:
        msg = f"from_instant must be timezone-aware, got {from_instant.isoformat()}"
        raise ValueError(msg)
    step = Period.parse(period).days
    at = parse_execution_time(execution_time)
    base_day = align_to_weekday(_local_date(anchor, tz), target_weekday)

    # Jump close to from_instant in one go, then settle with single steps.
    from_day = from_instant.astimezone(tz).date()
    periods = max(1, (from_day - base_day).days // step)
    candidate_day = base_day + dt.timedelta(days=periods * step)
    while _instant(candidate_day, at, tz) <= from_instant:
        candidate_day += dt.timedelta(days=step)
    return _instant(candidate_day, at, tz)


__all__ = [
    "DEFAULT_EXECUTION_TIME",
    "Period",
    "Weekday",
    "align_to_weekday",
    "compute_first",
    "compute_next",
    "days_until_weekday",
    "format_execution_time",
    "parse_execution_time",
]
