"""femtologging helpers shared by the scheduler, workers, and API.

Every propwatch module logs through these helpers so that messages are
formatted once, with percent-style interpolation, before they reach the
femtologging worker thread.

Example:
>>> from propwatch.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "Sweeping %d rule(s) for %s", 3, "tenant-1")

"""

from __future__ import annotations

import enum
import typing as typ

from femtologging import basicConfig, get_logger


class LogLevel(enum.StrEnum):
    """Log levels accepted by ``configure_logging``."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


_DEFAULT_LEVEL = LogLevel.INFO.value


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Return the upper-cased level and whether the input had to be replaced.

    Parameters
    ----------
    level : str | None
        Raw level name, typically read from ``PROPWATCH_LOG_LEVEL``.

    Returns
    -------
    tuple[str, bool]
        The level to use and ``True`` when ``level`` was missing or unknown
        and the ``INFO`` fallback was chosen instead.

    """
    candidate = (level or "").strip().upper()
    if candidate in LogLevel.__members__:
        return (candidate, False)
    return (_DEFAULT_LEVEL, True)


def configure_logging(level: str | None, *, force: bool = False) -> tuple[str, bool]:
    """Install the femtologging root configuration.

    Parameters
    ----------
    level : str | None
        Raw level name; unknown values fall back to ``INFO``.
    force : bool, optional
        Replace handlers that an earlier call already installed.

    Returns
    -------
    tuple[str, bool]
        Same contract as :func:`normalize_log_level`.

    """
    normalized, replaced = normalize_log_level(level)
    basicConfig(level=normalized, force=force)
    return (normalized, replaced)


class _SupportsLog(typ.Protocol):
    """The subset of the femtologging logger API used here."""

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def format_log_message(template: str, *args: object) -> str:
    """Interpolate ``args`` into ``template`` with ``%`` formatting."""
    if not args:
        return template
    return template % args


def _emit(
    logger: _SupportsLog,
    level: str,
    template: str,
    args: tuple[object, ...],
    exc_info: object | None,
) -> None:
    logger.log(
        level,
        format_log_message(template, *args),
        exc_info=exc_info,
        stack_info=False,
    )


def log_debug(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a DEBUG message."""
    _emit(logger, "DEBUG", template, args, exc_info)


def log_info(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an INFO message.

    Parameters
    ----------
    logger : _SupportsLog
        Destination logger.
    template : str
        Message template with ``%`` placeholders.
    *args : object
        Values interpolated into ``template``.
    exc_info : object | None, optional
        Exception to attach to the record.

    """
    _emit(logger, "INFO", template, args, exc_info)


def log_warning(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a WARNING message; arguments as for :func:`log_info`."""
    _emit(logger, "WARNING", template, args, exc_info)


def log_error(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an ERROR message; arguments as for :func:`log_info`."""
    _emit(logger, "ERROR", template, args, exc_info)


def log_exception(logger: _SupportsLog, message: str, exc: BaseException) -> None:
    """Log ``message`` at ERROR with ``exc`` attached as exc_info."""
    logger.log("ERROR", message, exc_info=exc, stack_info=False)


__all__ = [
    "LogLevel",
    "configure_logging",
    "format_log_message",
    "get_logger",
    "log_debug",
    "log_error",
    "log_exception",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
