"""Domain exceptions and Falcon error handlers for the API layer.

Usage
-----
Register every handler on the Falcon app::

    from propwatch.api.errors import register_error_handlers

    register_error_handlers(app)

"""

from __future__ import annotations

import typing as typ

import falcon

from propwatch.reports.errors import ReportNotFoundError
from propwatch.schedule.errors import (
    RuleConfigError,
    RuleNotFoundError,
    StaleRuleError,
)

if typ.TYPE_CHECKING:
    from falcon.asgi import App, Request, Response

__all__ = [
    "InvalidInputError",
    "handle_conflict",
    "handle_invalid_input",
    "handle_not_found",
    "handle_rule_config_error",
    "register_error_handlers",
]


class InvalidInputError(Exception):
    """Raised for client validation errors that should map to HTTP 400.

    Use this instead of ``ValueError`` so that only *intentional*
    validation failures are surfaced to the caller, while genuine
    programmer mistakes still propagate as unhandled 500s.

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.
    field
        Optional name of the input field that failed validation.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialize with a validation reason and optional field name."""
        self.reason = reason
        self.field = field
        message = f"{field}: {reason}" if field is not None else reason
        super().__init__(message)


def _bad_request(resp: Response, reason: str, field: str | None) -> None:
    resp.status = falcon.HTTP_400
    media: dict[str, str] = {"title": "Invalid input", "description": reason}
    if field is not None:
        media["field"] = field
    resp.media = media


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidInputError`` to an HTTP 400 JSON response."""
    _bad_request(resp, ex.reason, ex.field)


async def handle_rule_config_error(
    _req: Request,
    resp: Response,
    ex: RuleConfigError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``RuleConfigError`` to an HTTP 400 JSON response.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status and media are set.
    ex
        Validation error naming the offending rule setting.
    _params
        URI template parameters (unused).

    """
    _bad_request(resp, str(ex), ex.field)


async def handle_not_found(
    _req: Request,
    resp: Response,
    ex: RuleNotFoundError | ReportNotFoundError,
    _params: dict[str, typ.Any],
) -> None:
    """Map missing rules and reports to an HTTP 404 JSON response."""
    title = (
        "Rule not found" if isinstance(ex, RuleNotFoundError) else "Report not found"
    )
    resp.status = falcon.HTTP_404
    resp.media = {"title": title, "description": str(ex)}


async def handle_conflict(
    _req: Request,
    resp: Response,
    ex: StaleRuleError,
    _params: dict[str, typ.Any],
) -> None:
    """Map a rule changed by a concurrent sweep to an HTTP 409 JSON response."""
    resp.status = falcon.HTTP_409
    resp.media = {"title": "Rule changed concurrently", "description": str(ex)}


def register_error_handlers(app: App) -> None:
    """Attach every domain error handler to ``app``."""
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(RuleConfigError, handle_rule_config_error)
    app.add_error_handler(RuleNotFoundError, handle_not_found)
    app.add_error_handler(ReportNotFoundError, handle_not_found)
    app.add_error_handler(StaleRuleError, handle_conflict)
