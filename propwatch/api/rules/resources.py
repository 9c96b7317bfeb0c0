"""Recurrence rule administration resources.

Routes
------
``GET  /tenants/{tenant_id}/rules``
    List the tenant's rules, oldest first.
``POST /tenants/{tenant_id}/rules``
    Create a rule; the body carries ``employee_id`` plus the rule settings.
``GET | PUT | DELETE /tenants/{tenant_id}/rules/{created_at}``
    Read, replace the settings of, or remove one rule.
``POST /tenants/{tenant_id}/rules/{created_at}/{action}``
    ``pause``, ``resume``, or ``complete`` a rule.

A rule is addressed by its creation instant, formatted as ISO 8601 with an
offset exactly as returned in ``created_at``.
"""

from __future__ import annotations

import typing as typ

import falcon

from propwatch.api._media import parse_instant, read_object, to_media
from propwatch.api.errors import InvalidInputError
from propwatch.schedule.recurrence import format_execution_time
from propwatch.schedule.service import RuleSettings

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from propwatch.schedule.models import RecurrenceRule
    from propwatch.schedule.service import RuleService

__all__ = [
    "RuleActionResource",
    "RuleCollectionResource",
    "RuleResource",
]


def _serialize_rule(rule: RecurrenceRule) -> dict[str, typ.Any]:
    """Serialize a rule, rendering the time-of-day as it is accepted (HH:MM)."""
    media = to_media(rule)
    media["execution_time"] = format_execution_time(rule.execution_time)
    return media


def _employee_id(payload: dict[str, object]) -> str:
    value = payload.get("employee_id")
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError("must be a non-empty string", field="employee_id")
    return value.strip()


class RuleCollectionResource:
    """List and create the rules of one tenant."""

    def __init__(self, rule_service: RuleService, *, default_timezone: str) -> None:
        """Bind the resource to a rule service.

        Parameters
        ----------
        rule_service
            Service performing validation and storage.
        default_timezone
            Zone assigned to rules created without a ``timezone``.

        """
        self._rules = rule_service
        self._default_timezone = default_timezone

    async def on_get(self, _req: Request, resp: Response, *, tenant_id: str) -> None:
        """Handle GET: return ``{"rules": [...]}``."""
        rules = await self._rules.list_rules(tenant_id)
        resp.media = {"rules": [_serialize_rule(rule) for rule in rules]}
        resp.status = falcon.HTTP_200

    async def on_post(self, req: Request, resp: Response, *, tenant_id: str) -> None:
        """Handle POST: create a rule and return it with HTTP 201."""
        payload = await read_object(req)
        employee_id = _employee_id(payload)
        settings = RuleSettings.parse(payload, default_timezone=self._default_timezone)
        rule = await self._rules.create(tenant_id, employee_id, settings)
        resp.media = _serialize_rule(rule)
        resp.status = falcon.HTTP_201


class RuleResource:
    """Read, update, and delete one rule."""

    def __init__(self, rule_service: RuleService, *, default_timezone: str) -> None:
        """Bind the resource to a rule service."""
        self._rules = rule_service
        self._default_timezone = default_timezone

    async def on_get(
        self, _req: Request, resp: Response, *, tenant_id: str, created_at: str
    ) -> None:
        """Handle GET: return the rule."""
        rule = await self._rules.get(
            tenant_id, parse_instant(created_at, field="created_at")
        )
        resp.media = _serialize_rule(rule)
        resp.status = falcon.HTTP_200

    async def on_put(
        self, req: Request, resp: Response, *, tenant_id: str, created_at: str
    ) -> None:
        """Handle PUT: replace the rule's settings.

        Status and execution history are kept. A changed recurrence
        recomputes ``next_execution_at``.
        """
        key_instant = parse_instant(created_at, field="created_at")
        payload = await read_object(req)
        settings = RuleSettings.parse(payload, default_timezone=self._default_timezone)
        rule = await self._rules.update(tenant_id, key_instant, settings)
        resp.media = _serialize_rule(rule)
        resp.status = falcon.HTTP_200

    async def on_delete(
        self, _req: Request, resp: Response, *, tenant_id: str, created_at: str
    ) -> None:
        """Handle DELETE: remove the rule and answer HTTP 204."""
        await self._rules.delete(
            tenant_id, parse_instant(created_at, field="created_at")
        )
        resp.status = falcon.HTTP_204


class RuleActionResource:
    """Apply a lifecycle transition to one rule."""

    _ACTIONS: typ.ClassVar[frozenset[str]] = frozenset(
        {"pause", "resume", "complete"}
    )

    def __init__(self, rule_service: RuleService) -> None:
        """Bind the resource to a rule service."""
        self._rules = rule_service

    async def on_post(
        self,
        _req: Request,
        resp: Response,
        *,
        tenant_id: str,
        created_at: str,
        action: str,
    ) -> None:
        """Handle POST: run ``action`` and return the updated rule."""
        if action not in self._ACTIONS:
            raise falcon.HTTPNotFound(
                title="Unknown action",
                description=f"Valid actions are: {', '.join(sorted(self._ACTIONS))}",
            )
        key_instant = parse_instant(created_at, field="created_at")
        if action == "pause":
            rule = await self._rules.pause(tenant_id, key_instant)
        elif action == "resume":
            rule = await self._rules.resume(tenant_id, key_instant)
        else:
            rule = await self._rules.complete(tenant_id, key_instant)
        resp.media = _serialize_rule(rule)
        resp.status = falcon.HTTP_200
