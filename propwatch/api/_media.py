"""Request parsing and response encoding shared by API resources."""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

import falcon
import msgspec

from propwatch.api.errors import InvalidInputError
from propwatch.common.time import parse_aware_iso

if typ.TYPE_CHECKING:
    import datetime as dt

    from falcon.asgi import Request


async def read_object(req: Request, *, required: bool = True) -> dict[str, object]:
    """Return the decoded JSON object body of ``req``.

    Raises
    ------
    InvalidInputError
        If the body is not a JSON object, or is absent while ``required``.

    """
    try:
        media = await req.get_media(default_when_empty=None)
    except falcon.MediaMalformedError as exc:
        raise InvalidInputError("request body is not valid JSON") from exc
    if media is None:
        if required:
            raise InvalidInputError("request body is required")
        return {}
    if not isinstance(media, cabc.Mapping):
        raise InvalidInputError("request body must be a JSON object")
    return dict(media)


def parse_instant(raw: object, *, field: str) -> dt.datetime:
    """Parse an offset-qualified ISO 8601 instant from a path or body value."""
    if not isinstance(raw, str):
        raise InvalidInputError("must be an ISO 8601 timestamp", field=field)
    try:
        # A literal "+" in a URL path may arrive decoded as a space.
        return parse_aware_iso(raw.replace(" ", "+"), field=field)
    except ValueError as exc:
        raise InvalidInputError(str(exc), field=field) from exc


def to_media(value: object) -> typ.Any:  # noqa: ANN401
    """Convert msgspec structs and datetimes into JSON-compatible builtins."""
    return msgspec.to_builtins(value)
