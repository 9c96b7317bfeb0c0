"""propwatch runtime entrypoint for container deployments.

``propwatch.runtime:create_app`` is the stable Granian factory target. When
``PROPWATCH_DATABASE_URL`` is set the app carries rule administration,
sweep, and report routes; otherwise it starts with health probes only.

Configuration is driven by environment variables:

- ``PROPWATCH_HOST``: Bind address (default ``0.0.0.0``)
- ``PROPWATCH_PORT``: Listen port (default ``8080``)
- ``PROPWATCH_LOG_LEVEL``: Log level (default ``INFO``)
- ``PROPWATCH_DATABASE_URL``: Database connection URL (optional)

Run the service directly with ``python -m propwatch.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from propwatch.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
    except ValueError as exc:
        log_error(logger, "Invalid PROPWATCH_PORT value: %r", port_str)
        raise SystemExit(1) from exc
    if not _MIN_PORT <= port <= _MAX_PORT:
        log_error(
            logger,
            "Invalid PROPWATCH_PORT value: %d (must be %d-%d)",
            port,
            _MIN_PORT,
            _MAX_PORT,
        )
        raise SystemExit(1)
    return port


def create_app() -> falcon.asgi.App:
    """Create the Falcon ASGI application from the environment."""
    from propwatch.api.app import create_app as _create_api_app

    database_url = os.environ.get("PROPWATCH_DATABASE_URL")
    if not database_url:
        return _create_api_app()

    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from propwatch.api.factory import build_app_dependencies

    engine = create_async_engine(database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return _create_api_app(build_app_dependencies(session_factory))


def main() -> None:
    """Start the propwatch HTTP server using Granian."""
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("PROPWATCH_HOST", "0.0.0.0")  # noqa: S104 - container bind
    port = _parse_port(os.environ.get("PROPWATCH_PORT", "8080"))
    log_level_str = os.environ.get("PROPWATCH_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid PROPWATCH_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting propwatch runtime on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "propwatch.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
