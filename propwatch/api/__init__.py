"""propwatch HTTP API layer.

Falcon ASGI application exposing health probes, recurrence rule
administration, on-demand sweeps, and stored reports.

Public API
----------
create_app
    Application factory; domain routes are registered when
    ``AppDependencies`` are supplied.
"""

from propwatch.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
