"""Factory for creating NarrativeService implementations from the environment."""

from __future__ import annotations

import os
import typing as typ

from propwatch.synthesis.errors import NarrativeBackendConfigError
from propwatch.synthesis.mock import MockNarrativeService

if typ.TYPE_CHECKING:
    from propwatch.synthesis.protocol import NarrativeService

_VALID_BACKENDS = frozenset({"mock", "http"})


def create_narrative_service() -> NarrativeService:
    """Create a NarrativeService based on environment configuration.

    Reads ``PROPWATCH_NARRATIVE_BACKEND`` (required, ``mock`` or ``http``).
    The ``http`` backend additionally reads the variables documented on
    :meth:`NarrativeServiceConfig.from_env`.

    Raises
    ------
    NarrativeBackendConfigError
        If the backend variable is missing or names an unknown backend.
    SynthesisConfigError
        If the HTTP backend is selected but its configuration is invalid.

    Examples
    --------
    >>> import os
    >>> os.environ["PROPWATCH_NARRATIVE_BACKEND"] = "mock"
    >>> service = create_narrative_service()
    >>> isinstance(service, MockNarrativeService)
    True

    """
    raw_backend = os.environ.get("PROPWATCH_NARRATIVE_BACKEND")
    if raw_backend is None:
        raise NarrativeBackendConfigError.missing_backend()

    backend = raw_backend.strip().lower()
    if backend not in _VALID_BACKENDS:
        raise NarrativeBackendConfigError.invalid_backend(raw_backend, _VALID_BACKENDS)

    if backend == "mock":
        return MockNarrativeService()

    from propwatch.synthesis.config import NarrativeServiceConfig
    from propwatch.synthesis.http_client import HttpNarrativeService

    return HttpNarrativeService(NarrativeServiceConfig.from_env())
