"""Narrative synthesis for property reports.

Public API
----------
NarrativeService
    Protocol (port) for the remote summarization and narrative calls.
HttpNarrativeService
    ``NarrativeService`` adapter speaking JSON over HTTP.
MockNarrativeService
    Deterministic ``NarrativeService`` for tests and local runs.
ReportSynthesizer
    Runs both calls and assembles a ``SynthesisResult``.
create_narrative_service
    Selects a backend from ``PROPWATCH_NARRATIVE_BACKEND``.

"""

from propwatch.synthesis.config import NarrativeServiceConfig
from propwatch.synthesis.errors import (
    NarrativeBackendConfigError,
    SynthesisAPIError,
    SynthesisConfigError,
    SynthesisError,
    SynthesisResponseShapeError,
)
from propwatch.synthesis.factory import create_narrative_service
from propwatch.synthesis.http_client import HttpNarrativeService
from propwatch.synthesis.mock import MockNarrativeService
from propwatch.synthesis.models import InteractionSummary, SynthesisResult
from propwatch.synthesis.protocol import NarrativeService
from propwatch.synthesis.synthesizer import GENERIC_EMPTY_NARRATIVE, ReportSynthesizer

__all__ = [
    "GENERIC_EMPTY_NARRATIVE",
    "HttpNarrativeService",
    "InteractionSummary",
    "MockNarrativeService",
    "NarrativeBackendConfigError",
    "NarrativeService",
    "NarrativeServiceConfig",
    "ReportSynthesizer",
    "SynthesisAPIError",
    "SynthesisConfigError",
    "SynthesisError",
    "SynthesisResponseShapeError",
    "SynthesisResult",
    "create_narrative_service",
]
