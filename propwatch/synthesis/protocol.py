"""NarrativeService protocol for the remote synthesis capability."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from propwatch.synthesis.models import (
        NarrativeRequest,
        NarrativeResponse,
        SummaryRequest,
        SummaryResponse,
    )


@typ.runtime_checkable
class NarrativeService(typ.Protocol):
    """Protocol for the two calls that turn raw events into report text.

    Implementations are injected into :class:`ReportSynthesizer`, so tests
    can substitute a deterministic fake for the remote service.

    Examples
    --------
    >>> from propwatch.synthesis import MockNarrativeService, NarrativeService
    >>> service: NarrativeService = MockNarrativeService()
    >>> isinstance(service, NarrativeService)
    True

    """

    @property
    def name(self) -> str:
        """Identifier recorded on reports produced by this backend."""
        ...

    async def summarize_events(self, request: SummaryRequest) -> SummaryResponse:
        """Return one summary per submitted event.

        The response may list events in any order; callers match summaries to
        events by ``event_id``.
        """
        ...

    async def compose_narrative(self, request: NarrativeRequest) -> NarrativeResponse:
        """Return the overall narrative for a reporting window."""
        ...
