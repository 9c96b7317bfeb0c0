"""Errors specific to batch sweeps."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from propwatch.batch.models import SweepSummary


class BatchError(Exception):
    """Base class for batch sweep errors."""


class StageTimeoutError(BatchError):
    """Raised when one pipeline stage of a rule exceeds its time budget."""

    def __init__(self, stage: str, timeout_s: float) -> None:
        """Initialise with the stage name and the budget it exceeded."""
        self.stage = stage
        self.timeout_s = timeout_s
        super().__init__(f"{stage} stage timed out after {timeout_s:g}s")


class MultiTenantSweepError(BatchError):
    """Raised when sweeping one or more tenants failed outright.

    Per-rule failures never raise; this covers failures to list a tenant's
    due rules. Tenants that swept successfully are still processed and their
    summaries are kept on the error.

    Parameters
    ----------
    failures
        Mapping of tenant id to the exception that stopped its sweep.
    summaries
        Summaries of the tenants that were swept.

    """

    failures: dict[str, Exception]
    summaries: tuple[SweepSummary, ...]

    def __init__(
        self,
        failures: dict[str, Exception],
        summaries: typ.Sequence[SweepSummary] = (),
    ) -> None:
        """Initialise with the failed tenants and the completed summaries."""
        self.failures = dict(failures)
        self.summaries = tuple(summaries)
        tenants = ", ".join(sorted(self.failures))
        super().__init__(
            f"Sweep failed for {len(self.failures)} tenant(s): {tenants}"
        )
