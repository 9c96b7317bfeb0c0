"""Configuration for batch sweeps.

Usage
-----
Create a configuration with defaults:

>>> config = BatchConfig()
>>> config.max_concurrency
4

Or load from environment variables:

>>> import os
>>> os.environ["PROPWATCH_BATCH_MAX_CONCURRENCY"] = "8"
>>> BatchConfig.from_env().max_concurrency
8

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import os

from propwatch.common.time import load_zone


@dc.dataclass(frozen=True, slots=True)
class BatchConfig:
    """Configuration for the batch sweep orchestrator.

    Attributes
    ----------
    max_concurrency
        Maximum number of rules processed at the same time within one sweep.
    lease_seconds
        Lifetime of the processing lease taken on a rule before it is
        processed. A sweep that dies mid-rule blocks that rule for at most
        this long.
    stage_timeout_s
        Time allowed for event collection and, separately, for synthesis of
        one rule. Exceeding it fails the rule like any other error.
    default_timezone
        IANA zone assigned to rules created without one.

    """

    max_concurrency: int = 4
    lease_seconds: int = 900
    stage_timeout_s: float = 120.0
    default_timezone: str = "UTC"

    def __post_init__(self) -> None:
        """Validate bounds that would otherwise fail deep inside a sweep."""
        if self.max_concurrency < 1:
            msg = f"max_concurrency must be positive, got: {self.max_concurrency}"
            raise ValueError(msg)
        if self.lease_seconds < 1:
            msg = f"lease_seconds must be positive, got: {self.lease_seconds}"
            raise ValueError(msg)
        if self.stage_timeout_s <= 0:
            msg = f"stage_timeout_s must be positive, got: {self.stage_timeout_s}"
            raise ValueError(msg)
        load_zone(self.default_timezone)

    @property
    def lease(self) -> dt.timedelta:
        """Lease lifetime as a timedelta."""
        return dt.timedelta(seconds=self.lease_seconds)

    @staticmethod
    def _parse_positive_int(env_var: str, default: int) -> int:
        """Read a positive integer env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            msg = f"{env_var} must be an integer, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < 1:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @staticmethod
    def _parse_positive_float(env_var: str, default: float) -> float:
        """Read a positive number env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = float(raw)
        except ValueError as exc:
            msg = f"{env_var} must be a number, got: {raw!r}"
            raise ValueError(msg) from exc
        if value <= 0:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @classmethod
    def from_env(cls) -> BatchConfig:
        """Create configuration from environment variables.

        Reads the following environment variables:

        - ``PROPWATCH_BATCH_MAX_CONCURRENCY``: Rules processed concurrently.
        - ``PROPWATCH_BATCH_LEASE_SECONDS``: Processing lease lifetime.
        - ``PROPWATCH_BATCH_STAGE_TIMEOUT_S``: Per-stage timeout in seconds.
        - ``PROPWATCH_DEFAULT_TIMEZONE``: Zone for rules created without one.

        Raises
        ------
        ValueError
            If a numeric variable is not positive or the zone is unknown.

        """
        default_timezone = (
            os.environ.get("PROPWATCH_DEFAULT_TIMEZONE", "").strip() or "UTC"
        )
        return cls(
            max_concurrency=cls._parse_positive_int(
                "PROPWATCH_BATCH_MAX_CONCURRENCY", 4
            ),
            lease_seconds=cls._parse_positive_int("PROPWATCH_BATCH_LEASE_SECONDS", 900),
            stage_timeout_s=cls._parse_positive_float(
                "PROPWATCH_BATCH_STAGE_TIMEOUT_S", 120.0
            ),
            default_timezone=default_timezone,
        )
