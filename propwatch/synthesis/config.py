"""Configuration for the HTTP narrative service client."""

from __future__ import annotations

import dataclasses
import os

from propwatch.synthesis.errors import SynthesisConfigError

_DEFAULT_TIMEOUT_S = 30.0
_DEFAULT_SUMMARIES_PATH = "/summaries"
_DEFAULT_NARRATIVE_PATH = "/narrative"


@dataclasses.dataclass(frozen=True, slots=True)
class NarrativeServiceConfig:
    """Configuration for :class:`HttpNarrativeService`.

    Attributes
    ----------
    base_url
        Root URL of the narrative service.
    api_key
        Optional bearer token sent with every request.
    timeout_s
        Per-request timeout in seconds. A timeout fails synthesis for the
        rule being processed.
    summaries_path
        Path of the per-event summarization endpoint.
    narrative_path
        Path of the aggregate narrative endpoint.

    """

    base_url: str
    api_key: str | None = None
    timeout_s: float = _DEFAULT_TIMEOUT_S
    summaries_path: str = _DEFAULT_SUMMARIES_PATH
    narrative_path: str = _DEFAULT_NARRATIVE_PATH

    def __post_init__(self) -> None:
        """Reject URLs that cannot be requested and non-positive timeouts."""
        if not self.base_url.startswith(("http://", "https://")):
            raise SynthesisConfigError.invalid_base_url(self.base_url)
        if self.timeout_s <= 0:
            raise SynthesisConfigError.invalid_timeout(str(self.timeout_s))

    @staticmethod
    def _parse_timeout_from_env() -> float:
        raw_timeout = os.environ.get("PROPWATCH_NARRATIVE_TIMEOUT_S")
        if raw_timeout is None or not raw_timeout.strip():
            return _DEFAULT_TIMEOUT_S
        try:
            timeout = float(raw_timeout)
        except ValueError as exc:
            raise SynthesisConfigError.invalid_timeout(raw_timeout) from exc
        if timeout <= 0:
            raise SynthesisConfigError.invalid_timeout(raw_timeout)
        return timeout

    @classmethod
    def from_env(cls) -> NarrativeServiceConfig:
        """Build configuration from environment variables.

        Reads the following environment variables:

        - ``PROPWATCH_NARRATIVE_BASE_URL``: Required service root URL
        - ``PROPWATCH_NARRATIVE_API_KEY``: Optional bearer token
        - ``PROPWATCH_NARRATIVE_TIMEOUT_S``: Optional timeout (positive number)

        Raises
        ------
        SynthesisConfigError
            If the base URL is missing or a value is invalid.

        """
        base_url = os.environ.get("PROPWATCH_NARRATIVE_BASE_URL", "").strip()
        if not base_url:
            raise SynthesisConfigError.missing_base_url()
        api_key = os.environ.get("PROPWATCH_NARRATIVE_API_KEY", "").strip() or None
        return cls(
            base_url=base_url.rstrip("/"),
            api_key=api_key,
            timeout_s=cls._parse_timeout_from_env(),
        )
