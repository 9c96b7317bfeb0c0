"""Exceptions raised while synthesizing report narratives."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

# Content preview length for error messages
_CONTENT_PREVIEW_LIMIT = 100


def _preview(content: str) -> str:
    if len(content) > _CONTENT_PREVIEW_LIMIT:
        return content[:_CONTENT_PREVIEW_LIMIT] + "..."
    return content


class SynthesisError(Exception):
    """Base exception for narrative synthesis failures.

    Every subclass aborts synthesis for one rule only; the sweep records the
    failure and moves on.
    """


class SynthesisAPIError(SynthesisError):
    """Raised when the narrative service cannot be reached or refuses a call.

    Attributes
    ----------
    status_code
        HTTP status code from the response, if one was received.

    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise the error with message and optional status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, operation: str, status_code: int) -> SynthesisAPIError:
        """Create error for a non-success HTTP response."""
        return cls(
            f"Narrative service {operation} failed with HTTP {status_code}",
            status_code=status_code,
        )

    @classmethod
    def rate_limited(
        cls, operation: str, retry_after: int | None = None
    ) -> SynthesisAPIError:
        """Create error for a 429 response."""
        msg = f"Narrative service {operation} rate limited"
        if retry_after is not None:
            msg = f"{msg}, retry after {retry_after}s"
        return cls(msg, status_code=429)

    @classmethod
    def timeout(cls, operation: str) -> SynthesisAPIError:
        """Create error for a request that exceeded its timeout."""
        return cls(f"Narrative service {operation} timed out")

    @classmethod
    def network_error(cls, operation: str, detail: str) -> SynthesisAPIError:
        """Create error for DNS, connection, or TLS failures."""
        return cls(f"Narrative service {operation} network error: {detail}")


class SynthesisResponseShapeError(SynthesisError):
    """Raised when a narrative service response is malformed."""

    @classmethod
    def invalid_payload(
        cls, operation: str, content: str
    ) -> SynthesisResponseShapeError:
        """Create error for a body that is not the expected JSON document."""
        return cls(
            f"Narrative service {operation} returned an invalid payload: "
            f"{_preview(content)}"
        )

    @classmethod
    def missing(cls, field: str) -> SynthesisResponseShapeError:
        """Create error for an absent or empty required field."""
        return cls(f"Narrative service response missing expected field: {field}")

    @classmethod
    def unknown_events(
        cls, event_ids: cabc.Iterable[str]
    ) -> SynthesisResponseShapeError:
        """Create error for summaries of events that were never submitted."""
        joined = ", ".join(sorted(event_ids))
        return cls(
            f"Narrative service returned summaries for unknown events: {joined}"
        )

    @classmethod
    def missing_events(
        cls, event_ids: cabc.Iterable[str]
    ) -> SynthesisResponseShapeError:
        """Create error for submitted events that received no summary."""
        joined = ", ".join(sorted(event_ids))
        return cls(f"Narrative service returned no summary for events: {joined}")

    @classmethod
    def duplicate_event(cls, event_id: str) -> SynthesisResponseShapeError:
        """Create error for an event summarized more than once."""
        return cls(f"Narrative service returned event {event_id} more than once")


class SynthesisConfigError(SynthesisError):
    """Raised when the HTTP narrative client configuration is invalid."""

    @classmethod
    def missing_base_url(cls) -> SynthesisConfigError:
        """Create error for an unset base URL."""
        return cls("PROPWATCH_NARRATIVE_BASE_URL environment variable is required")

    @classmethod
    def invalid_base_url(cls, value: str) -> SynthesisConfigError:
        """Create error for a base URL that is not http(s)."""
        return cls(f"Invalid narrative base URL {value!r}. Must start with http(s)://")

    @classmethod
    def invalid_timeout(cls, value: str) -> SynthesisConfigError:
        """Create error for a non-positive or non-numeric timeout."""
        return cls(f"Invalid narrative timeout {value!r}. Must be a positive number")


class NarrativeBackendConfigError(Exception):
    """Raised when the narrative backend cannot be selected from the environment."""

    @classmethod
    def missing_backend(cls) -> NarrativeBackendConfigError:
        """Create error when PROPWATCH_NARRATIVE_BACKEND is not set."""
        return cls("PROPWATCH_NARRATIVE_BACKEND environment variable is required")

    @classmethod
    def invalid_backend(
        cls, name: str, valid_backends: cabc.Iterable[str]
    ) -> NarrativeBackendConfigError:
        """Create error for an unrecognised backend name."""
        valid_backends_str = ", ".join(f"'{b}'" for b in sorted(valid_backends))
        return cls(
            f"Invalid narrative backend '{name}'. "
            f"Valid options are: {valid_backends_str}"
        )
