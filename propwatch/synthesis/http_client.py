"""HTTP implementation of the NarrativeService protocol."""

from __future__ import annotations

import typing as typ

import httpx
import msgspec

from propwatch.synthesis.errors import SynthesisAPIError, SynthesisResponseShapeError
from propwatch.synthesis.models import (
    NarrativeRequest,
    NarrativeResponse,
    SummaryRequest,
    SummaryResponse,
)

T = typ.TypeVar("T")

if typ.TYPE_CHECKING:
    from propwatch.synthesis.config import NarrativeServiceConfig

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_RATE_LIMITED = 429

_SUMMARIZE = "summarize_events"
_NARRATE = "compose_narrative"


def _get_retry_after(response: httpx.Response) -> int | None:
    """Extract Retry-After header value if present and numeric."""
    retry_after = response.headers.get("Retry-After")
    if retry_after and retry_after.isdigit():
        return int(retry_after)
    return None


class HttpNarrativeService:
    """Call a remote narrative service over HTTP.

    Both calls are JSON ``POST`` requests. Any transport failure, non-success
    status, or undecodable body raises a :class:`SynthesisError` subclass; no
    call is retried.

    Parameters
    ----------
    config
        Endpoint and timeout configuration.
    http_client
        Optional ``httpx.AsyncClient`` for testing. If not provided, the
        instance creates and owns its own client. The bearer token and
        timeout from ``config`` are sent with every request either way.

    Examples
    --------
    >>> import asyncio
    >>> config = NarrativeServiceConfig(base_url="https://narrative.example")
    >>> service = HttpNarrativeService(config)
    >>> asyncio.run(service.aclose())

    """

    def __init__(
        self,
        config: NarrativeServiceConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with configuration."""
        self._config = config
        self._owns_client = http_client is None
        self._headers = {"Content-Type": "application/json"}
        if config.api_key:
            self._headers["Authorization"] = f"Bearer {config.api_key}"
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s, headers=self._headers
        )

    @property
    def name(self) -> str:
        """Identify the backend by its host."""
        return f"http:{httpx.URL(self._config.base_url).host}"

    @property
    def config(self) -> NarrativeServiceConfig:
        """Read-only access to the client configuration."""
        return self._config

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def summarize_events(self, request: SummaryRequest) -> SummaryResponse:
        """POST the events and decode the per-event summaries.

        Raises
        ------
        SynthesisAPIError
            If the request fails or returns an error status.
        SynthesisResponseShapeError
            If the body does not decode as a summary response.

        """
        response = await self._post(_SUMMARIZE, self._config.summaries_path, request)
        return self._decode(_SUMMARIZE, response, SummaryResponse)

    async def compose_narrative(self, request: NarrativeRequest) -> NarrativeResponse:
        """POST the window statistics and decode the narrative.

        Raises
        ------
        SynthesisAPIError
            If the request fails or returns an error status.
        SynthesisResponseShapeError
            If the body does not decode as a narrative response.

        """
        response = await self._post(_NARRATE, self._config.narrative_path, request)
        return self._decode(_NARRATE, response, NarrativeResponse)

    async def _post(
        self, operation: str, path: str, body: msgspec.Struct
    ) -> httpx.Response:
        url = f"{self._config.base_url}{path}"
        try:
            response = await self._client.post(
                url,
                content=msgspec.json.encode(body),
                headers=self._headers,
                timeout=self._config.timeout_s,
            )
        except httpx.TimeoutException as exc:
            raise SynthesisAPIError.timeout(operation) from exc
        except httpx.RequestError as exc:
            raise SynthesisAPIError.network_error(operation, str(exc)) from exc

        if response.status_code == _HTTP_RATE_LIMITED:
            raise SynthesisAPIError.rate_limited(operation, _get_retry_after(response))
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise SynthesisAPIError.http_error(operation, response.status_code)
        return response

    @staticmethod
    def _decode(operation: str, response: httpx.Response, type_: type[T]) -> T:
        try:
            return msgspec.json.decode(response.content, type=type_)
        except msgspec.DecodeError as exc:
            # ValidationError subclasses DecodeError, so shape mismatches land here.
            raise SynthesisResponseShapeError.invalid_payload(
                operation, response.text
            ) from exc
