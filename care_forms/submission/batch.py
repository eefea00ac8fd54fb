"""Batch transport: wire models and the HTTP batch client.

The engine compiles a list of BatchRequest values; a BatchClient executes
them as one batch and returns one BatchResult per request.
"""

import logging
from collections.abc import Sequence
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, Field, ValidationError

from care_forms.config import EngineConfig, load_config
from care_forms.structured.handlers import BatchRequest

logger = logging.getLogger(__name__)


class BatchTransportError(Exception):
    """Raised when a batch call fails without a structured results body."""

    pass


class BatchResult(BaseModel):
    """Outcome of one request of a batch."""

    reference_id: str = ""
    status_code: int
    data: Any = None

    @property
    def is_success(self) -> bool:
        """Whether the status code is in the 2xx range."""
        return 200 <= self.status_code < 300


class BatchResponse(BaseModel):
    """Results of a batch, in request order."""

    results: list[BatchResult] = Field(default_factory=list)

    @property
    def failed(self) -> list[BatchResult]:
        return [result for result in self.results if not result.is_success]


def build_envelope(requests: Sequence[BatchRequest]) -> dict[str, Any]:
    """Build the ``{"requests": [...]}`` body posted to the batch endpoint."""
    return {"requests": [request.model_dump(mode="json") for request in requests]}


class BatchClient(Protocol):
    """Executes a list of requests as one batch."""

    async def execute(self, requests: Sequence[BatchRequest]) -> BatchResponse:
        ...


class HttpBatchClient:
    """BatchClient posting to the batch endpoint with httpx.

    Any response whose JSON body carries ``results`` is returned as-is,
    whatever its HTTP status, because the endpoint reports per-request
    failures inside a 4xx envelope.
    """

    def __init__(
        self,
        batch_url: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            batch_url: Absolute URL of the batch endpoint.
            timeout: Request timeout in seconds.
            client: An existing AsyncClient to use; it is not closed here.
            transport: Transport for an internally created AsyncClient.
            headers: Extra headers, e.g. an Authorization header.
        """
        self.batch_url = batch_url
        self.timeout = timeout
        self._client = client
        self._transport = transport
        self._headers = headers or {}

    @classmethod
    def from_config(cls, config: EngineConfig | None = None, **kwargs: Any) -> "HttpBatchClient":
        """Create a client for the configured batch endpoint."""
        config = config or load_config()
        return cls(config.batch_url, timeout=config.timeout_seconds, **kwargs)

    async def execute(self, requests: Sequence[BatchRequest]) -> BatchResponse:
        """Post the batch and parse its results.

        Raises:
            BatchTransportError: On connection errors, timeouts, non-JSON
                bodies, or bodies without ``results``.
        """
        envelope = build_envelope(requests)
        logger.info("Posting batch of %d request(s) to %s", len(requests), self.batch_url)
        try:
            if self._client is not None:
                response = await self._client.post(
                    self.batch_url, json=envelope, headers=self._headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(
                    transport=self._transport, timeout=self.timeout
                ) as client:
                    response = await client.post(self.batch_url, json=envelope, headers=self._headers)
        except httpx.HTTPError as e:
            raise BatchTransportError(f"Batch request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise BatchTransportError(
                f"Batch endpoint returned a non-JSON body (HTTP {response.status_code})"
            ) from e

        if not isinstance(payload, dict) or "results" not in payload:
            raise BatchTransportError(
                f"Batch endpoint returned no results (HTTP {response.status_code})"
            )

        try:
            return BatchResponse.model_validate(payload)
        except ValidationError as e:
            raise BatchTransportError(f"Malformed batch results: {e}") from e
