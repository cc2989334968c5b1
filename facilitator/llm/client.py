"""
HTTP client for the workshop completion API.

Streaming and non-streaming completion calls share one interface: the
endpoint's ``streaming`` flag decides whether the response is consumed as an
SSE stream or read as a single JSON body.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .exceptions import (
    NoResponseBody,
    ResponseFormatError,
    ResultExtractionMiss,
    StreamCancelled,
    StreamTransportFailure,
    TransportFailure,
)
from .models import ClientConfig, CompletionEndpoint
from .streaming.consumer import (
    CancellationToken,
    ProgressCallback,
    StreamingCompletionConsumer,
)
from .streaming.models import StreamResult
from .streaming.parser import extract_json_object

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

STREAM_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "text/event-stream",
}
EVENT_STREAM_TYPES = ["text/event-stream", "stream"]


class WorkshopAPIClient:
    """HTTP client for the workshop backend with SSE stream support."""

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config

        headers = {}
        if config.api_token:
            headers["Authorization"] = f"Bearer {config.api_token}"

        self.client: httpx.AsyncClient = httpx.AsyncClient(
            base_url=config.base_url,
            headers=headers,
            timeout=httpx.Timeout(
                connect=config.connect_timeout,
                read=config.read_timeout,
                write=config.write_timeout,
                pool=config.pool_timeout,
            ),
            limits=httpx.Limits(
                max_connections=config.max_connections,
                max_keepalive_connections=config.max_keepalive,
            ),
            transport=transport,
        )

    async def complete(
        self,
        endpoint: CompletionEndpoint,
        payload: dict[str, Any],
        *,
        result_model: type[ModelT] | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> ModelT | dict[str, Any] | str:
        """
        Call a completion endpoint and return its final result.

        Free-text streaming endpoints return the accumulated text verbatim.
        Structured endpoints return the JSON object (validated against
        ``result_model`` when given).

        Raises:
            StreamTransportFailure: Streaming transport failed.
            TransportFailure: Non-streaming transport failed.
            StreamCancelled: ``cancel`` was triggered.
            ResultExtractionMiss: No usable JSON object in the streamed text.
            ResponseFormatError: A JSON body had the wrong shape.
        """
        if endpoint.streaming:
            text = await self.stream_text(
                endpoint.path,
                payload,
                on_progress=on_progress,
                cancel=cancel,
                timeout=timeout,
            )
            if endpoint.free_text:
                return text
            try:
                data = extract_json_object(text)
            except ResultExtractionMiss as e:
                e.endpoint = endpoint.path
                raise
        else:
            data = await self.request_json(
                "POST", endpoint.path, payload, timeout=timeout
            )
            if not isinstance(data, dict):
                raise ResponseFormatError(
                    f"Expected a JSON object, got {type(data).__name__}",
                    endpoint=endpoint.path,
                )

        if result_model is None:
            return data

        try:
            return result_model.model_validate(data)
        except ValidationError as e:
            if endpoint.streaming:
                raise ResultExtractionMiss(
                    f"Extracted object does not match "
                    f"{result_model.__name__}: {e.error_count()} errors",
                    endpoint=endpoint.path,
                    response_data=data,
                ) from e
            raise ResponseFormatError(
                f"Response does not match {result_model.__name__}: "
                f"{e.error_count()} errors",
                endpoint=endpoint.path,
                response_data=data,
            ) from e

    async def stream_text(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> str:
        """Stream a completion and return the accumulated text."""
        result = await self.stream(
            path, payload, on_progress=on_progress, cancel=cancel, timeout=timeout
        )
        return result.text

    async def stream(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> StreamResult:
        """
        POST ``payload`` and consume the SSE response in one linear pass.

        ``timeout`` covers the whole request, defaulting to the configured
        stream timeout; None waits indefinitely.
        """
        if cancel is not None and cancel.cancelled:
            raise StreamCancelled(
                f"Stream cancelled before request: {cancel.reason}", endpoint=path
            )

        if timeout is None:
            timeout = self.config.stream_timeout
        consumer = StreamingCompletionConsumer(endpoint=path)

        try:
            async with asyncio.timeout(timeout):
                async with self.client.stream(
                    "POST", path, json=payload, headers=STREAM_HEADERS
                ) as response:
                    await self._ensure_stream_response(response, path)
                    result = await consumer.consume(
                        response.aiter_bytes(),
                        on_progress=on_progress,
                        cancel=cancel,
                    )
        except TimeoutError as e:
            logger.error(f"Stream from {path} timed out after {timeout}s")
            raise StreamTransportFailure(
                f"Stream timed out after {timeout}s", endpoint=path
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error during streaming from {path}: {e}")
            raise StreamTransportFailure(
                f"HTTP error during streaming: {e!s}", endpoint=path
            ) from e

        logger.info(
            f"Stream from {path} complete: {result.stats.characters} chars, "
            f"{result.stats.content_frames} frames"
        )
        return result

    async def _ensure_stream_response(
        self, response: httpx.Response, path: str
    ) -> None:
        """Fail fast unless the response is a readable event stream."""
        if not response.is_success:
            error_text = (await response.aread()).decode("utf-8", errors="replace")
            raise StreamTransportFailure(
                f"Streaming API error {response.status_code}: {error_text}",
                endpoint=path,
                status_code=response.status_code,
            )

        if (
            response.status_code == httpx.codes.NO_CONTENT
            or response.headers.get("content-length") == "0"
        ):
            raise NoResponseBody(
                "No response body to stream",
                endpoint=path,
                status_code=response.status_code,
            )

        if self.config.require_event_stream:
            content_type = response.headers.get("content-type", "")
            if not any(t in content_type for t in EVENT_STREAM_TYPES):
                raise StreamTransportFailure(
                    f"Expected streaming response, got content-type: "
                    f"{content_type}",
                    endpoint=path,
                    status_code=response.status_code,
                )

    async def request_json(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Send a non-streaming request and decode its JSON body."""
        try:
            async with asyncio.timeout(timeout):
                response = await self.client.request(method, path, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"API error {status} from {method} {path}")
            raise TransportFailure(
                f"API error {status}: {e.response.text}",
                endpoint=path,
                status_code=status,
                response_data=_json_or_empty(e.response),
            ) from e
        except TimeoutError as e:
            logger.error(f"Request {method} {path} timed out after {timeout}s")
            raise TransportFailure(
                f"Request timed out after {timeout}s", endpoint=path
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error: {e}")
            raise TransportFailure(f"HTTP error: {e!s}", endpoint=path) from e

        try:
            return response.json()
        except ValueError as e:
            raise ResponseFormatError(
                f"Invalid JSON in response: {e}",
                endpoint=path,
                status_code=response.status_code,
            ) from e

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> WorkshopAPIClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
