"""
HTTP client for the hosted RAG ai-search endpoint.
"""

from __future__ import annotations

import time
from typing import Any

import httpx
import structlog

from chatrag.config import UpstreamSettings
from chatrag.exceptions import UpstreamError
from chatrag.logging_utils import HTTP_INTERNAL_ERROR

HTTP_NO_CONTENT = 204

logger = structlog.get_logger(__name__)


class UpstreamClient:
    """Opens streamed ai-search responses; a single attempt per call."""

    def __init__(
        self,
        http_config: dict[str, Any],
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        timeout = httpx.Timeout(
            connect=http_config["connect_timeout"],
            read=http_config["read_timeout"],
            write=http_config["write_timeout"],
            pool=http_config["pool_timeout"],
        )
        self.client: httpx.AsyncClient = httpx.AsyncClient(
            timeout=timeout, transport=transport
        )

    async def open_search_stream(
        self, settings: UpstreamSettings, body: dict[str, Any]
    ) -> httpx.Response:
        """
        POST the search request and return the still-open streamed response.

        The caller owns the returned response and must close it.

        Raises:
            UpstreamError: On a non-success status (raw error text kept in
                `details`) or when the response carries no body. Not logged
                here; the proxy boundary logs it.
        """
        request = self.client.build_request(
            "POST",
            settings.search_url,
            json=body,
            headers={"Authorization": f"Bearer {settings.api_token}"},
        )
        start_time = time.perf_counter()
        response = await self.client.send(request, stream=True)

        if not response.is_success:
            try:
                await response.aread()
                error_text = response.text
            finally:
                await response.aclose()
            raise UpstreamError(
                f"Upstream API error: {response.reason_phrase}",
                status_code=response.status_code,
                details=error_text,
            )

        if (
            response.status_code == HTTP_NO_CONTENT
            or response.headers.get("content-length") == "0"
        ):
            await response.aclose()
            raise UpstreamError(
                "No response body from upstream API",
                status_code=HTTP_INTERNAL_ERROR,
            )

        logger.debug(
            "Upstream stream opened",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return response

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
