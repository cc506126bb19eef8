"""
ASGI app that re-streams ai-search answers to the browser.

The relayed body is passed through chunk by chunk without parsing; only the
transport headers are replaced.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from chatrag.config import Configuration
from chatrag.logging_utils import ErrorHandler, operation_context
from chatrag.models import ChatRequest
from chatrag.proxy.upstream import UpstreamClient

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


async def relay_stream(upstream_response: httpx.Response) -> AsyncIterator[bytes]:
    """Yield upstream bytes as they arrive and close the upstream afterwards."""
    async with operation_context(
        "relay_stream", upstream_status=upstream_response.status_code
    ) as op_logger:
        relayed = 0
        try:
            async for chunk in upstream_response.aiter_bytes():
                relayed += len(chunk)
                yield chunk
        finally:
            await upstream_response.aclose()
            op_logger.debug("Upstream stream closed", bytes_relayed=relayed)


def create_app(
    config: Configuration,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Build the proxy application.

    Args:
        config: Loaded configuration; upstream credentials are re-read per request
        transport: Optional httpx transport for the upstream client
    """
    server_config = config.get_server_config()
    upstream = UpstreamClient(config.get_http_client_config(), transport=transport)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        await upstream.close()

    app = FastAPI(title="ChatRAG proxy", lifespan=lifespan)
    app.state.upstream = upstream

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(server_config["proxy_path"])
    async def proxy_chat(request: Request) -> Response:
        try:
            body = await request.json()
            chat_request = ChatRequest.model_validate(body)
            settings = config.get_upstream_settings()
            upstream_response = await upstream.open_search_stream(
                settings, chat_request.upstream_body()
            )
        except Exception as e:
            status_code, payload = ErrorHandler.create_error_body(
                e, "proxy_chat", context={"path": request.url.path}
            )
            return JSONResponse(payload, status_code=status_code)

        return StreamingResponse(
            relay_stream(upstream_response),
            status_code=upstream_response.status_code,
            headers=SSE_HEADERS,
        )

    return app
