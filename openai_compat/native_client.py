"""Async HTTP client relaying native calls to the upstream native API."""

import asyncio
import logging
from typing import AsyncGenerator, Optional

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from .config import get_settings, Settings

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


class NativeApiClient:
    """Client forwarding native-schema requests to the upstream server."""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings: Settings = settings or get_settings()
        self.base_url = self.settings.NATIVE_API_BASE_URL.rstrip("/")

        headers = {
            "Accept": f"application/json, {NDJSON_MEDIA_TYPE}",
            "User-Agent": "openai-compat",
        }
        if self.settings.NATIVE_API_TOKEN:
            headers["Authorization"] = f"Bearer {self.settings.NATIVE_API_TOKEN}"

        # Use infinite read timeout for streamed generations, while keeping bounded connect/write/pool timeouts
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=self.settings.NATIVE_API_TIMEOUT,
                read=None,
                write=self.settings.NATIVE_API_TIMEOUT,
                pool=self.settings.NATIVE_API_TIMEOUT,
            ),
            headers=headers,
            transport=transport,
        )

    async def forward(self, request: Request, path: str) -> Response:
        """
        Send the (already translated) native request upstream.
        NDJSON bodies are relayed chunk by chunk; anything else is read in full.
        """
        body = await request.body()
        url = f"{self.base_url}{path}"
        request_headers = {"Content-Type": "application/json"} if body else {}

        if logger.isEnabledFor(logging.DEBUG):
            # Redact sensitive headers for logging
            safe_headers = {k: ("****" if k.lower() == "authorization" else v)
                           for k, v in {**self.client.headers, **request_headers}.items()}
            logger.debug(
                "Forwarding %s %s - headers=%s payload=%s",
                request.method,
                url,
                safe_headers,
                body.decode("utf-8", errors="replace"),
            )
        else:
            logger.info("Forwarding %s %s", request.method, path)

        upstream_request = self.client.build_request(
            request.method,
            url,
            content=body or None,
            headers=request_headers,
        )
        try:
            upstream = await self.client.send(upstream_request, stream=True)
        except httpx.RequestError as e:
            logger.error(f"Native API unreachable at {url}: {e}")
            return JSONResponse(status_code=502, content={"error": f"native API unreachable: {str(e)}"})

        content_type = upstream.headers.get("content-type", "application/json")
        if upstream.status_code == 200 and content_type.startswith(NDJSON_MEDIA_TYPE):
            return StreamingResponse(
                self._relay(upstream),
                status_code=upstream.status_code,
                media_type=NDJSON_MEDIA_TYPE,
            )

        try:
            content = await upstream.aread()
        except httpx.HTTPError as e:
            logger.error(f"Failed reading native response from {url}: {e}")
            return JSONResponse(status_code=502, content={"error": f"native API read failed: {str(e)}"})
        finally:
            await upstream.aclose()

        logger.debug("Native response %s - status=%s", path, upstream.status_code)
        return Response(content=content, status_code=upstream.status_code, media_type=content_type)

    async def _relay(self, upstream: httpx.Response) -> AsyncGenerator[bytes, None]:
        try:
            async for chunk in upstream.aiter_bytes():
                yield chunk
        except (GeneratorExit, asyncio.CancelledError):
            # Client disconnected or stream cancelled
            logger.debug("Native stream abandoned by caller")
            raise
        finally:
            await upstream.aclose()

    async def close(self):
        """Close underlying HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def get_native_client(req: Request) -> NativeApiClient:
    client = getattr(req.app.state, "native_client", None)
    if client is None:
        client = NativeApiClient()
        req.app.state.native_client = client
    return client


async def native_chat(request: Request) -> Response:
    return await get_native_client(request).forward(request, "/api/chat")


async def native_embeddings(request: Request) -> Response:
    return await get_native_client(request).forward(request, "/api/embeddings")


async def native_list_models(request: Request) -> Response:
    return await get_native_client(request).forward(request, "/api/tags")


async def native_show_model(request: Request) -> Response:
    return await get_native_client(request).forward(request, "/api/show")
