"""Test configuration and fixtures."""

import json
from typing import Any, Callable, Dict, List, Optional

import pytest
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient
from starlette.requests import Request
from starlette.responses import Response

from openai_compat.config import get_settings
from openai_compat.routes_openai import NativeHandlers, build_router


class NativeRecorder:
    """Records every native call made through the gateway."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []

    def wrap(self, handler: Callable) -> Callable:
        async def recorded(request: Request) -> Response:
            raw = await request.body()
            self.calls.append({
                "method": request.method,
                "path": request.url.path,
                "body": json.loads(raw) if raw else None,
            })
            return await handler(request)
        return recorded


async def unexpected_native_call(request: Request) -> Response:
    return JSONResponse({"error": "unexpected native call"}, status_code=500)


def parse_sse(text: str) -> List[Any]:
    """Decode an SSE body into its data payloads; '[DONE]' is kept as a string."""
    events = []
    for block in text.split("\n\n"):
        block = block.strip()
        if not block:
            continue
        assert block.startswith("data: ")
        data = block[len("data: "):]
        events.append(data if data == "[DONE]" else json.loads(data))
    return events


@pytest.fixture(autouse=True)
def clear_settings(monkeypatch: pytest.MonkeyPatch):
    """Each test starts with default settings and no gateway API key."""
    monkeypatch.delenv("OPENAI_COMPAT_API_KEY", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def native() -> NativeRecorder:
    return NativeRecorder()


@pytest.fixture
def make_client(native: NativeRecorder) -> Callable[..., TestClient]:
    """Build a gateway app around fake native handlers."""

    def factory(
        chat: Optional[Callable] = None,
        embeddings: Optional[Callable] = None,
        list_models: Optional[Callable] = None,
        show_model: Optional[Callable] = None,
    ) -> TestClient:
        handlers = NativeHandlers(
            chat=native.wrap(chat or unexpected_native_call),
            embeddings=native.wrap(embeddings or unexpected_native_call),
            list_models=native.wrap(list_models or unexpected_native_call),
            show_model=native.wrap(show_model or unexpected_native_call),
        )
        app = FastAPI()
        app.include_router(build_router(handlers))
        return TestClient(app)

    return factory
