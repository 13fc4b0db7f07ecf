"""Tests for the interception point, native event splitting and the gateway auth guard."""

import asyncio
from typing import Any, Dict, List

import pytest
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask
from starlette.requests import Request

from openai_compat.errors import InvalidRequestError, NativeContractError
from openai_compat.intercept import parse_body
from openai_compat.openai_models import EmbeddingRequest
from openai_compat.streaming import NativeStreamError, iter_native_events
from tests.conftest import parse_sse


class TestParseBody:
    """Inbound body validation."""

    def test_valid(self) -> None:
        body = parse_body(b'{"model": "m", "input": "x"}', EmbeddingRequest)
        assert body.model == "m"
        assert body.input == "x"

    def test_invalid_json(self) -> None:
        with pytest.raises(InvalidRequestError) as exc:
            parse_body(b"{", EmbeddingRequest)
        assert exc.value.message.startswith("invalid JSON body")

    def test_empty_body(self) -> None:
        with pytest.raises(InvalidRequestError):
            parse_body(b"", EmbeddingRequest)

    def test_schema_violation_names_field(self) -> None:
        with pytest.raises(InvalidRequestError) as exc:
            parse_body(b'{"input": "x"}', EmbeddingRequest)
        assert exc.value.param == "model"


class TestNativeRequest:
    """What the native handler sees."""

    def test_headers_and_body(self, make_client) -> None:
        seen = {}

        async def inspect_request(request: Request) -> JSONResponse:
            seen["content_type"] = request.headers.get("content-type")
            seen["content_length"] = request.headers.get("content-length")
            seen["custom"] = request.headers.get("x-trace-id")
            seen["query"] = request.url.query
            seen["body"] = await request.body()
            return JSONResponse({"embedding": [1.0]})

        client = make_client(embeddings=inspect_request)
        client.post(
            "/v1/embeddings?debug=1",
            json={"model": "m", "input": "hi"},
            headers={"X-Trace-Id": "abc"},
        )

        assert seen["content_type"] == "application/json"
        assert seen["content_length"] == str(len(seen["body"]))
        assert seen["custom"] == "abc"
        assert seen["query"] == ""

    def test_background_task_carried_over(self, make_client) -> None:
        ran: List[str] = []

        async def with_cleanup(request: Request) -> JSONResponse:
            return JSONResponse(
                {"embedding": [1.0]},
                background=BackgroundTask(ran.append, "cleanup"),
            )

        client = make_client(embeddings=with_cleanup)
        response = client.post("/v1/embeddings", json={"model": "m", "input": "hi"})

        assert response.status_code == 200
        assert ran == ["cleanup"]

    def test_native_bad_request_is_reshaped(self, make_client) -> None:
        async def bad_request(request: Request) -> JSONResponse:
            return JSONResponse({"error": "bad things"}, status_code=400)

        client = make_client(embeddings=bad_request)
        response = client.post("/v1/embeddings", json={"model": "m", "input": "hi"})

        assert response.status_code == 400
        assert response.json() == {"error": "bad things"}


class TestAuthGuard:
    """Optional bearer-token guard."""

    @pytest.fixture
    def keyed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from openai_compat.config import get_settings

        monkeypatch.setenv("OPENAI_COMPAT_API_KEY", "sekrit")
        get_settings.cache_clear()

    def test_open_without_key(self, make_client) -> None:
        async def tags(request: Request) -> JSONResponse:
            return JSONResponse({"models": []})

        client = make_client(list_models=tags)

        assert client.get("/v1/models").status_code == 200

    def test_rejects_missing_key(self, make_client, native, keyed) -> None:
        client = make_client()

        response = client.get("/v1/models")

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or missing API key"}
        assert native.calls == []

    def test_rejects_wrong_key(self, make_client, keyed) -> None:
        client = make_client()

        response = client.post(
            "/v1/chat/completions",
            json={"model": "m", "messages": [{"role": "user", "content": "hi"}]},
            headers={"Authorization": "Bearer wrong"},
        )

        assert response.status_code == 401

    def test_accepts_key(self, make_client, keyed) -> None:
        async def tags(request: Request) -> JSONResponse:
            return JSONResponse({"models": [{"name": "m"}]})

        client = make_client(list_models=tags)

        response = client.get("/v1/models", headers={"Authorization": "Bearer sekrit"})

        assert response.status_code == 200
        assert response.json()["data"][0]["id"] == "m"


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


async def _collect(chunks, **kwargs) -> List[Dict[str, Any]]:
    return [event async for event in iter_native_events(chunks, **kwargs)]


class TestNativeEvents:
    """Splitting native NDJSON bodies into events."""

    def test_lines_split_across_chunks(self) -> None:
        events = asyncio.run(_collect(_chunks(b'{"a": 1}\n{"b"', b': 2}\n', b'{"c": 3}')))

        assert events == [{"a": 1}, {"b": 2}, {"c": 3}]

    def test_error_event_raises(self) -> None:
        with pytest.raises(NativeStreamError) as exc:
            asyncio.run(_collect(_chunks(b'{"a": 1}\n{"error": "boom"}\n')))
        assert exc.value.message == "boom"

    def test_unterminated_line_over_limit(self) -> None:
        with pytest.raises(NativeContractError) as exc:
            asyncio.run(_collect(_chunks(b'{"a": "', b"x" * 40, b"x" * 40), max_line_length=64))
        assert "exceeds 64 bytes" in exc.value.message

    def test_long_line_within_limit(self) -> None:
        payload = b'{"a": "' + b"x" * 50 + b'"}\n'

        events = asyncio.run(_collect(_chunks(payload[:30], payload[30:]), max_line_length=64))

        assert events == [{"a": "x" * 50}]

    def test_oversized_stream_line_ends_sse_with_error(self, make_client, monkeypatch) -> None:
        from openai_compat import intercept as intercept_module

        async def limited(chunks):
            async for event in iter_native_events(chunks, max_line_length=16):
                yield event

        monkeypatch.setattr(intercept_module, "iter_native_events", limited)

        async def runaway(request: Request) -> StreamingResponse:
            async def body():
                yield b'{"model": "m", "message": {"role": "assistant", "content": "'
                yield b"x" * 64
            return StreamingResponse(body(), media_type="application/x-ndjson")

        client = make_client(chat=runaway)
        events = parse_sse(client.post("/v1/chat/completions", json={
            "model": "m",
            "messages": [{"role": "user", "content": "Hello"}],
            "stream": True,
        }).text)

        assert events == [{"error": "native stream could not be translated"}]
