"""Utilities to turn native NDJSON bodies into OpenAI-compatible SSE streams."""

import json
import logging
from typing import AsyncIterator, Dict, Any

from starlette.responses import Response, StreamingResponse

from .errors import NativeContractError

logger = logging.getLogger(__name__)

# Longest partial NDJSON line held in memory while waiting for its newline
MAX_LINE_LENGTH = 16 * 1024 * 1024


class NativeStreamError(Exception):
    """Native endpoint reported an error in the middle of a streamed body."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


def sse_encode(obj: Dict[str, Any]) -> bytes:
    return f"data: {json.dumps(obj, ensure_ascii=False)}\n\n".encode("utf-8")


def sse_done() -> bytes:
    return b"data: [DONE]\n\n"


async def iter_body(response: Response) -> AsyncIterator[bytes]:
    """
    Yield a captured native response body without sending it anywhere.
    Streaming bodies are consumed lazily; the native iterator is closed on exit.
    """
    if isinstance(response, StreamingResponse):
        body_iterator = response.body_iterator
        try:
            async for chunk in body_iterator:
                yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk
        finally:
            aclose = getattr(body_iterator, "aclose", None)
            if aclose is not None:
                await aclose()
    else:
        yield response.body


async def read_body(response: Response) -> bytes:
    parts = []
    async for chunk in iter_body(response):
        parts.append(chunk)
    return b"".join(parts)


def _decode_event(line: bytes) -> Dict[str, Any]:
    try:
        event = json.loads(line)
    except json.JSONDecodeError as e:
        raise NativeContractError(f"native stream carried invalid JSON: {e}")
    if not isinstance(event, dict):
        raise NativeContractError("native stream event is not a JSON object")
    return event


async def iter_native_events(
    chunks: AsyncIterator[bytes],
    max_line_length: int = MAX_LINE_LENGTH,
) -> AsyncIterator[Dict[str, Any]]:
    """
    Split a native NDJSON body into events, one JSON object per line.
    Only the current partial line is buffered, up to max_line_length bytes.
    An {"error": ...} event raises NativeStreamError.
    """
    buffer = b""
    try:
        async for chunk in chunks:
            buffer += chunk
            while b"\n" in buffer:
                line, buffer = buffer.split(b"\n", 1)
                if line.strip():
                    event = _decode_event(line)
                    if "error" in event:
                        raise NativeStreamError(str(event["error"]))
                    yield event
            if len(buffer) > max_line_length:
                raise NativeContractError(
                    f"native stream line exceeds {max_line_length} bytes without a newline"
                )
        if buffer.strip():
            event = _decode_event(buffer)
            if "error" in event:
                raise NativeStreamError(str(event["error"]))
            yield event
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()
