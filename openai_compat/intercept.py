"""
Interception point wrapping a native endpoint with an OpenAI-compatible converter pair.

The wrapped endpoint parses the inbound body against the OpenAI schema, rewrites it
for the native endpoint, runs the native handler without letting it write to the
caller, and reshapes whatever it returned (JSON, NDJSON stream or error) back into
the OpenAI schema.
"""

import json
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Type

from pydantic import BaseModel, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse

from .errors import (
    InvalidRequestError,
    NativeContractError,
    error_payload,
    map_contract_error,
    map_generic_error,
    map_invalid_request,
    map_native_error,
)
from .streaming import (
    NativeStreamError,
    iter_body,
    iter_native_events,
    read_body,
    sse_done,
    sse_encode,
)

logger = logging.getLogger(__name__)

NativeHandler = Callable[[Request], Awaitable[Response]]


@dataclass
class Translation:
    """An inbound request rewritten for the native endpoint."""
    source: Any
    native: Optional[BaseModel] = None
    stream: bool = False


StreamConverter = Callable[[Translation, AsyncIterator[Dict[str, Any]]], AsyncIterator[BaseModel]]


@dataclass
class Conversion:
    """Converter pair (plus native routing) for one capability."""
    native_path: str
    translate: Callable[[Any, Request], Translation]
    convert: Callable[[Translation, Any], BaseModel]
    convert_stream: Optional[StreamConverter] = None
    request_model: Optional[Type[BaseModel]] = None
    native_method: str = "POST"


def parse_body(raw: bytes, model: Type[BaseModel]) -> BaseModel:
    """Validate an inbound JSON body, turning any failure into InvalidRequestError."""
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        err = e.errors()[0]
        if err["type"] == "json_invalid":
            raise InvalidRequestError(f"invalid JSON body: {err['msg']}")
        loc = ".".join(str(p) for p in err["loc"])
        raise InvalidRequestError(f"{loc}: {err['msg']}" if loc else err["msg"], param=loc or None)


def _native_request(request: Request, conversion: Conversion, translation: Translation) -> Request:
    body = b""
    if translation.native is not None:
        body = translation.native.model_dump_json(exclude_none=True).encode("utf-8")

    headers = [
        (k, v) for k, v in request.scope["headers"]
        if k not in (b"content-length", b"content-type")
    ]
    if body:
        headers.append((b"content-type", b"application/json"))
        headers.append((b"content-length", str(len(body)).encode("ascii")))

    scope = dict(request.scope)
    scope.update(
        method=conversion.native_method,
        path=conversion.native_path,
        raw_path=conversion.native_path.encode("utf-8"),
        query_string=b"",
        headers=headers,
        path_params={},
    )

    body_sent = False

    async def receive():
        nonlocal body_sent
        if not body_sent:
            body_sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        # Body already delivered; let the native handler observe caller disconnects
        return await request.receive()

    return Request(scope, receive)


async def _close_native(response: Response) -> None:
    if isinstance(response, StreamingResponse):
        aclose = getattr(response.body_iterator, "aclose", None)
        if aclose is not None:
            await aclose()


async def _sse_stream(
    conversion: Conversion,
    translation: Translation,
    native_response: Response,
) -> AsyncIterator[bytes]:
    try:
        async with aclosing(iter_native_events(iter_body(native_response))) as events, \
                aclosing(conversion.convert_stream(translation, events)) as chunks:
            async for chunk in chunks:
                yield sse_encode(chunk.model_dump())
        yield sse_done()
    except NativeStreamError as e:
        # Cannot change status mid-stream; report the error as a final event
        logger.warning(f"Native stream error: {e.message}")
        yield sse_encode(error_payload(e.message))
    except (NativeContractError, ValidationError) as e:
        logger.error(f"Native stream contract violation: {e}")
        yield sse_encode(error_payload("native stream could not be translated"))
    except Exception as e:
        logger.error(f"Unexpected error while streaming: {type(e).__name__}: {e}", exc_info=True)
        yield sse_encode(error_payload("Internal server error"))
    finally:
        await _close_native(native_response)


def intercept(native_handler: NativeHandler, conversion: Conversion) -> NativeHandler:
    """
    Wrap native_handler so it speaks the OpenAI schema:
    parse and rewrite the request, capture the native response, convert it back.
    """

    async def endpoint(request: Request) -> Response:
        try:
            source: Any = None
            if conversion.request_model is not None:
                source = parse_body(await request.body(), conversion.request_model)
            translation = conversion.translate(source, request)
        except InvalidRequestError as e:
            return map_invalid_request(e)

        try:
            native_response = await native_handler(_native_request(request, conversion, translation))
        except Exception as e:
            return map_generic_error(e)

        status_code = native_response.status_code
        if not 200 <= status_code < 300:
            error = map_native_error(status_code, await read_body(native_response))
            error.background = native_response.background
            return error

        if translation.stream and conversion.convert_stream is not None:
            return StreamingResponse(
                _sse_stream(conversion, translation, native_response),
                status_code=status_code,
                media_type="text/event-stream",
                headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
                background=native_response.background,
            )

        body = await read_body(native_response)
        try:
            payload = json.loads(body)
            result = conversion.convert(translation, payload)
        except json.JSONDecodeError as e:
            return map_contract_error(NativeContractError(f"native endpoint returned invalid JSON: {e}"))
        except ValidationError as e:
            return map_contract_error(NativeContractError(f"native payload did not match its schema: {e.errors()[0]['msg']}"))
        except NativeContractError as e:
            return map_contract_error(e)

        return JSONResponse(
            content=result.model_dump(),
            status_code=status_code,
            background=native_response.background,
        )

    endpoint.__name__ = getattr(native_handler, "__name__", "endpoint")
    return endpoint
