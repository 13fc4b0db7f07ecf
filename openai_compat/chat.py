"""Chat completions: OpenAI chat requests to native chat calls and back."""

import logging
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Union

from starlette.requests import Request

from .errors import InvalidRequestError
from .intercept import Conversion, Translation
from .native_models import NativeChatRequest, NativeChatResponse, NativeMessage, epoch_seconds
from .openai_models import (
    ChatChoice,
    ChatCompletion,
    ChatCompletionChunk,
    ChatCompletionChunkChoice,
    ChatCompletionsRequest,
    ChatMessageResponse,
    CompletionRequest,
    DeltaMessage,
    Usage,
)

logger = logging.getLogger(__name__)

NATIVE_CHAT_PATH = "/api/chat"


def new_chat_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex}"


def sampling_options(body: Union[ChatCompletionsRequest, CompletionRequest]) -> Dict[str, Any]:
    """Map OpenAI sampling parameters onto native options, filling OpenAI defaults."""
    options: Dict[str, Any] = {}
    if isinstance(body.stop, str):
        options["stop"] = [body.stop]
    elif body.stop:
        options["stop"] = list(body.stop)
    if body.max_tokens is not None:
        options["num_predict"] = body.max_tokens
    if body.seed is not None:
        options["seed"] = body.seed
    if body.frequency_penalty is not None:
        options["frequency_penalty"] = body.frequency_penalty
    if body.presence_penalty is not None:
        options["presence_penalty"] = body.presence_penalty
    options["temperature"] = body.temperature if body.temperature is not None else 1.0
    options["top_p"] = body.top_p if body.top_p is not None else 1.0
    return options


def _split_content(content: Any) -> Tuple[str, List[str]]:
    # Convert OpenAI content (string or array-of-parts) into plain text plus base64 images
    if content is None:
        return "", []
    if isinstance(content, str):
        return content, []

    texts: List[str] = []
    images: List[str] = []
    for part in content:
        if isinstance(part, str):
            texts.append(part)
            continue
        if part.type == "image_url":
            url = part.image_url.get("url") if isinstance(part.image_url, dict) else part.image_url
            if not isinstance(url, str) or not url.startswith("data:") or ";base64," not in url:
                raise InvalidRequestError("only base64 data URLs are supported for image_url", param="messages")
            images.append(url.split(";base64,", 1)[1])
        elif isinstance(part.text, str):
            texts.append(part.text)
    return "\n".join(t for t in texts if t), images


def to_native(body: ChatCompletionsRequest) -> NativeChatRequest:
    if not body.messages:
        raise InvalidRequestError("[] is too short - 'messages'", param="messages")

    messages = []
    for m in body.messages:
        text, images = _split_content(m.content)
        messages.append(NativeMessage(role=m.role, content=text, images=images or None))

    fmt = None
    if body.response_format is not None and body.response_format.type == "json_object":
        fmt = "json"

    return NativeChatRequest(
        model=body.model,
        messages=messages,
        stream=bool(body.stream),
        format=fmt,
        options=sampling_options(body),
    )


def translate(body: ChatCompletionsRequest, request: Request) -> Translation:
    return Translation(source=body, native=to_native(body), stream=bool(body.stream))


def finish_reason(native: Optional[NativeChatResponse]) -> str:
    if native is not None:
        if native.done_reason == "length":
            return "length"
        if native.message is not None and native.message.tool_calls:
            return "tool_calls"
    return "stop"


def usage(native: Optional[NativeChatResponse]) -> Usage:
    if native is None:
        return Usage()
    return Usage(
        prompt_tokens=native.prompt_eval_count,
        completion_tokens=native.eval_count,
        total_tokens=native.prompt_eval_count + native.eval_count,
    )


def include_usage(body: Union[ChatCompletionsRequest, CompletionRequest]) -> bool:
    return body.stream_options is not None and body.stream_options.include_usage


def from_native(native: NativeChatResponse, model: str) -> ChatCompletion:
    content = native.message.content if native.message is not None else ""
    return ChatCompletion(
        id=new_chat_id(),
        created=epoch_seconds(native.created_at),
        model=native.model or model,
        choices=[
            ChatChoice(
                index=0,
                message=ChatMessageResponse(content=content),
                finish_reason=finish_reason(native),
            )
        ],
        usage=usage(native),
    )


def convert(translation: Translation, payload: Dict[str, Any]) -> ChatCompletion:
    return from_native(NativeChatResponse.model_validate(payload), translation.source.model)


async def convert_stream(
    translation: Translation,
    events: AsyncIterator[Dict[str, Any]],
) -> AsyncIterator[ChatCompletionChunk]:
    """
    Repackage native chat events as chat.completion.chunk objects.

    Each native event with content becomes one chunk; the native done event closes the
    stream with an empty-delta chunk carrying the finish reason. All chunks share one id.
    """
    body: ChatCompletionsRequest = translation.source
    chunk_id = new_chat_id()
    model = body.model
    created: Optional[int] = None
    last: Optional[NativeChatResponse] = None

    async for event in events:
        native = NativeChatResponse.model_validate(event)
        if created is None:
            created = epoch_seconds(native.created_at)
        model = native.model or model

        content = native.message.content if native.message is not None else ""
        if content:
            yield ChatCompletionChunk(
                id=chunk_id,
                created=created,
                model=model,
                choices=[
                    ChatCompletionChunkChoice(
                        index=0,
                        delta=DeltaMessage(role="assistant", content=content),
                    )
                ],
            )

        if native.done:
            last = native
            break

    if last is None:
        logger.warning(f"Native chat stream for {chunk_id} ended without a done event")

    # Final control chunk with finish reason and empty delta
    yield ChatCompletionChunk(
        id=chunk_id,
        created=created or 0,
        model=model,
        choices=[
            ChatCompletionChunkChoice(
                index=0,
                delta=DeltaMessage(),
                finish_reason=finish_reason(last),
            )
        ],
    )

    if include_usage(body):
        yield ChatCompletionChunk(
            id=chunk_id,
            created=created or 0,
            model=model,
            choices=[],
            usage=usage(last),
        )


CONVERSION = Conversion(
    native_path=NATIVE_CHAT_PATH,
    request_model=ChatCompletionsRequest,
    translate=translate,
    convert=convert,
    convert_stream=convert_stream,
)
