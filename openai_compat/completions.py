"""Legacy text completions, served through the native chat endpoint."""

import uuid
from typing import Any, AsyncIterator, Dict, Optional

from starlette.requests import Request

from .chat import NATIVE_CHAT_PATH, finish_reason, include_usage, sampling_options, usage
from .errors import InvalidRequestError
from .intercept import Conversion, Translation
from .native_models import NativeChatRequest, NativeChatResponse, NativeMessage, epoch_seconds
from .openai_models import Completion, CompletionChoice, CompletionRequest


def new_completion_id() -> str:
    return f"cmpl-{uuid.uuid4().hex}"


def to_native(body: CompletionRequest) -> NativeChatRequest:
    if not body.prompt:
        raise InvalidRequestError("prompt is required", param="prompt")
    # The prompt becomes the single user turn of a one-message conversation
    return NativeChatRequest(
        model=body.model,
        messages=[NativeMessage(role="user", content=body.prompt)],
        stream=bool(body.stream),
        options=sampling_options(body),
    )


def translate(body: CompletionRequest, request: Request) -> Translation:
    return Translation(source=body, native=to_native(body), stream=bool(body.stream))


def from_native(native: NativeChatResponse, model: str) -> Completion:
    return Completion(
        id=new_completion_id(),
        created=epoch_seconds(native.created_at),
        model=native.model or model,
        choices=[
            CompletionChoice(
                index=0,
                text=native.message.content if native.message is not None else "",
                finish_reason=finish_reason(native),
            )
        ],
        usage=usage(native),
    )


def convert(translation: Translation, payload: Dict[str, Any]) -> Completion:
    return from_native(NativeChatResponse.model_validate(payload), translation.source.model)


async def convert_stream(
    translation: Translation,
    events: AsyncIterator[Dict[str, Any]],
) -> AsyncIterator[Completion]:
    body: CompletionRequest = translation.source
    completion_id = new_completion_id()
    model = body.model
    created: Optional[int] = None
    last: Optional[NativeChatResponse] = None

    async for event in events:
        native = NativeChatResponse.model_validate(event)
        if created is None:
            created = epoch_seconds(native.created_at)
        model = native.model or model

        text = native.message.content if native.message is not None else ""
        if text:
            yield Completion(
                id=completion_id,
                created=created,
                model=model,
                choices=[CompletionChoice(index=0, text=text)],
            )

        if native.done:
            last = native
            break

    yield Completion(
        id=completion_id,
        created=created or 0,
        model=model,
        choices=[CompletionChoice(index=0, text="", finish_reason=finish_reason(last))],
    )

    if include_usage(body):
        yield Completion(
            id=completion_id,
            created=created or 0,
            model=model,
            choices=[],
            usage=usage(last),
        )


CONVERSION = Conversion(
    native_path=NATIVE_CHAT_PATH,
    request_model=CompletionRequest,
    translate=translate,
    convert=convert,
    convert_stream=convert_stream,
)
