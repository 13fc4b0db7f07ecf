"""Embeddings: single and batch inputs, normalised into one ordered embedding list."""

from typing import Any, Dict, List

from starlette.requests import Request

from .errors import InvalidRequestError, NativeContractError
from .intercept import Conversion, Translation
from .native_models import NativeEmbeddingRequest, NativeEmbeddingResponse
from .openai_models import Embedding, EmbeddingList, EmbeddingRequest, EmbeddingUsage

NATIVE_EMBEDDINGS_PATH = "/api/embeddings"


def to_native(body: EmbeddingRequest) -> NativeEmbeddingRequest:
    if isinstance(body.input, str):
        if body.input == "":
            raise InvalidRequestError("input is required", param="input")
        return NativeEmbeddingRequest(model=body.model, prompt=body.input)

    if not body.input:
        raise InvalidRequestError("invalid input: expected a non-empty list of strings", param="input")
    if not all(isinstance(item, str) for item in body.input):
        raise InvalidRequestError("invalid input: every batch item must be a string", param="input")
    return NativeEmbeddingRequest(model=body.model, prompt_batch=list(body.input))


def translate(body: EmbeddingRequest, request: Request) -> Translation:
    return Translation(source=body, native=to_native(body))


def expected_count(body: EmbeddingRequest) -> int:
    return 1 if isinstance(body.input, str) else len(body.input)


def vectors(native: NativeEmbeddingResponse) -> List[List[float]]:
    """Native vectors as a list, whether the native side answered with one or a batch."""
    if native.embedding_batch is not None:
        return native.embedding_batch
    if native.embedding is not None:
        return [native.embedding]
    raise NativeContractError("native embedding response carried no vectors")


def from_native(native: NativeEmbeddingResponse, body: EmbeddingRequest) -> EmbeddingList:
    found = vectors(native)
    wanted = expected_count(body)
    if len(found) != wanted:
        raise NativeContractError(f"native endpoint returned {len(found)} embeddings for {wanted} inputs")

    return EmbeddingList(
        data=[Embedding(index=i, embedding=vector) for i, vector in enumerate(found)],
        model=body.model,
        usage=EmbeddingUsage(prompt_tokens=native.prompt_eval_count, total_tokens=native.prompt_eval_count),
    )


def convert(translation: Translation, payload: Dict[str, Any]) -> EmbeddingList:
    return from_native(NativeEmbeddingResponse.model_validate(payload), translation.source)


CONVERSION = Conversion(
    native_path=NATIVE_EMBEDDINGS_PATH,
    request_model=EmbeddingRequest,
    translate=translate,
    convert=convert,
)
