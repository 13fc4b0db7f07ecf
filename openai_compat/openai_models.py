# OpenAI-compatible schema models for chat, completions, embeddings and models APIs

from typing import List, Optional, Literal, Dict, Any, Union
from pydantic import BaseModel, Field, model_serializer

class ContentPart(BaseModel):
    # OpenAI content part ('text' and 'image_url' are understood; allow extras for forward-compat)
    type: Optional[str] = None
    text: Optional[str] = None
    image_url: Optional[Any] = None
    model_config = {"extra": "allow"}

class ChatMessage(BaseModel):
    role: str
    # Accept both string and array-of-parts per OpenAI SDKs
    content: Union[str, List[Union[str, ContentPart]], None] = None
    name: Optional[str] = None

class StreamOptions(BaseModel):
    include_usage: bool = False

class ResponseFormat(BaseModel):
    type: str = "text"

class ChatCompletionsRequest(BaseModel):
    model: str
    messages: List[ChatMessage]
    stream: Optional[bool] = False
    stream_options: Optional[StreamOptions] = None
    max_tokens: Optional[int] = None
    seed: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    stop: Optional[Union[str, List[str]]] = None
    response_format: Optional[ResponseFormat] = None
    n: Optional[int] = None
    user: Optional[str] = None

class CompletionRequest(BaseModel):
    model: str
    prompt: str
    stream: Optional[bool] = False
    stream_options: Optional[StreamOptions] = None
    max_tokens: Optional[int] = None
    seed: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    stop: Optional[Union[str, List[str]]] = None
    suffix: Optional[str] = None
    user: Optional[str] = None

class ChatMessageResponse(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str

class ChatChoice(BaseModel):
    index: int = 0
    message: ChatMessageResponse
    finish_reason: Optional[str] = None

class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

class ChatCompletion(BaseModel):
    id: str
    object: Literal["chat.completion"] = "chat.completion"
    created: int
    model: str
    system_fingerprint: str = "fp_openai_compat"
    choices: List[ChatChoice]
    usage: Optional[Usage] = None

class DeltaMessage(BaseModel):
    role: Optional[Literal["assistant"]] = None
    content: Optional[str] = None

    @model_serializer(mode="wrap")
    def _omit_empty(self, handler):
        # Terminating chunks carry an empty delta: {}
        return {k: v for k, v in handler(self).items() if v is not None}

class ChatCompletionChunkChoice(BaseModel):
    index: int = 0
    delta: DeltaMessage
    finish_reason: Optional[str] = None

class ChatCompletionChunk(BaseModel):
    id: str
    object: Literal["chat.completion.chunk"] = "chat.completion.chunk"
    created: int
    model: str
    system_fingerprint: str = "fp_openai_compat"
    choices: List[ChatCompletionChunkChoice]
    usage: Optional[Usage] = None

class CompletionChoice(BaseModel):
    index: int = 0
    text: str
    logprobs: Optional[Any] = None
    finish_reason: Optional[str] = None

class Completion(BaseModel):
    id: str
    object: Literal["text_completion"] = "text_completion"
    created: int
    model: str
    system_fingerprint: str = "fp_openai_compat"
    choices: List[CompletionChoice]
    usage: Optional[Usage] = None

class EmbeddingRequest(BaseModel):
    model: str
    input: Union[str, List[Any]]
    encoding_format: Optional[str] = None
    user: Optional[str] = None

class Embedding(BaseModel):
    object: Literal["embedding"] = "embedding"
    index: int
    embedding: List[float]

class EmbeddingUsage(BaseModel):
    prompt_tokens: int = 0
    total_tokens: int = 0

class EmbeddingList(BaseModel):
    object: Literal["list"] = "list"
    data: List[Embedding]
    model: str
    usage: EmbeddingUsage = Field(default_factory=EmbeddingUsage)

class Model(BaseModel):
    id: str
    object: Literal["model"] = "model"
    created: int
    owned_by: str = "library"

class ModelList(BaseModel):
    object: Literal["list"] = "list"
    data: List[Model]

class ErrorResponse(BaseModel):
    error: str
