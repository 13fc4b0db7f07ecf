"""Pydantic models for the native API the gateway translates to."""

import re
from datetime import datetime, timezone
from typing import Annotated, Optional, Any, Dict, List

from pydantic import BaseModel, BeforeValidator, Field

# RFC 3339 fractions can carry nanoseconds; datetime keeps microseconds only
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def _parse_timestamp(value: Any) -> Any:
    if isinstance(value, str):
        value = _FRACTION_RE.sub(r"\1", value.strip())
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
    return value


def epoch_seconds(value: Optional[datetime]) -> int:
    """Unix seconds for a native timestamp; 0 when the native side omitted it."""
    if value is None:
        return 0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


NativeTimestamp = Annotated[Optional[datetime], BeforeValidator(_parse_timestamp)]


class _NativeModel(BaseModel):
    model_config = {"extra": "ignore"}


class NativeMessage(_NativeModel):
    role: str
    content: str = ""
    images: Optional[List[str]] = None
    tool_calls: Optional[List[Dict[str, Any]]] = None


class NativeChatRequest(_NativeModel):
    model: str
    messages: List[NativeMessage]
    stream: bool = False
    format: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)


class NativeChatResponse(_NativeModel):
    """One native chat reply, or one incremental event of a streamed reply."""
    model: str = ""
    created_at: NativeTimestamp = None
    message: Optional[NativeMessage] = None
    done: bool = False
    done_reason: Optional[str] = None
    total_duration: Optional[int] = None
    load_duration: Optional[int] = None
    prompt_eval_count: int = 0
    prompt_eval_duration: Optional[int] = None
    eval_count: int = 0
    eval_duration: Optional[int] = None


class NativeEmbeddingRequest(_NativeModel):
    model: str
    prompt: Optional[str] = None
    prompt_batch: Optional[List[str]] = None


class NativeEmbeddingResponse(_NativeModel):
    embedding: Optional[List[float]] = None
    embedding_batch: Optional[List[List[float]]] = None
    prompt_eval_count: int = 0


class NativeModelDetails(_NativeModel):
    format: Optional[str] = None
    family: Optional[str] = None
    parameter_size: Optional[str] = None
    quantization_level: Optional[str] = None


class NativeModelDescriptor(_NativeModel):
    name: str
    model: Optional[str] = None
    modified_at: NativeTimestamp = None
    size: int = 0
    digest: Optional[str] = None
    details: Optional[NativeModelDetails] = None


class NativeListResponse(_NativeModel):
    models: List[NativeModelDescriptor] = Field(default_factory=list)


class NativeShowRequest(_NativeModel):
    name: str


class NativeShowResponse(_NativeModel):
    license: Optional[str] = None
    modelfile: Optional[str] = None
    parameters: Optional[str] = None
    template: Optional[str] = None
    details: Optional[NativeModelDetails] = None
    model_info: Optional[Dict[str, Any]] = None
    modified_at: NativeTimestamp = None


class NativeError(_NativeModel):
    error: str = ""
