import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from . import chat, completions, embeddings, model_catalog
from .config import get_settings, check_gateway_api_key
from .errors import error_response
from .intercept import NativeHandler, intercept
from .native_client import native_chat, native_embeddings, native_list_models, native_show_model

logger = logging.getLogger(__name__)


@dataclass
class NativeHandlers:
    """The native endpoints the OpenAI-compatible routes translate to."""
    chat: NativeHandler
    embeddings: NativeHandler
    list_models: NativeHandler
    show_model: NativeHandler


def default_native_handlers() -> NativeHandlers:
    return NativeHandlers(
        chat=native_chat,
        embeddings=native_embeddings,
        list_models=native_list_models,
        show_model=native_show_model,
    )


def _auth_guard(req: Request) -> Optional[JSONResponse]:
    s = get_settings()
    if not s.OPENAI_COMPAT_API_KEY:
        return None
    auth = req.headers.get("authorization")
    if not check_gateway_api_key(auth, s):
        return error_response("Invalid or missing API key", "authentication_error", 401)
    return None


def build_router(handlers: NativeHandlers) -> APIRouter:
    router = APIRouter()

    chat_endpoint = intercept(handlers.chat, chat.CONVERSION)
    completions_endpoint = intercept(handlers.chat, completions.CONVERSION)
    embeddings_endpoint = intercept(handlers.embeddings, embeddings.CONVERSION)
    list_endpoint = intercept(handlers.list_models, model_catalog.LIST_CONVERSION)
    retrieve_endpoint = intercept(handlers.show_model, model_catalog.RETRIEVE_CONVERSION)

    @router.post("/v1/chat/completions")
    async def chat_completions(request: Request):
        if (resp := _auth_guard(request)) is not None:
            return resp
        return await chat_endpoint(request)

    @router.post("/v1/completions")
    async def text_completions(request: Request):
        if (resp := _auth_guard(request)) is not None:
            return resp
        return await completions_endpoint(request)

    @router.post("/v1/embeddings")
    async def create_embeddings(request: Request):
        if (resp := _auth_guard(request)) is not None:
            return resp
        return await embeddings_endpoint(request)

    @router.get("/v1/models")
    async def list_models(request: Request):
        if (resp := _auth_guard(request)) is not None:
            return resp
        return await list_endpoint(request)

    @router.get("/v1/models/{model:path}")
    async def retrieve_model(request: Request, model: str):
        if (resp := _auth_guard(request)) is not None:
            return resp
        return await retrieve_endpoint(request)

    return router


router = build_router(default_native_handlers())
