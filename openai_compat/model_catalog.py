"""Model listing and retrieval: native catalog entries as OpenAI model objects."""

from typing import Any, Dict

from starlette.requests import Request

from .intercept import Conversion, Translation
from .native_models import NativeListResponse, NativeShowRequest, NativeShowResponse, epoch_seconds
from .openai_models import Model, ModelList

NATIVE_LIST_PATH = "/api/tags"
NATIVE_SHOW_PATH = "/api/show"

DEFAULT_NAMESPACE = "library"


def owner(name: str) -> str:
    """
    Namespace part of a native model name, e.g. "team" for "registry.example/team/model:tag".
    Names without a namespace belong to the default library.
    """
    parts = [p for p in name.split("/") if p]
    if len(parts) >= 2:
        return parts[-2]
    return DEFAULT_NAMESPACE


def translate_list(source: Any, request: Request) -> Translation:
    return Translation(source=None)


def convert_list(translation: Translation, payload: Dict[str, Any]) -> ModelList:
    native = NativeListResponse.model_validate(payload)
    # Native ordering is kept as-is: no sorting, no deduplication
    return ModelList(
        data=[
            Model(id=m.name, created=epoch_seconds(m.modified_at), owned_by=owner(m.name))
            for m in native.models
        ]
    )


def translate_retrieve(source: Any, request: Request) -> Translation:
    name = request.path_params["model"]
    return Translation(source=name, native=NativeShowRequest(name=name))


def convert_retrieve(translation: Translation, payload: Dict[str, Any]) -> Model:
    native = NativeShowResponse.model_validate(payload)
    # The id always comes from the request path; the native payload may omit the name
    name: str = translation.source
    return Model(id=name, created=epoch_seconds(native.modified_at), owned_by=owner(name))


LIST_CONVERSION = Conversion(
    native_path=NATIVE_LIST_PATH,
    native_method="GET",
    translate=translate_list,
    convert=convert_list,
)

RETRIEVE_CONVERSION = Conversion(
    native_path=NATIVE_SHOW_PATH,
    translate=translate_retrieve,
    convert=convert_retrieve,
)
