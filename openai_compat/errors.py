import json
import logging
import traceback
from typing import Optional

from fastapi.responses import JSONResponse
from .openai_models import ErrorResponse

logger = logging.getLogger(__name__)


class InvalidRequestError(Exception):
    """Inbound request rejected before the native endpoint is called."""
    status_code = 400

    def __init__(self, message: str, param: Optional[str] = None):
        self.message = message
        self.param = param
        super().__init__(self.message)


class NativeContractError(Exception):
    """Native endpoint answered successfully but with a payload we cannot translate."""
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


def error_type_for_status(status_code: int) -> str:
    if status_code == 400:
        return "invalid_request_error"
    if status_code in (401, 403):
        return "authentication_error"
    if status_code == 404:
        return "not_found_error"
    if status_code == 429:
        return "rate_limit_exceeded"
    return "api_error"


def error_payload(message: str) -> dict:
    return ErrorResponse(error=message).model_dump()


def error_response(message: str, err_type: str, status_code: int, param: Optional[str] = None) -> JSONResponse:
    # The body carries only the message; type and param stay in the log line
    logger.debug(
        f"Error response {status_code} {err_type}: {message}",
        extra={"status_code": status_code, "error_type": err_type, "param": param},
    )
    return JSONResponse(status_code=status_code, content=error_payload(message))


def map_invalid_request(err: InvalidRequestError) -> JSONResponse:
    logger.info(f"Rejected request: {err.message} (param={err.param})")
    return error_response(err.message, "invalid_request_error", err.status_code, err.param)


def native_error_message(body: bytes, status_code: int) -> str:
    """Extract the message from a native error body ({"error": "..."}), tolerating junk."""
    text = body.decode("utf-8", errors="replace").strip()
    try:
        data = json.loads(text) if text else None
    except json.JSONDecodeError:
        return text or f"native endpoint returned status {status_code}"
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict):
            err = err.get("message")
        if err:
            return str(err)
    return text or f"native endpoint returned status {status_code}"


def map_native_error(status_code: int, body: bytes) -> JSONResponse:
    """Reshape a native error into the OpenAI error schema, preserving the status code."""
    message = native_error_message(body, status_code)

    # Native errors are expected failures (unknown model, bad input), log at warning level
    logger.warning(
        f"Native error: {message} (status_code={status_code})",
        extra={"status_code": status_code},
    )
    return error_response(message, error_type_for_status(status_code), status_code)


def map_contract_error(err: NativeContractError) -> JSONResponse:
    logger.error(f"Native contract violation: {err.message}")
    return error_response(err.message, "api_error", err.status_code)


def map_generic_error(err: Exception) -> JSONResponse:
    """Map unexpected exceptions to 500 error with detailed logging."""
    # Log full exception details for debugging
    logger.error(
        f"Unexpected error: {type(err).__name__}: {str(err)}",
        exc_info=True,
        extra={
            "error_type": type(err).__name__,
            "error_message": str(err),
            "traceback": traceback.format_exc(),
        }
    )

    # Avoid leaking internal details to client
    return error_response("Internal server error", "api_error", 500)
