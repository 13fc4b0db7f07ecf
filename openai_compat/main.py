"""FastAPI entrypoint for the OpenAI-compatible translation gateway"""

from contextlib import asynccontextmanager
import logging
import os
import sys

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError

from . import __version__
from .routes_openai import router as openai_router
from .config import get_settings
from .errors import error_response

# Configure logging
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # on startup
    settings = get_settings()
    logger.info("Starting OpenAI-compatible gateway for %s", settings.NATIVE_API_BASE_URL)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Gateway auth: {'enabled' if settings.OPENAI_COMPAT_API_KEY else 'disabled (OPENAI_COMPAT_API_KEY not set)'}")

    # app.state.native_client is created lazily by the native handlers
    yield
    # on shutdown
    logger.info("Shutting down gateway")
    client = getattr(app.state, "native_client", None)
    if client:
        try:
            await client.close()
            logger.info("HTTP client closed successfully")
        except Exception as e:
            logger.error(f"Error closing HTTP client: {e}")

app = FastAPI(
    title="OpenAI-compatible gateway",
    version=__version__,
    description="Serves OpenAI-style chat, completions, embeddings and models endpoints on top of a native API",
    lifespan=lifespan,
)

# Optional CORS for browser clients
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


def _preview(raw: bytes) -> str:
    preview = raw.decode("utf-8", errors="replace")
    max_len = get_settings().LOG_REQUEST_BODY_MAX_LENGTH
    if len(preview) > max_len:
        preview = preview[:max_len] + "...(truncated)"
    return preview


# Log requests and responses for the OpenAI-compatible routes
@app.middleware("http")
async def log_request_response_middleware(request: Request, call_next):
    if not request.url.path.startswith("/v1/"):
        return await call_next(request)

    if logger.isEnabledFor(logging.DEBUG):
        # Redact sensitive headers
        headers = {k.lower(): v for k, v in request.headers.items()}
        if "authorization" in headers:
            token = headers["authorization"] or ""
            parts = token.split()
            headers["authorization"] = (parts[0] + " ****") if len(parts) > 1 else "****"
        if "cookie" in headers:
            headers["cookie"] = "<redacted>"

        body = await request.body() if request.method == "POST" else b""
        logger.debug(
            "Incoming %s %s - headers=%s body=%s",
            request.method,
            request.url.path,
            headers,
            _preview(body),
        )
    else:
        logger.info("Incoming %s %s", request.method, request.url.path)

    response: Response = await call_next(request)

    # Streamed bodies are passed through untouched; only the status is logged
    logger.info("Response for %s %s - status=%s", request.method, request.url.path, response.status_code)
    return response


# Report validation errors in the OpenAI error shape instead of FastAPI's 422 payload
@app.exception_handler(RequestValidationError)
async def handle_validation_exception(request: Request, exc: RequestValidationError):
    try:
        body_preview = _preview(await request.body())
    except Exception:
        body_preview = "<unavailable>"

    logger.warning(
        "Validation error on %s %s: errors=%s body=%s",
        request.method,
        str(request.url),
        exc.errors(),
        body_preview,
    )
    errors = exc.errors()
    message = errors[0].get("msg", "invalid request") if errors else "invalid request"
    return error_response(message, "invalid_request_error", 400)


app.include_router(openai_router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


def main():
    """Entry point for the application"""
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)

if __name__ == "__main__":
    main()
