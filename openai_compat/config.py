# Configuration for the OpenAI-compatible translation gateway

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings loaded from environment variables only.
    In Docker: variables are injected via docker-compose env_file directive.
    In local dev: export variables before starting the server.
    """
    model_config = SettingsConfigDict(
        case_sensitive=True,
        extra="ignore",
    )

    # Gateway auth (optional - if not set, the OpenAI-compatible routes are open)
    OPENAI_COMPAT_API_KEY: Optional[str] = Field(None, description="API key for the gateway", alias="OPENAI_COMPAT_API_KEY")

    # Upstream native API
    NATIVE_API_BASE_URL: str = Field("http://127.0.0.1:11434", description="Base URL of the native API", alias="NATIVE_API_BASE_URL")
    NATIVE_API_TOKEN: Optional[str] = Field(None, description="Bearer token for the native API", alias="NATIVE_API_TOKEN")
    NATIVE_API_TIMEOUT: int = Field(30, description="Connect/write/pool timeout in seconds", alias="NATIVE_API_TIMEOUT")

    # Logging
    LOG_REQUEST_BODY_MAX_LENGTH: int = Field(40000, alias="LOG_REQUEST_BODY_MAX_LENGTH")

    # Server
    HOST: str = Field("0.0.0.0", alias="HOST")
    PORT: int = Field(6002, alias="PORT")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def check_gateway_api_key(auth_header: Optional[str], settings: Optional[Settings] = None) -> bool:
    """
    Validate Authorization: Bearer <key> header.
    """
    if not auth_header:
        return False
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return False
    key = parts[1]
    s = settings or get_settings()
    return key == s.OPENAI_COMPAT_API_KEY
