"""Configuration via environment variables."""

from enum import Enum
from pydantic_settings import BaseSettings


class Mode(str, Enum):
    GEMINI = "gemini"
    BACKEND = "backend"


class Transport(str, Enum):
    STDIO = "stdio"
    STREAMABLE_HTTP = "streamable-http"


class Settings(BaseSettings):
    model_config = {"env_prefix": "VKW_MCP_"}

    mode: Mode = Mode.GEMINI
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    backend_url: str = "http://127.0.0.1:8300"
    backend_api_key: str = ""
    request_timeout_seconds: float = 60.0
    default_language: str = "en"
    ui_language: str = "zh"
    max_keywords: int = 100
    max_audio_bytes: int = 20 * 1024 * 1024
    translation_cache_size: int = 500
    translation_cache_ttl_seconds: int = 3600
    rate_limit_per_minute: int = 30
    transport: Transport = Transport.STDIO
