from functools import lru_cache
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_env: str = Field(default="production", validation_alias="APP_ENV")
    fastapi_port: int = Field(default=8000, validation_alias="FASTAPI_PORT")
    log_path: Optional[str] = Field(default=None, validation_alias="LOG_PATH")

    generation_providers: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["gemini"],
        validation_alias="GENERATION_PROVIDERS",
    )
    gemini_api_key: Optional[str] = Field(
        default=None, validation_alias="GEMINI_API_KEY"
    )
    gemini_model: str = Field(
        default="gemini-2.0-flash", validation_alias="GEMINI_MODEL"
    )
    openai_api_key: Optional[str] = Field(
        default=None, validation_alias="OPENAI_API_KEY"
    )
    openai_api_base: Optional[str] = Field(
        default=None, validation_alias="OPENAI_API_BASE"
    )
    openai_model: str = Field(default="gpt-4.1-mini", validation_alias="OPENAI_MODEL")
    generation_temperature: float = Field(
        default=0.4, validation_alias="GENERATION_TEMPERATURE"
    )

    tavily_api_key: Optional[str] = Field(
        default=None, validation_alias="TAVILY_API_KEY"
    )
    tavily_api_url: str = Field(
        default="https://api.tavily.com/search", validation_alias="TAVILY_API_URL"
    )
    context_max_results: int = Field(default=5, validation_alias="CONTEXT_MAX_RESULTS")
    context_search_depth: str = Field(
        default="advanced", validation_alias="CONTEXT_SEARCH_DEPTH"
    )
    prompt_max_sources: int = Field(default=5, validation_alias="PROMPT_MAX_SOURCES")
    prompt_excerpt_chars: int = Field(
        default=200, validation_alias="PROMPT_EXCERPT_CHARS"
    )

    min_model_fields: int = Field(default=1, validation_alias="MIN_MODEL_FIELDS")
    retry_max_attempts: int = Field(default=1, validation_alias="RETRY_MAX_ATTEMPTS")
    retry_base_delay_seconds: float = Field(
        default=0.5, validation_alias="RETRY_BASE_DELAY_SECONDS"
    )
    request_timeout_seconds: float = Field(
        default=60.0, validation_alias="REQUEST_TIMEOUT_SECONDS"
    )

    speechactors_api_key: Optional[str] = Field(
        default=None, validation_alias="SPEECHACTOR_TTS"
    )
    speechactors_api_url: Optional[str] = Field(
        default=None, validation_alias="SPEECHACTORS_API_URL"
    )
    google_translate_api_url: str = Field(
        default="https://translate.googleapis.com/translate_a/single",
        validation_alias="GOOGLE_TRANSLATE_API_URL",
    )

    @field_validator("generation_providers", mode="before")
    @classmethod
    def split_generation_providers(cls, value):
        if isinstance(value, str):
            value = value.split(",")
        return [str(item).strip().lower() for item in value if str(item).strip()]

    @field_validator("app_env", "context_search_depth", mode="after")
    @classmethod
    def normalize_lower(cls, value: str) -> str:
        return value.lower() if value else value

    @property
    def is_development(self) -> bool:
        return self.app_env in {"dev", "development", "local"}


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return AppSettings()
