"""Application Configuration: environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache): single instance per process
    - Retry policy values are validated at load time (attempts >= 1, delay >= 0)
    - max_health_context_length is read by NutritionAssistant.from_settings

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - anthropic_api_key defaults to None: absence surfaces as NO_CREDENTIAL, not a crash
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Anthropic
    anthropic_api_key: str | None = None
    llm_model: str = "claude-sonnet-4-5"
    llm_max_tokens: int = 500
    llm_temperature: float = 0.3
    llm_timeout_seconds: int = 60

    @field_validator("anthropic_api_key", mode="before")
    @classmethod
    def blank_key_is_missing(cls, v):
        """An empty ANTHROPIC_API_KEY counts as no credential."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    # Retry
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay_ms: int = Field(default=1000, ge=0)

    # Input limits
    max_health_context_length: int = Field(default=1000, ge=1)

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def retry_base_delay_s(self) -> float:
        return self.retry_base_delay_ms / 1000


@lru_cache
def get_settings() -> Settings:
    return Settings()
