"""Configuration for Image Studio."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Azure OpenAI
    azure_openai_endpoint: str = "https://example.openai.azure.com"
    azure_openai_api_key: Optional[str] = None
    azure_openai_vision_deployment: str = "gpt-4o"
    azure_openai_chat_api_version: str = "2024-10-21"
    azure_openai_use_responses_api: bool = True
    azure_openai_api_version: str = "v1"

    # Media library
    image_path: str = "data/images"

    # Caching
    cache_enabled: bool = True
    cache_ttl_seconds: int = 3600  # 1 hour
    cache_max_entries: int = 1000
    fallback_cache_ttl_seconds: int = 300

    # Retry policy
    max_retries: int = 3
    retry_backoff: str = "exponential"  # "exponential" or "linear"

    # Model parameters
    max_tokens: int = 1500
    temperature: float = 0.1
    request_timeout_seconds: float = 30.0
    health_check_timeout_seconds: float = 5.0

    # Circuit breaker
    breaker_failure_threshold: int = 5
    breaker_reset_timeout_seconds: float = 60.0
    breaker_monitor_window_seconds: float = 300.0

    @property
    def auth_headers(self) -> dict[str, str]:
        """Headers used to authenticate against Azure OpenAI."""
        if self.azure_openai_api_key:
            return {"api-key": self.azure_openai_api_key}
        return {}

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
