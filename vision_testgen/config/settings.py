from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # API Configuration
    debug: bool = False
    environment: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api/v1"

    # Default completion provider: "anthropic", "openai" or "gemini"
    ai_provider: str = "anthropic"

    # Anthropic Configuration (secrets come from environment)
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-3-5-sonnet-20241022"

    # OpenAI Configuration
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-4o"

    # Gemini Configuration
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-pro"

    # Generation parameters
    max_output_tokens: int = 8000
    # Low temperature keeps the first generation stable for caching;
    # explicit regeneration asks for slight variation.
    temperature_initial: float = 0.05
    temperature_regenerate: float = 0.2
    min_test_cases: int = 12

    # Retry policy for transient upstream overload
    max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 10.0
    overload_retry_after_seconds: int = 30

    # Result cache; None keeps every fingerprint for the process lifetime
    result_cache_max_entries: Optional[int] = 256
    coalesce_concurrent_requests: bool = True

    # Request limits
    max_pages_per_request: int = 25

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
