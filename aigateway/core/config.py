from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Provider chain: comma-separated provider ids, e.g. "gemini,azure_openai_primary"
    ai_provider_order: str = ""

    # Azure OpenAI (primary deployment)
    azure_openai_endpoint: str = ""
    azure_openai_api_key: str = ""
    azure_openai_deployment_name: str = "model-router"
    azure_openai_api_version: str = "2024-06-01"
    azure_openai_model: str = "gpt-4o-mini"

    # Azure OpenAI (secondary deployment, shares the api version)
    azure_openai_endpoint_2: str = ""
    azure_openai_api_key_2: str = ""
    azure_openai_deployment_name_2: str = "model-router"
    azure_openai_model_2: str = "gpt-4o"

    # Google Gemini
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash-latest"

    # DeepSeek
    deepseek_api_key: str = ""
    deepseek_model: str = "deepseek-chat"
    deepseek_api_url: str = "https://api.deepseek.com/v1/chat/completions"

    # Generation defaults used by the HTTP surface
    ai_temperature: float = 0.2
    ai_top_p: float = 0.9
    ai_max_tokens: int = 800

    # Orchestration
    ai_timeout_ms: int = 30_000  # end-to-end budget per generate() call
    ai_retry_backoff_seconds: float = 0.5
    ai_max_retries: int = 1  # same-provider retries for rate limits / transient errors
    ai_health_timeout_seconds: float = 5.0

    # Result cache
    ai_cache_enabled: bool = True
    ai_cache_ttl_seconds: float = 120.0
    ai_cache_max_entries: int = 256

    # Circuit breaker (off by default)
    ai_circuit_breaker_enabled: bool = False
    ai_circuit_failure_threshold: int = 5
    ai_circuit_recovery_seconds: float = 60.0

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # CORS
    allowed_origins: str = "*"  # comma-separated

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable

    @property
    def provider_order(self) -> list[str]:
        return [p.strip() for p in self.ai_provider_order.split(",") if p.strip()]


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    errors: list[str] = []

    if settings.ai_timeout_ms <= 0:
        errors.append("AI_TIMEOUT_MS must be positive")

    if settings.ai_cache_enabled and settings.ai_cache_max_entries <= 0:
        errors.append("AI_CACHE_MAX_ENTRIES must be positive when the cache is enabled")

    if settings.app_env == "production":
        if settings.allowed_origins == "*":
            errors.append("ALLOWED_ORIGINS must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
