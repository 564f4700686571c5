import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "medilens"
    postgres_password: str = "changeme"
    postgres_db: str = "medilens"

    @property
    def postgres_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def postgres_url_sync(self) -> str:
        """For Alembic migrations (sync driver)."""
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Gemini
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout_seconds: float = 60.0
    gemini_temperature: float = 0.1
    gemini_max_output_tokens: int = 8192

    # Retry policy for the generation API
    gemini_max_attempts: int = 3
    gemini_base_retry_delay: float = 3.0  # seconds, doubled per attempt
    gemini_max_retry_delay: float = 30.0
    gemini_network_retry_delay: float = 1.0
    gemini_retry_jitter: float = 0.0  # fraction of base delay

    # Uploaded images
    image_fetch_timeout_seconds: float = 30.0
    max_image_bytes: int = 10 * 1024 * 1024

    # How much of an unparseable model response goes into the logs
    raw_preview_chars: int = 500

    # Auth (tokens are issued by the external identity provider)
    jwt_secret_key: str = "change-this-to-a-random-string"
    jwt_algorithm: str = "HS256"
    jwt_audience: str = "authenticated"

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # CORS
    allowed_origins: str = "*"  # comma-separated

    # Per-client limit on the AI-backed routes
    analyze_rate_limit: str = "20/minute"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    errors: list[str] = []

    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; analysis endpoints will fail until it is configured")

    if settings.app_env == "production":
        if settings.jwt_secret_key in ("change-this-to-a-random-string", ""):
            errors.append("JWT_SECRET_KEY must be set to the identity provider's signing secret")
        if len(settings.jwt_secret_key) < 32:
            errors.append("JWT_SECRET_KEY must be at least 32 characters")
        if settings.allowed_origins == "*":
            errors.append("ALLOWED_ORIGINS must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
