import os
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VALID_VOICES = ("nova", "shimmer", "alloy", "echo", "fable", "onyx")


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues.

    ⚠️ SQLite is meant for local development only. Set DATABASE_URL to a
    PostgreSQL connection string for deployments.
    """
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        logger.info(f"Using DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "breathwork.db"
    abs_path = db_path.resolve()
    db_url = f"sqlite:///{abs_path}"
    logger.warning(f"⚠️ Using SQLite database (LOCAL DEV ONLY): {db_url}")
    return db_url


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    auth_secret_key: str = Field(default="", validation_alias="AUTH_SECRET_KEY")
    auth_algorithm: str = Field(default="HS256", validation_alias="AUTH_ALGORITHM")
    auth_token_expire_days: int = Field(default=30, validation_alias="AUTH_TOKEN_EXPIRE_DAYS")
    admin_email: str = Field(
        default="",
        validation_alias="ADMIN_EMAIL",
        description="Email of the single operator allowed on /admin",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")
    log_json: bool = Field(default=False, validation_alias="LOG_JSON")
    voice_service_url: str = Field(
        default="http://localhost:8000/functions",
        validation_alias="VOICE_SERVICE_URL",
        description="Base URL of the speech / guidance functions used by the session engine",
    )
    default_voice: str = Field(default="nova", validation_alias="DEFAULT_VOICE")
    narration_speed: float = Field(default=0.85, validation_alias="NARRATION_SPEED")
    narration_timeout_seconds: float = Field(
        default=30.0,
        validation_alias="NARRATION_TIMEOUT_SECONDS",
        description="Upper bound on a single narration (synthesis + playback)",
    )
    default_music_volume: float = Field(default=0.1, validation_alias="DEFAULT_MUSIC_VOLUME")
    tts_model: str = Field(default="tts-1", validation_alias="TTS_MODEL")
    guidance_model: str = Field(default="gpt-4o-mini", validation_alias="GUIDANCE_MODEL")
    exercise_model: str = Field(default="gpt-4o", validation_alias="EXERCISE_MODEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("default_voice")
    @classmethod
    def validate_default_voice(cls, value: str) -> str:
        if value not in VALID_VOICES:
            logger.warning(f"Unknown DEFAULT_VOICE '{value}'. Falling back to 'nova'.")
            return "nova"
        return value

    @field_validator("default_music_volume")
    @classmethod
    def validate_music_volume(cls, value: float) -> float:
        """Clamp the fallback music volume into 0..1."""
        return max(0.0, min(1.0, value))

    @field_validator("auth_secret_key")
    @classmethod
    def validate_auth_secret(cls, value: str) -> str:
        if not value:
            logger.warning(
                "⚠️ AUTH_SECRET_KEY is not set. Tokens cannot be issued or verified. "
                "Set it in .env file or environment variables."
            )
        return value


settings = Settings()
