"""Configuration for the Admissions Voice service."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from admissions_voice.upstream.retry import RetryPolicy


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Built once at start-up and passed explicitly into each component.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Service settings
    service_name: str = "admissions-voice"
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False
    log_level: str = "info"
    environment: str = "development"
    cors_allowed_origins: str = "*"  # Comma-separated

    # OpenAI settings
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openai_base_url: str = "https://api.openai.com/v1"
    transcription_model: str = "whisper-1"
    text_model: str = "gpt-4o-mini"
    text_temperature: float = 0.5
    tts_model: str = "gpt-4o-mini-tts"
    tts_voice: str = "verse"
    tts_format: str = "mp3"

    # Realtime session settings
    realtime_model: str = "gpt-4o-realtime-preview"
    realtime_voice: str = "verse"
    realtime_silence_duration_ms: int = 700

    # Timeouts (seconds)
    upstream_timeout_seconds: float = Field(default=30.0, gt=0)
    session_timeout_seconds: float = Field(default=5.0, gt=0)
    traversal_timeout_seconds: float = Field(default=5.0, gt=0)

    # Retry policy
    retry_max_attempts: int = Field(default=4, ge=1)
    retry_base_delay_ms: int = Field(default=350, ge=0)
    retry_jitter_ms: int = Field(default=120, ge=0)

    # Payload limits
    max_audio_bytes: int = 8 * 1024 * 1024  # 8 MiB
    archive_max_bytes: int = 25 * 1024 * 1024  # 25 MiB

    # ICE / TURN settings
    default_stun_url: str = "stun:stun.l.google.com:19302"
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_base_url: str = "https://api.twilio.com/2010-04-01"
    turn_urls: str = ""  # Comma-separated
    turn_username: str = ""
    turn_credential: str = ""

    # Archive settings
    archive_dir: str = ".archive"

    @property
    def retry_policy(self) -> RetryPolicy:
        """Retry policy shared by every upstream call."""
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay_ms=self.retry_base_delay_ms,
            jitter_ms=self.retry_jitter_ms,
        )

    @property
    def turn_url_list(self) -> list[str]:
        return [url.strip() for url in self.turn_urls.split(",") if url.strip()]

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]

    @property
    def twilio_enabled(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
