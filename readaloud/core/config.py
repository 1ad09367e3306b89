"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from readaloud.core.models import LiveOptions


class Settings(BaseSettings):
    """ReadAloud application settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        deepgram_api_key: API key for the live transcription provider.
        database_url: Async SQLAlchemy connection string for the record store.
        storage_endpoint: Host:port of the S3-compatible object storage.
        signed_url_expiry_s: Lifetime of generated playback URLs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Live transcription (Deepgram) ---
    transcription_provider: str = "deepgram"
    deepgram_api_key: str = ""  # Required for live sessions
    deepgram_url: str = "wss://api.deepgram.com/v1/listen"
    transcription_model: str = "nova-3"
    interim_results: bool = True
    smart_format: bool = True
    filler_words: bool = True
    utterance_end_ms: int = 3000  # Silence after which an utterance is forced final

    # --- Microphone capture ---
    sample_rate: int = 16000  # linear16 mono
    chunk_interval_ms: int = 250

    # --- Session timers ---
    caption_timeout_s: float = 3.0  # Caption cleared after a final result goes quiet
    keep_alive_interval_s: float = 10.0  # Idle keep-alive cadence while mic is closed

    # --- Record store ---
    database_url: str = "sqlite+aiosqlite:///data/readaloud.db"

    # --- Object storage (S3 / MinIO) ---
    storage_endpoint: str = "localhost:9000"
    storage_access_key: str = ""
    storage_secret_key: str = ""
    storage_bucket: str = "recordings"
    storage_region: str | None = None
    storage_secure: bool = False
    signed_url_expiry_s: int = 3600  # One hour

    # --- Application ---
    app_host: str = "0.0.0.0"  # Bind address for the FastAPI server
    app_port: int = 8000
    cors_origins: list[str] = [
        "http://localhost:8501",  # Streamlit
        "http://localhost:3000",  # Dev frontend
    ]
    api_base_url: str = "http://localhost:8000"  # Used by the Streamlit UI
    log_level: str = "INFO"  # Python logging level

    def live_options(self) -> LiveOptions:
        """Build the provider session configuration from these settings."""
        return LiveOptions(
            model=self.transcription_model,
            interim_results=self.interim_results,
            smart_format=self.smart_format,
            filler_words=self.filler_words,
            utterance_end_ms=self.utterance_end_ms,
            sample_rate=self.sample_rate,
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
