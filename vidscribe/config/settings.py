"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local development without Gemini, yt-dlp or FFmpeg.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Vidscribe API"
    api_version: str = "v1"

    # Gemini Configuration
    gemini_api_key: str = Field(
        default="",
        description="Gemini API key. Required unless in mock mode."
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model used for metadata and article generation."
    )
    gemini_mock_mode: bool = Field(
        default=False,
        description="Use in-memory file store and canned model responses instead of Gemini."
    )
    generation_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts for a generation call when Gemini answers 503 (overloaded)."
    )

    # Local directories
    video_cache_dir: Path = Field(
        default=Path("temp_videos"),
        description="Where downloaded videos are kept for repeated screenshot capture."
    )
    image_cache_dir: Path = Field(
        default=Path("public/images"),
        description="Where captured screenshots are written. Served under /images."
    )
    upload_staging_dir: Path = Field(
        default=Path("temp_files"),
        description="Scratch directory for uploaded files on their way to Gemini."
    )

    # Retention
    file_retention_days: int = Field(
        default=7,
        ge=0,
        description="Files older than this many days are deleted by the startup sweep."
    )

    # Remote file registry
    poll_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Delay between state checks while Gemini processes an upload."
    )
    poll_max_attempts: int = Field(
        default=60,
        ge=1,
        description="State checks before giving up. 60 x 5s is roughly five minutes."
    )
    file_list_page_size: int = Field(
        default=50,
        ge=1,
        description="Page size when scanning the Gemini file listing for a display name."
    )

    # Video acquisition
    download_retries: int = Field(
        default=5,
        ge=0,
        description="yt-dlp retry count for the whole transfer and for each fragment."
    )
    downloader_mock_mode: bool = Field(
        default=False,
        description="Write placeholder videos instead of calling yt-dlp."
    )
    max_downloads_per_hour: int = Field(
        default=10,
        description="Downloads allowed per requester key in each one-hour window."
    )
    max_downloads_per_hour_per_ip: int = Field(
        default=20,
        description="Downloads allowed per client IP in each one-hour window."
    )

    # Background tasks
    task_retention_minutes: float = Field(
        default=30,
        gt=0,
        description="How long finished async tasks stay queryable."
    )

    # Frame capture
    ffmpeg_path: str = Field(
        default="ffmpeg",
        description="Path to the ffmpeg binary"
    )
    ffmpeg_mock_mode: bool = Field(
        default=False,
        description="Write placeholder JPEGs instead of calling ffmpeg."
    )
    capture_concurrency: int = Field(
        default=1,
        ge=1,
        description="Screenshot groups captured at once. 1 keeps capture strictly sequential."
    )
    capture_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for a single ffmpeg frame capture."
    )

    # Reference uploads
    max_reference_upload_mb: int = Field(
        default=100,
        description="Maximum size of a reference file uploaded through the API."
    )
    max_video_upload_mb: int = Field(
        default=2048,
        description="Maximum size of a video file uploaded directly through the API."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def cache_directories(self) -> list[Path]:
        """Directories covered by the retention sweep."""
        return [self.video_cache_dir, self.image_cache_dir]

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.gemini_mock_mode and not self.gemini_api_key:
            missing.append("GEMINI_API_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
