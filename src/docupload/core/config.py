"""Configuration management for the docupload client."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    ENV: str = "local"

    # Remote workspace API
    API_BASE_URL: str = "https://api.notion.com/v1"
    API_TOKEN: str = ""
    API_VERSION: str = "2022-06-28"
    REQUEST_TIMEOUT: int = 60  # seconds per remote call
    LOG_LEVEL: str = "INFO"

    # Upload policy
    MULTIPART_THRESHOLD_MB: int = 20  # Known sizes at or above this use multi_part
    CHUNK_SIZE_MB: int = 5

    @property
    def multipart_threshold_bytes(self) -> int:
        """Convert MULTIPART_THRESHOLD_MB to bytes."""
        return self.MULTIPART_THRESHOLD_MB * 1024 * 1024

    @property
    def chunk_size_bytes(self) -> int:
        """Convert CHUNK_SIZE_MB to bytes."""
        return self.CHUNK_SIZE_MB * 1024 * 1024


# Singleton settings instance
settings = Settings()
