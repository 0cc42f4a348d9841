"""Configuration management using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the image relay service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    host: str = "localhost"
    port: int = 3001
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    # Bytez text-to-image provider
    bytez_api_key: str | None = None
    bytez_model: str = "stabilityai/stable-diffusion-xl-base-1.0"
    bytez_api_url: str = "https://api.bytez.com/models/v2"
    bytez_timeout: float = 120.0  # seconds
    max_prompt_length: int = 2000

    # Compression
    max_upload_bytes: int = 10 * 1024 * 1024
    default_format: str = "webp"
    default_quality: int = 80
    default_max_width: int = 1920
    default_max_height: int = 1920
    max_dimension: int = 4096


# Global settings instance
settings = Settings()
