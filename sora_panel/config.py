from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL = "sora-2"
DEFAULT_VIDEO_SIZE = "1280x720"


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OpenAI
    openai_api_key: str = Field(...)
    openai_api_base_url: str | None = Field(default=None)
    openai_beta_header: str | None = Field(default=None)

    # Sora defaults
    sora_default_model: str = Field(default=DEFAULT_MODEL)
    sora_default_size: str = Field(default=DEFAULT_VIDEO_SIZE)
    sora_input_reference: str | None = Field(default=None)
    sora_download_dir: Path = Field(default=Path("downloads"))

    # Application
    debug: bool = Field(default=False)
    port: int = Field(default=3000)

    @field_validator("openai_api_key")
    @classmethod
    def require_api_key(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError(
                "Missing OPENAI_API_KEY environment variable. Set it in your .env file."
            )
        return value.strip()

    @field_validator("openai_api_base_url", "openai_beta_header", "sora_input_reference")
    @classmethod
    def blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @property
    def default_headers(self) -> dict[str, str]:
        """Headers sent with every OpenAI request."""
        if self.openai_beta_header:
            return {"OpenAI-Beta": self.openai_beta_header}
        return {}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
