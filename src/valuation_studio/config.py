from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file for convenience.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    data_dir: str = "data"
    public_base_url: str = "/media"
    log_level: str = "INFO"

    # Keys
    openai_api_key: str | None = None
    gemini_api_key: str | None = None

    # Text generation
    text_provider: str = "openai"  # openai|gemini
    openai_text_model: str = "gpt-3.5-turbo"
    gemini_text_model: str = "gemini-2.0-flash"
    generation_temperature: float = 0.7

    # Provider output budget per slot kind.
    slot_max_tokens: dict[str, int] = {
        "description": 500,
        "market-analysis": 800,
        "executive-summary": 400,
    }
    # Optional hard cap on stored text per slot kind; unset means no truncation.
    slot_max_chars: dict[str, int] = {}

    # Images
    max_images: int = 10
    max_image_bytes: int = 5 * 1024 * 1024
    allowed_image_formats: list[str] = ["JPEG", "PNG", "WEBP"]


settings = Settings()
