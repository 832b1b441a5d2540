"""
PlanParse configuration settings.

Manages application settings via environment variables with sensible defaults.
"""

from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PLANPARSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "PlanParse"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # OpenAI Configuration (page classification, room extraction, line items)
    openai_api_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("PLANPARSE_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_timeout_seconds: float = 90.0
    classification_model: str = "gpt-4o-mini"  # Pass 1, speed over depth
    extraction_model: str = "gpt-4o"           # Pass 2 and vision
    line_item_model: str = "gpt-4o-mini"

    @property
    def ai_enabled(self) -> bool:
        """Check if the OpenAI API is configured for plan parsing."""
        return bool(self.openai_api_key and self.openai_api_key.strip())

    # Pipeline limits
    max_deep_parse_pages: int = 10       # Pages sent to per-sheet extraction
    classification_sample_pages: int = 20  # Large documents are sampled down to this
    vision_max_pages: int = 3            # Rendered pages for scanned PDFs
    mixed_vision_max_pages: int = 6      # Image-only pages of mixed PDFs
    max_sheet_concurrency: int = 1       # 1 = sequential per-sheet extraction

    # Upload limits
    max_upload_mb: int = 50
    max_files_per_parse: int = 10

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",  # Next.js dev server
        "http://127.0.0.1:3000",
    ]


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings
