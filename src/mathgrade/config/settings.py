"""
Configuration management for the math grading pipeline.

All configuration comes from environment variables or .env file.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mathgrade.config.constants import (
    DEFAULT_FALLBACK_ORDER,
    LOCK_TIMEOUT_MINUTES,
    MAX_ATTEMPTS,
    MAX_RETRIES,
    OCR_TIMEOUT,
    PROVIDER_TIMEOUT,
    READABILITY_REVIEW_THRESHOLD,
    RETRY_BASE_DELAY,
    SOLVER_TIMEOUT,
    SUPPORTED_VISION_PROVIDERS,
    WORKER_BATCH_SIZE,
    WORKER_POLL_INTERVAL,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MATHGRADE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Vision provider API keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    groq_api_key: str = ""
    openrouter_api_key: str = ""
    gemini_api_key: str = ""

    # Vision models (registry defaults apply when unset)
    openai_model: Optional[str] = None
    anthropic_model: Optional[str] = None
    groq_model: Optional[str] = None
    openrouter_model: Optional[str] = None
    gemini_model: Optional[str] = None

    # OCR and solver
    mathpix_app_id: str = ""
    mathpix_app_key: str = ""
    wolfram_app_id: str = ""

    # Provider manager
    provider_primary: Optional[str] = None
    fallback_order: str = ",".join(DEFAULT_FALLBACK_ORDER)
    max_retries: int = Field(default=MAX_RETRIES, ge=1)
    retry_delay: float = Field(default=RETRY_BASE_DELAY, ge=0.0)
    provider_timeout: float = Field(default=PROVIDER_TIMEOUT, gt=0.0)
    ocr_timeout: float = Field(default=OCR_TIMEOUT, gt=0.0)
    solver_timeout: float = Field(default=SOLVER_TIMEOUT, gt=0.0)

    # Grading
    use_ocr: bool = True
    enable_verification: bool = True
    readability_review_threshold: float = READABILITY_REVIEW_THRESHOLD

    # Queue / storage
    database_url: str = "sqlite:///data/mathgrade.db"
    data_dir: str = "data"
    max_attempts: int = Field(default=MAX_ATTEMPTS, ge=1)
    lock_timeout_minutes: int = Field(default=LOCK_TIMEOUT_MINUTES, ge=1)
    worker_batch_size: int = Field(default=WORKER_BATCH_SIZE, ge=1)
    worker_poll_interval: float = WORKER_POLL_INTERVAL

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # HTTP surface (empty = development mode, no key check)
    api_key: str = ""

    @field_validator("provider_primary")
    @classmethod
    def validate_primary(cls, v: Optional[str]) -> Optional[str]:
        """Primary provider must be a supported vision provider."""
        if v is None or not v.strip():
            return None
        name = v.strip().lower()
        if name not in SUPPORTED_VISION_PROVIDERS:
            raise ValueError(
                f"provider_primary must be one of: {', '.join(SUPPORTED_VISION_PROVIDERS)}"
            )
        return name

    @field_validator("fallback_order")
    @classmethod
    def validate_fallback_order(cls, v: str) -> str:
        """Every name must be a supported provider; empty means the default order."""
        names = [p.strip().lower() for p in v.split(",") if p.strip()]
        if not names:
            return ",".join(DEFAULT_FALLBACK_ORDER)
        unknown = [p for p in names if p not in SUPPORTED_VISION_PROVIDERS]
        if unknown:
            raise ValueError(
                f"Unknown provider(s) in fallback_order: {', '.join(unknown)}. "
                f"Supported: {', '.join(SUPPORTED_VISION_PROVIDERS)}"
            )
        return ",".join(dict.fromkeys(names))

    @property
    def provider_order(self) -> List[str]:
        """Resolved provider order, with the primary moved to the front."""
        order = self.fallback_order.split(",")
        if self.provider_primary:
            order = [self.provider_primary] + [p for p in order if p != self.provider_primary]
        return order

    @property
    def mathpix_configured(self) -> bool:
        return bool(self.mathpix_app_id and self.mathpix_app_key)

    @property
    def wolfram_configured(self) -> bool:
        return bool(self.wolfram_app_id)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings from environment."""
    get_settings.cache_clear()
    return get_settings()
