# src/config/settings.py - v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings. Every
component receives the values it needs through its constructor;
nothing else reads the environment.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Vision (LLM) ===
    vision_provider: Literal["anthropic", "openai"] = "anthropic"
    vision_model: str = "claude-sonnet-4-20250514"
    vision_max_tokens: int = 2048
    anthropic_api_key: str = ""
    openai_api_key: str = ""

    # === Discovery ===
    discovery_enabled: bool = False
    barcode_lookup_api_key: str = ""
    barcode_lookup_base_url: str = "https://api.barcodelookup.com/v3"
    discovery_timeout_s: float = 8.0

    # === Resolution ===
    min_confidence: float = 0.5
    low_confidence_warning: float = 0.8

    # === Repository ===
    repository_path: Path = Path("~/.shelfscan/products.db")
    repository_max_retries: int = 3
    repository_base_delay_ms: int = 100

    # === Cache ===
    cache_backend: Literal["memory", "json", "sqlite", "redis"] = "sqlite"
    cache_root: Path = Path("~/.shelfscan/cache")
    cache_redis_url: str = ""
    dimension_cache_ttl_days: int = 30

    # === Dimension analysis ===
    dimension_timeout_s: float = 10.0
    dimension_max_attempts: int = 3

    # === Progress sessions ===
    progress_min_interval_ms: int = 100
    progress_cleanup_delay_s: float = 5.0
    progress_session_timeout_s: float = 60.0
    progress_max_sessions_per_owner: int = 3

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30
    # JSON-lines file for consistency faults and reports; logged only when unset
    event_log_path: Path | None = None

    # --- Validators ---

    @field_validator(
        "repository_max_retries",
        "dimension_max_attempts",
        "progress_max_sessions_per_owner",
    )
    @classmethod
    def validate_positive_counts(cls, v: int, info) -> int:  # noqa: N805
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        for name in ("min_confidence", "low_confidence_warning"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                errors.append(f"{name.upper()} must be within [0, 1]")

        if self.low_confidence_warning < self.min_confidence:
            errors.append("LOW_CONFIDENCE_WARNING must be >= MIN_CONFIDENCE")

        if self.cache_backend == "redis" and not self.cache_redis_url:
            errors.append("CACHE_BACKEND=redis requires CACHE_REDIS_URL")

        if self.discovery_enabled and not self.barcode_lookup_api_key:
            errors.append("DISCOVERY_ENABLED requires BARCODE_LOOKUP_API_KEY")

        if self.dimension_timeout_s <= 0 or self.progress_session_timeout_s <= 0:
            errors.append("Timeouts must be positive")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def vision_api_key(self) -> str:
        """API key for the configured vision provider."""
        if self.vision_provider == "openai":
            return self.openai_api_key
        return self.anthropic_api_key


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-deployment config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
