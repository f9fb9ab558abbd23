# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings: completion
service, memory store, pipeline budgets, prompt windows, documentation
corpus, logging and the HTTP surface.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is missing or internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === COMPLETION SERVICE ===
    llm_provider: Literal["openai", "anthropic"] = "openai"
    llm_base_url: str = ""
    llm_api_key: str = ""
    llm_model: str = "google/gemini-2.5-flash"
    llm_temperature: float = 0.4

    # === MEMORY STORE ===
    memory_backend: Literal["sqlite", "redis"] = "sqlite"
    memory_db_path: Path | None = None
    memory_redis_url: str = ""
    memory_api_key: str = ""

    # === Pipeline ===
    pipeline_token_budget: int = 8000
    stage_timeout_s: float = 60.0
    confidence_threshold: float = 0.75
    max_clarifying_questions: int = 2
    clarify_max_tokens: int = 256
    scorer: Literal["heuristic", "embedding"] = "heuristic"

    # === Prompt context window ===
    prompt_max_prior_steps: int = 4
    prompt_max_chars_per_step: int = 1200
    prompt_max_prior_chars: int = 4000

    # === Context retrieval ===
    context_memory_limit: int = 8
    context_excerpt_chars: int = 200

    # === Documentation corpus ===
    docs_root: Path | None = None
    docs_top_k: int = 5
    docs_excerpt_chars: int = 800

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # === HTTP ===
    api_host: str = "0.0.0.0"  # noqa: S104
    api_port: int = 8000

    # --- Validators ---

    @field_validator("pipeline_token_budget")
    @classmethod
    def validate_budget(cls, v: int) -> int:  # noqa: N805
        if v <= 0:
            raise ValueError("pipeline_token_budget must be > 0")
        return v

    @field_validator("confidence_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:  # noqa: N805
        if not 0.0 <= v <= 1.0:
            raise ValueError("confidence_threshold must be within [0, 1]")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.stage_timeout_s <= 0:
            errors.append("STAGE_TIMEOUT_S must be > 0")

        if not 1 <= self.max_clarifying_questions <= 2:
            errors.append("MAX_CLARIFYING_QUESTIONS must be 1 or 2")

        if self.prompt_max_prior_steps < 0:
            errors.append("PROMPT_MAX_PRIOR_STEPS must be >= 0")

        if self.prompt_max_chars_per_step > self.prompt_max_prior_chars:
            errors.append(
                "PROMPT_MAX_CHARS_PER_STEP must be <= PROMPT_MAX_PRIOR_CHARS"
            )

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    def require_credentials(self) -> None:
        """Fail fast when the completion service or memory store is unconfigured.

        Called once at process startup, never per request.

        Raises:
            ConfigurationError: Listing every missing variable.
        """
        missing: list[str] = []

        if self.llm_provider == "openai" and not self.llm_base_url:
            missing.append("LLM_BASE_URL")
        if not self.llm_api_key:
            missing.append("LLM_API_KEY")

        if self.memory_backend == "sqlite" and self.memory_db_path is None:
            missing.append("MEMORY_DB_PATH")
        if self.memory_backend == "redis" and not self.memory_redis_url:
            missing.append("MEMORY_REDIS_URL")

        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-request config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
