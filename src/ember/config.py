"""Configuration management using pydantic-settings."""

from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExtractionBackend(str, Enum):
    """Which extraction capability the pipeline runs against."""

    LLM = "llm"  # External language model (server, BYOK or proxied route)
    STATIC = "static"  # Deterministic offline stub


class CompressionBackend(str, Enum):
    """Which compression capability wake prompt generation uses."""

    LLM = "llm"
    EXTRACTIVE = "extractive"


class TokenEstimatorMode(str, Enum):
    """Token estimation strategy."""

    HEURISTIC = "heuristic"  # ceil(chars / 4)
    TIKTOKEN = "tiktoken"


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # Memory Store
    database_url: str = Field(
        "sqlite+aiosqlite:///./ember.db", description="Database connection URL"
    )

    # Extraction Configuration
    extraction_backend: ExtractionBackend = Field(
        ExtractionBackend.LLM,
        description="Extraction capability: 'llm' or 'static'",
    )
    extraction_model: str = Field(
        "anthropic:claude-sonnet-4-5-20250929",
        description="Model selection: 'provider:model' format",
        examples=["anthropic:claude-sonnet-4-5-20250929", "ollama:qwen2.5:14b"],
    )
    anthropic_api_key: str | None = Field(
        None, description="Operator Anthropic API key (server-side extraction route)"
    )
    gateway_base_url: str = Field(
        "http://localhost:11434",
        description="Base URL of the self-hosted gateway used by the proxied route",
    )
    llm_timeout: float = Field(
        60.0,
        description="LLM API request timeout in seconds",
        ge=1.0,
        le=600.0,
    )
    extraction_max_tokens: int = Field(
        4096, description="Completion token limit for extraction calls", ge=256
    )
    max_candidates: int = Field(
        50, description="Maximum candidate memories accepted per extraction", ge=1
    )

    # Capture Intake
    capture_min_chars: int = Field(
        40, description="Minimum capture length after normalization", ge=1
    )
    capture_max_chars: int = Field(
        100_000, description="Maximum capture length after normalization", ge=1
    )
    error_message_max_chars: int = Field(
        500, description="Truncation length for user-visible failure reasons", ge=32
    )

    # Job Scheduler
    worker_concurrency: int = Field(
        5, description="Maximum concurrently running extraction jobs", ge=1, le=64
    )
    job_max_attempts: int = Field(
        3, description="Attempts per job for transient extraction failures", ge=1, le=10
    )
    job_backoff_seconds: float = Field(
        2.0, description="Base delay for exponential retry backoff", ge=0.0
    )
    job_timeout_seconds: float = Field(
        300.0, description="Wall-clock limit for one extraction job", gt=0.0
    )

    # Deletion & Retention
    deletion_retention_days: int = Field(
        30, description="Days a deleted capture or memory stays restorable", ge=0
    )
    purge_interval_seconds: float = Field(
        3600.0, description="Delay between purges of expired deleted rows", gt=0.0
    )

    # Token Estimation & Wake Prompts
    token_estimator: TokenEstimatorMode = Field(
        TokenEstimatorMode.HEURISTIC, description="Token estimation strategy"
    )
    tiktoken_encoding: str = Field(
        "cl100k_base", description="tiktoken encoding used in 'tiktoken' mode"
    )
    default_token_budget: int = Field(
        8000, description="Default wake prompt budget for new accounts", ge=1
    )
    max_token_budget: int = Field(
        32000, description="Largest wake prompt budget accepted by the API", ge=1
    )

    # Compression
    compression_enabled: bool = Field(
        True, description="Enable the compression tier for eligible accounts"
    )
    compression_backend: CompressionBackend = Field(
        CompressionBackend.LLM, description="Compression capability: 'llm' or 'extractive'"
    )
    compression_model: str = Field(
        "anthropic:claude-haiku-4-5-20251001",
        description="pydantic-ai model id used for compression",
    )

    # API Server
    host: str = Field("0.0.0.0", description="API server host")
    port: int = Field(8000, description="API server port", ge=1, le=65535)
    log_level: str = Field("info", description="Log level for the server and application loggers")

    model_config = SettingsConfigDict(
        env_prefix="EMBER_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("extraction_model", "compression_model")
    @classmethod
    def validate_model_format(cls, v: str) -> str:
        """Ensure model ids have 'provider:model' format."""
        if ":" not in v:
            raise ValueError(f"Invalid model format: {v}. Expected 'provider:model'")
        provider, model = v.split(":", 1)
        if not provider or not model:
            raise ValueError(
                f"Invalid model format: {v}. Provider and model must be non-empty"
            )
        return v

    @field_validator("capture_max_chars")
    @classmethod
    def validate_capture_bounds(cls, v: int, info) -> int:
        """Ensure the upper intake bound is above the lower one."""
        minimum = info.data.get("capture_min_chars", 1)
        if v <= minimum:
            raise ValueError(
                f"capture_max_chars ({v}) must exceed capture_min_chars ({minimum})"
            )
        return v


# Global settings instance
settings = Settings()
