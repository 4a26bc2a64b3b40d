"""Configuration management for the Primus GFS compliance engine."""

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env is optional; an unreadable one falls back to the process environment
try:
    load_dotenv()
except (PermissionError, OSError):
    pass

DEFAULT_SPEC_ROOT = Path(__file__).resolve().parent.parent / "data" / "primus"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    COMPLIANCE_ENV: str = Field(default="dev", description="Environment: dev, test, staging, prod")
    LOG_LEVEL: str | None = Field(default=None, description="Overrides the environment-derived log level")

    # LLM provider configuration
    LLM_PROVIDER: str = Field(default="bedrock", description="LLM provider: bedrock or anthropic")
    AWS_REGION: str = Field(default="us-east-1", description="AWS region for Bedrock")
    BEDROCK_MODEL_ID: str = Field(
        default="us.anthropic.claude-sonnet-4-5-20250929-v1:0",
        description="Bedrock inference profile / model id",
    )
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key (direct API only)")
    ANTHROPIC_MODEL: str = Field(
        default="claude-sonnet-4-5-20250929", description="Model for the direct Anthropic API"
    )
    LLM_TEMPERATURE: float = Field(default=0.3, description="Sampling temperature for section generation")

    # Per-section token budgets keyed by priority
    SECTION_TOKENS_HIGH: int = Field(default=2000, description="Max tokens for high-priority sections")
    SECTION_TOKENS_MEDIUM: int = Field(default=1200, description="Max tokens for medium-priority sections")
    SECTION_TOKENS_LOW: int = Field(default=600, description="Max tokens for low-priority sections")
    BATCH_MAX_TOKENS: int = Field(default=2500, description="Max tokens for the batched section call")
    METADATA_MAX_TOKENS: int = Field(default=1000, description="Max tokens for document metadata")

    # Retry / timeout policy for section calls
    SECTION_MAX_ATTEMPTS: int = Field(default=2, description="Attempts per section call (first try included)")
    SECTION_INITIAL_BACKOFF_SECONDS: float = Field(
        default=1.0, description="Backoff before the second attempt; doubles after each attempt"
    )
    SECTION_TIMEOUT_SECONDS: float = Field(default=45.0, description="Hard timeout per section attempt")
    BATCH_TIMEOUT_SECONDS: float = Field(default=90.0, description="Hard timeout for the batched call")

    # Evidence extraction budgets
    EVIDENCE_CHAR_BUDGET: int = Field(default=2000, description="Max evidence chars per section prompt")
    BATCH_EVIDENCE_CHAR_BUDGET: int = Field(
        default=1000, description="Max evidence chars per section inside the batched prompt"
    )

    # Validation thresholds
    MIN_SECTION_CHARS: int = Field(default=150, description="Section shorter than this is flagged")
    MIN_DOCUMENT_WORDS: int = Field(default=1000, description="Document shorter than this is flagged")

    # Specification store
    SPEC_ROOT: Path = Field(default=DEFAULT_SPEC_ROOT, description="Root of the specification store")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If environment variables hold invalid values
    """
    return Settings()
