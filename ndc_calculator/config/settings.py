"""NDC Calculator application settings loaded from environment variables."""

from enum import StrEnum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Deployment environment."""

    DEV = "dev"
    STAGING = "staging"
    PROD = "prod"


class LogLevel(StrEnum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Application-wide settings loaded from environment variables / .env file.

    All secrets, upstream endpoints, and tuning knobs live here.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # --- AI / LLM ---
    OPENAI_API_KEY: str = Field(
        default="",
        description="OpenAI API key used by the directions parser and recommender.",
    )
    OPENAI_MODEL: str = Field(
        default="gpt-4o-mini",
        description="Chat completion model name.",
    )
    OPENAI_BASE_URL: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the chat completions API.",
    )

    # --- Drug directories ---
    RXNORM_API_BASE_URL: str = Field(
        default="https://rxnav.nlm.nih.gov/REST",
        description="RxNorm REST base URL (concept-id directory).",
    )
    FDA_NDC_API_BASE_URL: str = Field(
        default="https://api.fda.gov/drug/ndc.json",
        description="openFDA NDC endpoint (package directory).",
    )

    # --- Timeouts (seconds) ---
    RXNORM_TIMEOUT: float = Field(default=10.0, gt=0)
    FDA_NDC_TIMEOUT: float = Field(default=10.0, gt=0)
    OPENAI_TIMEOUT: float = Field(default=30.0, gt=0)

    # --- Retry budget ---
    RETRY_MAX_RETRIES: int = Field(default=3, ge=0)
    RETRY_BASE_DELAY: float = Field(default=1.0, ge=0)
    RETRY_MAX_DELAY: float = Field(default=10.0, ge=0)

    # --- Input constraints ---
    DRUG_NAME_MAX_LENGTH: int = Field(default=200, gt=0)
    DIRECTIONS_MAX_LENGTH: int = Field(default=500, gt=0)
    DAYS_SUPPLY_MIN: int = Field(default=1, ge=1)
    DAYS_SUPPLY_MAX: int = Field(default=365, ge=1)

    # --- Recommendation arbitration ---
    RECOMMENDATION_ENABLED: bool = Field(
        default=True,
        description="Ask the recommendation service for an advisory selection.",
    )
    RECOMMENDATION_OVERFILL_TOLERANCE: float = Field(
        default=1.2,
        ge=1.0,
        description="Recommendation is adopted when its overfill <= deterministic overfill x this.",
    )

    # --- Logging ---
    LOG_LEVEL: LogLevel = Field(
        default=LogLevel.INFO,
        description="Application log level.",
    )

    # --- Environment ---
    ENVIRONMENT: Environment = Field(
        default=Environment.DEV,
        description="Deployment environment (dev/staging/prod).",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT == Environment.PROD

    @property
    def has_openai(self) -> bool:
        """Whether an OpenAI key is configured."""
        return bool(self.OPENAI_API_KEY)


def get_settings() -> Settings:
    """Factory function for dependency injection via FastAPI Depends."""
    return Settings()
