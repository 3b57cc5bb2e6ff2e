"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, List, Literal, Self

from assessment.models.models import Section


_SEED_LEVEL_PATTERN = r"^\d+\.[123]$"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Entrance Assessment API"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8080",
    ]

    # Security
    # IMPORTANT: JWT_SECRET_KEY MUST be set in .env file - no default for security
    JWT_SECRET_KEY: str = Field(..., description="JWT signing secret key (required)")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120
    ADMIN_TOKEN: str = Field(
        default="",
        description="Admin API token for provisioning and reviewing tests",
    )

    # Sentry Error Tracking
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking (leave empty to disable)",
    )
    SENTRY_TRACES_SAMPLE_RATE: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry traces sample rate (0.0-1.0, 0.1 = 10% of transactions)",
    )

    # Level scale: levels run ADAPTIVE_MIN_LEVEL.1 .. ADAPTIVE_MAX_LEVEL.3
    ADAPTIVE_MIN_LEVEL: int = Field(default=1, ge=1)
    ADAPTIVE_MAX_LEVEL: int = Field(default=7, ge=1)
    DEFAULT_SEED: str = Field(
        default="2.1",
        pattern=_SEED_LEVEL_PATTERN,
        description="Start level used for sections without a placement seed",
    )

    # Streak state machine
    STREAK_UP_THRESHOLD: int = Field(default=3, ge=1)
    STREAK_DOWN_THRESHOLD: int = Field(default=3, ge=1)
    STREAK_SKIP_THRESHOLD: int = Field(default=5, ge=1)
    STREAK_SKIP_DELTA: int = Field(
        default=2, ge=1, description="Sublevel steps taken on a skip (2 = 0.2)"
    )

    # Section progress
    SECTION_MAX_QUESTIONS: Dict[str, int] = {
        "grammar": 30,
        "reading": 40,
        "listening": 20,
        "dialog": 20,
    }
    # Finalizer weights, overridable at runtime via system_config["section_weights"]
    SECTION_WEIGHTS: Dict[str, float] = {
        "reading": 0.4,
        "grammar": 0.3,
        "listening": 0.2,
        "dialog": 0.1,
    }
    DEFAULT_TIME_LIMIT_SECONDS: int = Field(default=3000, gt=0)

    # Item selection
    SELECTOR_CANDIDATE_COUNT: int = Field(
        default=4,
        ge=1,
        description="How many nearby levels the selector searches (current first)",
    )
    READING_PASSAGE_SET_SIZE: int = Field(
        default=4,
        ge=1,
        description="Questions drawn from one reading passage before rotating",
    )
    # "streak" moves reading like every other section; "passage_set" only
    # re-levels reading after each completed passage set.
    READING_ADAPTATION_MODE: Literal["streak", "passage_set"] = "streak"
    READING_SET_PROMOTE_ACCURACY: float = Field(default=0.7, ge=0.0, le=1.0)
    READING_SET_DEMOTE_ACCURACY: float = Field(default=0.4, ge=0.0, le=1.0)
    READING_SET_SKIP_STEPS: int = Field(default=2, ge=1)

    # Seed dependent sections from their base section (reading <- grammar, ...)
    PARALLEL_SECTION_SYNC: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_level_bounds(self) -> Self:
        """Validate the level scale and the default seed against it."""
        if self.ADAPTIVE_MIN_LEVEL > self.ADAPTIVE_MAX_LEVEL:
            raise ValueError(
                f"ADAPTIVE_MIN_LEVEL ({self.ADAPTIVE_MIN_LEVEL}) must not exceed "
                f"ADAPTIVE_MAX_LEVEL ({self.ADAPTIVE_MAX_LEVEL})"
            )
        seed_level = int(self.DEFAULT_SEED.split(".")[0])
        if not self.ADAPTIVE_MIN_LEVEL <= seed_level <= self.ADAPTIVE_MAX_LEVEL:
            raise ValueError(
                f"DEFAULT_SEED {self.DEFAULT_SEED} is outside the level scale"
            )
        return self

    @model_validator(mode="after")
    def validate_streak_thresholds(self) -> Self:
        """Skip thresholds must be reachable after the plain step thresholds."""
        if self.STREAK_UP_THRESHOLD >= self.STREAK_SKIP_THRESHOLD:
            raise ValueError(
                "STREAK_UP_THRESHOLD must be smaller than STREAK_SKIP_THRESHOLD"
            )
        if self.STREAK_DOWN_THRESHOLD >= self.STREAK_SKIP_THRESHOLD:
            raise ValueError(
                "STREAK_DOWN_THRESHOLD must be smaller than STREAK_SKIP_THRESHOLD"
            )
        if self.READING_SET_DEMOTE_ACCURACY > self.READING_SET_PROMOTE_ACCURACY:
            raise ValueError(
                "READING_SET_DEMOTE_ACCURACY must not exceed READING_SET_PROMOTE_ACCURACY"
            )
        return self

    @model_validator(mode="after")
    def validate_section_tables(self) -> Self:
        """Validate per-section caps and weights cover exactly the known sections."""
        expected_sections = {section.value for section in Section}
        for name, table in (
            ("SECTION_MAX_QUESTIONS", self.SECTION_MAX_QUESTIONS),
            ("SECTION_WEIGHTS", self.SECTION_WEIGHTS),
        ):
            if set(table.keys()) != expected_sections:
                raise ValueError(
                    f"{name} keys must be {sorted(expected_sections)}, "
                    f"got {sorted(table.keys())}"
                )
            non_positive = [k for k, v in table.items() if v <= 0]
            if non_positive:
                raise ValueError(
                    f"All {name} values must be positive, got non-positive: {non_positive}"
                )
        return self


# mypy doesn't understand that pydantic_settings loads required fields from env vars
settings = Settings()  # type: ignore[call-arg]
