"""Application configuration."""
from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_env: str = "development"
    app_debug: bool = False
    log_level: str = "INFO"
    json_logs: bool = False

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./tourney.db",
        description="Async SQLAlchemy database URL",
    )

    # Clock
    default_blind_level_minutes: int = Field(
        default=20,
        description="Level length used when a tournament has no structure",
    )
    clock_tick_seconds: float = Field(
        default=1.0,
        description="Interval between clock recomputations (초)",
    )

    # Payouts
    icm_max_players: int = Field(
        default=9,
        description="Largest field size computed with exact ICM (초과 시 ChipEV)",
    )
    payout_rounding_unit: Decimal = Field(
        default=Decimal("1"),
        description="Prizes are rounded to a multiple of this amount",
    )
    strict_payout_validation: bool = Field(
        default=False,
        description="Refuse settlement when a payout rule does not sum to 100%",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and validate the log level name."""
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return level

    @field_validator("default_blind_level_minutes", "clock_tick_seconds")
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("payout_rounding_unit")
    @classmethod
    def validate_rounding_unit(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("payout_rounding_unit must be greater than zero")
        return v

    @field_validator("icm_max_players")
    @classmethod
    def validate_icm_cap(cls, v: int) -> int:
        # 부분집합 상태 수가 2^n 으로 늘어남
        if not 1 <= v <= 12:
            raise ValueError("icm_max_players must be between 1 and 12")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production environment."""
        if self.app_env == "production":
            if self.app_debug:
                raise ValueError(
                    "app_debug must be False in production environment"
                )
            # 프로덕션에서는 JSON 로그 강제
            object.__setattr__(self, "json_logs", True)
        return self

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
