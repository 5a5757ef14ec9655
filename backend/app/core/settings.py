# backend/app/core/settings.py
"""
Member Equity - Configuration Management with pydantic-settings

- Loads from environment and root .env
- Validates and normalizes values
- Cached singleton via get_settings()
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional
from decimal import Decimal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Calculate path to .env in project root (4 levels up from this file)
# backend/app/core/settings.py -> <repo>/.env
_ENV_FILE = Path(__file__).resolve().parent.parent.parent.parent / ".env"


class Settings(BaseSettings):
    """
    Calculation settings with validation.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===================
    # Application Settings
    # ===================
    PROJECT_NAME: str = "Member Equity"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(default="development", description="Deployment environment")

    # ===================
    # Logging
    # ===================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text
    LOG_FILE: Optional[str] = None

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper().strip()

    # ===================
    # Precision
    # ===================
    CURRENCY_DECIMAL_PLACES: int = Field(default=2, ge=0, le=8)
    PERCENTAGE_DECIMAL_PLACES: int = Field(default=4, ge=0, le=10)

    # ===================
    # Equity Validation
    # ===================
    EQUITY_TOTAL_TOLERANCE: Decimal = Field(
        default=Decimal("0.01"),
        description="Allowed deviation of total active equity from 100 (percentage points)",
    )
    EQUITY_DEVIATION_ERROR_THRESHOLD: Decimal = Field(
        default=Decimal("1"),
        description="Bulk updates deviating from 100 by more than this are rejected",
    )
    LARGE_EQUITY_CHANGE_THRESHOLD: Decimal = Field(
        default=Decimal("10"),
        description="Single-member change (percentage points) flagged as large",
    )
    GINI_EXACT_MAX_MEMBERS: int = Field(
        default=300,
        ge=1,
        description="Largest population that uses the pairwise Gini formulation",
    )

    # ===================
    # Reconciliation
    # ===================
    RECONCILIATION_TOLERANCE: Decimal = Field(
        default=Decimal("10000"), description="Capital reconciliation tolerance (currency)"
    )
    RECONCILIATION_PERCENT_TOLERANCE: Decimal = Field(
        default=Decimal("0.1"), description="Equity percentage reconciliation tolerance"
    )

    # ===================
    # Distributions
    # ===================
    DISTRIBUTION_DRIFT_THRESHOLD_CENTS: Optional[int] = Field(
        default=None,
        description="Max rounding drift in cents before warning; unset means one cent per member",
    )

    # ===================
    # Year-End Allocation
    # ===================
    BALANCE_INCENTIVE_SPREAD: Decimal = Field(
        default=Decimal("5"), description="Percent added to SOFR for the balance incentive rate"
    )
    BALANCE_INCENTIVE_CAP: Decimal = Field(
        default=Decimal("10"), description="Maximum balance incentive rate (percent)"
    )

    @field_validator(
        "EQUITY_TOTAL_TOLERANCE",
        "EQUITY_DEVIATION_ERROR_THRESHOLD",
        "LARGE_EQUITY_CHANGE_THRESHOLD",
        "RECONCILIATION_TOLERANCE",
        "RECONCILIATION_PERCENT_TOLERANCE",
    )
    @classmethod
    def non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Tolerances and thresholds must be non-negative")
        return v

    @field_validator("DISTRIBUTION_DRIFT_THRESHOLD_CENTS", mode="before")
    @classmethod
    def parse_drift_threshold(cls, v):
        """Accept empty string from .env as unset."""
        if v is None or v == "":
            return None
        return v

    @field_validator("BALANCE_INCENTIVE_SPREAD", "BALANCE_INCENTIVE_CAP")
    @classmethod
    def validate_rate(cls, v: Decimal) -> Decimal:
        if v < 0 or v > 100:
            raise ValueError("Rates must be between 0 and 100 percent")
        return v

    @model_validator(mode="after")
    def check_equity_thresholds(self):
        """The error threshold can never be tighter than the warning tolerance."""
        if self.EQUITY_DEVIATION_ERROR_THRESHOLD < self.EQUITY_TOTAL_TOLERANCE:
            raise ValueError(
                "EQUITY_DEVIATION_ERROR_THRESHOLD must be >= EQUITY_TOTAL_TOLERANCE"
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Singleton settings loader (cached)."""
    return Settings()


# Convenience alias
settings = get_settings()
