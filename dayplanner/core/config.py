"""
Configuration management for Day Planner.
Loads environment variables and provides centralized config access.
"""

from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # =============================================================================
    # APPLICATION SETTINGS
    # =============================================================================
    app_name: str = "Day Planner"
    version: str = "1.0.0"
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # =============================================================================
    # DATABASE CONFIGURATION
    # =============================================================================
    database_url: str = Field(default="sqlite:///./day_planner.db")

    # =============================================================================
    # OPTIMIZER (GEMINI) CONFIGURATION
    # =============================================================================
    google_gemini_api_key: Optional[str] = Field(default=None)
    gemini_model: str = Field(default="gemini-1.5-flash")
    ai_temperature: float = Field(default=0.7)
    max_tokens_per_request: int = Field(default=4096)
    optimizer_timeout_seconds: float = Field(default=20.0)

    @field_validator("google_gemini_api_key")
    @classmethod
    def validate_gemini_key(cls, v):
        # Placeholders from .env templates count as "not configured"
        if not v or not v.strip() or "your" in v.lower():
            return None
        return v.strip()

    @field_validator("optimizer_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("OPTIMIZER_TIMEOUT_SECONDS must be positive")
        return v

    # =============================================================================
    # PLANNER SETTINGS
    # =============================================================================
    max_plan_candidates: int = Field(default=20, ge=1)
    planner_day_start_hour: int = Field(default=9, ge=0, le=23)
    planner_day_end_hour: int = Field(default=21, ge=0, le=23)
    placeholder_distance_meters: int = Field(default=5000, ge=0)

    @model_validator(mode="after")
    def validate_day_bounds(self):
        if self.planner_day_start_hour >= self.planner_day_end_hour:
            raise ValueError("PLANNER_DAY_START_HOUR must be earlier than PLANNER_DAY_END_HOUR")
        return self

    # =============================================================================
    # COMPUTED PROPERTIES
    # =============================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"

    @property
    def use_optimizer(self) -> bool:
        """Check if the Gemini optimizer is configured and should be used."""
        return bool(self.google_gemini_api_key)

    # =============================================================================
    # PYDANTIC SETTINGS CONFIG
    # =============================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_assignment=True,
        extra="ignore",
    )


# =============================================================================
# GLOBAL SETTINGS INSTANCE
# =============================================================================
def get_settings() -> Settings:
    """Get application settings."""
    return Settings()


# Global settings instance
settings = get_settings()


# =============================================================================
# CONFIGURATION UTILITIES
# =============================================================================
def validate_configuration() -> dict:
    """
    Validate all configuration settings and return status report.

    Returns:
        dict: Configuration validation report
    """
    try:
        config = get_settings()

        status = {
            "valid": True,
            "errors": [],
            "warnings": [],
            "services": {
                "database": bool(config.database_url),
                "gemini_optimizer": config.use_optimizer,
            }
        }

        if not config.use_optimizer:
            status["warnings"].append(
                "GOOGLE_GEMINI_API_KEY not configured - plans use the deterministic fallback only"
            )

        if config.is_production and config.debug:
            status["warnings"].append("DEBUG mode enabled in production")

        if config.is_production and config.database_url.startswith("sqlite"):
            status["warnings"].append("SQLite database configured in production")

        return status

    except Exception as e:
        return {
            "valid": False,
            "errors": [str(e)],
            "warnings": [],
            "services": {}
        }
