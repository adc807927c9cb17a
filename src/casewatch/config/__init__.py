"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="casewatch", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/casewatch",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Tracking ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="YAML file with the default SLA configurations to seed"
    )
    sla_evaluation_interval: int = Field(
        default=300,
        description="Seconds between breach sweeps (0 disables the scheduler)",
        ge=0
    )
    sla_sweep_batch_size: int = Field(
        default=500,
        description="Open records loaded per sweep batch",
        ge=1,
        le=10000
    )
    sla_max_update_retries: int = Field(
        default=3,
        description="Attempts for a version-checked record write before giving up",
        ge=1,
        le=20
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    # ========== Grafana OTLP Metrics ==========
    grafana_host: Optional[str] = Field(
        default=None,
        description="Grafana OTLP gateway URL (e.g., https://otlp-gateway-prod-eu-west-2.grafana.net)"
    )
    grafana_api_key: Optional[str] = Field(
        default=None,
        description="Grafana API key for OTLP authentication"
    )
    grafana_instance_id: Optional[str] = Field(
        default=None,
        description="Grafana instance ID for OTLP authentication"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "test", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class CaseType(str):
    """Case types raised against a store by the case-lifecycle system."""
    RETURN = "Return"
    COMPLAINT = "Complaint"
    DISPUTE = "Dispute"


class SLAState(str):
    """Lifecycle state of a tracking record."""
    OPEN = "open"
    RESPONDED = "responded"
    RESOLVED = "resolved"


class SlaStatus(str):
    """Display status shown on the admin dashboard."""
    PENDING = "pending"
    RESPONDED = "responded"
    FIRST_RESPONSE_BREACHED = "first_response_breached"
    RESOLUTION_BREACHED = "resolution_breached"
    RESOLVED_WITHIN_SLA = "resolved_within_sla"
    CLOSED = "closed"


class ErrorCode(str):
    """Failure codes carried by service results."""
    VALIDATION_ERROR = "validation_error"
    NO_APPLICABLE_CONFIGURATION = "no_applicable_configuration"
    DUPLICATE_TRACKING_RECORD = "duplicate_tracking_record"
    RECORD_NOT_FOUND = "record_not_found"
    CONCURRENCY_CONFLICT = "concurrency_conflict"


class TimePeriod(str):
    """Dashboard reporting windows."""
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"


# ========== Lists for validation ==========

VALID_CASE_TYPES = [CaseType.RETURN, CaseType.COMPLAINT, CaseType.DISPUTE]
TIME_PERIOD_DAYS = {
    TimePeriod.LAST_7_DAYS: 7,
    TimePeriod.LAST_30_DAYS: 30,
    TimePeriod.LAST_90_DAYS: 90,
}
DEFAULT_TIME_PERIOD = TimePeriod.LAST_30_DAYS
