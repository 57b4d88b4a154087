"""Application settings using Pydantic BaseSettings for environment variable management."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Global application settings loaded from environment variables.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log output format (json for production, console for dev)
        accept_threshold: Score at or above which a document is accepted
        review_threshold: Score at or above which a document goes to review
        high_priority_below: Inconclusive scores below this get HIGH review priority
        review_sla_hours: Hours a reviewer has after assignment
        check_timeout_seconds: Upper bound for a single external check
        max_concurrent_pipelines: Worker pool size for detached pipelines
        data_dir: Directory for JSON persistence (memory-only when unset)
        webhook_url: Optional webhook for completion notifications
        notification_mock_mode: Log notifications instead of sending them
        mock_response_delay_min: Minimum simulated provider latency (seconds)
        mock_response_delay_max: Maximum simulated provider latency (seconds)
        mock_seed: Seed for mock provider randomness
    """

    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: json or console"
    )
    accept_threshold: float = Field(
        default=70.0,
        ge=0.0,
        le=100.0,
        description="Confidence score required for ACCEPT"
    )
    review_threshold: float = Field(
        default=40.0,
        ge=0.0,
        le=100.0,
        description="Confidence score required for REVIEW (below is REJECT)"
    )
    high_priority_below: float = Field(
        default=50.0,
        ge=0.0,
        le=100.0,
        description="Inconclusive scores below this are queued with HIGH priority"
    )
    review_sla_hours: int = Field(
        default=24,
        gt=0,
        description="Manual review SLA window in hours, counted from assignment"
    )
    check_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Timeout applied to each external check call"
    )
    max_concurrent_pipelines: int = Field(
        default=8,
        gt=0,
        description="Maximum verification pipelines running at once"
    )
    data_dir: Optional[str] = Field(
        default=None,
        description="Directory for JSON persistence of entities"
    )
    webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook receiving verification.completed events"
    )
    notification_mock_mode: bool = Field(
        default=True,
        description="Log notifications instead of delivering them"
    )
    mock_response_delay_min: float = Field(
        default=0.0,
        ge=0.0,
        description="Minimum simulated latency for mock providers (seconds)"
    )
    mock_response_delay_max: float = Field(
        default=0.0,
        ge=0.0,
        description="Maximum simulated latency for mock providers (seconds)"
    )
    mock_seed: Optional[int] = Field(
        default=None,
        description="Seed for mock provider randomness (reproducible demos)"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Singleton instance - import this throughout the application
settings = Settings()
