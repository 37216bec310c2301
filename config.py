"""
Configuration settings for the exercise engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FEEDBACK_MESSAGE = (
    "Good work completing this activity! Keep practicing to improve your "
    "results in the next lessons."
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # LMS API
    # ========================================
    lms_api_url: str = Field(
        default="",
        description="LMS REST API base URL (empty = offline mode)",
    )
    lms_api_token: str = Field(
        default="",
        description="Bearer token for the learner session",
    )
    lms_user_id: str | None = Field(
        default=None,
        description="Learner ID grades are recorded for",
    )
    lms_course_id: str | None = Field(
        default=None,
        description="Course ID the played lessons belong to",
    )
    lms_timeout_ms: int = Field(
        default=10000,
        description="HTTP request timeout in milliseconds",
    )
    lms_retry_attempts: int = Field(
        default=3,
        description="Tries for retryable LMS failures",
    )

    # ========================================
    # Grading & Feedback
    # ========================================
    record_attempt_timeout_seconds: float = Field(
        default=15.0,
        description="How long a submit waits for the grading service before marking the attempt pending",
    )
    feedback_timeout_seconds: float = Field(
        default=20.0,
        description="How long to wait for tutor feedback before showing the default message",
    )
    default_feedback_message: str = Field(
        default=DEFAULT_FEEDBACK_MESSAGE,
        description="Shown when tutor feedback cannot be fetched",
    )

    # ========================================
    # Presentation
    # ========================================
    shuffle_seed: int | None = Field(
        default=None,
        description="Seed for distractor shuffles (unset = random each session)",
    )

    # ========================================
    # Local
    # ========================================
    lessons_dir: Path = Field(
        default=Path("lessons"),
        description="Directory of <lesson_id>.json files for offline play",
    )
    log_level: str = Field(
        default="WARNING",
        description="loguru level for the stderr sink",
    )

    def has_lms_configured(self) -> bool:
        """Check if the LMS API is configured."""
        return bool(self.lms_api_url)

    def get_lms_config(self) -> dict[str, any]:
        """Get LMS client configuration as a dictionary."""
        return {
            "api_url": self.lms_api_url,
            "token": self.lms_api_token or None,
            "user_id": self.lms_user_id,
            "course_id": self.lms_course_id,
            "timeout_ms": self.lms_timeout_ms,
            "retry_attempts": self.lms_retry_attempts,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
