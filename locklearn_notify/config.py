"""
Configuration settings for locklearn-notify.

Uses Pydantic Settings for environment variable management with .env file support.
Every setting can be overridden with a LOCKLEARN_-prefixed environment variable,
e.g. LOCKLEARN_QUIET_HOURS_START=23:00.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import InvalidScheduleError
from .time_windows import to_hhmm


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LOCKLEARN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Notification Learning
    # ========================================
    enabled: bool = Field(
        default=True,
        description="Master switch; start_learning is a no-op when disabled",
    )
    quiet_hours_start: str = Field(
        default="22:00",
        description="Start of the do-not-disturb window (inclusive)",
    )
    quiet_hours_end: str = Field(
        default="08:00",
        description="End of the do-not-disturb window (inclusive)",
    )
    max_daily_questions: int = Field(
        default=10,
        description="Per-user cap on prompts sent within one local calendar day",
    )

    # ========================================
    # Adaptive Scheduling
    # ========================================
    adaptive_scheduling: bool = Field(
        default=True,
        description="Derive next delay from correctness and latency",
    )
    adaptive_follow_up: bool = Field(
        default=False,
        description="Arm a one-shot follow-up prompt after the adaptive delay",
    )
    base_delay_minutes: int = Field(
        default=60,
        description="Base delay before the next prompt",
    )
    minimum_delay_minutes: int = Field(
        default=1,
        description="Floor for the adaptive delay",
    )
    default_anchor_time: str = Field(
        default="09:00",
        description="Anchor used to plan slots when no preferred time is given",
    )

    # ========================================
    # Lifecycle
    # ========================================
    expiry_minutes: int = Field(
        default=60,
        description="Unanswered prompts older than this are marked expired",
    )
    expiry_sweep_interval_seconds: float = Field(
        default=60.0,
        description="How often the expiry sweep runs",
    )

    # ========================================
    # Schedule Defaults
    # ========================================
    default_preferred_times: list[str] = Field(
        default_factory=lambda: ["09:00", "14:00", "19:00"],
        description="Preferred times for a schedule started without overrides",
    )
    default_timezone: str = Field(
        default="Asia/Seoul",
        description="IANA timezone for a schedule started without overrides",
    )
    default_frequency: Literal["low", "medium", "high"] = Field(
        default="medium",
        description="Frequency tier for a schedule started without overrides",
    )
    default_categories: list[str] = Field(
        default_factory=lambda: ["general", "programming", "language"],
        description="Quiz categories for a schedule started without overrides",
    )
    default_difficulty: Literal["adaptive", "fixed", "easy", "medium", "hard"] = Field(
        default="adaptive",
        description="Difficulty policy for a schedule started without overrides",
    )

    # ========================================
    # Platforms & Transport
    # ========================================
    platform_web: bool = Field(
        default=True,
        description="Deliver to the web push gateway",
    )
    platform_mobile: bool = Field(
        default=True,
        description="Deliver to the mobile push gateway (FCM/APNS bridge)",
    )
    platform_desktop: bool = Field(
        default=True,
        description="Log prompts locally (desktop / development)",
    )
    push_gateway_url: str | None = Field(
        default=None,
        description="Push gateway endpoint; webhook transports are skipped when unset",
    )
    push_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout for the push gateway",
    )
    notification_title: str = Field(
        default="LockLearn Quiz",
        description="Title shown on quiz notifications",
    )

    # ========================================
    # Content & Storage
    # ========================================
    quiz_bank_path: str | None = Field(
        default=None,
        description="JSON file of quizzes (built-in bank when unset)",
    )
    state_db_path: str | None = Field(
        default=None,
        description="SQLite file for notification records (in-memory when unset)",
    )
    wrong_answer_log_size: int = Field(
        default=500,
        description="Wrong answers kept by the in-process sink",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Validators
    # ========================================
    @field_validator("quiet_hours_start", "quiet_hours_end", "default_anchor_time")
    @classmethod
    def _normalize_hhmm(cls, value: str) -> str:
        try:
            return to_hhmm(value)
        except InvalidScheduleError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("default_preferred_times")
    @classmethod
    def _normalize_preferred(cls, value: list[str]) -> list[str]:
        try:
            return [to_hhmm(v) for v in value]
        except InvalidScheduleError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("max_daily_questions", "expiry_minutes", "base_delay_minutes")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"must be > 0, got {value}")
        return value

    # ========================================
    # Helper Methods
    # ========================================
    def get_quiet_hours(self) -> tuple[str, str]:
        return self.quiet_hours_start, self.quiet_hours_end

    def get_schedule_defaults(self) -> dict:
        """Return the fields a schedule starts from before overrides."""
        return {
            "preferred_times": list(self.default_preferred_times),
            "timezone": self.default_timezone,
            "frequency": self.default_frequency,
            "categories": list(self.default_categories),
            "difficulty": self.default_difficulty,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
