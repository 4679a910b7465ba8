"""
Data model for notification learning.

- Quiz: immutable micro quiz snapshot
- LearningSchedule: one active schedule per user
- NotificationRecord: one record per emitted prompt, with its lifecycle status
- NotificationResponse / ResponseOutcome: a learner answer and its result
- WrongAnswerRecord: what the wrong-answer sink receives
- NotificationHistory: aggregate statistics for a user
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .exceptions import InvalidScheduleError
from .time_windows import parse_hhmm

FREQUENCIES = ("low", "medium", "high")
DIFFICULTY_POLICIES = ("adaptive", "fixed", "easy", "medium", "hard")
QUIZ_DIFFICULTIES = ("easy", "medium", "hard")


# =============================================================================
# Quiz
# =============================================================================


@dataclass(frozen=True)
class Quiz:
    """A multiple-choice micro quiz. Immutable once generated."""

    id: str
    question: str
    options: tuple[str, ...]
    correct_answer: int
    category: str
    difficulty: str = "medium"
    explanation: str | None = None
    estimated_time: int = 15  # seconds
    hints: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Lists from JSON are frozen into tuples so the snapshot cannot drift
        object.__setattr__(self, "options", tuple(self.options))
        object.__setattr__(self, "hints", tuple(self.hints))
        if not self.options:
            raise ValueError(f"Quiz {self.id} has no options")
        if not 0 <= self.correct_answer < len(self.options):
            raise ValueError(
                f"Quiz {self.id} correct_answer {self.correct_answer} "
                f"out of range for {len(self.options)} options"
            )

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_answer]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Quiz:
        """Create a Quiz from a JSON-style dictionary."""
        return cls(
            id=data["id"],
            question=data["question"],
            options=tuple(data["options"]),
            correct_answer=int(data.get("correct_answer", data.get("correctAnswer", 0))),
            category=data.get("category", "general"),
            difficulty=data.get("difficulty", "medium"),
            explanation=data.get("explanation"),
            estimated_time=int(data.get("estimated_time", data.get("estimatedTime", 15))),
            hints=tuple(data.get("hints") or ()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "category": self.category,
            "difficulty": self.difficulty,
            "explanation": self.explanation,
            "estimated_time": self.estimated_time,
            "hints": list(self.hints),
        }


# =============================================================================
# Learning Schedule
# =============================================================================


@dataclass
class LearningSchedule:
    """
    Per-user learning schedule.

    Attributes:
        user_id: Unique key; at most one active schedule per user
        preferred_times: Ordered "HH:MM" strings (may be empty)
        timezone: IANA timezone the times are interpreted in
        frequency: Tier mapping to a daily trigger count (low/medium/high)
        categories: Subject categories quizzes are drawn from
        difficulty: "adaptive", "fixed", or a pinned level (easy/medium/hard)
    """

    user_id: str
    preferred_times: list[str] = field(default_factory=list)
    timezone: str = "Asia/Seoul"
    frequency: str = "medium"
    categories: list[str] = field(default_factory=list)
    difficulty: str = "adaptive"

    def __post_init__(self) -> None:
        self.preferred_times = list(self.preferred_times)
        # Ordered de-duplication keeps the user's category order
        self.categories = list(dict.fromkeys(self.categories))
        self.validate()

    def validate(self) -> None:
        """
        Check every field.

        Raises:
            InvalidScheduleError: On an empty user id, bad time, zone or tier
        """
        if not self.user_id:
            raise InvalidScheduleError("user_id must not be empty")

        for value in self.preferred_times:
            parse_hhmm(value)

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise InvalidScheduleError(f"Unknown timezone: {self.timezone!r}") from exc

        if self.frequency not in FREQUENCIES:
            raise InvalidScheduleError(
                f"frequency must be one of {FREQUENCIES}, got {self.frequency!r}"
            )
        if self.difficulty not in DIFFICULTY_POLICIES:
            raise InvalidScheduleError(
                f"difficulty must be one of {DIFFICULTY_POLICIES}, got {self.difficulty!r}"
            )

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def is_adaptive(self) -> bool:
        return self.difficulty == "adaptive"

    def merged(self, updates: dict[str, Any]) -> LearningSchedule:
        """Return a validated copy with ``updates`` applied (user_id is fixed)."""
        allowed = {k: v for k, v in updates.items() if k != "user_id" and v is not None}
        unknown = set(allowed) - {
            "preferred_times",
            "timezone",
            "frequency",
            "categories",
            "difficulty",
        }
        if unknown:
            raise InvalidScheduleError(f"Unknown schedule fields: {sorted(unknown)}")
        return replace(self, **allowed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "preferred_times": list(self.preferred_times),
            "timezone": self.timezone,
            "frequency": self.frequency,
            "categories": list(self.categories),
            "difficulty": self.difficulty,
        }


# =============================================================================
# Notification Lifecycle
# =============================================================================


class NotificationStatus(str, Enum):
    """Lifecycle state of a notification. Transitions only move forward."""

    SCHEDULED = "scheduled"
    SENT = "sent"
    RESPONDED = "responded"
    EXPIRED = "expired"

    @property
    def is_final(self) -> bool:
        return self in {NotificationStatus.RESPONDED, NotificationStatus.EXPIRED}


# Allowed forward transitions
TRANSITIONS: dict[NotificationStatus, frozenset[NotificationStatus]] = {
    NotificationStatus.SCHEDULED: frozenset({NotificationStatus.SENT}),
    NotificationStatus.SENT: frozenset(
        {NotificationStatus.RESPONDED, NotificationStatus.EXPIRED}
    ),
    NotificationStatus.RESPONDED: frozenset(),
    NotificationStatus.EXPIRED: frozenset(),
}


@dataclass
class NotificationRecord:
    """A single quiz prompt and its lifecycle."""

    notification_id: str
    user_id: str
    quiz: Quiz
    scheduled_time: datetime
    sent_time: datetime | None = None
    responded_time: datetime | None = None
    user_answer: int | None = None
    is_correct: bool | None = None
    response_latency_ms: int | None = None
    status: NotificationStatus = NotificationStatus.SCHEDULED

    def can_transition(self, target: NotificationStatus) -> bool:
        return target in TRANSITIONS[self.status]

    @property
    def is_resolved(self) -> bool:
        return self.status.is_final

    def to_dict(self) -> dict[str, Any]:
        return {
            "notification_id": self.notification_id,
            "user_id": self.user_id,
            "quiz": self.quiz.to_dict(),
            "scheduled_time": self.scheduled_time.isoformat(),
            "sent_time": self.sent_time.isoformat() if self.sent_time else None,
            "responded_time": self.responded_time.isoformat() if self.responded_time else None,
            "user_answer": self.user_answer,
            "is_correct": self.is_correct,
            "response_latency_ms": self.response_latency_ms,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NotificationRecord:
        def _dt(value: str | None) -> datetime | None:
            return datetime.fromisoformat(value) if value else None

        return cls(
            notification_id=data["notification_id"],
            user_id=data["user_id"],
            quiz=Quiz.from_dict(data["quiz"]),
            scheduled_time=datetime.fromisoformat(data["scheduled_time"]),
            sent_time=_dt(data.get("sent_time")),
            responded_time=_dt(data.get("responded_time")),
            user_answer=data.get("user_answer"),
            is_correct=data.get("is_correct"),
            response_latency_ms=data.get("response_latency_ms"),
            status=NotificationStatus(data.get("status", "scheduled")),
        )


# =============================================================================
# Responses
# =============================================================================


@dataclass
class NotificationResponse:
    """A learner's answer to a quiz notification."""

    notification_id: str
    answer: int
    response_time: datetime | None = None  # None = now
    confidence: int | None = None  # 1-5
    feedback: str | None = None  # too_easy / too_hard / just_right


@dataclass(frozen=True)
class ResponseOutcome:
    """Result returned to the caller of respond_to_notification."""

    correct: bool
    next_delay_minutes: int
    explanation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "correct": self.correct,
            "explanation": self.explanation,
            "next_delay_minutes": self.next_delay_minutes,
        }


@dataclass(frozen=True)
class WrongAnswerRecord:
    """A mismatched question/answer pair handed to the wrong-answer sink."""

    question_id: str
    question: str
    correct_answer: str
    user_answer: str
    category: str
    difficulty: str
    timestamp: datetime
    user_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_id": self.question_id,
            "question": self.question,
            "correct_answer": self.correct_answer,
            "user_answer": self.user_answer,
            "category": self.category,
            "difficulty": self.difficulty,
            "timestamp": self.timestamp.isoformat(),
            "user_id": self.user_id,
        }


# =============================================================================
# History
# =============================================================================


@dataclass(frozen=True)
class CategoryPerformance:
    category: str
    accuracy: float


@dataclass
class NotificationHistory:
    """Aggregate statistics over a user's recent notifications."""

    total_notifications: int = 0
    responded: int = 0
    expired: int = 0
    accuracy: float = 0.0  # percent of responded answers that were correct
    average_response_time_seconds: float = 0.0
    category_performance: list[CategoryPerformance] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_notifications": self.total_notifications,
            "responded": self.responded,
            "expired": self.expired,
            "accuracy": self.accuracy,
            "average_response_time_seconds": self.average_response_time_seconds,
            "category_performance": [
                {"category": c.category, "accuracy": c.accuracy}
                for c in self.category_performance
            ],
        }
