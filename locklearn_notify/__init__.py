"""
locklearn-notify: notification-based micro learning.

Components:
- NotificationLearningService: public API (start/stop/update/respond/history)
- QuizScheduler: daily and follow-up triggers with quiet hours and quota
- NotificationManager: record lifecycle and transport dispatch
- ResponseHandler: answer evaluation, wrong-answer reporting, history
- QuizBank: built-in / JSON quiz source with per-user difficulty
- Transports: log, push-gateway webhook, fan-out
"""

from .adaptive import compute_next_delay
from .config import Settings, get_settings
from .content import QuizBank, QuizSource
from .exceptions import (
    AlreadyRespondedError,
    InvalidResponseError,
    InvalidScheduleError,
    NotFoundError,
    NotificationLearningError,
    QuizGenerationError,
    TransportError,
)
from .models import (
    LearningSchedule,
    NotificationHistory,
    NotificationRecord,
    NotificationResponse,
    NotificationStatus,
    Quiz,
    ResponseOutcome,
    WrongAnswerRecord,
)
from .notifications import NotificationManager
from .planner import plan_times, times_per_day
from .responses import ResponseHandler
from .scheduler import DailyTrigger, OneShotTrigger, QuizScheduler
from .service import NotificationLearningService
from .state_store import InMemoryNotificationStore, NotificationStore, SqliteNotificationStore
from .time_windows import is_quiet_hour, time_of_day_bucket
from .transports import (
    LogTransport,
    MultiTransport,
    NotificationPayload,
    Transport,
    WebhookTransport,
    create_transport,
)
from .wrong_answers import WrongAnswerLog, WrongAnswerSink

__version__ = "0.1.0"

__all__ = [
    # Public API
    "NotificationLearningService",
    "Settings",
    "get_settings",
    # Model
    "Quiz",
    "LearningSchedule",
    "NotificationRecord",
    "NotificationStatus",
    "NotificationResponse",
    "ResponseOutcome",
    "WrongAnswerRecord",
    "NotificationHistory",
    # Scheduling
    "QuizScheduler",
    "DailyTrigger",
    "OneShotTrigger",
    "plan_times",
    "times_per_day",
    "is_quiet_hour",
    "time_of_day_bucket",
    "compute_next_delay",
    # Lifecycle
    "NotificationManager",
    "ResponseHandler",
    "NotificationStore",
    "InMemoryNotificationStore",
    "SqliteNotificationStore",
    # Capabilities
    "QuizSource",
    "QuizBank",
    "Transport",
    "LogTransport",
    "WebhookTransport",
    "MultiTransport",
    "NotificationPayload",
    "create_transport",
    "WrongAnswerSink",
    "WrongAnswerLog",
    # Errors
    "NotificationLearningError",
    "NotFoundError",
    "AlreadyRespondedError",
    "InvalidScheduleError",
    "InvalidResponseError",
    "TransportError",
    "QuizGenerationError",
]
