"""
Error taxonomy for notification learning.

Quiet-hour and quota skips are not errors. Everything else the public API can
surface derives from NotificationLearningError.
"""

from __future__ import annotations


class NotificationLearningError(Exception):
    """Base class for all notification learning errors."""


class NotFoundError(NotificationLearningError, LookupError):
    """Raised for an unknown notification id or a user without an active schedule."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class AlreadyRespondedError(NotificationLearningError):
    """Raised when a notification that is already resolved receives a response."""

    def __init__(self, notification_id: str, status: str):
        self.notification_id = notification_id
        self.status = status
        super().__init__(f"Notification {notification_id} is already {status}")


class InvalidScheduleError(NotificationLearningError, ValueError):
    """Raised when a learning schedule cannot be planned or armed."""


class InvalidResponseError(NotificationLearningError, ValueError):
    """Raised when a response selects an option the quiz does not have."""


class TransportError(NotificationLearningError):
    """Raised by a transport when a notification could not be dispatched."""


class QuizGenerationError(NotificationLearningError):
    """Raised by a quiz source when no quiz can be produced."""
