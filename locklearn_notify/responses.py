"""
Response handling and history aggregation.

ResponseHandler validates a learner's answer, resolves the record through the
NotificationManager (first responder wins), reports wrong answers to the sink
and computes the delay before the next prompt.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import timedelta

from loguru import logger

from .adaptive import compute_next_delay
from .exceptions import AlreadyRespondedError, InvalidResponseError
from .models import (
    CategoryPerformance,
    NotificationHistory,
    NotificationRecord,
    NotificationResponse,
    NotificationStatus,
    ResponseOutcome,
    WrongAnswerRecord,
)
from .notifications import NotificationManager
from .time_windows import Clock, utc_now
from .wrong_answers import WrongAnswerSink


class ResponseHandler:
    """Turns answers into outcomes and records into history."""

    def __init__(
        self,
        manager: NotificationManager,
        wrong_answer_sink: WrongAnswerSink | None = None,
        clock: Clock = utc_now,
        base_delay_minutes: int = 60,
        minimum_delay_minutes: int = 1,
        adaptive: bool = True,
    ):
        self.manager = manager
        self.wrong_answer_sink = wrong_answer_sink
        self.clock = clock
        self.base_delay_minutes = base_delay_minutes
        self.minimum_delay_minutes = minimum_delay_minutes
        self.adaptive = adaptive

    # =========================================================================
    # Responding
    # =========================================================================

    async def respond(self, response: NotificationResponse) -> ResponseOutcome:
        """
        Resolve a notification with the learner's answer.

        Raises:
            NotFoundError: Unknown notification id
            AlreadyRespondedError: Notification already responded or expired
            InvalidResponseError: Answer index outside the quiz options
        """
        record = self.manager.require_notification(response.notification_id)

        if record.status.is_final:
            raise AlreadyRespondedError(record.notification_id, record.status.value)

        quiz = record.quiz
        if not 0 <= response.answer < len(quiz.options):
            raise InvalidResponseError(
                f"Answer {response.answer} out of range for {len(quiz.options)} options"
            )

        responded_time = response.response_time or self.clock()
        sent_time = record.sent_time or record.scheduled_time
        latency_ms = max(0, int((responded_time - sent_time).total_seconds() * 1000))
        is_correct = response.answer == quiz.correct_answer

        # Re-checks the status under the manager's lock
        record = self.manager.mark_responded(
            record.notification_id,
            answer=response.answer,
            responded_time=responded_time,
            is_correct=is_correct,
            latency_ms=latency_ms,
        )

        if not is_correct:
            await self._report_wrong_answer(record, response.answer)

        if self.adaptive:
            next_delay = compute_next_delay(
                self.base_delay_minutes,
                is_correct,
                latency_ms,
                minimum_minutes=self.minimum_delay_minutes,
            )
        else:
            next_delay = self.base_delay_minutes

        logger.info(
            "Notification {} answered {} in {}ms, next prompt in {}m",
            record.notification_id,
            "correctly" if is_correct else "incorrectly",
            latency_ms,
            next_delay,
        )

        return ResponseOutcome(
            correct=is_correct,
            next_delay_minutes=next_delay,
            explanation=quiz.explanation,
        )

    async def _report_wrong_answer(self, record: NotificationRecord, answer: int) -> None:
        if self.wrong_answer_sink is None:
            return

        quiz = record.quiz
        entry = WrongAnswerRecord(
            question_id=quiz.id,
            question=quiz.question,
            correct_answer=quiz.correct_option,
            user_answer=quiz.options[answer],
            category=quiz.category,
            difficulty=quiz.difficulty,
            timestamp=record.responded_time or self.clock(),
            user_id=record.user_id,
        )
        try:
            await self.wrong_answer_sink.record_wrong_answer(entry)
        except Exception as e:
            logger.warning("Wrong-answer sink failed for {}: {}", record.notification_id, e)

    # =========================================================================
    # History
    # =========================================================================

    def get_history(self, user_id: str, days: int = 7) -> NotificationHistory:
        """
        Aggregate a user's notifications sent within the last ``days`` days.

        Expired prompts count toward the total but never toward accuracy.
        """
        since = self.clock() - timedelta(days=days)
        records = self.manager.records_for_user(user_id, since)
        responded = [r for r in records if r.status == NotificationStatus.RESPONDED]
        expired = sum(1 for r in records if r.status == NotificationStatus.EXPIRED)

        if not responded:
            return NotificationHistory(total_notifications=len(records), expired=expired)

        correct = sum(1 for r in responded if r.is_correct)
        latencies = [r.response_latency_ms or 0 for r in responded]

        by_category: dict[str, list[bool]] = defaultdict(list)
        for r in responded:
            by_category[r.quiz.category].append(bool(r.is_correct))

        return NotificationHistory(
            total_notifications=len(records),
            responded=len(responded),
            expired=expired,
            accuracy=round(100 * correct / len(responded), 1),
            average_response_time_seconds=round(sum(latencies) / len(latencies) / 1000, 1),
            category_performance=[
                CategoryPerformance(
                    category=category,
                    accuracy=round(100 * sum(results) / len(results), 1),
                )
                for category, results in sorted(by_category.items())
            ],
        )

    def recent_performance(
        self,
        user_id: str,
        window: int = 10,
    ) -> tuple[float, float] | None:
        """
        Accuracy (0-1) and average answer time in seconds over the last
        ``window`` responded prompts, or None when nothing was answered.
        """
        responded = [
            r
            for r in self.manager.records_for_user(user_id)
            if r.status == NotificationStatus.RESPONDED
        ]
        responded.sort(key=lambda r: r.responded_time or r.scheduled_time)
        recent = responded[-window:]
        if not recent:
            return None

        accuracy = sum(1 for r in recent if r.is_correct) / len(recent)
        avg_seconds = sum((r.response_latency_ms or 0) for r in recent) / len(recent) / 1000
        return accuracy, avg_seconds
