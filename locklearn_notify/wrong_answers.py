"""
Wrong-answer sink.

The response handler hands every incorrect answer to a WrongAnswerSink.
WrongAnswerLog keeps the most recent ones in memory for review sessions.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import deque

from loguru import logger

from .models import WrongAnswerRecord


class WrongAnswerSink(ABC):
    """Receives one record per incorrect answer."""

    @abstractmethod
    async def record_wrong_answer(self, record: WrongAnswerRecord) -> None: ...


class WrongAnswerLog(WrongAnswerSink):
    """Bounded in-process wrong-answer log (oldest entries drop first)."""

    def __init__(self, max_size: int = 500):
        self._entries: deque[WrongAnswerRecord] = deque(maxlen=max_size)
        self._lock = threading.Lock()

    async def record_wrong_answer(self, record: WrongAnswerRecord) -> None:
        with self._lock:
            self._entries.append(record)
        logger.debug(
            "Wrong answer logged for {} ({}): {!r} instead of {!r}",
            record.user_id or "?",
            record.question_id,
            record.user_answer,
            record.correct_answer,
        )

    def recent(self, user_id: str | None = None, limit: int | None = None) -> list[WrongAnswerRecord]:
        """Newest first, optionally filtered to one user."""
        with self._lock:
            entries = [
                e for e in reversed(self._entries) if user_id is None or e.user_id == user_id
            ]
        return entries[:limit] if limit is not None else entries

    def __len__(self) -> int:
        return len(self._entries)
