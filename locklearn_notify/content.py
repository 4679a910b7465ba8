"""
Quiz content.

QuizSource is the capability the scheduler consumes. QuizBank is the bundled
implementation: a built-in set of micro quizzes, optionally replaced by a JSON
file, with a per-user difficulty scalar for adaptive schedules.

Difficulty state (0.1 - 1.0, starts at 0.5) moves on aggregate signals only:
- accuracy > 0.8 and average answer < 10s -> +0.10 (too easy)
- accuracy < 0.4                          -> -0.15 (too hard)
- accuracy < 0.6 and average answer > 30s -> -0.05 (slightly hard)
"""

from __future__ import annotations

import json
import random
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import replace
from pathlib import Path

from loguru import logger

from .exceptions import QuizGenerationError
from .models import Quiz

DIFFICULTY_MIN = 0.1
DIFFICULTY_MAX = 1.0
DIFFICULTY_START = 0.5


# =============================================================================
# Capability
# =============================================================================


class QuizSource(ABC):
    """Produces quizzes for a set of categories."""

    @abstractmethod
    async def generate_quiz(
        self,
        categories: Sequence[str],
        user_id: str | None = None,
        difficulty: str = "adaptive",
    ) -> Quiz:
        """
        Produce one quiz.

        Raises:
            QuizGenerationError: If nothing matches the categories
        """

    async def record_performance(
        self,
        user_id: str,
        accuracy: float,
        average_response_seconds: float,
    ) -> None:
        """Receive an aggregate performance signal (no-op by default)."""


# =============================================================================
# Built-in bank
# =============================================================================

BUILTIN_QUIZZES: list[dict] = [
    {
        "id": "prog-ts-never",
        "question": 'What is the "never" type used for in TypeScript?',
        "options": [
            "Marking that a function never returns",
            "Describing an empty object",
            "Representing null and undefined",
            "Accepting values of any type",
        ],
        "correct_answer": 0,
        "category": "programming",
        "difficulty": "medium",
        "estimated_time": 15,
        "explanation": (
            "never is the type of values that cannot occur, e.g. the return type "
            "of a function that always throws or loops forever."
        ),
        "hints": [
            "It relates to a function's return value",
            "It relates to code that can never be reached",
        ],
    },
    {
        "id": "prog-py-list-append",
        "question": "Which Python method adds one item to the end of a list?",
        "options": ["append()", "extend()", "insert()", "add()"],
        "correct_answer": 0,
        "category": "programming",
        "difficulty": "easy",
        "estimated_time": 10,
        "explanation": "append() adds a single element; extend() adds every item of an iterable.",
    },
    {
        "id": "prog-big-o-binary-search",
        "question": "What is the worst-case time complexity of binary search?",
        "options": ["O(n)", "O(log n)", "O(n log n)", "O(1)"],
        "correct_answer": 1,
        "category": "programming",
        "difficulty": "hard",
        "estimated_time": 20,
        "explanation": "Each step halves the search space, so at most log2(n) steps are needed.",
    },
    {
        "id": "lang-ko-greeting",
        "question": "Which is the standard spelling of the Korean greeting?",
        "options": ["안녕하세요", "안녕하세용", "안녕하세여", "안녕하셰요"],
        "correct_answer": 0,
        "category": "language",
        "difficulty": "easy",
        "estimated_time": 10,
        "explanation": '"안녕하세요" is the standard spelling.',
    },
    {
        "id": "lang-en-affect-effect",
        "question": 'Choose the correct word: "The weather will ___ our plans."',
        "options": ["effect", "affect", "afect", "efect"],
        "correct_answer": 1,
        "category": "language",
        "difficulty": "medium",
        "estimated_time": 15,
        "explanation": '"Affect" is usually the verb; "effect" is usually the noun.',
    },
    {
        "id": "lang-en-subjunctive",
        "question": 'Which sentence uses the subjunctive correctly?',
        "options": [
            "If I was you, I would go.",
            "If I were you, I would go.",
            "If I am you, I would go.",
            "If I be you, I would go.",
        ],
        "correct_answer": 1,
        "category": "language",
        "difficulty": "hard",
        "estimated_time": 20,
        "explanation": "Hypothetical conditions take the subjunctive \"were\".",
    },
    {
        "id": "gen-planet-largest",
        "question": "Which planet is the largest in the Solar System?",
        "options": ["Saturn", "Jupiter", "Neptune", "Earth"],
        "correct_answer": 1,
        "category": "general",
        "difficulty": "easy",
        "estimated_time": 10,
        "explanation": "Jupiter's mass is more than twice that of all other planets combined.",
    },
    {
        "id": "gen-water-boiling",
        "question": "At sea level, water boils at which temperature?",
        "options": ["90 °C", "100 °C", "110 °C", "120 °C"],
        "correct_answer": 1,
        "category": "general",
        "difficulty": "medium",
        "estimated_time": 10,
        "explanation": "At 1 atm water boils at 100 °C (212 °F).",
    },
    {
        "id": "gen-speed-of-light",
        "question": "Roughly how long does sunlight take to reach Earth?",
        "options": ["8 seconds", "8 minutes", "8 hours", "8 days"],
        "correct_answer": 1,
        "category": "general",
        "difficulty": "hard",
        "estimated_time": 15,
        "explanation": "About 8 minutes 20 seconds at an average distance of 1 AU.",
    },
]


def level_for(difficulty_value: float) -> str:
    """Map a difficulty scalar to a quiz level."""
    if difficulty_value < 0.4:
        return "easy"
    if difficulty_value < 0.7:
        return "medium"
    return "hard"


class QuizBank(QuizSource):
    """
    In-process quiz source.

    Features:
    - Category filtering (intersection with the schedule's categories)
    - Level selection: pinned for easy/medium/hard policies, from the
      learner's difficulty state for adaptive ones, any level for fixed
    - Falls back to any level when the wanted level has no quiz
    """

    def __init__(
        self,
        quizzes: Iterable[Quiz] | None = None,
        rng: random.Random | None = None,
    ):
        self.quizzes: list[Quiz] = list(quizzes) if quizzes is not None else [
            Quiz.from_dict(q) for q in BUILTIN_QUIZZES
        ]
        self.rng = rng or random.Random()
        self._difficulty: dict[str, float] = {}

    @classmethod
    def from_file(cls, path: Path | str, rng: random.Random | None = None) -> QuizBank:
        """
        Load quizzes from a JSON file.

        Accepts either a list of quiz objects or {"quizzes": [...]}.
        Malformed entries are skipped with a warning.
        """
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        entries = data.get("quizzes", []) if isinstance(data, dict) else data
        quizzes: list[Quiz] = []
        for entry in entries:
            try:
                quizzes.append(Quiz.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed quiz in {}: {}", path.name, e)

        logger.info("Loaded {} quizzes from {}", len(quizzes), path)
        return cls(quizzes, rng=rng)

    # =========================================================================
    # Difficulty state
    # =========================================================================

    def difficulty_for(self, user_id: str | None) -> float:
        if user_id is None:
            return DIFFICULTY_START
        return self._difficulty.get(user_id, DIFFICULTY_START)

    async def record_performance(
        self,
        user_id: str,
        accuracy: float,
        average_response_seconds: float,
    ) -> None:
        current = self.difficulty_for(user_id)
        updated = current

        if accuracy > 0.8 and average_response_seconds < 10:
            updated = min(DIFFICULTY_MAX, current + 0.1)
        elif accuracy < 0.4:
            updated = max(DIFFICULTY_MIN, current - 0.15)
        elif accuracy < 0.6 and average_response_seconds > 30:
            updated = max(DIFFICULTY_MIN, current - 0.05)

        self._difficulty[user_id] = round(updated, 4)
        if updated != current:
            logger.debug(
                "Difficulty for {}: {:.2f} -> {:.2f}", user_id, current, updated
            )

    # =========================================================================
    # Generation
    # =========================================================================

    def _target_level(self, user_id: str | None, difficulty: str) -> str | None:
        if difficulty in ("easy", "medium", "hard"):
            return difficulty
        if difficulty == "adaptive":
            return level_for(self.difficulty_for(user_id))
        return None

    async def generate_quiz(
        self,
        categories: Sequence[str],
        user_id: str | None = None,
        difficulty: str = "adaptive",
    ) -> Quiz:
        wanted = set(categories)
        candidates = [q for q in self.quizzes if not wanted or q.category in wanted]
        if not candidates:
            raise QuizGenerationError(f"No quizzes for categories {sorted(wanted)}")

        level = self._target_level(user_id, difficulty)
        if level is not None:
            at_level = [q for q in candidates if q.difficulty == level]
            candidates = at_level or candidates

        # A fresh copy per prompt; each record owns its snapshot
        return replace(self.rng.choice(candidates))
