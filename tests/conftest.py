"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import asyncio
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from locklearn_notify.config import Settings  # noqa: E402
from locklearn_notify.content import QuizBank  # noqa: E402
from locklearn_notify.exceptions import TransportError  # noqa: E402
from locklearn_notify.models import Quiz  # noqa: E402
from locklearn_notify.notifications import NotificationManager  # noqa: E402
from locklearn_notify.service import NotificationLearningService  # noqa: E402
from locklearn_notify.transports import Transport  # noqa: E402

# 2026-03-10 12:00 in Asia/Seoul (UTC+9, no DST)
NOON_SEOUL = datetime(2026, 3, 10, 3, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Test doubles
# =============================================================================


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = NOON_SEOUL):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


class RecordingTransport(Transport):
    """Keeps every payload; can be told to fail."""

    name = "recording"

    def __init__(self, fail_with: Exception | None = None):
        self.sent = []
        self.fail_with = fail_with
        self.closed = False

    async def send(self, payload) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(payload)

    async def aclose(self) -> None:
        self.closed = True


class FakeSleep:
    """Records requested delays and returns on the next loop iteration."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


async def wait_until(predicate, attempts: int = 200) -> bool:
    """Yield to the loop until ``predicate()`` holds."""
    for _ in range(attempts):
        if predicate():
            return True
        await asyncio.sleep(0)
    return predicate()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def failing_transport():
    return RecordingTransport(fail_with=TransportError("gateway down"))


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def settings():
    """Settings isolated from the environment's .env file."""
    return Settings(
        _env_file=None,
        push_gateway_url=None,
        platform_web=False,
        platform_mobile=False,
        platform_desktop=True,
        adaptive_follow_up=False,
        state_db_path=None,
        quiz_bank_path=None,
        enabled=True,
    )


@pytest.fixture
def quiz_bank():
    return QuizBank(rng=random.Random(7))


@pytest.fixture
def sample_quiz():
    """Provide a sample quiz for testing."""
    return Quiz(
        id="test-quiz-001",
        question="Which layer of the OSI model handles routing?",
        options=("Physical", "Data Link", "Network", "Transport"),
        correct_answer=2,
        category="programming",
        difficulty="medium",
        explanation="Routing happens at Layer 3.",
    )


@pytest.fixture
def language_quiz():
    return Quiz(
        id="test-quiz-002",
        question='Choose the correct word: "The weather will ___ our plans."',
        options=("effect", "affect"),
        correct_answer=1,
        category="language",
        difficulty="easy",
    )


@pytest.fixture
def manager(transport, clock):
    return NotificationManager(transport, clock=clock, expiry_minutes=60)


@pytest.fixture
def service(settings, transport, quiz_bank, clock):
    return NotificationLearningService(
        settings,
        transport=transport,
        quiz_source=quiz_bank,
        clock=clock,
    )


@pytest.fixture
def wait_for():
    return wait_until


@pytest.fixture
def transport_factory():
    return RecordingTransport
