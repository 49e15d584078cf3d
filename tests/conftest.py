"""
Shared pytest fixtures for the chorus test suite.

Every test gets fresh registries: apps, databases and senders are created per
test, so nothing registered in one test leaks into another.
"""

from typing import Any

import pytest

from chorus.app import App
from chorus.config import AppConfig
from chorus.database import MemoryDatabase
from chorus.logging_config import clear_context
from chorus.scope import ContextType


# ============================================================================
# Test Tier Configuration
# ============================================================================


def pytest_configure(config):
    """Register custom pytest markers for test tiers.

    Usage:
        @pytest.mark.unit
        def test_scope_union():
            ...

        @pytest.mark.network
        async def test_http_sender_against_local_endpoint():
            ...
    """
    config.addinivalue_line("markers", "smoke: quick sanity tests for fast CI feedback")
    config.addinivalue_line("markers", "integration: tests exercising the full dispatch path")
    config.addinivalue_line("markers", "slow: long-running tests (>30 seconds)")
    config.addinivalue_line("markers", "unit: isolated unit tests with no external dependencies")
    config.addinivalue_line(
        "markers", "network: tests requiring external network calls (skip with -m 'not network')"
    )


# ============================================================================
# Global Test Setup
# ============================================================================


@pytest.fixture(autouse=True)
def reset_log_context():
    """Clear structured log context so fields never leak between tests."""
    clear_context()
    yield
    clear_context()


# ============================================================================
# Collaborators
# ============================================================================


class RecordingSender:
    """Sender that keeps every outgoing message instead of delivering it."""

    def __init__(self) -> None:
        self.sent: list[tuple[ContextType, int, str]] = []

    async def send(self, context_type: ContextType, context_id: int, message: str) -> None:
        self.sent.append((context_type, context_id, message))

    @property
    def messages(self) -> list[str]:
        return [message for _, _, message in self.sent]


class FakeClock:
    """Controllable time source for usage accounting."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def database(clock) -> MemoryDatabase:
    """In-memory database that creates users with authority 1 on first sight."""
    return MemoryDatabase(clock=clock)


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def app(database, sender) -> App:
    """App with the default ``/`` prefix, an in-memory database and a recording sender."""
    return App(AppConfig(nicknames=("bot",)), database=database, sender=sender)


@pytest.fixture
def calls() -> list[Any]:
    """Scratch list for actions and hooks to record invocations into."""
    return []
