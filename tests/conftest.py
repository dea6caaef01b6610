"""Shared pytest fixtures."""

import pytest

from marketplace.logging.context import clear_log_context
from marketplace.notifications.dispatcher import NotificationDispatcher
from marketplace.persistence.database import close_database, init_database

from tests.helpers import NOW, FixedClock, RecordingEmitter


@pytest.fixture
def database():
    """Fresh in-memory database for one test."""
    init_database("sqlite:///:memory:")
    yield
    close_database()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def dispatcher(emitter):
    """Inline dispatcher so notifications are recorded before the call returns."""
    dispatcher = NotificationDispatcher(emitter, background=False)
    yield dispatcher
    dispatcher.shutdown()


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Environment without marketplace variables set."""
    for name in ("DATABASE_URL", "LOG_LEVEL", "ENVIRONMENT", "NOTIFICATIONS_BACKGROUND"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture(autouse=True)
def clean_log_context():
    clear_log_context()
    yield
    clear_log_context()
