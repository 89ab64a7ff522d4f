"""Shared fixtures for tracker tests."""

import os

# Use in-memory sqlite for tests; must be set before tracker.db is imported
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest  # noqa: E402

from tracker.engine.controller import SessionController  # noqa: E402
from tracker.engine.producers import ManualClock, PushPositionSource  # noqa: E402


class RecordingStore:
    """Persistence stand-in keeping inserted records in memory."""

    def __init__(self, fail: bool = False):
        self.records = []
        self.fail = fail

    def insert(self, record):
        if self.fail:
            raise RuntimeError("database unavailable")
        self.records.append(record)
        return len(self.records)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def source():
    return PushPositionSource()


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def controller(clock, source, store):
    c = SessionController(clock, source, store=store)
    yield c
    c.close()
