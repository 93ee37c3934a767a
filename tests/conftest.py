"""Shared fixtures for the MindCanvas test suite."""

import random
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from mindcanvas.database import Database, EditorSettings
from mindcanvas.render import ParticleSystem
from mindcanvas.session import EditorSession
from mindcanvas.store import NodeStore


class FakeClock:
    """Manually advanced clock for throttling tests."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    """Store holding only a root at (600, 400)."""
    s = NodeStore()
    s.add_root(600, 400)
    return s


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def session(db):
    """Headless session backed by a temporary database.

    Notifications are collected in ``session.messages``.
    """
    s = EditorSession(storage=db, settings=EditorSettings(),
                      particles=ParticleSystem(random.Random(7)))
    s.messages = []
    s.on_notify = s.messages.append
    return s


@pytest.fixture
def bare_session():
    """Session without storage."""
    return EditorSession(particles=ParticleSystem(random.Random(7)))