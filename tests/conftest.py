"""Pytest fixtures for ThinkBack tests."""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from thinkback.database.snapshot_store import SnapshotStore
from thinkback.services.gemini_service import GeminiService, ReminderDetection
from thinkback.services.note_store import NoteStore
from thinkback.session import ThinkBackSession


class FakeClock:
    """Controllable clock; call it to read the time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, hour: int, minute: int = 0) -> datetime:
        self.now = self.now.replace(hour=hour, minute=minute)
        return self.now


@pytest.fixture
def clock():
    """A clock fixed at noon UTC on 2026-10-19."""
    return FakeClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def temp_db_path():
    """Provide a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def snapshots(temp_db_path):
    """Provide a snapshot store with a temporary database."""
    return SnapshotStore(f"sqlite:///{temp_db_path}")


@pytest.fixture
def note_store(snapshots, clock):
    """Provide a persisted note store on the fake clock."""
    return NoteStore(snapshots, clock=clock)


@pytest.fixture
def assistant():
    """A mocked Gemini collaborator with neutral answers."""
    mock = MagicMock(spec=GeminiService)
    mock.summarize_note.return_value = "A tidy summary."
    mock.detect_reminder.return_value = ReminderDetection(has_reminder=False)
    mock.parse_reminder_time.side_effect = lambda phrase: phrase
    mock.localize_phrase.side_effect = lambda text, language: text
    mock.extract_text_from_image.return_value = "Scanned text"
    mock.transcribe.return_value = iter([])
    mock.synthesize_speech.return_value = None
    return mock


@pytest.fixture
def session(snapshots, assistant, clock):
    """Provide a session with mocked assistant and temporary storage."""
    return ThinkBackSession(snapshots=snapshots, assistant=assistant, clock=clock)
