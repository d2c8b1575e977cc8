"""Common test fixtures for textoc."""

import subprocess
import tempfile
from pathlib import Path

import pytest

from textoc.config import config
from textoc.services.file_sync_service import FileSyncService
from textoc.services.workspace import Workspace
from textoc.storage import Store, StoreConnection
from textoc.storage.markdown_mirror import NoteFileMirror


class ManualTimer:
    """Timer double that only fires when the test says so."""

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        self.callback()


class TimerRegistry:
    """Collects every ManualTimer the workspace creates."""

    def __init__(self):
        self.timers = []

    def __call__(self, delay, callback):
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.timers if t.started and not t.cancelled and not t.fired]

    def fire_all(self):
        for timer in self.live:
            timer.fire()


@pytest.fixture
def temp_dirs():
    """Create temporary directories for notes and database."""
    with tempfile.TemporaryDirectory() as notes_dir:
        with tempfile.TemporaryDirectory() as db_dir:
            yield Path(notes_dir), Path(db_dir)


@pytest.fixture
def test_config(temp_dirs, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    notes_dir, db_dir = temp_dirs
    monkeypatch.setattr(config, "base_dir", db_dir)
    monkeypatch.setattr(config, "notes_dir", notes_dir)
    monkeypatch.setattr(config, "database_path", db_dir / "test_textoc.db")
    monkeypatch.setattr(config, "debounce_seconds", 1.0)
    monkeypatch.setattr(config, "flush_on_switch", True)
    yield config


@pytest.fixture
def connection(test_config):
    """A store connection on a temporary SQLite file."""
    conn = StoreConnection(test_config.get_db_url())
    yield conn
    conn.dispose()


@pytest.fixture
def store(connection):
    return Store.from_connection(connection)


@pytest.fixture
def note_repository(store):
    return store.notes


@pytest.fixture
def notebook_repository(store):
    return store.notebooks


@pytest.fixture
def tag_repository(store):
    return store.tags


@pytest.fixture
def mirror(test_config):
    return NoteFileMirror(test_config.get_notes_dir())


@pytest.fixture
def file_sync(store, mirror):
    """File sync without git."""
    return FileSyncService(store, mirror)


@pytest.fixture
def timers():
    return TimerRegistry()


@pytest.fixture
def workspace(store, file_sync, timers):
    """Loaded workspace with manually fired debounce timers."""
    ws = Workspace(store, file_sync=file_sync, debounce_seconds=1.0, timer_factory=timers)
    ws.load()
    yield ws
    ws.close()


def _git_available() -> bool:
    try:
        subprocess.run(["git", "--version"], capture_output=True, check=True)
    except (OSError, subprocess.CalledProcessError):
        return False
    return True


@pytest.fixture
def git_available():
    if not _git_available():
        pytest.skip("git is not installed")
