import threading
from types import SimpleNamespace

import pytest
from watchdog.events import FileCreatedEvent, FileDeletedEvent, FileModifiedEvent, FileMovedEvent

from tidydesk.exceptions import EntryNotFoundError, NotADirError
from tidydesk.watcher import FileWatcher, WatcherState, to_watch_event


def test_event_translation():
    assert to_watch_event(FileCreatedEvent("/d/a.txt")).event_type == "create"
    assert to_watch_event(FileModifiedEvent("/d/a.txt")).event_type == "modify"
    assert to_watch_event(FileDeletedEvent("/d/a.txt")).paths == ["/d/a.txt"]

    moved = to_watch_event(FileMovedEvent("/d/a.txt", "/d/b.txt"))
    assert moved.event_type == "other"
    assert moved.paths == ["/d/a.txt", "/d/b.txt"]

def test_access_events_are_dropped():
    for kind in ("opened", "closed", "closed_no_write"):
        assert to_watch_event(SimpleNamespace(event_type=kind, src_path="/d/a.txt", dest_path="")) is None

def test_start_requires_directory(tmp_path):
    watcher = FileWatcher()
    with pytest.raises(EntryNotFoundError):
        watcher.start(tmp_path / "missing", print)
    f = tmp_path / "f.txt"
    f.write_text("x")
    with pytest.raises(NotADirError):
        watcher.start(f, print)
    assert watcher.state == WatcherState.IDLE

def test_single_watch_state_machine(tmp_path):
    first = tmp_path / "one"
    second = tmp_path / "two"
    first.mkdir()
    second.mkdir()

    with FileWatcher(poll_interval=0.1) as watcher:
        assert not watcher.is_watching
        watcher.start(first, lambda e: None)
        assert watcher.watching_path == str(first)

        # Starting again replaces the previous watch
        watcher.start(second, lambda e: None)
        assert watcher.state == WatcherState.WATCHING
        assert watcher.watching_path == str(second)

        watcher.stop()
        assert watcher.state == WatcherState.IDLE
        assert watcher.watching_path is None
        # Stopping twice is harmless
        watcher.stop()

def test_events_reach_callback(tmp_path):
    seen = []
    created = threading.Event()

    def on_change(event):
        seen.append(event)
        if event.event_type == "create":
            created.set()

    with FileWatcher(poll_interval=0.1) as watcher:
        watcher.start(tmp_path, on_change)
        (tmp_path / "new.txt").write_text("hello")
        assert created.wait(timeout=10)

    assert any(str(tmp_path / "new.txt") in e.paths for e in seen)

def test_failing_callback_keeps_watching(tmp_path):
    calls = threading.Event()

    def broken(event):
        calls.set()
        raise RuntimeError("listener bug")

    with FileWatcher(poll_interval=0.1) as watcher:
        watcher.start(tmp_path, broken)
        (tmp_path / "a.txt").write_text("a")
        assert calls.wait(timeout=10)
        assert watcher.is_watching
