"""
Polling file-system watcher.

A watchdog PollingObserver feeds raw events into a bounded queue; one
consumer thread forwards them to a callback. Only one directory is watched
per handle: starting a new watch stops the previous one first.
"""
import logging
import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers.polling import PollingObserver

from . import config
from .exceptions import EntryNotFoundError, NotADirError


@dataclass
class WatchEvent:
    event_type: str   # create / modify / remove / other
    paths: List[str] = field(default_factory=list)


class WatcherState(str, Enum):
    IDLE = "idle"
    WATCHING = "watching"


_EVENT_TYPES = {
    "created": "create",
    "modified": "modify",
    "deleted": "remove",
    "moved": "other",
}
# Access notifications carry no change
_SKIPPED = {"opened", "closed", "closed_no_write"}


def to_watch_event(event: FileSystemEvent) -> Optional[WatchEvent]:
    if event.event_type in _SKIPPED:
        return None
    paths = [p for p in (event.src_path, getattr(event, "dest_path", "")) if p]
    if not paths:
        return None
    paths = [p.decode() if isinstance(p, bytes) else p for p in paths]
    return WatchEvent(event_type=_EVENT_TYPES.get(event.event_type, "other"), paths=paths)


class _QueueHandler(FileSystemEventHandler):
    def __init__(self, events: queue.Queue):
        super().__init__()
        self.events = events

    def on_any_event(self, event: FileSystemEvent):
        watch_event = to_watch_event(event)
        if watch_event is None:
            return
        try:
            self.events.put_nowait(watch_event)
        except queue.Full:
            logging.warning(f"Watch queue full; dropped {watch_event.event_type} {watch_event.paths}")


class FileWatcher:
    """
    Owned watcher handle with two states: IDLE and WATCHING(path).

        watcher = FileWatcher()
        watcher.start(desktop, on_change)
        ...
        watcher.stop()
    """

    def __init__(self,
                 poll_interval: float = config.WATCH_POLL_INTERVAL,
                 recv_timeout: float = config.WATCH_RECV_TIMEOUT,
                 queue_size: int = config.WATCH_QUEUE_SIZE):
        self.poll_interval = poll_interval
        self.recv_timeout = recv_timeout
        self.queue_size = queue_size

        self._lock = threading.Lock()
        self._observer: Optional[PollingObserver] = None
        self._consumer: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._path: Optional[Path] = None

    @property
    def state(self) -> WatcherState:
        return WatcherState.WATCHING if self._observer is not None else WatcherState.IDLE

    @property
    def is_watching(self) -> bool:
        return self.state == WatcherState.WATCHING

    @property
    def watching_path(self) -> Optional[str]:
        return str(self._path) if self._path is not None else None

    def start(self, path: Path, callback: Callable[[WatchEvent], None]):
        path = Path(path)
        if not path.exists():
            raise EntryNotFoundError(f"Path does not exist: {path}", path=path, operation="watch")
        if not path.is_dir():
            raise NotADirError(f"Path is not a directory: {path}", path=path, operation="watch")

        with self._lock:
            self._stop_locked()

            events: queue.Queue = queue.Queue(maxsize=self.queue_size)
            stop_event = threading.Event()

            observer = PollingObserver(timeout=self.poll_interval)
            observer.schedule(_QueueHandler(events), str(path), recursive=False)
            observer.start()

            consumer = threading.Thread(
                target=self._consume, args=(events, stop_event, callback),
                name="tidydesk-watch", daemon=True,
            )
            consumer.start()

            self._observer = observer
            self._consumer = consumer
            self._stop_event = stop_event
            self._path = path
        logging.info(f"Watching {path}")

    def stop(self):
        with self._lock:
            self._stop_locked()

    def _stop_locked(self):
        if self._observer is None:
            return
        self._stop_event.set()
        self._observer.stop()
        self._observer.join(timeout=self.poll_interval + 1)
        self._consumer.join(timeout=self.recv_timeout * 10 + 1)
        logging.info(f"Stopped watching {self._path}")

        self._observer = None
        self._consumer = None
        self._stop_event = None
        self._path = None

    def _consume(self, events: queue.Queue, stop_event: threading.Event,
                 callback: Callable[[WatchEvent], None]):
        while not stop_event.is_set():
            try:
                event = events.get(timeout=self.recv_timeout)
            except queue.Empty:
                continue
            try:
                callback(event)
            except Exception:
                # A failing listener must not end the watch
                logging.exception(f"Watch callback failed for {event.event_type} {event.paths}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
