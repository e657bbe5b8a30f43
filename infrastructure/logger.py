"""
INSPECTOR EDIT LOGGER - The Session Recorder

Records every user-level edit of the graph view (removals, reveals, focus,
undo/redo, ...) so a session can be inspected or replayed afterwards.

Architecture:
- EditLogger: Core logging interface
- EventBuffer: In-memory ring buffer for recent events
- FileLogger: Optional newline-delimited JSON log, one file per day

Usage:
    edit_log = EditLogger()
    edit_log.log(EditEventType.NODE_REMOVED, node_id="booking/loadOffers", direction="forward")

    for event in edit_log.get_recent_events(10):
        print(f"{event.timestamp}: {event.event_type}")

Diagnostics (warnings about bad input and the like) go through the stdlib
`logging` module; this recorder is only for the edit timeline.
"""
import io
import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

import msgspec

logger = logging.getLogger(__name__)


# =============================================================================
# EVENTS
# =============================================================================

class EditEventType(str, Enum):
    """Kinds of edit events."""
    COMMIT = "COMMIT"
    UNDO = "UNDO"
    REDO = "REDO"
    SELECT = "SELECT"
    NODE_REMOVED = "NODE_REMOVED"
    NODE_REVEALED = "NODE_REVEALED"
    NODE_FOCUSED = "NODE_FOCUSED"
    NODE_RESTORED = "NODE_RESTORED"
    RESTORED_ALL = "RESTORED_ALL"
    LAYOUT_CHANGED = "LAYOUT_CHANGED"
    GROUPING_CHANGED = "GROUPING_CHANGED"
    EMBEDDING_CHANGED = "EMBEDDING_CHANGED"


class EditEvent(msgspec.Struct, kw_only=True):
    """A single edit event."""
    timestamp: str
    sequence: int
    event_type: str                     # EditEventType value
    node_id: Optional[str] = None
    direction: Optional[str] = None
    detail: Optional[str] = None
    history_depth: int = 0              # Undo stack depth after the event


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class LoggerConfig:
    """Configuration for the edit logger."""
    enable_file_log: bool = False       # Write JSONL files
    log_path: Optional[Path] = None     # Directory for log files
    buffer_size: int = 10000            # In-memory buffer size

    def __post_init__(self):
        if self.log_path is None:
            self.log_path = Path("./workspace/logs")


# =============================================================================
# EVENT BUFFER
# =============================================================================

class EventBuffer:
    """
    Bounded, thread-safe history of recent edit events.

    Once max_size is reached the oldest events fall off. Sequence numbers
    keep counting across evictions and clear().
    """

    def __init__(self, max_size: int = 10000):
        self._events: deque[EditEvent] = deque(maxlen=max_size)
        self._guard = threading.RLock()
        self._counter = itertools.count(1)

    def append(self, event: EditEvent) -> None:
        with self._guard:
            self._events.append(event)

    def get_last(self, n: int) -> List[EditEvent]:
        """The n most recent events, oldest first."""
        if n <= 0:
            return []
        with self._guard:
            start = max(len(self._events) - n, 0)
            return list(itertools.islice(self._events, start, None))

    def get_by_node(self, node_id: str) -> List[EditEvent]:
        return self._select(lambda e: e.node_id == node_id)

    def get_by_type(self, event_type: str) -> List[EditEvent]:
        return self._select(lambda e: e.event_type == event_type)

    def _select(self, predicate: Callable[[EditEvent], bool]) -> List[EditEvent]:
        with self._guard:
            return [e for e in self._events if predicate(e)]

    def next_sequence(self) -> int:
        with self._guard:
            return next(self._counter)

    def clear(self) -> None:
        with self._guard:
            self._events.clear()

    def __len__(self) -> int:
        return len(self._events)


# =============================================================================
# FILE LOGGER
# =============================================================================

class FileLogger:
    """
    Appends edit events to one JSONL file per UTC day.

    Files are named edits_YYYY-MM-DD.jsonl; the handle is swapped when the
    day changes.
    """

    def __init__(self, log_path: Path):
        self.log_dir = Path(log_path)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._handle: Optional[io.TextIOWrapper] = None
        self._handle_day: Optional[str] = None
        self._write_lock = threading.Lock()
        self._encoder = msgspec.json.Encoder()

    def path_for(self, day: str) -> Path:
        return self.log_dir / f"edits_{day}.jsonl"

    def write(self, event: EditEvent) -> None:
        line = self._encoder.encode(event).decode() + "\n"
        with self._write_lock:
            try:
                handle = self._open_for(_utc_day())
                handle.write(line)
                handle.flush()
            except OSError as e:
                logger.warning(f"Could not write edit event {event.sequence}: {e}")

    def _open_for(self, day: str) -> io.TextIOWrapper:
        if self._handle is None or self._handle_day != day:
            self._close_handle()
            self._handle = open(self.path_for(day), "a", encoding="utf-8")
            self._handle_day = day
        return self._handle

    def _close_handle(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            self._handle_day = None

    def close(self) -> None:
        with self._write_lock:
            self._close_handle()

    def read_log(self, date: str) -> List[EditEvent]:
        """Events recorded on one day (YYYY-MM-DD). Malformed lines are skipped."""
        path = self.path_for(date)
        if not path.exists():
            return []

        decoder = msgspec.json.Decoder(type=EditEvent)
        events: List[EditEvent] = []
        for lineno, raw in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
            if not raw.strip():
                continue
            try:
                events.append(decoder.decode(raw))
            except msgspec.DecodeError:
                logger.warning(f"Skipping malformed line {lineno} in {path.name}")
        return events


def _utc_day() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


# =============================================================================
# EDIT LOGGER (Main Interface)
# =============================================================================

class EditLogger:
    """
    Main logging interface for edit events.

    Events go to:
    - In-memory buffer (always)
    - JSONL files (configurable)
    - Subscribers (e.g. a UI timeline)
    """

    def __init__(self, config: Optional[LoggerConfig] = None):
        self.config = config or LoggerConfig()
        self._buffer = EventBuffer(self.config.buffer_size)
        self._file_logger: Optional[FileLogger] = None
        if self.config.enable_file_log and self.config.log_path:
            self._file_logger = FileLogger(self.config.log_path)
        self._subscribers: List[Callable[[EditEvent], None]] = []

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def _emit(self, event: EditEvent) -> None:
        self._buffer.append(event)
        if self._file_logger:
            self._file_logger.write(event)
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception as e:
                logger.warning(f"Edit log subscriber failed: {e}")

    def log(
        self,
        event_type: EditEventType,
        node_id: Optional[str] = None,
        direction: Optional[str] = None,
        detail: Optional[str] = None,
        history_depth: int = 0,
    ) -> EditEvent:
        """Record one edit event."""
        event = EditEvent(
            timestamp=self._now(),
            sequence=self._buffer.next_sequence(),
            event_type=EditEventType(event_type).value,
            node_id=node_id,
            direction=getattr(direction, "value", direction),
            detail=detail,
            history_depth=history_depth,
        )
        self._emit(event)
        return event

    # =========================================================================
    # QUERY METHODS
    # =========================================================================

    def get_recent_events(self, n: int = 100) -> List[EditEvent]:
        return self._buffer.get_last(n)

    def get_events_for_node(self, node_id: str) -> List[EditEvent]:
        return self._buffer.get_by_node(node_id)

    def get_events_by_type(self, event_type: str) -> List[EditEvent]:
        return self._buffer.get_by_type(getattr(event_type, "value", event_type))

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    def subscribe(self, callback: Callable[[EditEvent], None]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[EditEvent], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        if self._file_logger:
            self._file_logger.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

_global_logger: Optional[EditLogger] = None


def get_logger() -> EditLogger:
    """Get or create the global edit logger."""
    global _global_logger
    if _global_logger is None:
        _global_logger = EditLogger()
    return _global_logger


def configure_logger(config: LoggerConfig) -> EditLogger:
    """Configure and return a new global edit logger."""
    global _global_logger
    if _global_logger:
        _global_logger.close()
    _global_logger = EditLogger(config)
    return _global_logger


def reset_logger() -> None:
    """Drop the global edit logger (used by tests)."""
    global _global_logger
    if _global_logger:
        _global_logger.close()
    _global_logger = None
