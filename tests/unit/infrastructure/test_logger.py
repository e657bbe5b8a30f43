"""
Unit tests for infrastructure/logger.py - the edit event recorder.
"""
import logging

import pytest

from core.ontology import Direction
from infrastructure.logger import (
    EditEvent,
    EditEventType,
    EditLogger,
    EventBuffer,
    FileLogger,
    LoggerConfig,
    configure_logger,
    get_logger,
    reset_logger,
)


def make_event(sequence, event_type="COMMIT", node_id=None):
    return EditEvent(
        timestamp="2026-01-01T00:00:00+00:00",
        sequence=sequence,
        event_type=event_type,
        node_id=node_id,
    )


# =============================================================================
# EVENT BUFFER
# =============================================================================

def test_buffer_is_bounded():
    """
    Verifies:
    - The buffer keeps only the newest max_size events
    - get_last returns them oldest first
    """
    buffer = EventBuffer(max_size=3)
    for i in range(5):
        buffer.append(make_event(i))

    assert len(buffer) == 3
    assert [e.sequence for e in buffer.get_last(10)] == [2, 3, 4]
    assert [e.sequence for e in buffer.get_last(1)] == [4]
    assert buffer.get_last(0) == []


def test_buffer_filters():
    buffer = EventBuffer()
    buffer.append(make_event(1, "NODE_REMOVED", "a"))
    buffer.append(make_event(2, "SELECT", "b"))
    buffer.append(make_event(3, "NODE_REMOVED", "b"))

    assert [e.sequence for e in buffer.get_by_node("b")] == [2, 3]
    assert [e.sequence for e in buffer.get_by_type("NODE_REMOVED")] == [1, 3]

    buffer.clear()
    assert len(buffer) == 0


def test_sequence_increases():
    buffer = EventBuffer()

    assert buffer.next_sequence() == 1
    assert buffer.next_sequence() == 2


# =============================================================================
# EDIT LOGGER
# =============================================================================

def test_log_normalizes_enums():
    """
    Verifies:
    - Event type and direction enums are stored as their string values
    - Plain strings are accepted as well
    """
    edit_log = EditLogger()

    event = edit_log.log(EditEventType.NODE_REMOVED, node_id="a", direction=Direction.BACKWARD, history_depth=2)
    plain = edit_log.log("SELECT", node_id="a")

    assert event.event_type == "NODE_REMOVED"
    assert event.direction == "backward"
    assert event.history_depth == 2
    assert plain.event_type == "SELECT"
    assert plain.sequence == event.sequence + 1


def test_log_rejects_unknown_event_type():
    with pytest.raises(ValueError):
        EditLogger().log("NOT_AN_EVENT")


def test_queries():
    edit_log = EditLogger()
    edit_log.log(EditEventType.NODE_FOCUSED, node_id="x")
    edit_log.log(EditEventType.UNDO)
    edit_log.log(EditEventType.NODE_REVEALED, node_id="x")

    assert len(edit_log.get_recent_events(2)) == 2
    assert len(edit_log.get_events_for_node("x")) == 2
    assert len(edit_log.get_events_by_type(EditEventType.UNDO)) == 1
    assert len(edit_log.get_events_by_type("UNDO")) == 1


def test_subscribers(caplog):
    """
    Verifies:
    - Subscribers receive each event
    - A failing subscriber is logged and does not stop the others
    - Unsubscribed callbacks are no longer called
    """
    edit_log = EditLogger()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    edit_log.subscribe(broken)
    edit_log.subscribe(received.append)

    with caplog.at_level(logging.WARNING, logger="infrastructure.logger"):
        edit_log.log(EditEventType.COMMIT)

    assert len(received) == 1
    assert "boom" in caplog.text

    edit_log.unsubscribe(received.append)
    edit_log.unsubscribe(broken)
    edit_log.log(EditEventType.COMMIT)

    assert len(received) == 1


# =============================================================================
# FILE LOGGER
# =============================================================================

def test_file_log_round_trip(tmp_path):
    """
    Verifies:
    - Events are written as one JSON line each to edits_<date>.jsonl
    - read_log decodes them back
    """
    config = LoggerConfig(enable_file_log=True, log_path=tmp_path / "logs")

    with EditLogger(config) as edit_log:
        edit_log.log(EditEventType.NODE_REMOVED, node_id="a", direction="forward")
        edit_log.log(EditEventType.UNDO, history_depth=0)

    files = list((tmp_path / "logs").glob("edits_*.jsonl"))
    assert len(files) == 1

    date = files[0].stem[len("edits_"):]
    events = FileLogger(tmp_path / "logs").read_log(date)

    assert [e.event_type for e in events] == ["NODE_REMOVED", "UNDO"]
    assert events[0].node_id == "a"


def test_read_log_skips_malformed_lines(tmp_path, caplog):
    (tmp_path / "edits_2026-01-01.jsonl").write_text(
        '{"timestamp": "t", "sequence": 1, "event_type": "SELECT"}\n'
        "not json\n"
        "\n"
        '{"timestamp": "t", "sequence": "two", "event_type": "SELECT"}\n',
        encoding="utf-8",
    )

    with caplog.at_level(logging.WARNING, logger="infrastructure.logger"):
        events = FileLogger(tmp_path).read_log("2026-01-01")

    assert [e.sequence for e in events] == [1]
    assert caplog.text.count("Skipping malformed") == 2


def test_read_log_missing_date(tmp_path):
    assert FileLogger(tmp_path).read_log("1999-01-01") == []


def test_no_file_without_opt_in(tmp_path):
    edit_log = EditLogger(LoggerConfig(log_path=tmp_path / "logs"))
    edit_log.log(EditEventType.COMMIT)

    assert not (tmp_path / "logs").exists()


# =============================================================================
# GLOBAL LOGGER
# =============================================================================

def test_global_logger_lifecycle(tmp_path):
    first = get_logger()
    assert get_logger() is first

    configured = configure_logger(LoggerConfig(buffer_size=5))
    assert configured is not first
    assert get_logger() is configured
    assert configured.config.buffer_size == 5

    reset_logger()
    assert get_logger() is not configured
