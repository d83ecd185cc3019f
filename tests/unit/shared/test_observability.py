"""Tests for the logging setup and the recent-events buffer."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog

from courier.shared.observability import RecentEvents, configure_logging


class TestRecentEvents:
    def test_records_compact_entry_and_passes_event_through(self) -> None:
        events = RecentEvents()
        event_dict = {"event": "message_queued", "level": "info", "timestamp": "t", "message_id": "m1"}

        returned = events(None, "info", event_dict)

        assert returned is event_dict
        assert events.tail() == [
            {"level": "info", "event": "message_queued", "timestamp": "t", "context": {"message_id": "m1"}}
        ]

    def test_is_bounded(self) -> None:
        events = RecentEvents(maxlen=2)
        for name in ("a", "b", "c"):
            events(None, "info", {"event": name})
        assert len(events) == 2
        assert [e["event"] for e in events.tail()] == ["b", "c"]

    def test_tail_and_filter(self) -> None:
        events = RecentEvents()
        events(None, "info", {"event": "a"})
        events(None, "warning", {"event": "b"})
        events(None, "info", {"event": "c"})

        assert [e["event"] for e in events.tail(2)] == ["b", "c"]
        assert events.tail(0) == []
        assert [e["event"] for e in events.filter("info")] == ["a", "c"]

    def test_clear(self) -> None:
        events = RecentEvents()
        events(None, "info", {"event": "a"})
        events.clear()
        assert len(events) == 0


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _reset_structlog(self) -> Iterator[None]:
        yield
        structlog.reset_defaults()

    def test_installs_recent_events_processor(self) -> None:
        events = RecentEvents()
        configure_logging(log_level="INFO", json_logs=True, recent_events=events)

        structlog.get_logger("test").info("circuit_breaker_opened", provider="A")

        entry = events.tail(1)[0]
        assert entry["event"] == "circuit_breaker_opened"
        assert entry["level"] == "info"
        assert entry["context"] == {"provider": "A"}
        assert entry["timestamp"]

    def test_level_filter_applies_before_buffer(self) -> None:
        events = RecentEvents()
        configure_logging(log_level="WARNING", recent_events=events)

        log = structlog.get_logger("test")
        log.info("ignored")
        log.warning("queue_drain_paused")

        assert [e["event"] for e in events.tail()] == ["queue_drain_paused"]
