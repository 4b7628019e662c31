"""Tests for metric events and emitters."""

import json
import logging
import threading
from datetime import UTC, datetime

import pytest

from proc_metrics.monitoring.emitter import (
    CollectingEmitter,
    FanOutEmitter,
    JsonLinesEmitter,
    LoggingEmitter,
)
from proc_metrics.monitoring.events import MetricEvent, MetricEventBuilder


class TestMetricEventBuilder:
    """Tests for MetricEventBuilder."""

    def test_build_with_dimensions(self):
        """Test that built events carry feed, dimensions and timestamp."""
        ts = datetime(2024, 1, 1, tzinfo=UTC)
        builder = (
            MetricEventBuilder("metrics")
            .set_dimension("device", "sda")
            .set_dimension("fsOptions", ["rw", "relatime"])
        )

        event = builder.build("sys/disk/queue", 3, ts)

        assert event == MetricEvent(
            feed="metrics",
            metric="sys/disk/queue",
            value=3,
            dimensions={"device": "sda", "fsOptions": ("rw", "relatime")},
            timestamp=ts,
        )

    def test_add_dimensions(self):
        """Test copying a mapping of dimensions onto the builder."""
        builder = MetricEventBuilder().add_dimensions({"service": ["api"], "host": "h1"})
        assert builder.get_dimension("service") == ("api",)
        assert builder.get_dimension("host") == "h1"
        assert builder.get_dimension("missing") is None

    def test_events_do_not_share_dimensions(self):
        """Test that later builder changes do not alter earlier events."""
        builder = MetricEventBuilder().set_dimension("cpuName", "0")
        first = builder.build("sys/cpu", 1.0)
        builder.set_dimension("cpuName", "1")
        assert first.dimensions["cpuName"] == "0"

    def test_empty_feed_rejected(self):
        """Test that an empty feed is rejected."""
        with pytest.raises(ValueError):
            MetricEventBuilder("")

    def test_to_dict(self):
        """Test the JSON form of an event."""
        ts = datetime(2024, 1, 1, tzinfo=UTC)
        event = MetricEvent("metrics", "sys/fs/max", 10, {"fsOptions": ("rw",)}, ts)
        assert event.to_dict() == {
            "feed": "metrics",
            "timestamp": "2024-01-01T00:00:00+00:00",
            "metric": "sys/fs/max",
            "value": 10,
            "fsOptions": ["rw"],
        }


class TestCollectingEmitter:
    """Tests for CollectingEmitter."""

    def test_collects_from_many_threads(self):
        """Test that concurrent emits are all kept."""
        emitter = CollectingEmitter()
        builder = MetricEventBuilder()

        def emit_many():
            for i in range(200):
                emitter.emit(builder.build("test/metric", i))

        threads = [threading.Thread(target=emit_many) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(emitter.events) == 800
        assert emitter.metric_counts() == {"test/metric": 800}

    def test_events_named_and_reset(self):
        """Test filtering by metric name and clearing."""
        emitter = CollectingEmitter()
        emitter.emit(MetricEventBuilder().build("a", 1))
        emitter.emit(MetricEventBuilder().build("b", 2))

        assert [e.value for e in emitter.events_named("b")] == [2]
        emitter.reset()
        assert emitter.events == []


class TestLoggingEmitter:
    """Tests for LoggingEmitter."""

    def test_logs_event(self, caplog):
        """Test that each event becomes one log record."""
        emitter = LoggingEmitter(level=logging.INFO)
        with caplog.at_level(logging.INFO, logger="proc_metrics.monitoring.emitter"):
            emitter.emit(MetricEventBuilder().build("sys/mem/used", 42))

        assert len(caplog.records) == 1
        assert '"metric": "sys/mem/used"' in caplog.records[0].getMessage()


class TestJsonLinesEmitter:
    """Tests for JsonLinesEmitter."""

    def test_writes_one_line_per_event(self, tmp_path):
        """Test appending events as JSON lines."""
        path = tmp_path / "out" / "events.jsonl"
        emitter = JsonLinesEmitter(path)
        emitter.emit(MetricEventBuilder().set_dimension("device", "sda").build("m1", 1))
        emitter.emit(MetricEventBuilder().build("m2", 2.5))
        emitter.close()

        lines = path.read_text().splitlines()
        assert [json.loads(line)["metric"] for line in lines] == ["m1", "m2"]
        assert json.loads(lines[0])["device"] == "sda"

    def test_appends_to_existing_file(self, tmp_path):
        """Test that reopening keeps earlier events."""
        path = tmp_path / "events.jsonl"
        for value in (1, 2):
            emitter = JsonLinesEmitter(path)
            emitter.emit(MetricEventBuilder().build("m", value))
            emitter.close()

        assert len(path.read_text().splitlines()) == 2

    def test_emit_after_close_is_dropped(self, tmp_path):
        """Test that late events are dropped, not raised."""
        path = tmp_path / "events.jsonl"
        emitter = JsonLinesEmitter(path)
        emitter.close()
        emitter.close()

        emitter.emit(MetricEventBuilder().build("late", 1))
        emitter.flush()

        assert path.read_text() == ""


class TestFanOutEmitter:
    """Tests for FanOutEmitter."""

    def test_forwards_to_all(self, tmp_path):
        """Test that every emitter receives every event."""
        collector = CollectingEmitter()
        jsonl = JsonLinesEmitter(tmp_path / "events.jsonl")
        emitter = FanOutEmitter(collector, jsonl)

        emitter.emit(MetricEventBuilder().build("m", 1))
        emitter.close()

        assert len(collector.events) == 1
        assert len((tmp_path / "events.jsonl").read_text().splitlines()) == 1
