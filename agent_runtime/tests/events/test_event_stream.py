# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the EventStream journal and its subscribers."""
import pytest

from src.events import EventStream
from src.types.errors import EventValidationError
from src.types.event_types import Event, EventType


def publish(stream: EventStream, event_type: EventType, content="", **metadata) -> Event:
    event = stream.create_event(event_type, content, **metadata)
    stream.send_event(event)
    return event


class TestPublishing:
    def test_events_kept_in_publish_order(self, event_stream):
        publish(event_stream, EventType.USER_MESSAGE, "hello")
        publish(event_stream, EventType.SYSTEM, "note", level="info")
        publish(event_stream, EventType.USER_MESSAGE, "again")

        contents = [e.content for e in event_stream.get_events()]
        assert contents == ["hello", "note", "again"]

    def test_events_get_unique_ids_and_timestamps(self, event_stream):
        a = publish(event_stream, EventType.USER_MESSAGE, "a")
        b = publish(event_stream, EventType.USER_MESSAGE, "b")
        assert a.id != b.id
        assert a.timestamp <= b.timestamp

    def test_metadata_is_read_only_and_detached(self, event_stream):
        arguments = {"expression": "1+1"}
        event = publish(
            event_stream, EventType.TOOL_CALL, tool_call_id="c1", name="calculate", arguments=arguments
        )
        arguments["expression"] = "2+2"

        with pytest.raises(TypeError):
            event.metadata["name"] = "other"
        assert event_stream.get_events()[0].metadata["arguments"] == {"expression": "1+1"}

    def test_missing_required_metadata_is_rejected(self, event_stream):
        event = event_stream.create_event(EventType.TOOL_CALL, name="calculator")
        with pytest.raises(EventValidationError) as exc_info:
            event_stream.send_event(event)
        assert "tool_call_id" in str(exc_info.value)
        assert len(event_stream) == 0

    def test_invalid_system_level_is_rejected(self, event_stream):
        with pytest.raises(EventValidationError):
            publish(event_stream, EventType.SYSTEM, "oops", level="fatal")

    def test_max_events_drops_oldest(self):
        stream = EventStream(max_events=3)
        for i in range(5):
            publish(stream, EventType.USER_MESSAGE, str(i))
        assert [e.content for e in stream.get_events()] == ["2", "3", "4"]

    def test_max_events_must_be_positive(self):
        with pytest.raises(ValueError):
            EventStream(max_events=0)


class TestSubscriptions:
    def test_subscribers_notified_in_order(self, event_stream):
        seen = []
        event_stream.subscribe(lambda e: seen.append(("first", e.content)))
        event_stream.subscribe(lambda e: seen.append(("second", e.content)))

        publish(event_stream, EventType.USER_MESSAGE, "x")

        assert seen == [("first", "x"), ("second", "x")]

    def test_unsubscribe(self, event_stream):
        seen = []
        unsubscribe = event_stream.subscribe(seen.append)
        publish(event_stream, EventType.USER_MESSAGE, "one")
        unsubscribe()
        unsubscribe()  # idempotent
        publish(event_stream, EventType.USER_MESSAGE, "two")
        assert [e.content for e in seen] == ["one"]

    def test_type_filtered_subscription(self, event_stream):
        seen = []
        event_stream.subscribe_to_types(EventType.SYSTEM, seen.append)
        publish(event_stream, EventType.USER_MESSAGE, "ignored")
        publish(event_stream, EventType.SYSTEM, "kept", level="warning")
        assert [e.content for e in seen] == ["kept"]

    def test_streaming_subscription_only_sees_deltas(self, event_stream):
        seen = []
        event_stream.subscribe_to_streaming_events(seen.append)
        publish(
            event_stream,
            EventType.ASSISTANT_STREAMING_MESSAGE,
            "he",
            message_id="m1",
            is_complete=False,
        )
        publish(event_stream, EventType.ASSISTANT_MESSAGE, "hello", message_id="m1")
        assert [e.type for e in seen] == [EventType.ASSISTANT_STREAMING_MESSAGE]

    def test_failing_subscriber_does_not_block_others(self, event_stream):
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        event_stream.subscribe(broken)
        event_stream.subscribe(seen.append)
        publish(event_stream, EventType.USER_MESSAGE, "still delivered")

        assert len(seen) == 1
        assert len(event_stream) == 1

    def test_subscriber_added_during_dispatch_misses_current_event(self, event_stream):
        late = []

        def adder(event):
            if event.content == "first":
                event_stream.subscribe(late.append)

        event_stream.subscribe(adder)
        publish(event_stream, EventType.USER_MESSAGE, "first")
        publish(event_stream, EventType.USER_MESSAGE, "second")

        assert [e.content for e in late] == ["second"]

    def test_reentrant_publish_is_delivered_after_current_event(self, event_stream):
        order = []

        def echo(event):
            order.append(("echo", event.content))
            if event.content == "ping":
                publish(event_stream, EventType.USER_MESSAGE, "pong")

        def recorder(event):
            order.append(("recorder", event.content))

        event_stream.subscribe(echo)
        event_stream.subscribe(recorder)
        publish(event_stream, EventType.USER_MESSAGE, "ping")

        # Every subscriber sees "ping" before anyone sees "pong"
        assert order == [
            ("echo", "ping"),
            ("recorder", "ping"),
            ("echo", "pong"),
            ("recorder", "pong"),
        ]
        assert [e.content for e in event_stream.get_events()] == ["ping", "pong"]

    def test_clear_during_dispatch_is_refused(self, event_stream):
        errors = []

        def clearer(event):
            try:
                event_stream.clear()
            except RuntimeError as e:
                errors.append(e)

        event_stream.subscribe(clearer)
        publish(event_stream, EventType.USER_MESSAGE, "x")

        assert len(errors) == 1
        assert len(event_stream) == 1

    def test_clear_keeps_subscribers(self, event_stream):
        seen = []
        event_stream.subscribe(seen.append)
        publish(event_stream, EventType.USER_MESSAGE, "a")
        event_stream.clear()
        assert len(event_stream) == 0
        publish(event_stream, EventType.USER_MESSAGE, "b")
        assert [e.content for e in seen] == ["a", "b"]


class TestQueries:
    def test_get_events_filters_and_limits(self, event_stream):
        for i in range(4):
            publish(event_stream, EventType.USER_MESSAGE, f"u{i}")
            publish(event_stream, EventType.SYSTEM, f"s{i}", level="info")

        users = event_stream.get_events([EventType.USER_MESSAGE], limit=2)
        assert [e.content for e in users] == ["u2", "u3"]
        assert event_stream.get_events(limit=0) == []
        assert len(event_stream.get_events_by_type(EventType.SYSTEM)) == 4

    def test_returned_list_is_a_snapshot(self, event_stream):
        publish(event_stream, EventType.USER_MESSAGE, "a")
        events = event_stream.get_events()
        publish(event_stream, EventType.USER_MESSAGE, "b")
        assert len(events) == 1

    def test_latest_assistant_response_and_tool_results(self, event_stream):
        assert event_stream.get_latest_assistant_response() is None

        publish(event_stream, EventType.ASSISTANT_MESSAGE, "first", message_id="m1")
        publish(event_stream, EventType.TOOL_RESULT, "r1", tool_call_id="c1", name="t", elapsed_ms=1)
        publish(event_stream, EventType.ASSISTANT_MESSAGE, "second", message_id="m2")
        publish(event_stream, EventType.TOOL_RESULT, "r2", tool_call_id="c2", name="t", elapsed_ms=1)
        publish(event_stream, EventType.TOOL_RESULT, "r3", tool_call_id="c3", name="t", elapsed_ms=1)

        assert event_stream.get_latest_assistant_response().content == "second"
        assert [e.content for e in event_stream.get_latest_tool_results()] == ["r2", "r3"]


class TestPersistence:
    def test_dumps_and_loads_preserve_history(self, event_stream):
        publish(event_stream, EventType.USER_MESSAGE, [{"type": "text", "text": "hi"}])
        publish(
            event_stream,
            EventType.TOOL_CALL,
            tool_call_id="c1",
            name="calculator",
            arguments={"expression": "1+1"},
        )

        restored = EventStream.loads(event_stream.dumps())
        original = event_stream.get_events()
        loaded = restored.get_events()

        assert [e.id for e in loaded] == [e.id for e in original]
        assert [e.type for e in loaded] == [e.type for e in original]
        assert loaded[0].content == [{"type": "text", "text": "hi"}]
        assert loaded[1].metadata["arguments"] == {"expression": "1+1"}
        assert loaded[1].timestamp == original[1].timestamp

    def test_whole_metadata_survives_round_trip(self, event_stream):
        publish(event_stream, EventType.SYSTEM, "retrying", level="warning", attempt=2, detail={"codes": [500, 503]})

        restored = EventStream.loads(event_stream.dumps())
        assert restored.get_events()[0].metadata == event_stream.get_events()[0].metadata

    def test_save_and_load(self, event_stream, tmp_path):
        publish(event_stream, EventType.USER_MESSAGE, "persist me")
        path = tmp_path / "logs" / "events.jsonl"
        event_stream.save(path)

        restored = EventStream.load(path)
        assert restored.get_events()[0].content == "persist me"

    def test_loads_does_not_notify(self, event_stream):
        publish(event_stream, EventType.USER_MESSAGE, "x")
        restored = EventStream.loads(event_stream.dumps())
        seen = []
        restored.subscribe(seen.append)
        assert seen == []
        assert len(restored) == 1
