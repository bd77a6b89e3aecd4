# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Per-session event stream: the append-only journal and pub/sub bus."""

import json
import logging

from collections import deque
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional

from ..types.errors import EventValidationError
from ..types.event_types import (
    Event,
    EventType,
    SYSTEM_LEVELS,
    STREAMING_EVENT_TYPES,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

EventCallback = Callable[[Event], None]
Unsubscribe = Callable[[], None]


class EventEncoder(json.JSONEncoder):
    """JSON encoder for handling special types in event serialization."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Event):
            return {
                "id": obj.id,
                "type": obj.type.value,
                "timestamp": obj.timestamp.isoformat(),
                "content": obj.content,
                "metadata": obj.metadata,
            }
        elif isinstance(obj, Mapping):
            return dict(obj)
        elif hasattr(obj, "model_dump"):
            return obj.model_dump(mode="json")
        elif hasattr(obj, "__dataclass_fields__"):
            return {f: getattr(obj, f) for f in obj.__dataclass_fields__}
        elif isinstance(obj, Enum):
            return obj.value
        elif isinstance(obj, datetime):
            return obj.isoformat()
        elif isinstance(obj, Path):
            return str(obj)
        elif isinstance(obj, timedelta):
            return obj.total_seconds()
        elif callable(obj):
            return None
        return super().default(obj)


def event_to_json(event: Event) -> str:
    """Encode one event as a single JSON line."""
    return json.dumps(event, cls=EventEncoder, ensure_ascii=False)


def event_from_json(line: str | dict) -> Event:
    """Decode an event produced by `event_to_json`."""
    data = json.loads(line) if isinstance(line, str) else line
    return Event(
        id=data["id"],
        type=EventType(data["type"]),
        timestamp=datetime.fromisoformat(data["timestamp"]),
        content=data.get("content", ""),
        metadata=data.get("metadata") or {},
    )


class _Subscription:
    __slots__ = ("callback", "types")

    def __init__(self, callback: EventCallback, types: Optional[frozenset[EventType]]):
        self.callback = callback
        self.types = types

    def wants(self, event: Event) -> bool:
        return self.types is None or event.type in self.types


class EventStream:
    """
    Ordered log of the events of one session, plus synchronous subscribers.

    Features:
    - append-only history, ordered by publish order
    - optional bound on the number of retained events (oldest dropped first)
    - type-filtered and streaming-only subscriptions
    - derived views (latest assistant response, latest tool results)
      computed by folding over the log
    - line-delimited JSON persistence
    """

    def __init__(self, max_events: int | None = None, auto_trim: bool = True):
        if max_events is not None and max_events <= 0:
            raise ValueError("max_events must be a positive integer")
        self.max_events = max_events
        self.auto_trim = auto_trim

        self._events: list[Event] = []
        self._subscriptions: list[_Subscription] = []
        self._pending: deque[Event] = deque()
        self._dispatching = False

    def __len__(self) -> int:
        return len(self._events)

    # Publishing --------------------------------------------------------------

    def create_event(self, event_type: EventType, content: Any = "", **metadata) -> Event:
        """Build a stamped event without publishing it."""
        return Event(type=EventType(event_type), content=content, metadata=dict(metadata))

    def send_event(self, event: Event) -> None:
        """Append an event and notify subscribers.

        Raises:
            EventValidationError: if required payload fields are missing. The
                event is not appended in that case.
        """
        self._validate(event)

        self._events.append(event)
        if self.auto_trim and self.max_events is not None:
            overflow = len(self._events) - self.max_events
            if overflow > 0:
                del self._events[:overflow]

        self._pending.append(event)
        if self._dispatching:
            # Re-entrant publish from a subscriber: delivered once the current
            # dispatch has finished, so notification order stays publish order
            return

        self._dispatching = True
        try:
            while self._pending:
                self._notify(self._pending.popleft())
        finally:
            self._dispatching = False

    def _validate(self, event: Event) -> None:
        if not isinstance(event, Event):
            raise EventValidationError(f"Expected an Event, got {type(event).__name__}")
        missing = event.missing_fields()
        if missing:
            raise EventValidationError(
                f"{event.type.value} event is missing required fields: {', '.join(missing)}"
            )
        if event.type == EventType.SYSTEM and event.metadata["level"] not in SYSTEM_LEVELS:
            raise EventValidationError(
                f"system event level must be one of {SYSTEM_LEVELS}, got {event.metadata['level']!r}"
            )

    def _notify(self, event: Event) -> None:
        # Snapshot: subscribers added while dispatching miss this event
        for sub in list(self._subscriptions):
            if not sub.wants(event):
                continue
            try:
                sub.callback(event)
            except Exception as e:
                logger.error(f"Error in event subscriber {sub.callback}: {e}")

    # Subscriptions -----------------------------------------------------------

    def _add_subscription(
        self, callback: EventCallback, types: Optional[Iterable[EventType]]
    ) -> Unsubscribe:
        sub = _Subscription(callback, frozenset(types) if types is not None else None)
        self._subscriptions.append(sub)

        def unsubscribe() -> None:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

        return unsubscribe

    def subscribe(self, callback: EventCallback) -> Unsubscribe:
        """Subscribe to every event. Returns a function that unsubscribes."""
        return self._add_subscription(callback, None)

    def subscribe_to_types(
        self, types: EventType | Iterable[EventType], callback: EventCallback
    ) -> Unsubscribe:
        """Subscribe to a single EventType or a collection of them."""
        if isinstance(types, EventType):
            types = [types]
        return self._add_subscription(callback, types)

    def subscribe_to_streaming_events(self, callback: EventCallback) -> Unsubscribe:
        """Subscribe to the incremental (streaming delta) events only."""
        return self._add_subscription(callback, STREAMING_EVENT_TYPES)

    # Queries -----------------------------------------------------------------

    def get_events(
        self,
        types: Iterable[EventType] | None = None,
        limit: int | None = None,
    ) -> list[Event]:
        """Events in publish order, optionally filtered by type.

        Args:
            types: only return events of these types
            limit: only return the newest `limit` matching events
        """
        if types is None:
            events = list(self._events)
        else:
            wanted = {EventType(t) for t in types}
            events = [e for e in self._events if e.type in wanted]
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    def get_events_by_type(
        self, types: EventType | Iterable[EventType], limit: int | None = None
    ) -> list[Event]:
        if isinstance(types, EventType):
            types = [types]
        return self.get_events(types, limit)

    def get_latest_assistant_response(self) -> Optional[Event]:
        """The most recent final assistant message, if any."""
        for event in reversed(self._events):
            if event.type == EventType.ASSISTANT_MESSAGE:
                return event
        return None

    def get_latest_tool_results(self) -> list[Event]:
        """All tool results published after the most recent assistant message."""
        results: list[Event] = []
        for event in reversed(self._events):
            if event.type == EventType.ASSISTANT_MESSAGE:
                break
            if event.type == EventType.TOOL_RESULT:
                results.append(event)
        results.reverse()
        return results

    def clear(self) -> None:
        """Remove all history. Subscribers are kept."""
        if self._dispatching:
            raise RuntimeError("EventStream.clear() called while dispatching an event")
        self._events.clear()
        self._pending.clear()

    # Persistence -------------------------------------------------------------

    def dumps(self) -> str:
        """Serialise the retained history as line-delimited JSON."""
        return "".join(event_to_json(e) + "\n" for e in self._events)

    @classmethod
    def loads(cls, text: str, **kwargs) -> "EventStream":
        """Rebuild a stream from `dumps` output. Subscribers are not notified."""
        stream = cls(**kwargs)
        for line in text.splitlines():
            if line.strip():
                event = event_from_json(line)
                stream._validate(event)
                stream._events.append(event)
        if stream.max_events is not None and len(stream._events) > stream.max_events:
            del stream._events[: len(stream._events) - stream.max_events]
        return stream

    def save(self, path: Path | str) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.dumps(), encoding="utf-8")

    @classmethod
    def load(cls, path: Path | str, **kwargs) -> "EventStream":
        return cls.loads(Path(path).read_text(encoding="utf-8"), **kwargs)
