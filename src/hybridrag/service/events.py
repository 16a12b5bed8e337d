"""Append-only, per-session event log with polling-based SSE streaming.

Agents append progress events; clients replay them from a position they
track themselves. Two backends are provided: an in-memory log for a single
process and Redis lists for multi-process deployments.
"""

import asyncio
import json
import logging
import os
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from dataclasses import asdict, dataclass, field
from typing import Any
from urllib.parse import urlparse

import redis.asyncio as redis

from hybridrag.constants import (
    EVENT_HEARTBEAT_SECONDS,
    EVENT_POLL_INTERVAL_SECONDS,
    EVENT_TTL_SECONDS,
    TERMINAL_EVENT_TYPES,
)
from hybridrag.errors import EventRelayFailure, ValidationError

logger = logging.getLogger(__name__)

HEARTBEAT_FRAME = ": heartbeat\n\n"


@dataclass
class Event:
    """One relayed event. Positions start at 1 for each session."""

    position: int
    type: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        """Serialize without the position; it is implied by the list index."""
        return json.dumps(
            {"type": self.type, "payload": self.payload, "timestamp": self.timestamp}, default=str
        )

    @classmethod
    def from_json(cls, raw: str, position: int) -> "Event":
        data = json.loads(raw)
        return cls(
            position=position,
            type=data["type"],
            payload=data.get("payload") or {},
            timestamp=float(data.get("timestamp", 0.0)),
        )


class EventBackend(ABC):
    """Storage for per-session event lists."""

    @abstractmethod
    async def append(self, session_id: str, event_type: str, payload: dict[str, Any]) -> Event:
        """Append atomically and return the stored event with its position."""

    @abstractmethod
    async def read_since(self, session_id: str, after_position: int) -> list[Event]:
        """Events with position > after_position, in order."""

    @abstractmethod
    async def clear(self, session_id: str) -> None:
        """Drop a session's events."""

    async def close(self) -> None:
        pass


class InMemoryEventBackend(EventBackend):
    """Process-local event log; data is lost on restart."""

    def __init__(self):
        self._events: dict[str, list[Event]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        if session_id not in self._locks:
            self._locks[session_id] = asyncio.Lock()
        return self._locks[session_id]

    async def append(self, session_id: str, event_type: str, payload: dict[str, Any]) -> Event:
        async with self._lock_for(session_id):
            events = self._events.setdefault(session_id, [])
            event = Event(position=len(events) + 1, type=event_type, payload=payload)
            events.append(event)
            return event

    async def read_since(self, session_id: str, after_position: int) -> list[Event]:
        events = self._events.get(session_id, [])
        # Positions are contiguous from 1, so position p sits at index p - 1
        return list(events[max(after_position, 0):])

    async def clear(self, session_id: str) -> None:
        # Only the events go; appenders already queued share this lock
        async with self._lock_for(session_id):
            self._events.pop(session_id, None)


class RedisEventBackend(EventBackend):
    """Redis list per session; RPUSH's returned length is the event position."""

    KEY_PREFIX = "agui:events:"

    def __init__(self, url: str, ttl_seconds: int = EVENT_TTL_SECONDS):
        self._url = url
        self.ttl_seconds = ttl_seconds
        self._redis = redis.from_url(url, encoding="utf-8", decode_responses=True)
        parsed = urlparse(url)
        logger.info(f"🔌 Event relay using Redis at {parsed.hostname}:{parsed.port or 6379}")

    def _key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}"

    async def append(self, session_id: str, event_type: str, payload: dict[str, Any]) -> Event:
        key = self._key(session_id)
        timestamp = time.time()
        event = Event(position=0, type=event_type, payload=payload, timestamp=timestamp)
        try:
            event.position = await self._redis.rpush(key, event.to_json())
            await self._redis.expire(key, self.ttl_seconds)
        except redis.RedisError as e:
            logger.error(f"❌ Redis append failed for session {session_id}: {e}")
            raise EventRelayFailure(f"Append failed: {e}") from e
        return event

    async def read_since(self, session_id: str, after_position: int) -> list[Event]:
        try:
            raw_events = await self._redis.lrange(self._key(session_id), max(after_position, 0), -1)
        except redis.RedisError as e:
            logger.error(f"❌ Redis read failed for session {session_id}: {e}")
            raise EventRelayFailure(f"Read failed: {e}") from e

        start = max(after_position, 0) + 1
        return [Event.from_json(raw, position) for position, raw in enumerate(raw_events, start=start)]

    async def clear(self, session_id: str) -> None:
        try:
            await self._redis.delete(self._key(session_id))
        except redis.RedisError as e:
            raise EventRelayFailure(f"Clear failed: {e}") from e

    async def close(self) -> None:
        await self._redis.aclose()


class EventRelay:
    """Front door for appending and replaying session events."""

    def __init__(self, backend: EventBackend):
        self.backend = backend

    async def append(
        self, session_id: str, event_type: str, payload: dict[str, Any] | None = None
    ) -> int:
        """Append an event.

        Args:
            session_id: Session (already scoped to its organization by callers)
            event_type: Event type, e.g. TEXT_MESSAGE_CONTENT or RUN_FINISHED
            payload: JSON-serializable payload

        Returns:
            int: Position of the new event

        Raises:
            ValidationError: If session_id or event_type is empty
            EventRelayFailure: If the backend fails
        """
        if not session_id:
            raise ValidationError("session_id must not be empty")
        if not event_type:
            raise ValidationError("event type must not be empty")
        event = await self.backend.append(session_id, event_type, payload or {})
        logger.debug(f"📨 Event {event.position} ({event_type}) appended to {session_id}")
        return event.position

    async def read_since(self, session_id: str, after_position: int = 0) -> list[Event]:
        """Return events with position > after_position. Repeatable."""
        return await self.backend.read_since(session_id, after_position)

    async def clear(self, session_id: str) -> None:
        await self.backend.clear(session_id)

    async def close(self) -> None:
        await self.backend.close()


def format_sse(events: list[Event]) -> str:
    """Frame events as Server-Sent Events `data:` messages."""
    return "".join(f"data: {json.dumps(event.to_dict(), default=str)}\n\n" for event in events)


async def stream_events(
    relay: EventRelay,
    session_id: str,
    after: int = 0,
    poll_interval: float = EVENT_POLL_INTERVAL_SECONDS,
    heartbeat_interval: float = EVENT_HEARTBEAT_SECONDS,
    is_complete: Callable[[], bool] | None = None,
) -> AsyncIterator[str]:
    """Poll the relay and yield SSE frames.

    Stops after yielding a terminal event (RUN_FINISHED or RUN_ERROR), or
    once `is_complete()` reports true and a final read is drained.
    Cancellation takes effect at the next poll boundary.

    Args:
        relay: Event relay to read from
        session_id: Session to stream
        after: Last position the client has already seen
        poll_interval: Seconds between reads
        heartbeat_interval: Seconds of silence before a heartbeat comment
        is_complete: Optional predicate signalling the producer is done

    Yields:
        str: SSE frames (events or heartbeat comments)
    """
    position = after
    last_sent = time.monotonic()

    while True:
        done = is_complete() if is_complete is not None else False
        events = await relay.read_since(session_id, position)
        if events:
            position = events[-1].position
            last_sent = time.monotonic()
            yield format_sse(events)
            if any(event.type in TERMINAL_EVENT_TYPES for event in events):
                return
        if done:
            return

        if time.monotonic() - last_sent >= heartbeat_interval:
            last_sent = time.monotonic()
            yield HEARTBEAT_FRAME
        await asyncio.sleep(poll_interval)


def create_event_relay(redis_url: str | None = None) -> EventRelay:
    """Build an EventRelay: Redis when REDIS_URL is set, in-memory otherwise."""
    redis_url = redis_url or os.getenv("REDIS_URL")
    if redis_url:
        ttl = int(os.getenv("EVENT_TTL_SECONDS", str(EVENT_TTL_SECONDS)))
        return EventRelay(RedisEventBackend(redis_url, ttl_seconds=ttl))
    logger.info("📝 Event relay using in-memory backend (REDIS_URL not set)")
    return EventRelay(InMemoryEventBackend())
