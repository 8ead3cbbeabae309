"""Document change notifications.

Producers publish a `ChangeEvent` after every write they make. Consumers
(the pending-assignment monitor, the admin event stream) subscribe with an
explicit handler and get back the callable that unsubscribes it. When a Redis
client is bound, every event is also published on the change channel so other
processes can follow along.
"""

from __future__ import annotations

import asyncio
import json
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Optional

from redis import Redis
from redis.exceptions import RedisError

from hostel.utils.base import ChangeAction
from hostel.utils.logger import get_logger


logger = get_logger(__name__)

Handler = Callable[["ChangeEvent"], None]

# Actions on these collections mean capacity may have appeared.
CAPACITY_COLLECTIONS = ("rooms", "tags", "settings")
CAPACITY_ACTIONS = (ChangeAction.CREATED.value, ChangeAction.UPDATED.value, ChangeAction.RELEASED.value)


@dataclass(frozen=True)
class ChangeEvent:
    collection: str
    document_id: str
    action: str
    occurred_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def signals_capacity(self) -> bool:
        return self.collection in CAPACITY_COLLECTIONS and self.action in CAPACITY_ACTIONS

    def to_json(self) -> str:
        return json.dumps(asdict(self))


class ChangeFeed:
    def __init__(self) -> None:
        self._handlers: dict[int, Handler] = {}
        self._next_id = 0
        self._lock = threading.Lock()
        self._redis: Optional[Redis] = None
        self._channel: Optional[str] = None

    def bind_redis(self, client: Redis, channel: str) -> None:
        self._redis = client
        self._channel = channel

    def unbind_redis(self) -> None:
        self._redis = None
        self._channel = None

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        with self._lock:
            handler_id = self._next_id
            self._next_id += 1
            self._handlers[handler_id] = handler

        def unsubscribe() -> None:
            with self._lock:
                self._handlers.pop(handler_id, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            handlers = list(self._handlers.values())
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Change handler failed | collection=%s | action=%s", event.collection, event.action)

        if self._redis is not None and self._channel:
            try:
                self._redis.publish(self._channel, event.to_json())
            except RedisError as exc:
                logger.warning("Change event not relayed to redis | channel=%s | error=%s", self._channel, exc)


_feed = ChangeFeed()


def get_feed() -> ChangeFeed:
    return _feed


def publish_change(collection: str, document_id: object, action: ChangeAction) -> None:
    get_feed().publish(ChangeEvent(collection=collection, document_id=str(document_id), action=action.value))


async def sse_stream(feed: ChangeFeed, max_size: int = 100) -> AsyncIterator[str]:
    """Async generator of server-sent events for every change on `feed`.

    Use with FastAPI StreamingResponse. The subscription lives as long as the
    generator does.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=max_size)

    def enqueue(event: ChangeEvent) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Change stream backlog full, dropping event | collection=%s", event.collection)

    def on_change(event: ChangeEvent) -> None:
        if not loop.is_closed():
            loop.call_soon_threadsafe(enqueue, event)

    unsubscribe = feed.subscribe(on_change)
    try:
        while True:
            event = await queue.get()
            yield f"event: {event.action}\ndata: {event.to_json()}\n\n"
    finally:
        unsubscribe()
