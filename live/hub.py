"""
live/hub.py -- Fan-out of collection changes to event-stream subscribers.

Pattern: Observer / pub-sub. Each connected client is a Subscriber holding a
bounded asyncio.Queue. On CollectionChanged the hub re-reads the whole
collection once, builds a single ServerEvent and puts it on every queue with
put_nowait, so broadcast never waits on any one client.

Threading:
  Store writes happen on FastAPI's worker threads (password hashing routes
  are plain def handlers). publish() therefore reads the snapshot on the
  writer's thread -- where the write just committed -- and hands the fan-out
  to the event loop with call_soon_threadsafe. When called on the loop
  thread itself, the fan-out runs immediately.

Slow or dead subscribers:
  A full queue means the client stopped reading. That subscriber is dropped
  (queue drained, closed with a None sentinel) and a warning logged; delivery
  to everyone else continues. No replay: a subscriber registered after a
  broadcast never receives it.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from auth.models import public_views
from live.watcher import CollectionChanged
from store.records import ACCOUNTS

logger = logging.getLogger("accounthub.live")

_subscriber_ids = itertools.count(1)


@dataclass(frozen=True)
class ServerEvent:
    """One named event-stream frame."""

    event: str
    data: Any

    def encode(self) -> str:
        return f"event: {self.event}\ndata: {json.dumps(self.data)}\n\n"


CONNECTED = ServerEvent("connected", {"status": "connected"})


class Subscriber:
    def __init__(self, queue_size: int) -> None:
        self.id = next(_subscriber_ids)
        self.queue: asyncio.Queue[ServerEvent | None] = asyncio.Queue(maxsize=queue_size)
        self.closed = False

    def deliver(self, event: ServerEvent) -> bool:
        """Queue event without blocking. False if the queue is full or closed."""
        if self.closed:
            return False
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        """Discard anything pending and wake the reader with the end sentinel."""
        if self.closed:
            return
        self.closed = True
        while True:
            try:
                self.queue.get_nowait()
            except asyncio.QueueEmpty:
                break
        self.queue.put_nowait(None)


class NotificationHub:
    """Registry of live subscribers plus the broadcast step.

    Usage:
        hub = NotificationHub(record_store.read)
        hub.bind(asyncio.get_running_loop())
        ChangeWatcher(record_store, hub.publish).start()
        subscriber = hub.register()
        event = await subscriber.queue.get()
    """

    def __init__(self, reader: Callable[[str], list[dict]], queue_size: int = 100) -> None:
        self._reader = reader
        self._queue_size = queue_size
        self._subscribers: set[Subscriber] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach the event loop that owns the subscriber queues."""
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop | None:
        return self._loop

    # ------------------------------------------------------------------
    # Subscriber lifecycle
    # ------------------------------------------------------------------

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def register(self) -> Subscriber:
        subscriber = Subscriber(self._queue_size)
        self._subscribers.add(subscriber)
        logger.info("Subscriber %d connected (%d active)", subscriber.id, len(self._subscribers))
        return subscriber

    def unregister(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            logger.info("Subscriber %d disconnected (%d active)", subscriber.id, len(self._subscribers))

    def close(self) -> None:
        """End every open stream. Used at shutdown."""
        for subscriber in list(self._subscribers):
            subscriber.close()
        self._subscribers.clear()

    # ------------------------------------------------------------------
    # Broadcast
    # ------------------------------------------------------------------

    def snapshot(self, name: str) -> list[dict]:
        """Current records of a collection as subscribers may see them."""
        records = self._reader(name)
        if name == ACCOUNTS:
            return public_views(records)
        return records

    def publish(self, change: CollectionChanged) -> None:
        """Sink for ChangeWatcher: snapshot the collection and fan it out."""
        try:
            event = ServerEvent(change.name, self.snapshot(change.name))
        except Exception:
            logger.exception("Could not read %s for broadcast", change.name)
            return

        loop = self._loop
        if loop is None or loop.is_closed():
            self.broadcast(event)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self.broadcast(event)
        else:
            loop.call_soon_threadsafe(self.broadcast, event)

    def broadcast(self, event: ServerEvent) -> int:
        """Deliver event to every registered subscriber. Returns the delivered count."""
        delivered = 0
        for subscriber in list(self._subscribers):
            if subscriber.deliver(event):
                delivered += 1
                continue
            logger.warning("Dropping subscriber %d: delivery of %s event failed", subscriber.id, event.event)
            self.unregister(subscriber)
            subscriber.close()
        return delivered
