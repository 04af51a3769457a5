"""
live/watcher.py -- Turns record store writes into CollectionChanged events.

The store publishes the collection name after each committed write
(RecordStore.on_change). ChangeWatcher filters those down to the watched
collections and forwards one CollectionChanged per write to its sink, which
in production is NotificationHub.publish.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from store.records import COLLECTIONS, RecordStore


@dataclass(frozen=True)
class CollectionChanged:
    name: str


class ChangeWatcher:
    def __init__(
        self,
        store: RecordStore,
        sink: Callable[[CollectionChanged], None],
        collections: tuple[str, ...] = COLLECTIONS,
    ) -> None:
        self.store = store
        self.sink = sink
        self.collections = frozenset(collections)
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.store.on_change(self._on_write)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_write(self, name: str) -> None:
        if name in self.collections:
            self.sink(CollectionChanged(name))
