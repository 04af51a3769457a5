"""
store/records.py -- SQLAlchemy Core persistence for named record collections.

Pattern: Repository. Each collection (accounts, media, followers) is a JSON
array of records stored as one row, keyed by collection name. Callers see
plain lists of dicts; they never touch SQL directly.

Concurrency:
  Every collection has its own re-entrant lock. write() and mutate() hold it,
  so a read-modify-write sequence (e.g. check email uniqueness, then append)
  cannot interleave with another writer on the same collection. Reads outside
  mutate() are unlocked and may observe the previous committed state.

Change publication:
  write() calls every listener registered with on_change() after the commit,
  passing the collection name. This replaces filesystem watching: a change
  is published exactly once per successful write. Listener failures are
  logged and never reach the writer.

Layer rule: no imports from api/, auth/, or live/.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from core.config import now_iso, now_ms

logger = logging.getLogger("accounthub.store")

ACCOUNTS = "accounts"
MEDIA = "media"
FOLLOWERS = "followers"

COLLECTIONS: tuple[str, ...] = (ACCOUNTS, MEDIA, FOLLOWERS)

ChangeListener = Callable[[str], None]


def new_record_id(prefix: str, taken: set[str], clock: Callable[[], int] = now_ms) -> str:
    """Return "<prefix>_<epoch ms>", bumped past any id already in taken.

    Same shape as the ids the legacy Node server generated (acct_..., foll_...).
    Call it inside mutate() so taken is the committed set.
    """
    stamp = clock()
    while f"{prefix}_{stamp}" in taken:
        stamp += 1
    return f"{prefix}_{stamp}"


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_collections = Table(
    "collections",
    _metadata,
    Column("name", String(64), primary_key=True),
    Column("data", Text, nullable=False),  # JSON array of records
    Column("updated_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RecordStore:
    """Durable key-value store of record collections.

    Usage:
        store = RecordStore("sqlite:///accounthub.db")
        unsubscribe = store.on_change(lambda name: print("changed", name))
        with store.mutate("followers") as followers:
            followers.append({"id": "foll_1", ...})
        store.read("followers")
        store.close()
    """

    def __init__(self, db_url: str = "sqlite:///accounthub.db", collections: tuple[str, ...] = COLLECTIONS) -> None:
        engine_kwargs: dict = {}
        if db_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            # A plain in-memory DB exists per connection; share one connection
            # so every thread sees the same tables.
            if db_url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
        self.engine: Engine = create_engine(db_url, **engine_kwargs)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

        self.collections = tuple(collections)
        self._locks: dict[str, threading.RLock] = {name: threading.RLock() for name in self.collections}
        self._listeners: list[ChangeListener] = []
        self._listeners_lock = threading.Lock()

    def _check(self, name: str) -> None:
        if name not in self._locks:
            raise ValueError(f"Unknown collection: {name!r}")

    # ------------------------------------------------------------------
    # Reads and writes
    # ------------------------------------------------------------------

    def read(self, name: str) -> list[dict]:
        """Return the records of a collection. Empty list if never written."""
        self._check(name)
        with self.engine.connect() as conn:
            row = conn.execute(_collections.select().where(_collections.c.name == name)).fetchone()
        if row is None:
            return []
        return json.loads(row.data)

    def write(self, name: str, records: list[dict]) -> None:
        """Replace a collection's records, then publish the change."""
        self._check(name)
        data = json.dumps(records)
        with self._locks[name]:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _collections.update()
                    .where(_collections.c.name == name)
                    .values(data=data, updated_at=now_iso())
                )
                if result.rowcount == 0:
                    conn.execute(_collections.insert().values(name=name, data=data, updated_at=now_iso()))
                conn.commit()
            self._publish(name)

    @contextmanager
    def mutate(self, name: str) -> Iterator[list[dict]]:
        """Read-modify-write a collection as its single writer.

        The yielded list is written back when the block exits normally. If
        the block raises, nothing is written and the exception propagates.
        """
        self._check(name)
        with self._locks[name]:
            records = self.read(name)
            yield records
            self.write(name, records)

    # ------------------------------------------------------------------
    # Change publication
    # ------------------------------------------------------------------

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener called with the collection name after each write.

        Returns a callable that removes the listener again.
        """
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, name: str) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(name)
            except Exception:
                logger.exception("Change listener failed for collection %s", name)

    def close(self) -> None:
        self.engine.dispose()
