"""In-process change feed over SQLAlchemy sessions.

Rows inserted, updated or deleted during a flush are collected per session and
published to subscribers only after the transaction commits; a rollback drops
them. Subscribers register with ``on_change(collection, filter, callback)``
and get back a handle whose ``cancel()`` detaches them.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import event, inspect

logger = logging.getLogger(__name__)

PENDING_KEY = "change_feed_pending"


@dataclass
class Change:
    collection: str
    action: str
    record: Dict[str, Any] = field(default_factory=dict)


ChangeCallback = Callable[[Change], None]


class Subscription:
    def __init__(self, feed: "ChangeFeed", collection: str, filters: Dict[str, Any], callback: ChangeCallback) -> None:
        self._feed = feed
        self.collection = collection
        self.filters = dict(filters or {})
        self.callback = callback
        self.active = True

    def matches(self, change: Change) -> bool:
        if change.collection != self.collection:
            return False
        # reset events carry no record and reach every subscriber of the collection
        if change.action == "reset":
            return True
        return all(change.record.get(key) == value for key, value in self.filters.items())

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._feed._remove(self)


class ChangeFeed:
    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()
        self._installed: set = set()

    def on_change(self, collection: str, filters: Optional[Dict[str, Any]], callback: ChangeCallback) -> Subscription:
        sub = Subscription(self, collection, filters or {}, callback)
        with self._lock:
            self._subscriptions.append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, change: Change) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(change)]
        for sub in targets:
            try:
                sub.callback(change)
            except Exception:
                logger.exception("change feed subscriber failed for %s", change.collection)

    def install(self, session_cls: Any) -> None:
        if session_cls in self._installed:
            return
        event.listen(session_cls, "after_flush", self._collect)
        event.listen(session_cls, "after_commit", self._flush_pending)
        event.listen(session_cls, "after_rollback", self._discard_pending)
        self._installed.add(session_cls)

    def _collect(self, session: Any, flush_context: Any) -> None:
        pending = session.info.setdefault(PENDING_KEY, [])
        for obj in session.new:
            pending.append(Change(_collection_of(obj), "insert", _snapshot(obj)))
        for obj in session.dirty:
            if session.is_modified(obj, include_collections=False):
                pending.append(Change(_collection_of(obj), "update", _snapshot(obj)))
        for obj in session.deleted:
            pending.append(Change(_collection_of(obj), "delete", _snapshot(obj)))

    def _flush_pending(self, session: Any) -> None:
        pending = session.info.pop(PENDING_KEY, [])
        for change in pending:
            self.publish(change)

    def _discard_pending(self, session: Any) -> None:
        session.info.pop(PENDING_KEY, None)


def _collection_of(obj: Any) -> str:
    return getattr(obj, "__tablename__", type(obj).__name__.lower())


def _snapshot(obj: Any) -> Dict[str, Any]:
    state = inspect(obj)
    loaded = state.dict
    return {attr.key: loaded[attr.key] for attr in state.mapper.column_attrs if attr.key in loaded}


change_feed = ChangeFeed()
