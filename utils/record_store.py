"""Keyed record store over the SQLAlchemy models with in-process change push.

Records are addressed by slash paths: ``complaints`` names a collection and
``complaints/<key>`` a single record. Values are plain dicts of column values
(without the key). Subscribers receive a full snapshot of what they watch
once on subscribe and again after every committed write to that collection.
"""
from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import Complaint, User, generate_uuid

logger = logging.getLogger(__name__)

COLLECTIONS: dict[str, type] = {
    "complaints": Complaint,
    "users": User,
}

Listener = Callable[[Any], None]


class StoreError(Exception):
    """Raised when the underlying database read or write fails."""


class RecordMissingError(StoreError):
    """Raised when a targeted update addresses a record that does not exist."""


@dataclass
class _Subscription:
    collection: str
    key: Optional[str]
    callback: Listener
    order_by_child: Optional[str] = None
    equal_to: Any = None


def split_path(path: str) -> Tuple[str, Optional[str]]:
    parts = [p for p in (path or "").strip("/").split("/") if p]
    if not parts or len(parts) > 2:
        raise StoreError(f"Invalid record path: {path!r}")
    collection = parts[0]
    if collection not in COLLECTIONS:
        raise StoreError(f"Unknown collection: {collection}")
    return collection, (parts[1] if len(parts) == 2 else None)


def _fields(model) -> set[str]:
    return {attr.key for attr in inspect(model).column_attrs if attr.key != "id"}


def _column_default(column):
    default = column.default
    if default is None:
        return None
    if default.is_callable:
        return default.arg(None)
    return default.arg if default.is_scalar else None


def _value(row) -> Dict[str, Any]:
    return {name: getattr(row, name) for name in _fields(type(row))}


class RecordStore:
    def __init__(self) -> None:
        self._subscriptions: dict[int, _Subscription] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    # -- reads -----------------------------------------------------------------

    def get(self, path: str):
        collection, key = split_path(path)
        model = COLLECTIONS[collection]
        try:
            if key is None:
                return {row.id: _value(row) for row in model.query.populate_existing().all()}
            row = db.session.get(model, key, populate_existing=True)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(str(exc)) from exc
        return _value(row) if row is not None else None

    def query(self, collection: str, order_by_child: Optional[str] = None, equal_to: Any = None) -> Dict[str, Dict[str, Any]]:
        collection, _ = split_path(collection)
        model = COLLECTIONS[collection]
        query = model.query.populate_existing()
        if order_by_child:
            if order_by_child not in _fields(model):
                raise StoreError(f"Unknown field for {collection}: {order_by_child}")
            column = getattr(model, order_by_child)
            if equal_to is not None:
                query = query.filter(column == equal_to)
            query = query.order_by(column)
        try:
            return {row.id: _value(row) for row in query.all()}
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(str(exc)) from exc

    # -- writes ----------------------------------------------------------------

    def create(self, collection: str, record: Dict[str, Any]) -> str:
        collection, key = split_path(collection)
        if key is not None:
            raise StoreError("create() expects a collection path")
        model = COLLECTIONS[collection]
        self._check_fields(collection, record)
        key = generate_uuid()
        self._commit(lambda: db.session.add(model(id=key, **record)))
        self._notify(collection)
        return key

    def set(self, path: str, value: Dict[str, Any]) -> None:
        """Replace the record at ``path`` entirely, creating it if absent.

        Fields missing from ``value`` fall back to their column defaults.
        """
        collection, key = split_path(path)
        if key is None:
            raise StoreError("set() expects a record path")
        model = COLLECTIONS[collection]
        self._check_fields(collection, value)

        def apply():
            row = db.session.get(model, key)
            if row is None:
                db.session.add(model(id=key, **value))
                return
            for column in inspect(model).columns:
                if column.key != "id":
                    setattr(row, column.key, value.get(column.key, _column_default(column)))

        self._commit(apply)
        self._notify(collection)

    def update(self, path: str, fields: Dict[str, Any]) -> None:
        collection, key = split_path(path)
        if key is None:
            raise StoreError("update() expects a record path")
        model = COLLECTIONS[collection]
        self._check_fields(collection, fields)

        def apply():
            row = db.session.get(model, key)
            if row is None:
                raise RecordMissingError(f"{collection}/{key} does not exist")
            for name, val in fields.items():
                setattr(row, name, val)

        self._commit(apply)
        self._notify(collection)

    def delete(self, path: str) -> bool:
        collection, key = split_path(path)
        if key is None:
            raise StoreError("delete() expects a record path")
        model = COLLECTIONS[collection]
        removed = []

        def apply():
            row = db.session.get(model, key)
            if row is not None:
                db.session.delete(row)
                removed.append(key)

        self._commit(apply)
        if removed:
            self._notify(collection)
        return bool(removed)

    # -- realtime --------------------------------------------------------------

    def subscribe(
        self,
        path: str,
        callback: Listener,
        order_by_child: Optional[str] = None,
        equal_to: Any = None,
    ) -> Callable[[], None]:
        collection, key = split_path(path)
        sub = _Subscription(collection, key, callback, order_by_child, equal_to)
        sub_id = next(self._ids)
        with self._lock:
            self._subscriptions[sub_id] = sub
        self._deliver(sub)

        def unsubscribe() -> None:
            with self._lock:
                self._subscriptions.pop(sub_id, None)

        return unsubscribe

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    # -- internals -------------------------------------------------------------

    def _check_fields(self, collection: str, record: Dict[str, Any]) -> None:
        unknown = set(record) - _fields(COLLECTIONS[collection])
        if unknown:
            raise StoreError(f"Unknown field(s) for {collection}: {', '.join(sorted(unknown))}")

    def _commit(self, apply: Callable[[], None]) -> None:
        try:
            apply()
            db.session.commit()
        except RecordMissingError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(str(exc)) from exc

    def _notify(self, collection: str) -> None:
        with self._lock:
            watching = [s for s in self._subscriptions.values() if s.collection == collection]
        for sub in watching:
            self._deliver(sub)

    def _deliver(self, sub: _Subscription) -> None:
        try:
            if sub.key is not None:
                snapshot = self.get(f"{sub.collection}/{sub.key}")
            else:
                snapshot = self.query(sub.collection, sub.order_by_child, sub.equal_to)
            sub.callback(snapshot)
        except Exception:
            logger.exception("Record store listener failed", extra={"collection": sub.collection})
