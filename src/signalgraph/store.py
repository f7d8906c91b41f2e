"""Record Store: filtered reads, notifying writes, and table subscriptions.

Wraps the SQLite tables in db.py behind the read contract the views use
(all columns, equality filters, one ordering column, optional limit) and a
push channel that delivers INSERT/UPDATE/DELETE events per table.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import Any, Callable, Optional

from .db import (
    delete_row,
    get_connection,
    get_row,
    init_db,
    insert_row,
    select_rows,
    update_row,
)
from .models import ChangeEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[ChangeEvent], None]


class FetchFailure(RuntimeError):
    """A Record Store read failed; the whole view pass is abandoned."""

    def __init__(self, table: str, message: str):
        super().__init__(f"Failed to fetch {table}: {message}")
        self.table = table


class Subscription:
    """A registered interest in one table, optionally filtered by equality."""

    def __init__(
        self,
        store: "RecordStore",
        table: str,
        callback: EventCallback,
        eq: Optional[dict[str, Any]] = None,
    ) -> None:
        self.id = uuid.uuid4().hex[:12]
        self.table = table
        self.eq = dict(eq or {})
        self._callback = callback
        self._store: Optional[RecordStore] = store

    @property
    def active(self) -> bool:
        return self._store is not None

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        row = event.old if event.event == "DELETE" and event.old else event.new
        return all(row.get(k) == v for k, v in self.eq.items())

    def deliver(self, event: ChangeEvent) -> None:
        if self.active:
            self._callback(event)

    def unsubscribe(self) -> None:
        """Release the channel. Safe to call more than once."""
        store, self._store = self._store, None
        if store is not None:
            store._release(self)


class RecordStore:
    """SQLite-backed record store with an in-process change feed."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = db_path
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()
        init_db(db_path)

    # --- Reads ---

    def select(
        self,
        table: str,
        eq: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Read rows. Any failure surfaces as a single FetchFailure."""
        try:
            conn = get_connection(self.db_path)
            try:
                return select_rows(conn, table, eq, order_by, descending, limit)
            finally:
                conn.close()
        except (sqlite3.Error, ValueError) as e:
            logger.warning("Record store read failed for %s: %s", table, e)
            raise FetchFailure(table, str(e)) from e

    def get(self, table: str, row_id) -> Optional[dict]:
        rows = self.select(table, eq={"id": row_id}, limit=1)
        return rows[0] if rows else None

    # --- Writes ---

    def insert(self, table: str, row: dict) -> dict:
        """Insert a row, publish INSERT, and return the stored row."""
        conn = get_connection(self.db_path)
        try:
            row_id = insert_row(conn, table, row)
            stored = get_row(conn, table, row_id)
        finally:
            conn.close()
        self._publish(ChangeEvent(event="INSERT", table=table, new=stored))
        return stored

    def update(self, table: str, row_id, **fields) -> Optional[dict]:
        """Update a row, publish UPDATE with the full row, and return it."""
        conn = get_connection(self.db_path)
        try:
            old = get_row(conn, table, row_id)
            if old is None or not update_row(conn, table, row_id, **fields):
                return None
            stored = get_row(conn, table, row_id)
        finally:
            conn.close()
        self._publish(ChangeEvent(event="UPDATE", table=table, new=stored, old=old))
        return stored

    def delete(self, table: str, row_id) -> bool:
        """Delete a row and publish DELETE carrying the old row."""
        conn = get_connection(self.db_path)
        try:
            old = get_row(conn, table, row_id)
            if old is None or not delete_row(conn, table, row_id):
                return False
        finally:
            conn.close()
        self._publish(ChangeEvent(event="DELETE", table=table, old=old))
        return True

    # --- Subscriptions ---

    def subscribe(
        self,
        table: str,
        callback: EventCallback,
        eq: Optional[dict[str, Any]] = None,
    ) -> Subscription:
        """Register a callback for change events on one table."""
        sub = Subscription(self, table, callback, eq)
        with self._lock:
            self._subscriptions.append(sub)
        logger.info("Subscribed %s to %s (filter=%s)", sub.id, table, sub.eq)
        return sub

    def remove_channel(self, subscription: Subscription) -> None:
        subscription.unsubscribe()

    @property
    def channel_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _release(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions = [
                s for s in self._subscriptions if s is not subscription
            ]
        logger.info("Released subscription %s on %s", subscription.id, subscription.table)

    def _publish(self, event: ChangeEvent) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(event)]
        for sub in targets:
            try:
                sub.deliver(event)
            except Exception as e:
                logger.error(
                    "Subscriber %s failed on %s %s: %s",
                    sub.id, event.event, event.table, e, exc_info=True,
                )
