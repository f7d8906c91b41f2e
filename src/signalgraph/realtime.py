"""Live views fed by a one-shot fetch plus a Record Store subscription.

PositionRealtime holds the most recent Position for a user (optionally one
conversation). Every fetch result or event replaces the held object whole;
nothing is merged field by field. Whichever arrives last wins.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from . import config
from .models import ChangeEvent, Position, Signal
from .store import FetchFailure, RecordStore, Subscription

logger = logging.getLogger(__name__)


def fetch_latest_position(
    store: RecordStore,
    user_id: str,
    conversation_id: Optional[str] = None,
) -> Optional[Position]:
    """Most recently created position for a user (and conversation)."""
    eq = {"user_id": user_id}
    if conversation_id:
        eq["conversation_id"] = conversation_id
    rows = store.select(
        "positions", eq=eq, order_by="created_at", descending=True, limit=1,
    )
    return Position.model_validate(rows[0]) if rows else None


class PositionRealtime:
    """Tracks the latest Position for one user via fetch + live channel."""

    def __init__(
        self,
        store: RecordStore,
        user_id: Optional[str],
        conversation_id: Optional[str] = None,
        scheduler=None,
        poll_seconds: Optional[float] = None,
    ) -> None:
        self._store = store
        self.user_id = user_id
        self.conversation_id = conversation_id
        self._scheduler = scheduler
        self._owns_scheduler = scheduler is None
        self._poll_seconds = poll_seconds
        self._position: Optional[Position] = None
        self._generating = False
        self._subscription: Optional[Subscription] = None
        self._poll_job = None
        # Bumped on every schedule and cancel; a poll carrying an older
        # value belongs to a finished generation
        self._poll_seq = 0
        self._disposed = False
        self._lock = threading.Lock()

    # --- State ---

    @property
    def state(self) -> str:
        return "empty" if self._position is None else "holding"

    @property
    def position(self) -> Optional[Position]:
        return self._position

    @property
    def is_generating(self) -> bool:
        return self._generating

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def _filter(self) -> dict:
        if self.conversation_id:
            return {"conversation_id": self.conversation_id}
        return {"user_id": self.user_id}

    # --- Lifecycle ---

    def start(self) -> None:
        """Open the live channel, then load the latest stored position."""
        if not self.user_id:
            logger.debug("No user; position realtime not started")
            return
        if self._disposed:
            raise RuntimeError("PositionRealtime has been disposed")
        if self.is_subscribed:
            logger.debug("Position realtime for %s already started", self.user_id)
            return

        self._subscription = self._store.subscribe(
            "positions", self.handle_event, eq=self._filter(),
        )
        try:
            latest = self._fetch_latest()
        except FetchFailure as e:
            logger.warning("Initial position fetch failed: %s", e)
            return
        if latest is not None:
            self._replace(latest)

    def dispose(self) -> None:
        """Release the channel and any pending fallback poll."""
        with self._lock:
            self._disposed = True
        if self._subscription is not None:
            self._store.remove_channel(self._subscription)
            self._subscription = None
        self._cancel_poll()
        if self._owns_scheduler and self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

    def __enter__(self) -> "PositionRealtime":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.dispose()

    # --- Updates ---

    def handle_event(self, event: ChangeEvent) -> None:
        """Apply an INSERT or UPDATE from the positions channel."""
        if event.event == "INSERT":
            if self._replace(Position.model_validate(event.new)):
                self.set_generating(False)
        elif event.event == "UPDATE":
            self._replace(Position.model_validate(event.new))

    def _replace(self, position: Position) -> bool:
        with self._lock:
            if self._disposed:
                logger.debug("Discarding position %s after dispose", position.id)
                return False
            self._position = position
        return True

    def _fetch_latest(self) -> Optional[Position]:
        return fetch_latest_position(self._store, self.user_id, self.conversation_id)

    # --- Generation flag and fallback poll ---

    def set_generating(self, generating: bool) -> None:
        """Flag a generation in flight; schedules a fallback poll while set."""
        self._generating = generating
        if generating and self.user_id and not self._disposed:
            self._schedule_poll()
        else:
            self._cancel_poll()

    def _schedule_poll(self) -> None:
        self._cancel_poll()
        if self._scheduler is None:
            self._scheduler = BackgroundScheduler(daemon=True)
            self._scheduler.start()
        seconds = self._poll_seconds
        if seconds is None:
            config.init()
            seconds = config.POLL_FALLBACK_SECONDS
        run_at = datetime.now(timezone.utc) + timedelta(seconds=seconds)
        with self._lock:
            self._poll_seq += 1
            seq = self._poll_seq
        job = self._scheduler.add_job(
            self.poll_fallback, trigger=DateTrigger(run_date=run_at), args=[seq],
        )
        with self._lock:
            self._poll_job = job

    def _cancel_poll(self) -> None:
        with self._lock:
            job, self._poll_job = self._poll_job, None
            self._poll_seq += 1
        if job is None:
            return
        try:
            job.remove()
        except JobLookupError:
            # Already ran
            pass

    def _is_current_poll(self, seq: Optional[int]) -> bool:
        # seq is None for a poll triggered by hand
        with self._lock:
            if self._disposed:
                return False
            return seq is None or seq == self._poll_seq

    def poll_fallback(self, seq: Optional[int] = None) -> None:
        """Fetch the latest position directly when the channel stayed quiet.

        A scheduled poll whose generation has since been cleared, replaced,
        or disposed does nothing. The pending job reference is left alone
        so a newer poll can still be cancelled.
        """
        if not self._is_current_poll(seq):
            logger.debug("Skipping stale position poll for user %s", self.user_id)
            return
        logger.info("Position fallback poll for user %s", self.user_id)
        try:
            latest = self._fetch_latest()
        except FetchFailure as e:
            logger.warning("Fallback position poll failed: %s", e)
            return
        if latest is None or not self._is_current_poll(seq):
            return
        if self._replace(latest):
            self.set_generating(False)


class SignalFeed:
    """Live, newest-first list of a user's signals."""

    def __init__(self, store: RecordStore, user_id: str) -> None:
        self._store = store
        self.user_id = user_id
        self._signals: list[Signal] = []
        self._subscription: Optional[Subscription] = None
        self._lock = threading.Lock()

    @property
    def signals(self) -> list[Signal]:
        return list(self._signals)

    def start(self) -> None:
        if self._subscription is not None and self._subscription.active:
            return
        self._subscription = self._store.subscribe(
            "signals", self.handle_event, eq={"user_id": self.user_id},
        )
        rows = self._store.select(
            "signals", eq={"user_id": self.user_id},
            order_by="created_at", descending=True,
        )
        loaded = [Signal.model_validate(r) for r in rows]
        with self._lock:
            self._signals = loaded

    def handle_event(self, event: ChangeEvent) -> None:
        with self._lock:
            if event.event == "INSERT":
                self._signals = [Signal.model_validate(event.new)] + self._signals
            elif event.event == "UPDATE":
                updated = Signal.model_validate(event.new)
                self._signals = [
                    updated if s.id == updated.id else s for s in self._signals
                ]
            elif event.event == "DELETE" and event.old:
                gone = event.old.get("id")
                self._signals = [s for s in self._signals if s.id != gone]

    def dispose(self) -> None:
        if self._subscription is not None:
            self._store.remove_channel(self._subscription)
            self._subscription = None
