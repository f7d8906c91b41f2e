"""View orchestration: fetch a snapshot from the Record Store, then derive.

Each loader reads everything its view needs before deriving anything, so a
failed read raises one FetchFailure and leaves no partial view behind.
ViewHolder keeps the last good view across refreshes.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from . import config
from .graph import (
    aggregate_cluster_edges,
    build_cluster_graph,
    connected_signals,
    sort_clusters_by_urgency,
    summarize_clusters,
)
from .insights import correlate_insights, rank_insights
from .models import (
    ChangeEvent,
    Cluster,
    ClusterSummary,
    EnrichedCluster,
    Insight,
    InsightView,
    Signal,
    SignalDetail,
    SignalEdge,
    SignalGraphView,
    TopicCluster,
)
from .store import FetchFailure, RecordStore, Subscription

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")


def _fetch(store: RecordStore, table: str, model: type[M], **query) -> list[M]:
    rows = store.select(table, **query)
    try:
        return [model.model_validate(row) for row in rows]
    except ValidationError as e:
        raise FetchFailure(table, f"malformed row: {e}") from e


def load_signal_graph(store: RecordStore, user_id: str) -> SignalGraphView:
    """Clusters (newest first), standalone signals, and cluster edges for a user."""
    clusters = _fetch(
        store, "signal_clusters", Cluster,
        eq={"user_id": user_id}, order_by="created_at", descending=True,
    )
    signals = _fetch(
        store, "signals", Signal,
        eq={"user_id": user_id}, order_by="created_at", descending=True,
    )
    edges = _fetch(store, "signal_edges", SignalEdge)

    enriched, standalone = build_cluster_graph(clusters, signals)
    return SignalGraphView(
        clusters=enriched,
        standalone_signals=standalone,
        cluster_edges=aggregate_cluster_edges(enriched, edges),
        signal_edges=edges,
        all_signals=signals,
    )


def load_insight_view(
    store: RecordStore, insight_type: Optional[str] = None,
) -> InsightView:
    """Ranked insights of one type plus their inferred correlations."""
    config.init()
    insights = _fetch(
        store, "insights", Insight,
        eq={"insight_type": insight_type or config.INSIGHT_TYPE},
        order_by="sort_order",
    )
    signals = _fetch(store, "signals", Signal)
    clusters = _fetch(store, "clusters", TopicCluster)
    edges = _fetch(store, "signal_edges", SignalEdge)

    ranked = rank_insights(insights, signals, clusters)
    return InsightView(
        insights=ranked,
        insight_edges=correlate_insights(ranked, edges),
        cluster_names={c.id: c.name for c in clusters},
    )


def load_signal_detail(store: RecordStore, signal_id: str) -> Optional[SignalDetail]:
    """One signal with its topic cluster and connected signals."""
    found = _fetch(store, "signals", Signal, eq={"id": signal_id}, limit=1)
    if not found:
        return None
    signal = found[0]

    cluster = None
    if signal.cluster_id:
        matches = _fetch(store, "clusters", TopicCluster, eq={"id": signal.cluster_id}, limit=1)
        cluster = matches[0] if matches else None

    edges = [
        e for e in _fetch(store, "signal_edges", SignalEdge)
        if signal_id in (e.source_id, e.target_id)
    ]
    neighbour_ids = {e.target_id if e.source_id == signal_id else e.source_id for e in edges}
    neighbours = [s for s in _fetch(store, "signals", Signal) if s.id in neighbour_ids]

    return SignalDetail(
        signal=signal,
        cluster=cluster,
        connected=connected_signals(signal_id, neighbours, edges),
    )


def load_cluster_overview(
    store: RecordStore, user_id: str,
) -> tuple[list[EnrichedCluster], list[Signal], ClusterSummary]:
    """Clusters ordered by urgency with standalone signals and summary counts."""
    view = load_signal_graph(store, user_id)
    ordered = sort_clusters_by_urgency(view.clusters)
    return ordered, view.standalone_signals, summarize_clusters(ordered)


class ViewHolder(Generic[T]):
    """Keeps the latest derived view and the error of the last failed refresh.

    A failed refresh leaves the previous view in place. A refresh that
    completes after close(), or after a newer refresh started, is discarded.
    """

    def __init__(self, loader: Callable[[], T], name: str = "view") -> None:
        self._loader = loader
        self.name = name
        self.view: Optional[T] = None
        self.error: Optional[FetchFailure] = None
        self.loading = False
        self._generation = 0
        self._closed = False
        self._lock = threading.Lock()

    def _is_wanted(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def refresh(self) -> bool:
        """Reload the view. Returns True if a new view was applied."""
        with self._lock:
            if self._closed:
                return False
            self._generation += 1
            generation = self._generation
            self.loading = True

        try:
            result = self._loader()
        except FetchFailure as e:
            with self._lock:
                if self._is_wanted(generation):
                    self.error = e
                    self.loading = False
            logger.warning("Refreshing %s failed: %s", self.name, e)
            return False
        except Exception:
            with self._lock:
                if self._is_wanted(generation):
                    self.loading = False
            raise

        with self._lock:
            if not self._is_wanted(generation):
                logger.debug("Discarding stale %s result", self.name)
                return False
            self.view = result
            self.error = None
            self.loading = False
        return True

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self.loading = False


ClusterOverview = tuple[list[EnrichedCluster], list[Signal], ClusterSummary]


class LiveClusterOverview:
    """Cluster overview for one user, reloaded on any signal or cluster change.

    Subscribes to ``signals`` and ``signal_clusters`` rows owned by the user;
    every event triggers a full reload through a ViewHolder, so a failed
    reload keeps the previous overview.
    """

    TABLES = ("signals", "signal_clusters")

    def __init__(self, store: RecordStore, user_id: Optional[str]) -> None:
        self._store = store
        self.user_id = user_id
        self.holder: ViewHolder[ClusterOverview] = ViewHolder(
            lambda: load_cluster_overview(store, user_id),
            f"cluster overview ({user_id})",
        )
        self._subscriptions: list[Subscription] = []

    @property
    def view(self) -> Optional[ClusterOverview]:
        return self.holder.view

    @property
    def error(self) -> Optional[FetchFailure]:
        return self.holder.error

    def start(self) -> None:
        if not self.user_id:
            logger.debug("No user; cluster overview not started")
            return
        if self._subscriptions:
            return
        for table in self.TABLES:
            self._subscriptions.append(self._store.subscribe(
                table, self._on_change, eq={"user_id": self.user_id},
            ))
        self.holder.refresh()

    def _on_change(self, event: ChangeEvent) -> None:
        logger.debug("%s %s; reloading cluster overview", event.table, event.event)
        self.holder.refresh()

    def close(self) -> None:
        """Release both channels and drop any reload still in flight."""
        for sub in self._subscriptions:
            self._store.remove_channel(sub)
        self._subscriptions = []
        self.holder.close()

    def __enter__(self) -> "LiveClusterOverview":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.close()
