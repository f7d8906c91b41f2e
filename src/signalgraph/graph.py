"""Cluster graph: enriched clusters, standalone signals, and cluster edges."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .colors import color_for
from .config import (
    CLUSTER_EDGE_SIMILARITY_THRESHOLD,
    DEFAULT_EDGE_TYPE,
    URGENCY_ORDER,
)
from .models import (
    Cluster,
    ClusterEdge,
    ClusterSummary,
    ConnectedSignal,
    EnrichedCluster,
    Signal,
    SignalEdge,
)

logger = logging.getLogger(__name__)


def pair_key(a: str, b: str) -> tuple[str, str]:
    """Canonical key for an unordered pair of ids."""
    return (a, b) if a <= b else (b, a)


def build_cluster_graph(
    clusters: Iterable[Cluster],
    signals: Iterable[Signal],
) -> tuple[list[EnrichedCluster], list[Signal]]:
    """Resolve cluster members and split off standalone signals.

    Clusters keep their fetch order and get colors by ordinal position.
    Member ids with no matching signal are dropped. A signal listed by two
    clusters shows up resolved in both; that is left to the source data.
    """
    signals = list(signals)
    by_id = {s.id: s for s in signals}
    claimed: set[str] = set()
    enriched: list[EnrichedCluster] = []

    for index, cluster in enumerate(clusters):
        members = [by_id[sid] for sid in cluster.signal_ids if sid in by_id]
        claimed.update(s.id for s in members)
        enriched.append(
            EnrichedCluster(
                **cluster.model_dump(include=set(Cluster.model_fields)),
                color=color_for(index),
                signals=members,
            )
        )

    standalone = [s for s in signals if s.id not in claimed]
    logger.debug(
        "Built %d clusters, %d standalone of %d signals",
        len(enriched), len(standalone), len(signals),
    )
    return enriched, standalone


def signal_cluster_map(clusters: Iterable[EnrichedCluster]) -> dict[str, str]:
    """Map each resolved member signal id to its owning cluster id."""
    mapping: dict[str, str] = {}
    for cluster in clusters:
        for signal in cluster.signals:
            mapping[signal.id] = cluster.id
    return mapping


def aggregate_cluster_edges(
    clusters: Iterable[EnrichedCluster],
    edges: Iterable[SignalEdge],
    threshold: float = CLUSTER_EDGE_SIMILARITY_THRESHOLD,
) -> list[ClusterEdge]:
    """Lift signal edges to unique cluster pairs.

    Only edges with similarity strictly above ``threshold`` count. Edges
    touching a standalone signal or staying inside one cluster are skipped.
    Output keeps the order in which each pair was first seen.
    """
    owner = signal_cluster_map(clusters)
    seen: set[tuple[str, str]] = set()
    result: list[ClusterEdge] = []
    considered = 0

    for edge in edges:
        if not edge.similarity > threshold:
            continue
        considered += 1
        a = owner.get(edge.source_id)
        b = owner.get(edge.target_id)
        if a is None or b is None or a == b:
            continue
        key = pair_key(a, b)
        if key in seen:
            continue
        seen.add(key)
        result.append(ClusterEdge(cluster_a=key[0], cluster_b=key[1]))

    logger.debug(
        "Cluster edges: %d unique from %d above-threshold signal edges",
        len(result), considered,
    )
    return result


# --- Cluster ordering and summary ---

def _urgency_rank(urgency: Optional[str]) -> int:
    return URGENCY_ORDER.get(urgency or "stable", URGENCY_ORDER["stable"])


def sort_clusters_by_urgency(clusters: Iterable[Cluster]) -> list:
    """Stable sort: urgent, emerging, monitor, then stable/unknown."""
    return sorted(clusters, key=lambda c: _urgency_rank(c.top_urgency))


def summarize_clusters(clusters: Iterable[Cluster]) -> ClusterSummary:
    clusters = list(clusters)
    urgent = sum(1 for c in clusters if c.top_urgency == "urgent")
    emerging = sum(1 for c in clusters if c.top_urgency == "emerging")
    monitor = sum(1 for c in clusters if c.top_urgency == "monitor")
    return ClusterSummary(
        total=len(clusters),
        needs_attention=urgent + emerging,
        urgent=urgent,
        emerging=emerging,
        monitor=monitor,
    )


# --- Signal neighbourhood ---

def connected_signals(
    signal_id: str,
    signals: Iterable[Signal],
    edges: Iterable[SignalEdge],
) -> list[ConnectedSignal]:
    """Signals sharing an edge with ``signal_id``.

    Each neighbour appears once, labelled by the first edge that touches it,
    in the order ``signals`` lists them. Neighbours missing from ``signals``
    are dropped.
    """
    first_edge: dict[str, SignalEdge] = {}
    for edge in edges:
        if edge.source_id == signal_id:
            other = edge.target_id
        elif edge.target_id == signal_id:
            other = edge.source_id
        else:
            continue
        if other != signal_id:
            first_edge.setdefault(other, edge)

    result = []
    for signal in signals:
        edge = first_edge.pop(signal.id, None)
        if edge is None:
            continue
        result.append(ConnectedSignal(
            signal=signal,
            edge_type=edge.type or DEFAULT_EDGE_TYPE,
            edge_label=edge.reason,
        ))
    return result
