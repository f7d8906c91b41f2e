"""Insight ranking and insight-to-insight correlation through shared signals.

Each insight is scored on its own fields and resolved signals only:

    composite = total_refs * 0.5
              + (100 - sort_order) * 0.3      (0 when sort_order is 0/absent)
              + (signal_count * 10) * 0.2

Insights are then stable-sorted by that score, highest first, so ties keep
the order the store returned them in (sort_order ascending).

Two insights are related when some raw signal edge has one endpoint among
the first insight's signals and the other among the second's. Only the
first such edge is kept per unordered pair; its type and reason label the
insight edge.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Optional, Protocol

from .config import (
    COMPOSITE_BREADTH_SCALE,
    COMPOSITE_BREADTH_WEIGHT,
    COMPOSITE_RANK_CEILING,
    COMPOSITE_RANK_WEIGHT,
    COMPOSITE_REFS_WEIGHT,
    INSIGHT_FALLBACK_CLUSTER_NAME,
)
from .models import Insight, InsightEdge, InsightWithData, Signal, SignalEdge, Tier

logger = logging.getLogger(__name__)


class _Named(Protocol):
    id: str
    name: str


def get_tier(urgency: Optional[str]) -> Tier:
    if urgency == "urgent":
        return Tier.URGENT
    if urgency == "emerging":
        return Tier.EMERGING
    return Tier.RELEVANT


def composite_score(total_refs: int, sort_order: Optional[int], signal_count: int) -> float:
    """Weighted blend of reference volume, inverse rank, and evidence breadth."""
    rank_term = (COMPOSITE_RANK_CEILING - sort_order) if sort_order else 0
    return (
        (total_refs * COMPOSITE_REFS_WEIGHT)
        + (rank_term * COMPOSITE_RANK_WEIGHT)
        + ((signal_count * COMPOSITE_BREADTH_SCALE) * COMPOSITE_BREADTH_WEIGHT)
    )


def _cluster_name(signals: list[Signal], cluster_names: dict[str, str]) -> str:
    if not signals or not signals[0].cluster_id:
        return INSIGHT_FALLBACK_CLUSTER_NAME
    cluster_id = signals[0].cluster_id
    # Unknown clusters are labelled by their id
    return cluster_names.get(cluster_id) or cluster_id


def derive_insight(
    insight: Insight,
    signals_by_id: dict[str, Signal],
    cluster_names: dict[str, str],
) -> InsightWithData:
    """Resolve one insight's signals and compute its tier and score."""
    signals = [signals_by_id[sid] for sid in insight.signal_ids if sid in signals_by_id]
    total_refs = sum(s.sources or 0 for s in signals)
    return InsightWithData(
        insight=insight,
        signals=signals,
        tier=get_tier(insight.urgency),
        total_refs=total_refs,
        cluster_name=_cluster_name(signals, cluster_names),
        composite_score=composite_score(total_refs, insight.sort_order, len(signals)),
    )


def rank_insights(
    insights: Iterable[Insight],
    signals: Iterable[Signal],
    clusters: Iterable[_Named] = (),
) -> list[InsightWithData]:
    """Derive every insight and order by composite score, highest first."""
    signals_by_id = {s.id: s for s in signals}
    cluster_names = {c.id: c.name for c in clusters}
    derived = [derive_insight(i, signals_by_id, cluster_names) for i in insights]
    # list.sort is stable: equal scores keep fetch order
    derived.sort(key=lambda d: d.composite_score, reverse=True)
    return derived


def correlate_insights(
    ranked: Iterable[InsightWithData],
    edges: Iterable[SignalEdge],
) -> list[InsightEdge]:
    """Infer one edge per related insight pair, first supporting edge wins.

    Indexes insights by signal id so each raw edge only meets the insights
    holding one of its endpoints. Within an edge, new pairs are emitted in
    (position of lower id, position of higher id) order, the same order a
    full scan over all insight pairs would find them in.
    """
    position: dict[str, int] = {}
    holders: dict[str, set[str]] = defaultdict(set)
    for data in ranked:
        insight_id = data.insight.id
        position.setdefault(insight_id, len(position))
        for signal in data.signals:
            holders[signal.id].add(insight_id)

    seen: set[tuple[str, str]] = set()
    result: list[InsightEdge] = []

    for edge in edges:
        left = holders.get(edge.source_id)
        right = holders.get(edge.target_id)
        if not left or not right:
            continue

        found: set[tuple[str, str]] = set()
        for a in left:
            for b in right:
                if a == b:
                    continue
                key = (a, b) if a < b else (b, a)
                if key not in seen:
                    found.add(key)

        for key in sorted(found, key=lambda k: (position[k[0]], position[k[1]])):
            seen.add(key)
            result.append(InsightEdge(
                insight_a=key[0],
                insight_b=key[1],
                type=edge.type,
                label=edge.reason,
            ))

    logger.debug("Insight edges: %d pairs from %d insights", len(result), len(position))
    return result
