"""Cluster color palette.

Colors are a pure function of a cluster's position in the fetched ordering,
never of its id. Past len(CLUSTER_PALETTE) clusters the colors repeat.
"""

from __future__ import annotations

from .models import ClusterColor

CLUSTER_PALETTE: tuple[ClusterColor, ...] = (
    ClusterColor(
        name="coral",
        fill="rgba(220,90,80,0.06)",
        node="rgba(220,90,80,0.5)",
        node_urgent="rgba(220,90,80,0.8)",
        text="#c4493e",
    ),
    ClusterColor(
        name="lavender",
        fill="rgba(120,90,200,0.06)",
        node="rgba(120,90,200,0.5)",
        node_urgent="rgba(120,90,200,0.8)",
        text="#7a5ac8",
    ),
    ClusterColor(
        name="sage",
        fill="rgba(60,160,100,0.06)",
        node="rgba(60,160,100,0.5)",
        node_urgent="rgba(60,160,100,0.8)",
        text="#3a9a5c",
    ),
    ClusterColor(
        name="gold",
        fill="rgba(200,160,50,0.06)",
        node="rgba(200,160,50,0.5)",
        node_urgent="rgba(200,160,50,0.8)",
        text="#b8921e",
    ),
    ClusterColor(
        name="slate",
        fill="rgba(90,105,135,0.06)",
        node="rgba(90,105,135,0.5)",
        node_urgent="rgba(90,105,135,0.8)",
        text="#5a6987",
    ),
)

# Signals outside every cluster
STANDALONE_COLOR = ClusterColor(
    name="standalone",
    fill="rgba(107,107,123,0.04)",
    node="rgba(107,107,123,0.4)",
    node_urgent="rgba(107,107,123,0.6)",
    text="#6b6b7b",
)


def color_for(index: int) -> ClusterColor:
    """Return the palette entry for the cluster at ordinal position ``index``."""
    return CLUSTER_PALETTE[index % len(CLUSTER_PALETTE)]
