"""MCP server entry point - derived signal and insight views as tools."""

from __future__ import annotations

import json
import logging
import sys
from typing import Optional

from fastmcp import FastMCP

from . import config
from .config import LOG_FORMAT, ensure_data_dirs

# Configure logging to stderr (stdout is reserved for MCP JSON-RPC)
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    stream=sys.stderr,
)
logger = logging.getLogger("signalgraph")

ensure_data_dirs()

# Create the MCP server
mcp = FastMCP(
    "SignalGraph",
    instructions=(
        "SignalGraph derives presentation views from stored signals, "
        "clusters, similarity edges, insights, and positions. Use these "
        "tools to read the cluster graph, ranked insights with their "
        "correlations, a single signal's neighbourhood, and the latest "
        "position for a user."
    ),
)

_store = None


def _get_store():
    global _store
    if _store is None:
        from .store import RecordStore
        _store = RecordStore()
    return _store


def _resolve_user(user_id: Optional[str]) -> str:
    user = user_id or config.DEFAULT_USER_ID
    if not user:
        raise ValueError("user_id is required (or set SIGNALGRAPH_USER_ID)")
    return user


# =============================================================================
# Graph Tools (3)
# =============================================================================

@mcp.tool()
def signal_graph(user_id: str | None = None) -> str:
    """Get a user's clusters (with colors and member signals), standalone
    signals, and deduplicated cluster-to-cluster edges.
    """
    from .views import load_signal_graph

    try:
        view = load_signal_graph(_get_store(), _resolve_user(user_id))
        payload = view.model_dump(mode="json", exclude={"all_signals", "signal_edges"})
        payload["total_signals"] = view.total_signals
        return json.dumps(payload)
    except Exception as e:
        logger.error("signal_graph failed: %s", e, exc_info=True)
        return json.dumps({"error": str(e)})


@mcp.tool()
def cluster_summary(user_id: str | None = None) -> str:
    """Clusters ordered by urgency plus counts of urgent, emerging and
    monitored clusters.
    """
    from .views import load_cluster_overview

    try:
        clusters, standalone, summary = load_cluster_overview(
            _get_store(), _resolve_user(user_id),
        )
        return json.dumps({
            "summary": summary.model_dump(),
            "clusters": [
                {
                    "id": c.id,
                    "name": c.name,
                    "top_urgency": c.top_urgency,
                    "color": c.color.name,
                    "signal_count": len(c.signals),
                }
                for c in clusters
            ],
            "standalone_count": len(standalone),
        })
    except Exception as e:
        logger.error("cluster_summary failed: %s", e, exc_info=True)
        return json.dumps({"error": str(e)})


@mcp.tool()
def signal_detail(signal_id: str) -> str:
    """Get one signal with its topic cluster and connected signals."""
    from .views import load_signal_detail

    try:
        detail = load_signal_detail(_get_store(), signal_id)
        if detail is None:
            return json.dumps({"error": f"Signal not found: {signal_id}"})
        return detail.model_dump_json()
    except Exception as e:
        logger.error("signal_detail failed: %s", e, exc_info=True)
        return json.dumps({"error": str(e)})


# =============================================================================
# Insight Tools (1)
# =============================================================================

def _insight_payload(view, limit: int) -> dict:
    """Top ``limit`` ranked insights (none for a negative limit) plus all edges."""
    return {
        "insights": [
            {
                "id": d.insight.id,
                "title": d.insight.title,
                "tier": d.tier.value,
                "cluster_name": d.cluster_name,
                "total_refs": d.total_refs,
                "signal_count": len(d.signals),
                "composite_score": d.composite_score,
            }
            for d in view.insights[:max(limit, 0)]
        ],
        "edges": [e.model_dump() for e in view.insight_edges],
        "count": len(view.insights),
    }


@mcp.tool()
def insight_graph(insight_type: str | None = None, limit: int = 50) -> str:
    """Get insights ranked by composite score with tier and cluster name,
    plus insight-to-insight edges inferred from shared signal edges.
    """
    from .views import load_insight_view

    try:
        view = load_insight_view(_get_store(), insight_type)
        return json.dumps(_insight_payload(view, limit))
    except Exception as e:
        logger.error("insight_graph failed: %s", e, exc_info=True)
        return json.dumps({"error": str(e)})


# =============================================================================
# Position Tools (1)
# =============================================================================

@mcp.tool()
def latest_position(
    user_id: str | None = None,
    conversation_id: str | None = None,
) -> str:
    """Get the most recently created position for a user, optionally within
    one conversation. Sections are parsed into key numbers, memo and
    evidence (or legacy titled sections).
    """
    from .positions import parse_sections
    from .realtime import fetch_latest_position

    try:
        position = fetch_latest_position(
            _get_store(), _resolve_user(user_id), conversation_id,
        )
        if position is None:
            return json.dumps({"position": None})
        parsed, legacy = parse_sections(position.sections)
        return json.dumps({
            "position": position.model_dump(mode="json"),
            "sections": parsed.model_dump() if parsed else None,
            "legacy_sections": [s.model_dump() for s in legacy] if legacy else None,
        })
    except Exception as e:
        logger.error("latest_position failed: %s", e, exc_info=True)
        return json.dumps({"error": str(e)})


# =============================================================================
# Server entry point
# =============================================================================

def main():
    """Run the MCP server."""
    logger.info("SignalGraph MCP server starting...")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
