#!/usr/bin/env python3
"""Print the derived views for one user as JSON (manual inspection).

Usage:
    python scripts/snapshot_views.py USER_ID [--insight-type TYPE] [--signal ID]
"""

import argparse
import json
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from signalgraph.store import FetchFailure, RecordStore  # noqa: E402
from signalgraph.views import (  # noqa: E402
    load_cluster_overview,
    load_insight_view,
    load_signal_detail,
)


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("user_id")
    parser.add_argument("--insight-type", default=None)
    parser.add_argument("--signal", default=None, help="Also show one signal's neighbourhood")
    args = parser.parse_args()

    store = RecordStore()
    try:
        clusters, standalone, summary = load_cluster_overview(store, args.user_id)
        insights = load_insight_view(store, args.insight_type)
        detail = load_signal_detail(store, args.signal) if args.signal else None
    except FetchFailure as e:
        print(f"Snapshot failed: {e}", file=sys.stderr)
        return 1

    snapshot = {
        "summary": summary.model_dump(),
        "clusters": [
            {"id": c.id, "name": c.name, "color": c.color.name, "signals": [s.id for s in c.signals]}
            for c in clusters
        ],
        "standalone": [s.id for s in standalone],
        "insights": [
            {"id": d.insight.id, "tier": d.tier.value, "score": d.composite_score}
            for d in insights.insights
        ],
        "insight_edges": [e.model_dump() for e in insights.insight_edges],
    }
    if detail is not None:
        snapshot["signal"] = detail.model_dump(mode="json")
    print(json.dumps(snapshot, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
