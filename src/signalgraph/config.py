"""Paths, constants, and data directory setup."""

import logging
import os
from pathlib import Path

# Base directories
PROJECT_ROOT = Path(__file__).parent.parent.parent


def _load_env() -> None:
    """Load .env file from project root if present. Existing env vars take priority."""
    env_file = PROJECT_ROOT / ".env"
    if not env_file.exists():
        return
    with open(env_file) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()
            if not os.environ.get(key):
                os.environ[key] = value


_env_initialized = False


def init() -> None:
    """Load .env and set env-dependent constants. Safe to call multiple times."""
    global _env_initialized
    if _env_initialized:
        return
    _load_env()
    _init_env_vars()
    _env_initialized = True


def _init_env_vars() -> None:
    """Read environment variables into module-level constants."""
    global DB_PATH, DEFAULT_USER_ID, INSIGHT_TYPE, POLL_FALLBACK_SECONDS

    db_override = os.environ.get("SIGNALGRAPH_DB_PATH", "")
    if db_override:
        DB_PATH = Path(os.path.expanduser(db_override))

    DEFAULT_USER_ID = os.environ.get("SIGNALGRAPH_USER_ID", "")
    INSIGHT_TYPE = os.environ.get("SIGNALGRAPH_INSIGHT_TYPE") or "push"

    try:
        POLL_FALLBACK_SECONDS = float(
            os.environ.get("SIGNALGRAPH_POLL_FALLBACK_SECONDS") or "30"
        )
    except (ValueError, TypeError):
        POLL_FALLBACK_SECONDS = 30.0
        logging.getLogger(__name__).warning(
            "Invalid SIGNALGRAPH_POLL_FALLBACK_SECONDS env var, defaulting to 30"
        )


DATA_DIR = PROJECT_ROOT / "data"
DB_PATH = DATA_DIR / "signalgraph.db"

# Active user for the MCP surface (tools accept an explicit user_id too)
DEFAULT_USER_ID = ""

# Insights are fetched for one insight_type only
INSIGHT_TYPE = "push"

# Realtime position fallback poll (seconds after generation starts)
POLL_FALLBACK_SECONDS = 30.0

# Cluster edges: raw signal edges must be strictly above this similarity
CLUSTER_EDGE_SIMILARITY_THRESHOLD = 0.5

# Insight naming when the first referenced signal has no cluster
INSIGHT_FALLBACK_CLUSTER_NAME = "INTELLIGENCE"

# Composite insight score:
#   refs * 0.5 + (100 - sort_order) * 0.3 + (signal_count * 10) * 0.2
COMPOSITE_REFS_WEIGHT = 0.5
COMPOSITE_RANK_WEIGHT = 0.3
COMPOSITE_BREADTH_WEIGHT = 0.2
COMPOSITE_RANK_CEILING = 100
COMPOSITE_BREADTH_SCALE = 10

# Cluster ordering by top_urgency (unknown values sort with "stable")
URGENCY_ORDER = {
    "urgent": 0,
    "emerging": 1,
    "monitor": 2,
    "stable": 3,
}

# Edge type reported for connections whose raw edge has none
DEFAULT_EDGE_TYPE = "RELATED"

# Logging format shared by entry points
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def ensure_data_dirs() -> None:
    """Create all required data directories if they don't exist."""
    init()
    DATA_DIR.mkdir(exist_ok=True)
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
