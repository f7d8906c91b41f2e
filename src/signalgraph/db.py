"""SQLite database initialization, schema, and row CRUD for the record tables."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from . import config


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Get a database connection with Row access and WAL mode."""
    config.ensure_data_dirs()
    conn = sqlite3.connect(str(db_path or config.DB_PATH), timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=10000")
    return conn


def init_db(db_path: Optional[Path] = None) -> None:
    """Initialize the database schema."""
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()


SCHEMA_SQL = """
-- Signals (atomic observed items)
CREATE TABLE IF NOT EXISTS signals (
    id TEXT PRIMARY KEY,
    user_id TEXT,
    cluster_id TEXT,
    title TEXT NOT NULL DEFAULT '',
    summary TEXT,
    sources INTEGER NOT NULL DEFAULT 0,
    urgency TEXT NOT NULL DEFAULT '',
    category TEXT,
    credibility REAL,
    momentum REAL,
    entities TEXT,
    created_at TEXT,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_signals_user ON signals(user_id);
CREATE INDEX IF NOT EXISTS idx_signals_cluster ON signals(cluster_id);

-- User-owned signal clusters
CREATE TABLE IF NOT EXISTS signal_clusters (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    signal_ids TEXT NOT NULL DEFAULT '[]',
    signal_count INTEGER NOT NULL DEFAULT 0,
    top_urgency TEXT,
    avg_confidence TEXT,
    created_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_signal_clusters_user ON signal_clusters(user_id);

-- Topic clusters (naming for signals.cluster_id)
CREATE TABLE IF NOT EXISTS clusters (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    color_node TEXT NOT NULL DEFAULT '',
    color_text TEXT NOT NULL DEFAULT '',
    created_at TEXT
);

-- Signal-to-signal similarity edges (not deduplicated)
CREATE TABLE IF NOT EXISTS signal_edges (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id TEXT NOT NULL,
    target_id TEXT NOT NULL,
    similarity REAL NOT NULL DEFAULT 0,
    type TEXT NOT NULL DEFAULT 'RELATED',
    reason TEXT,
    semantic_label TEXT,
    created_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_signal_edges_source ON signal_edges(source_id);
CREATE INDEX IF NOT EXISTS idx_signal_edges_target ON signal_edges(target_id);

-- Ranked insights
CREATE TABLE IF NOT EXISTS insights (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL DEFAULT '',
    signal_ids TEXT NOT NULL DEFAULT '[]',
    urgency TEXT NOT NULL DEFAULT '',
    sort_order INTEGER NOT NULL DEFAULT 0,
    insight_type TEXT,
    category TEXT,
    created_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_insights_type ON insights(insight_type, sort_order);

-- Positions (asynchronously generated recommendation documents)
CREATE TABLE IF NOT EXISTS positions (
    id TEXT PRIMARY KEY,
    user_id TEXT,
    conversation_id TEXT,
    title TEXT NOT NULL DEFAULT '',
    sections TEXT,
    position_essence TEXT,
    owner_quote TEXT,
    tone TEXT,
    signal_refs TEXT,
    created_at TEXT,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_positions_user ON positions(user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_positions_conversation ON positions(conversation_id);
"""

# Columns stored as JSON text and decoded on read
JSON_COLUMNS: dict[str, frozenset[str]] = {
    "signals": frozenset({"entities"}),
    "signal_clusters": frozenset({"signal_ids"}),
    "clusters": frozenset(),
    "signal_edges": frozenset(),
    "insights": frozenset({"signal_ids"}),
    "positions": frozenset({"sections", "signal_refs"}),
}

TABLES = frozenset(JSON_COLUMNS)


def now_iso() -> str:
    """Return current UTC time as ISO string."""
    return datetime.now(timezone.utc).isoformat()


def _check_table(table: str) -> None:
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table}")


def table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    """Return the column names of a record table."""
    _check_table(table)
    return [row["name"] for row in conn.execute(f"PRAGMA table_info({table})")]


def _check_columns(conn: sqlite3.Connection, table: str, names) -> None:
    known = set(table_columns(conn, table))
    unknown = [n for n in names if n not in known]
    if unknown:
        raise ValueError(f"Unknown column(s) for {table}: {', '.join(unknown)}")


def _encode(table: str, row: dict) -> dict:
    json_cols = JSON_COLUMNS[table]
    encoded = {}
    for key, value in row.items():
        if key in json_cols and value is not None:
            encoded[key] = json.dumps(value)
        elif isinstance(value, datetime):
            encoded[key] = value.isoformat()
        else:
            encoded[key] = value
    return encoded


def row_to_dict(table: str, row: sqlite3.Row) -> dict:
    """Convert a sqlite Row to a plain dict, decoding JSON columns."""
    json_cols = JSON_COLUMNS[table]
    out = dict(row)
    for key in json_cols:
        raw = out.get(key)
        if isinstance(raw, str):
            try:
                out[key] = json.loads(raw)
            except json.JSONDecodeError:
                # Leave unparseable payloads as text for callers to handle
                pass
    return out


# --- Generic CRUD ---

def select_rows(
    conn: sqlite3.Connection,
    table: str,
    eq: Optional[dict[str, Any]] = None,
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
) -> list[dict]:
    """Select all columns with optional equality filters, ordering, and limit."""
    _check_table(table)
    eq = eq or {}
    _check_columns(conn, table, list(eq) + ([order_by] if order_by else []))

    conditions = []
    params: list = []
    for column, value in eq.items():
        if value is None:
            conditions.append(f"{column} IS NULL")
        else:
            conditions.append(f"{column} = ?")
            params.append(value)
    where = "WHERE " + " AND ".join(conditions) if conditions else ""
    # rowid keeps ties (and unordered reads) in insertion order
    order = "ORDER BY rowid"
    if order_by:
        order = f"ORDER BY {order_by} {'DESC' if descending else 'ASC'}, rowid"
    limit_clause = ""
    if limit is not None:
        limit_clause = "LIMIT ?"
        params.append(limit)
    rows = conn.execute(
        f"SELECT * FROM {table} {where} {order} {limit_clause}", params
    ).fetchall()
    return [row_to_dict(table, row) for row in rows]


def get_row(conn: sqlite3.Connection, table: str, row_id) -> Optional[dict]:
    """Get a single row by primary key."""
    _check_table(table)
    row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,)).fetchone()
    return row_to_dict(table, row) if row else None


def insert_row(conn: sqlite3.Connection, table: str, row: dict) -> Any:
    """Insert a row and return its id (the generated one for signal_edges)."""
    _check_table(table)
    if not row:
        raise ValueError(f"Cannot insert an empty row into {table}")
    _check_columns(conn, table, row)
    encoded = _encode(table, row)
    if "created_at" not in encoded:
        encoded["created_at"] = now_iso()
    columns = ", ".join(encoded)
    placeholders = ", ".join("?" for _ in encoded)
    cursor = conn.execute(
        f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
        list(encoded.values()),
    )
    conn.commit()
    return encoded.get("id", cursor.lastrowid)


def update_row(conn: sqlite3.Connection, table: str, row_id, **fields) -> bool:
    """Update row fields. Returns True if found."""
    _check_table(table)
    if not fields:
        return False
    _check_columns(conn, table, fields)
    encoded = _encode(table, fields)
    if "updated_at" in table_columns(conn, table) and "updated_at" not in encoded:
        encoded["updated_at"] = now_iso()
    set_clause = ", ".join(f"{k} = ?" for k in encoded)
    values = list(encoded.values()) + [row_id]
    cursor = conn.execute(
        f"UPDATE {table} SET {set_clause} WHERE id = ?", values
    )
    conn.commit()
    return cursor.rowcount > 0


def delete_row(conn: sqlite3.Connection, table: str, row_id) -> bool:
    """Delete a row. Returns True if found."""
    _check_table(table)
    cursor = conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
    conn.commit()
    return cursor.rowcount > 0


def get_stats(conn: sqlite3.Connection) -> dict:
    """Row counts per record table."""
    return {
        table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        for table in sorted(TABLES)
    }
