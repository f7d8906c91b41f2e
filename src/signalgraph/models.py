"""Pydantic data models for SignalGraph."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


# --- Enums ---

class Tier(str, Enum):
    URGENT = "urgent"
    EMERGING = "emerging"
    RELEVANT = "relevant"


# --- Record Models (read-only inputs) ---

class Signal(BaseModel):
    id: str
    title: str = ""
    summary: Optional[str] = None
    cluster_id: Optional[str] = None
    user_id: Optional[str] = None
    sources: int = Field(default=0, description="Number of sources reporting this signal")
    urgency: str = ""
    category: Optional[str] = None
    credibility: Optional[float] = None
    momentum: Optional[float] = None
    entities: Optional[Any] = None
    created_at: Optional[datetime] = None


class Cluster(BaseModel):
    """A user-owned grouping of signals (signal_clusters row)."""
    id: str
    user_id: Optional[str] = None
    name: str = ""
    description: str = ""
    signal_ids: list[str] = Field(default_factory=list)
    signal_count: int = 0
    top_urgency: Optional[str] = None
    avg_confidence: Optional[str] = None
    created_at: Optional[datetime] = None


class TopicCluster(BaseModel):
    """A named topic that signals point at through cluster_id (clusters row)."""
    id: str
    name: str = ""
    color_node: str = ""
    color_text: str = ""
    created_at: Optional[datetime] = None


class SignalEdge(BaseModel):
    source_id: str
    target_id: str
    similarity: float = 0.0
    type: Optional[str] = None
    reason: Optional[str] = None
    semantic_label: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None


class Insight(BaseModel):
    id: str
    title: str = ""
    signal_ids: list[str] = Field(default_factory=list)
    urgency: str = ""
    sort_order: Optional[int] = None
    insight_type: Optional[str] = None
    category: Optional[str] = None
    created_at: Optional[datetime] = None


class Position(BaseModel):
    id: str
    user_id: Optional[str] = None
    conversation_id: Optional[str] = None
    title: str = ""
    sections: Optional[Any] = None
    position_essence: Optional[str] = None
    owner_quote: Optional[str] = None
    tone: Optional[str] = None
    signal_refs: Optional[Any] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Derived Models ---

class ClusterColor(BaseModel):
    name: str
    fill: str
    node: str
    node_urgent: str
    text: str


class EnrichedCluster(Cluster):
    color: ClusterColor
    signals: list[Signal] = Field(default_factory=list)


class ClusterEdge(BaseModel):
    """Undirected cluster pair; cluster_a sorts before cluster_b."""
    cluster_a: str
    cluster_b: str


class InsightWithData(BaseModel):
    insight: Insight
    signals: list[Signal] = Field(default_factory=list)
    tier: Tier
    total_refs: int = 0
    cluster_name: str
    composite_score: float


class InsightEdge(BaseModel):
    """Undirected insight pair; insight_a sorts before insight_b."""
    insight_a: str
    insight_b: str
    type: Optional[str] = None
    label: Optional[str] = None


class ConnectedSignal(BaseModel):
    signal: Signal
    edge_type: str
    edge_label: Optional[str] = None


class ClusterSummary(BaseModel):
    total: int = 0
    needs_attention: int = 0
    urgent: int = 0
    emerging: int = 0
    monitor: int = 0


# --- Change feed ---

class ChangeEvent(BaseModel):
    event: Literal["INSERT", "UPDATE", "DELETE"]
    table: str
    new: dict[str, Any] = Field(default_factory=dict)
    old: Optional[dict[str, Any]] = None


# --- Position sections ---

class KeyNumber(BaseModel):
    value: str
    label: str


class SignalSource(BaseModel):
    name: str
    url: str
    date: Optional[str] = None


class SignalEvidence(BaseModel):
    title: str
    credibility: float = 0.0
    one_liner: str = ""
    sources: list[SignalSource] = Field(default_factory=list)


class PositionSections(BaseModel):
    key_numbers: list[KeyNumber] = Field(default_factory=list)
    memo: Optional[str] = None
    signal_evidence: list[SignalEvidence] = Field(default_factory=list)


class LegacySection(BaseModel):
    title: str = ""
    content: str = ""
    signal_refs: list[str] = Field(default_factory=list)


# --- Views ---

class SignalGraphView(BaseModel):
    clusters: list[EnrichedCluster] = Field(default_factory=list)
    standalone_signals: list[Signal] = Field(default_factory=list)
    cluster_edges: list[ClusterEdge] = Field(default_factory=list)
    signal_edges: list[SignalEdge] = Field(default_factory=list)
    all_signals: list[Signal] = Field(default_factory=list)

    @property
    def total_signals(self) -> int:
        return len(self.all_signals)


class InsightView(BaseModel):
    insights: list[InsightWithData] = Field(default_factory=list)
    insight_edges: list[InsightEdge] = Field(default_factory=list)
    cluster_names: dict[str, str] = Field(default_factory=dict)


class SignalDetail(BaseModel):
    signal: Signal
    cluster: Optional[TopicCluster] = None
    connected: list[ConnectedSignal] = Field(default_factory=list)
