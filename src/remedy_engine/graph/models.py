"""Pydantic models for the dependency graph and its analyses.

This module defines:

- GraphNodeType / EdgeKind / Direction: Graph vocabulary
- GraphNode / GraphEdge: Arena entries; nodes refer to edges by index only
- ImpactSeverity / ImpactScope: Classification of an impact analysis
- ImpactAnalysisResult: Outcome of impact propagation
- RootCauseAnalysisResult: Outcome of backward root-cause traversal
- GraphMetrics: Structural summary of a graph
- GraphAnalysisResult: Everything computed for one error context
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from remedy_engine.models.scores import clamp_unit


class GraphNodeType(str, Enum):
    """Kind of entity a node represents."""

    SERVICE = "service"
    COMPONENT = "component"
    DEPENDENCY = "dependency"
    ERROR = "error"
    REMEDIATION = "remediation"


class EdgeKind(str, Enum):
    """Relationship carried by an edge."""

    STANDARD = "standard"
    CRITICAL = "critical"
    OPTIONAL = "optional"
    DEPENDENCY = "dependency"
    CAUSAL = "causal"


class Direction(str, Enum):
    """Direction used by neighbour and edge queries."""

    OUTGOING = "outgoing"
    INCOMING = "incoming"
    BOTH = "both"


class GraphNode(BaseModel):
    """A node of the dependency graph.

    Adjacency is kept as indices into the owning graph's edge arena; a node
    never holds references to other nodes.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str
    node_type: GraphNodeType = GraphNodeType.COMPONENT
    name: str = ""
    error_probability: float = 0.0
    health_score: float = 1.0
    is_critical: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    incoming: list[int] = Field(default_factory=list)
    outgoing: list[int] = Field(default_factory=list)

    @field_validator("error_probability", mode="before")
    @classmethod
    def clamp_probability(cls, v: Any) -> float:
        return clamp_unit(v)

    @field_validator("health_score", mode="before")
    @classmethod
    def clamp_health(cls, v: Any) -> float:
        return clamp_unit(v, default=1.0)

    @property
    def degree(self) -> int:
        return len(self.incoming) + len(self.outgoing)


class GraphEdge(BaseModel):
    """A directed relationship ``source_id -> target_id``."""

    source_id: str
    target_id: str
    kind: EdgeKind = EdgeKind.DEPENDENCY
    weight: float = 1.0
    label: str = ""

    @field_validator("weight", mode="before")
    @classmethod
    def clamp_weight(cls, v: Any) -> float:
        return clamp_unit(v, default=1.0)


class ImpactSeverity(str, Enum):
    """Severity of the propagated impact of an error."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    MINIMAL = "minimal"


class ImpactScope(str, Enum):
    """How far the impact of an error reaches."""

    GLOBAL = "global"
    SYSTEM = "system"
    COMPONENT = "component"
    OPERATION = "operation"
    LOCAL = "local"


class ImpactAnalysisResult(BaseModel):
    """Outcome of impact propagation from a start node.

    Attributes:
        start_node_id: Node the propagation started from
        impact_scores: Accumulated impact per reached node (start excluded)
        affected_node_ids: Reached nodes whose score exceeds epsilon, by score
        blast_radius: Number of affected nodes
        max_impact_score: Highest accumulated score
        total_impact_score: Sum of accumulated scores
        severity: Threshold classification of the impact
        scope: Threshold classification of the reach
    """

    start_node_id: str
    impact_scores: dict[str, float] = Field(default_factory=dict)
    affected_node_ids: list[str] = Field(default_factory=list)
    blast_radius: int = 0
    max_impact_score: float = 0.0
    total_impact_score: float = 0.0
    severity: ImpactSeverity = ImpactSeverity.MINIMAL
    scope: ImpactScope = ImpactScope.LOCAL


class RootCauseCandidate(BaseModel):
    """An ancestor ranked by root-cause score."""

    node_id: str
    score: float
    depth: int = 1


class RootCauseAnalysisResult(BaseModel):
    """Outcome of backward root-cause traversal.

    Attributes:
        error_node_id: Node the traversal started from
        primary_root_cause_id: Highest scoring ancestor, None if there is none
        root_cause_probability: Score of the primary root cause
        alternatives: Remaining candidates, ranked descending
        explanation_path: Node ids from the root cause to the error node
    """

    error_node_id: str
    primary_root_cause_id: str | None = None
    root_cause_probability: float = 0.0
    alternatives: list[RootCauseCandidate] = Field(default_factory=list)
    explanation_path: list[str] = Field(default_factory=list)


class GraphMetrics(BaseModel):
    """Structural summary of a graph."""

    node_count: int = 0
    edge_count: int = 0
    average_degree: float = 0.0
    density: float = 0.0
    mean_error_probability: float = 0.0
    component_health: float = 1.0
    critical_node_count: int = 0
    has_cycles: bool = False


class GraphAnalysisResult(BaseModel):
    """Everything the analyzer computes for one error context."""

    error_node_id: str
    impact: ImpactAnalysisResult
    root_cause: RootCauseAnalysisResult
    metrics: GraphMetrics
    centrality: dict[str, float] = Field(default_factory=dict)
    high_risk_node_ids: list[str] = Field(default_factory=list)
    cycles: list[list[str]] = Field(default_factory=list)
