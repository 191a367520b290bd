"""Dependency graph and graph analysis."""

from .analyzer import GraphAnalyzer
from .dependency_graph import DependencyGraph
from .models import (
    Direction,
    EdgeKind,
    GraphAnalysisResult,
    GraphEdge,
    GraphMetrics,
    GraphNode,
    GraphNodeType,
    ImpactAnalysisResult,
    ImpactScope,
    ImpactSeverity,
    RootCauseAnalysisResult,
    RootCauseCandidate,
)

__all__ = [
    "DependencyGraph",
    "Direction",
    "EdgeKind",
    "GraphAnalysisResult",
    "GraphAnalyzer",
    "GraphEdge",
    "GraphMetrics",
    "GraphNode",
    "GraphNodeType",
    "ImpactAnalysisResult",
    "ImpactScope",
    "ImpactSeverity",
    "RootCauseAnalysisResult",
    "RootCauseCandidate",
]
