"""
Graph analyzer.

Builds dependency graphs from error contexts and runs the graph algorithms
used to contextualize an error:

1. Impact propagation: how far and how strongly an error spreads
2. Root-cause ranking: which ancestor most likely originated the error
3. Shortest paths, cycles, centrality, high-risk nodes, propagation paths

Impact propagation is a best-effort heuristic, not exact probability
calculus. The signal reaching a node at depth ``d`` through a path is

    start.error_probability * prod(edge.weight on path) * decay ** (d - 1)

and signals from every edge reaching a node accumulate, capped at 1.0.
"""

from __future__ import annotations

import logging
from collections import deque

from remedy_engine.graph.dependency_graph import DependencyGraph
from remedy_engine.graph.models import (
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
from remedy_engine.models.context import ErrorContext, ErrorSeverity

logger = logging.getLogger(__name__)


class GraphAnalyzer:
    """Builds and analyzes dependency graphs for error contexts.

    Args:
        decay: Attenuation applied per traversal level beyond the first
        epsilon: Minimum accumulated impact for a node to count as affected
        default_error_probability: Prior error probability of graph components
        high_risk_threshold: Risk score from which a node is high risk
    """

    def __init__(
        self,
        decay: float = 0.5,
        epsilon: float = 0.01,
        default_error_probability: float = 0.1,
        high_risk_threshold: float = 0.7,
    ) -> None:
        self.decay = decay
        self.epsilon = epsilon
        self.default_error_probability = default_error_probability
        self.high_risk_threshold = high_risk_threshold

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @staticmethod
    def error_node_id(context: ErrorContext) -> str:
        """Id of the node representing the error source of a context."""
        if context.component_id:
            return context.component_id
        if context.service_name:
            if context.operation_name:
                return f"{context.service_name}.{context.operation_name}"
            return context.service_name
        return context.error_id

    def build_graph(self, context: ErrorContext) -> DependencyGraph:
        """Build the dependency graph of an error context.

        Every ``component_graph`` key becomes a component node with one
        dependency edge per listed dependency. The error source is marked
        with ``node_type=error`` and probability 1.0. A context without a
        component id yields a single-node graph holding only the error source.

        Raises:
            ValueError: If context is None
        """
        if context is None:
            raise ValueError("context must not be None")

        graph = DependencyGraph()
        error_id = self.error_node_id(context)

        if not context.component_id:
            logger.warning(
                "Context %s has no component id, building single-node graph",
                context.correlation_id,
            )
            graph.add_node(self._error_node(error_id, context))
            return graph

        seen_edges: set[tuple[str, str]] = set()
        for component_id, dependencies in context.component_graph.items():
            component = self._ensure_node(graph, component_id, GraphNodeType.COMPONENT)
            if component.node_type == GraphNodeType.DEPENDENCY:
                component.node_type = GraphNodeType.COMPONENT
            for dependency_id in dependencies:
                self._ensure_node(graph, dependency_id, GraphNodeType.DEPENDENCY)
                if (component_id, dependency_id) in seen_edges:
                    continue
                seen_edges.add((component_id, dependency_id))
                graph.add_edge(
                    GraphEdge(
                        source_id=component_id,
                        target_id=dependency_id,
                        kind=EdgeKind.DEPENDENCY,
                        weight=1.0,
                    )
                )

        if graph.has_node(error_id):
            node = graph.get_node(error_id)
            error_node = self._error_node(error_id, context)
            node.node_type = error_node.node_type
            node.error_probability = error_node.error_probability
            node.health_score = error_node.health_score
            node.is_critical = error_node.is_critical
            node.metadata.update(error_node.metadata)
        else:
            graph.add_node(self._error_node(error_id, context))

        logger.debug(
            "Built graph for %s: %d nodes, %d edges",
            context.correlation_id,
            len(graph),
            len(graph.edges),
        )
        return graph

    def _ensure_node(
        self, graph: DependencyGraph, node_id: str, node_type: GraphNodeType
    ) -> GraphNode:
        if graph.has_node(node_id):
            return graph.get_node(node_id)
        return graph.add_node(
            GraphNode(
                id=node_id,
                name=node_id,
                node_type=node_type,
                error_probability=self.default_error_probability,
            )
        )

    @staticmethod
    def _error_node(node_id: str, context: ErrorContext) -> GraphNode:
        return GraphNode(
            id=node_id,
            name=node_id,
            node_type=GraphNodeType.ERROR,
            error_probability=1.0,
            health_score=0.0,
            is_critical=context.severity.rank >= ErrorSeverity.HIGH.rank,
            metadata={
                "is_error_source": True,
                "error_type": context.error_type,
                "message": context.message,
                "service_name": context.service_name,
                "operation_name": context.operation_name,
            },
        )

    # -------------------------------------------------------------------------
    # Impact
    # -------------------------------------------------------------------------

    def analyze_impact(
        self,
        graph: DependencyGraph,
        start_id: str,
        *,
        decay: float | None = None,
        epsilon: float | None = None,
    ) -> ImpactAnalysisResult:
        """Propagate the impact of an error outward from a start node.

        Each node is expanded once, at its shallowest depth. Signals below
        epsilon are not propagated further.

        Raises:
            NodeNotFoundError: If the start node does not exist
        """
        decay = self.decay if decay is None else decay
        epsilon = self.epsilon if epsilon is None else epsilon

        start = graph.get_node(start_id)
        scores: dict[str, float] = {}
        signal: dict[str, float] = {start_id: start.error_probability}
        depth: dict[str, int] = {start_id: 0}
        queue: deque[str] = deque([start_id])

        while queue:
            current = queue.popleft()
            attenuation = decay if depth[current] > 0 else 1.0
            for edge in graph.get_edges(current, Direction.OUTGOING):
                neighbor = edge.target_id
                if neighbor == start_id:
                    continue
                contribution = signal[current] * edge.weight * attenuation
                scores[neighbor] = min(1.0, scores.get(neighbor, 0.0) + contribution)
                if neighbor not in depth and contribution > epsilon:
                    depth[neighbor] = depth[current] + 1
                    signal[neighbor] = contribution
                    queue.append(neighbor)

        affected = sorted(
            (node_id for node_id, score in scores.items() if score > epsilon),
            key=lambda node_id: -scores[node_id],
        )
        max_score = max((scores[n] for n in affected), default=0.0)
        total_score = sum(scores[n] for n in affected)

        return ImpactAnalysisResult(
            start_node_id=start_id,
            impact_scores=scores,
            affected_node_ids=affected,
            blast_radius=len(affected),
            max_impact_score=max_score,
            total_impact_score=total_score,
            severity=self._impact_severity(len(affected), max_score),
            scope=self._impact_scope(len(affected), len(graph)),
        )

    @staticmethod
    def _impact_severity(blast_radius: int, max_score: float) -> ImpactSeverity:
        if blast_radius == 0:
            return ImpactSeverity.MINIMAL
        if max_score >= 0.8 and blast_radius >= 5:
            return ImpactSeverity.CRITICAL
        if max_score >= 0.6 or blast_radius >= 5:
            return ImpactSeverity.HIGH
        if max_score >= 0.3 or blast_radius >= 3:
            return ImpactSeverity.MEDIUM
        return ImpactSeverity.LOW

    @staticmethod
    def _impact_scope(blast_radius: int, node_count: int) -> ImpactScope:
        if blast_radius == 0:
            return ImpactScope.LOCAL
        reachable = max(node_count - 1, 1)
        ratio = blast_radius / reachable
        if ratio >= 0.75 and blast_radius >= 3:
            return ImpactScope.GLOBAL
        if ratio >= 0.5 and blast_radius >= 2:
            return ImpactScope.SYSTEM
        if blast_radius >= 2:
            return ImpactScope.COMPONENT
        return ImpactScope.OPERATION

    # -------------------------------------------------------------------------
    # Root cause
    # -------------------------------------------------------------------------

    def analyze_root_cause(
        self, graph: DependencyGraph, error_id: str
    ) -> RootCauseAnalysisResult:
        """Rank the ancestors of an error node as root-cause candidates.

        Ancestors are found by walking incoming edges backwards. Each is
        scored ``edge.weight * ancestor.error_probability``, attenuated by
        ``decay`` per level beyond the first; the best score per ancestor wins.

        Raises:
            NodeNotFoundError: If the error node does not exist
        """
        graph.get_node(error_id)

        best: dict[str, RootCauseCandidate] = {}
        # ancestor -> next node on its shortest path towards the error node
        toward_error: dict[str, str] = {}
        depth: dict[str, int] = {error_id: 0}
        queue: deque[str] = deque([error_id])

        while queue:
            current = queue.popleft()
            for edge in graph.get_edges(current, Direction.INCOMING):
                ancestor_id = edge.source_id
                if ancestor_id == error_id:
                    continue
                ancestor_depth = depth.get(ancestor_id, depth[current] + 1)
                ancestor = graph.get_node(ancestor_id)
                score = (
                    edge.weight
                    * ancestor.error_probability
                    * self.decay ** (depth[current])
                )
                known = best.get(ancestor_id)
                if known is None or score > known.score:
                    best[ancestor_id] = RootCauseCandidate(
                        node_id=ancestor_id, score=score, depth=ancestor_depth
                    )
                if ancestor_id not in depth:
                    depth[ancestor_id] = ancestor_depth
                    toward_error[ancestor_id] = current
                    queue.append(ancestor_id)

        ranked = sorted(
            (c for c in best.values() if c.score > 0.0),
            key=lambda c: (-c.score, c.depth),
        )
        if not ranked:
            return RootCauseAnalysisResult(
                error_node_id=error_id, explanation_path=[error_id]
            )

        primary = ranked[0]
        path = [primary.node_id]
        while path[-1] != error_id:
            path.append(toward_error[path[-1]])

        return RootCauseAnalysisResult(
            error_node_id=error_id,
            primary_root_cause_id=primary.node_id,
            root_cause_probability=min(1.0, primary.score),
            alternatives=ranked[1:],
            explanation_path=path,
        )

    # -------------------------------------------------------------------------
    # Structure
    # -------------------------------------------------------------------------

    def find_path(self, graph: DependencyGraph, source_id: str, target_id: str) -> list[str]:
        """Shortest path by hop count; [] when unreachable."""
        return graph.get_path(source_id, target_id)

    def find_cycles(self, graph: DependencyGraph) -> list[list[str]]:
        """Find the elementary cycles reachable by depth-first search.

        Each cycle is reported once, rotated to start at its smallest id.
        The search keeps an explicit stack, so chain length is not bounded
        by the interpreter's recursion limit.
        """
        cycles: list[list[str]] = []
        seen: set[tuple[str, ...]] = set()
        visited: set[str] = set()

        for root in graph.nodes:
            if root.id in visited:
                continue
            visited.add(root.id)
            path = [root.id]
            on_path = {root.id}
            pending = [iter(graph.get_neighbors(root.id, Direction.OUTGOING))]

            while pending:
                neighbor = next(pending[-1], None)
                if neighbor is None:
                    pending.pop()
                    on_path.discard(path.pop())
                elif neighbor.id in on_path:
                    cycle = path[path.index(neighbor.id):]
                    pivot = cycle.index(min(cycle))
                    normalized = tuple(cycle[pivot:] + cycle[:pivot])
                    if normalized not in seen:
                        seen.add(normalized)
                        cycles.append(list(normalized))
                elif neighbor.id not in visited:
                    visited.add(neighbor.id)
                    path.append(neighbor.id)
                    on_path.add(neighbor.id)
                    pending.append(iter(graph.get_neighbors(neighbor.id, Direction.OUTGOING)))
        return cycles

    def calculate_centrality(self, graph: DependencyGraph) -> dict[str, float]:
        """Normalized degree centrality of every node."""
        node_count = len(graph)
        if node_count <= 1:
            return {node.id: 0.0 for node in graph.nodes}
        return {node.id: node.degree / (node_count - 1) for node in graph.nodes}

    def identify_high_risk_nodes(
        self, graph: DependencyGraph, threshold: float | None = None
    ) -> list[str]:
        """Nodes whose risk reaches the threshold, riskiest first.

        Risk is the larger of the error probability and the health deficit.
        """
        threshold = self.high_risk_threshold if threshold is None else threshold
        risks = {
            node.id: max(node.error_probability, 1.0 - node.health_score)
            for node in graph.nodes
        }
        return sorted(
            (node_id for node_id, risk in risks.items() if risk >= threshold),
            key=lambda node_id: -risks[node_id],
        )

    def calculate_propagation_paths(
        self, graph: DependencyGraph, error_id: str, max_depth: int = 10
    ) -> list[list[str]]:
        """All simple outgoing paths from the error node to a sink.

        A path ends where no unvisited outgoing neighbour remains or at
        ``max_depth`` hops.
        """
        graph.get_node(error_id)
        paths: list[list[str]] = []
        stack = [[error_id]]

        while stack:
            path = stack.pop()
            next_ids = [
                n.id
                for n in graph.get_neighbors(path[-1], Direction.OUTGOING)
                if n.id not in path
            ]
            if not next_ids or len(path) > max_depth:
                if len(path) > 1:
                    paths.append(path)
                continue
            # reversed so the first neighbour is explored first
            stack.extend([*path, next_id] for next_id in reversed(next_ids))
        return paths

    def calculate_graph_metrics(
        self, graph: DependencyGraph, cycles: list[list[str]] | None = None
    ) -> GraphMetrics:
        """Structural summary of the graph.

        Pass ``cycles`` when they are already known to skip the cycle search.
        """
        nodes = graph.nodes
        node_count = len(nodes)
        edge_count = len(graph.edges)
        if node_count == 0:
            return GraphMetrics()

        return GraphMetrics(
            node_count=node_count,
            edge_count=edge_count,
            average_degree=2 * edge_count / node_count,
            density=(
                edge_count / (node_count * (node_count - 1)) if node_count > 1 else 0.0
            ),
            mean_error_probability=sum(n.error_probability for n in nodes) / node_count,
            component_health=sum(n.health_score for n in nodes) / node_count,
            critical_node_count=sum(1 for n in nodes if n.is_critical),
            has_cycles=bool(self.find_cycles(graph) if cycles is None else cycles),
        )

    def analyze_context(self, context: ErrorContext) -> GraphAnalysisResult:
        """Build the graph of a context and run every analysis on it."""
        graph = self.build_graph(context)
        error_id = self.error_node_id(context)
        cycles = self.find_cycles(graph)

        result = GraphAnalysisResult(
            error_node_id=error_id,
            impact=self.analyze_impact(graph, error_id),
            root_cause=self.analyze_root_cause(graph, error_id),
            metrics=self.calculate_graph_metrics(graph, cycles),
            centrality=self.calculate_centrality(graph),
            high_risk_node_ids=self.identify_high_risk_nodes(graph),
            cycles=cycles,
        )
        logger.info(
            "Graph analysis for %s: blast radius %d, severity %s",
            context.correlation_id,
            result.impact.blast_radius,
            result.impact.severity.value,
        )
        return result
