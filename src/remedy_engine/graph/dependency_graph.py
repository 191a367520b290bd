"""
Dependency graph.

An in-memory directed graph of components and their relationships, scoped
to a single analysis request.

The graph is an arena: nodes are kept in a dict keyed by unique id and
edges in a list. Each node lists the indices of its incoming and outgoing
edges, so no node ever references another node object. Removing a node
drops every incident edge and re-indexes the adjacency lists.

Example:
    graph = DependencyGraph()
    graph.add_node(GraphNode(id="api"))
    graph.add_node(GraphNode(id="db"))
    graph.add_edge(GraphEdge(source_id="api", target_id="db"))
    graph.get_path("api", "db")  # ["api", "db"]
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterator
from typing import Any

from remedy_engine.exceptions import DuplicateNodeError, InvalidReferenceError, NodeNotFoundError
from remedy_engine.graph.models import Direction, GraphEdge, GraphNode

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Directed graph of GraphNode/GraphEdge with index-based adjacency."""

    def __init__(self) -> None:
        self._nodes: dict[str, GraphNode] = {}
        self._edges: list[GraphEdge] = []

    # -------------------------------------------------------------------------
    # Container protocol
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[GraphNode]:
        return iter(self._nodes.values())

    @property
    def nodes(self) -> list[GraphNode]:
        """Nodes in insertion order."""
        return list(self._nodes.values())

    @property
    def edges(self) -> list[GraphEdge]:
        """Edges in insertion order."""
        return list(self._edges)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def add_node(self, node: GraphNode) -> GraphNode:
        """Add a node.

        Raises:
            ValueError: If node is None
            DuplicateNodeError: If a node with the same id exists
        """
        if node is None:
            raise ValueError("node must not be None")
        if node.id in self._nodes:
            raise DuplicateNodeError(node.id)
        node.incoming = []
        node.outgoing = []
        self._nodes[node.id] = node
        return node

    def add_edge(self, edge: GraphEdge) -> GraphEdge:
        """Add a directed edge.

        Raises:
            ValueError: If edge is None
            InvalidReferenceError: If either endpoint is not in the graph
        """
        if edge is None:
            raise ValueError("edge must not be None")
        if edge.source_id not in self._nodes:
            raise InvalidReferenceError(edge.source_id, edge.target_id, edge.source_id)
        if edge.target_id not in self._nodes:
            raise InvalidReferenceError(edge.source_id, edge.target_id, edge.target_id)

        index = len(self._edges)
        self._edges.append(edge)
        self._nodes[edge.source_id].outgoing.append(index)
        self._nodes[edge.target_id].incoming.append(index)
        return edge

    def remove_node(self, node_id: str) -> GraphNode:
        """Remove a node and every edge touching it.

        Returns:
            The removed node

        Raises:
            NodeNotFoundError: If the node does not exist
        """
        node = self.get_node(node_id)
        del self._nodes[node_id]

        kept = [
            edge
            for edge in self._edges
            if edge.source_id != node_id and edge.target_id != node_id
        ]
        removed = len(self._edges) - len(kept)
        self._edges = kept
        self._reindex()

        logger.debug("Removed node %s and %d incident edges", node_id, removed)
        node.incoming = []
        node.outgoing = []
        return node

    def _reindex(self) -> None:
        for node in self._nodes.values():
            node.incoming = []
            node.outgoing = []
        for index, edge in enumerate(self._edges):
            self._nodes[edge.source_id].outgoing.append(index)
            self._nodes[edge.target_id].incoming.append(index)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def get_node(self, node_id: str) -> GraphNode:
        """Get a node by id.

        Raises:
            NodeNotFoundError: If the node does not exist
        """
        try:
            return self._nodes[node_id]
        except KeyError:
            raise NodeNotFoundError(node_id) from None

    def get_edges(
        self, node_id: str, direction: Direction = Direction.OUTGOING
    ) -> list[GraphEdge]:
        """Get the edges incident to a node in the given direction."""
        node = self.get_node(node_id)
        direction = Direction(direction)
        indices: list[int] = []
        if direction in (Direction.OUTGOING, Direction.BOTH):
            indices.extend(node.outgoing)
        if direction in (Direction.INCOMING, Direction.BOTH):
            indices.extend(node.incoming)
        return [self._edges[i] for i in indices]

    def get_neighbors(
        self, node_id: str, direction: Direction = Direction.OUTGOING
    ) -> list[GraphNode]:
        """Get the neighbouring nodes in the given direction.

        Each neighbour is returned once, in edge order.
        """
        node = self.get_node(node_id)
        direction = Direction(direction)
        neighbor_ids: list[str] = []
        if direction in (Direction.OUTGOING, Direction.BOTH):
            neighbor_ids.extend(self._edges[i].target_id for i in node.outgoing)
        if direction in (Direction.INCOMING, Direction.BOTH):
            neighbor_ids.extend(self._edges[i].source_id for i in node.incoming)
        return [self._nodes[nid] for nid in dict.fromkeys(neighbor_ids)]

    def get_path(self, source_id: str, target_id: str) -> list[str]:
        """Find the shortest path by hop count (breadth-first search).

        Returns:
            Node ids from source to target inclusive, or [] if unreachable

        Raises:
            NodeNotFoundError: If either node does not exist
        """
        self.get_node(source_id)
        self.get_node(target_id)

        visited: set[str] = set()
        queue: deque[tuple[str, list[str]]] = deque([(source_id, [source_id])])

        while queue:
            current, path = queue.popleft()
            if current == target_id:
                return path
            if current in visited:
                continue
            visited.add(current)

            for index in self._nodes[current].outgoing:
                neighbor = self._edges[index].target_id
                if neighbor not in visited:
                    queue.append((neighbor, [*path, neighbor]))

        return []

    def to_dict(self) -> dict[str, Any]:
        """Serialize the graph to plain data."""
        return {
            "nodes": [
                node.model_dump(mode="json", exclude={"incoming", "outgoing"})
                for node in self._nodes.values()
            ],
            "edges": [edge.model_dump(mode="json") for edge in self._edges],
        }
