"""
Remedy Engine Exceptions.

Error taxonomy shared by the graph, analysis and remediation subsystems.

Propagation rules:
- ValidationError: fatal to the plan being validated
- ExecutionError: a single strategy raised; recorded as a failed action
- TrackingError: persistence failed; propagated with the remediation id
- AnalysisError: LLM call or parsing failed; callers fall back to a minimal analysis
- MetricsCollectionError: logged, never blocks completion of an execution
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from remedy_engine.models.remediation import RemediationExecution


class RemedyEngineError(Exception):
    """Base exception for all engine errors."""

    pass


class ConfigurationError(RemedyEngineError):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


# -----------------------------------------------------------------------------
# Graph
# -----------------------------------------------------------------------------


class GraphError(RemedyEngineError):
    """Base exception for dependency graph errors."""

    pass


class NodeNotFoundError(GraphError):
    """Raised when a query references a node id absent from the graph."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' not found in graph")


class InvalidReferenceError(GraphError):
    """Raised when an edge references an endpoint missing from the graph."""

    def __init__(self, source_id: str, target_id: str, missing: str) -> None:
        self.source_id = source_id
        self.target_id = target_id
        self.missing = missing
        super().__init__(
            f"Edge {source_id} -> {target_id} references unknown node '{missing}'"
        )


class DuplicateNodeError(GraphError):
    """Raised when a node id is added twice to the same graph."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' already exists in graph")


# -----------------------------------------------------------------------------
# Analysis
# -----------------------------------------------------------------------------


class AnalysisError(RemedyEngineError):
    """Raised when the LLM analysis call or its parsing fails."""

    pass


class PatternRecognitionError(RemedyEngineError):
    """Raised when patterns cannot be loaded or matched."""

    pass


class PatternServiceError(RemedyEngineError):
    """Raised when the pattern distribution service returns a failure."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


# -----------------------------------------------------------------------------
# Remediation
# -----------------------------------------------------------------------------


class ValidationError(RemedyEngineError):
    """Raised when a plan, step or strategy does not conform to policy."""

    pass


class ExecutionError(RemedyEngineError):
    """Raised (and recorded) when a single remediation strategy fails."""

    def __init__(self, strategy_name: str, message: str) -> None:
        self.strategy_name = strategy_name
        super().__init__(f"Strategy '{strategy_name}' failed: {message}")


class TrackingError(RemedyEngineError):
    """Raised when an execution record cannot be persisted or read.

    Attributes:
        remediation_id: Id of the execution the failure relates to
        execution: The in-memory execution, when the failure happened after
            the remediation itself finished
    """

    def __init__(
        self,
        message: str,
        remediation_id: str | None = None,
        execution: RemediationExecution | None = None,
    ) -> None:
        self.remediation_id = remediation_id
        self.execution = execution
        super().__init__(message)


class MetricsCollectionError(RemedyEngineError):
    """Raised when metrics collection fails or times out."""

    pass
