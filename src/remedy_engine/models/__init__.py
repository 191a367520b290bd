"""Domain models shared by the graph, analysis and remediation subsystems."""

from .analysis import ErrorAnalysisResult, ParseStatus
from .context import ErrorContext, ErrorSeverity
from .patterns import ErrorPattern
from .remediation import (
    ActionExecution,
    MetricValue,
    RemediationExecution,
    RemediationMetrics,
    RemediationPlan,
    RemediationStatistics,
    RemediationStatus,
    RemediationStep,
    ValidationResult,
)
from .scores import clamp_unit

__all__ = [
    "ActionExecution",
    "ErrorAnalysisResult",
    "ErrorContext",
    "ErrorPattern",
    "ErrorSeverity",
    "MetricValue",
    "ParseStatus",
    "RemediationExecution",
    "RemediationMetrics",
    "RemediationPlan",
    "RemediationStatistics",
    "RemediationStatus",
    "RemediationStep",
    "ValidationResult",
    "clamp_unit",
]
