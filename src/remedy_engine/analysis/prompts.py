"""Prompt construction for error analysis."""

from __future__ import annotations

from remedy_engine.models.context import ErrorContext
from remedy_engine.models.patterns import ErrorPattern

ANALYSIS_INSTRUCTIONS = """Analyze the runtime error above and answer with exactly these sections:

Explanation: what went wrong, in one paragraph
Root Causes: one bullet per probable cause
Remediation Steps: one bullet per step; use `type:key=value;key=value` for automatable steps
Prevention Strategies: one bullet per strategy
Confidence: a number between 0 and 1"""


def build_analysis_prompt(context: ErrorContext, pattern: ErrorPattern | None = None) -> str:
    """Build the analysis prompt for an error occurrence.

    Args:
        context: Error occurrence
        pattern: Similar known pattern to include as a hint

    Returns:
        Prompt text
    """
    if context is None:
        raise ValueError("context must not be None")

    lines = [
        f"Exception Type: {context.error_type}",
        f"Message: {context.message}",
        f"Service: {context.service_name}",
        f"Operation: {context.operation_name}",
        f"Timestamp: {context.timestamp.isoformat()}",
        f"Severity: {context.severity.value}",
    ]
    if context.stack_trace:
        lines.append(f"Stack Trace:\n{context.stack_trace}")
    if context.additional_context:
        lines.append("Context:")
        lines.extend(f"  {key}: {value}" for key, value in context.additional_context.items())
    if context.component_graph:
        lines.append("Dependencies:")
        lines.extend(
            f"  {component} -> {', '.join(deps) or '(none)'}"
            for component, deps in context.component_graph.items()
        )
    if pattern is not None:
        lines.append(
            f"Similar known pattern ({pattern.occurrence_count} occurrences, "
            f"confidence {pattern.confidence:.2f}): {pattern.notes or pattern.error_type}"
        )
        if pattern.remediation_strategies:
            lines.append("Known remediations: " + "; ".join(pattern.remediation_strategies))

    return "\n".join(lines) + "\n\n" + ANALYSIS_INSTRUCTIONS
