"""
Error analyzer.

Produces an ErrorAnalysisResult for an error occurrence:

1. Known pattern: the analysis is derived from the cached pattern and the
   occurrence is counted
2. Otherwise: prompt -> LLM -> parse; a confident analysis becomes a new
   pattern
3. LLM or parse failure: a minimal fallback analysis (confidence 0)
"""

from __future__ import annotations

import logging

from remedy_engine.analysis.llm_parser import extract_action, parse_analysis_response
from remedy_engine.analysis.patterns import PatternRecognition
from remedy_engine.analysis.prompts import build_analysis_prompt
from remedy_engine.clients.llm import LLMClient
from remedy_engine.exceptions import AnalysisError, PatternRecognitionError
from remedy_engine.graph.analyzer import GraphAnalyzer
from remedy_engine.logging_config import bind_remediation_context
from remedy_engine.models.analysis import ErrorAnalysisResult, ParseStatus
from remedy_engine.models.context import ErrorContext
from remedy_engine.models.patterns import ErrorPattern
from remedy_engine.models.remediation import RemediationStep

logger = logging.getLogger(__name__)


class ErrorAnalyzer:
    """Analyzes error occurrences using known patterns and the LLM.

    Args:
        llm_client: Client used when no pattern matches
        patterns: Pattern cache and matcher
        graph_analyzer: Optional graph analyzer; its root cause and impact
            are attached to the analysis metadata
    """

    def __init__(
        self,
        llm_client: LLMClient,
        patterns: PatternRecognition,
        graph_analyzer: GraphAnalyzer | None = None,
    ) -> None:
        self.llm_client = llm_client
        self.patterns = patterns
        self.graph_analyzer = graph_analyzer

    async def analyze(self, context: ErrorContext) -> ErrorAnalysisResult:
        """Analyze an error occurrence.

        Raises:
            ValueError: If context is None
        """
        if context is None:
            raise ValueError("context must not be None")
        bind_remediation_context(
            correlation_id=context.correlation_id, service_name=context.service_name
        )

        pattern = await self._find_pattern(context)
        if pattern is not None:
            result = self._from_pattern(context, pattern)
            try:
                await self.patterns.record_occurrence(pattern, context)
            except PatternRecognitionError as e:
                logger.warning("Could not record pattern occurrence: %s", str(e))
        else:
            result = await self._from_llm(context)
            if result.parse_status != ParseStatus.FALLBACK:
                try:
                    created = await self.patterns.maybe_create_pattern(context, result)
                except PatternRecognitionError as e:
                    logger.warning("Could not publish new pattern: %s", str(e))
                else:
                    if created is not None:
                        result.matched_pattern_id = created.pattern_id

        if self.graph_analyzer is not None:
            graph_result = self.graph_analyzer.analyze_context(context)
            result.metadata["root_cause"] = graph_result.root_cause.primary_root_cause_id
            result.metadata["impact_severity"] = graph_result.impact.severity.value
            result.metadata["blast_radius"] = graph_result.impact.blast_radius

        logger.info(
            "Analyzed %s in %s (confidence %.2f, status %s)",
            context.error_type,
            context.service_name,
            result.confidence,
            result.parse_status.value,
        )
        return result

    async def _find_pattern(self, context: ErrorContext) -> ErrorPattern | None:
        try:
            return await self.patterns.find_matching_pattern(context)
        except PatternRecognitionError as e:
            logger.warning("Pattern lookup failed, analyzing without patterns: %s", str(e))
            return None

    def _from_pattern(self, context: ErrorContext, pattern: ErrorPattern) -> ErrorAnalysisResult:
        suggested = []
        for strategy in pattern.remediation_strategies:
            action = extract_action(strategy)
            if action is not None:
                suggested.append(RemediationStep(description=strategy, action=action))
        return ErrorAnalysisResult(
            correlation_id=context.correlation_id,
            error_type=context.error_type,
            service_name=context.service_name,
            explanation=pattern.notes,
            remediation_steps=list(pattern.remediation_strategies),
            suggested_actions=suggested,
            confidence=pattern.confidence,
            severity=context.severity,
            matched_pattern_id=pattern.pattern_id,
        )

    async def _from_llm(self, context: ErrorContext) -> ErrorAnalysisResult:
        prompt = build_analysis_prompt(context)
        try:
            answer = await self.llm_client.complete(prompt)
            parsed = parse_analysis_response(answer)
        except AnalysisError as e:
            logger.error("Analysis failed for %s: %s", context.correlation_id, str(e))
            return self.fallback_analysis(context, str(e))

        return parsed.model_copy(
            update={
                "correlation_id": context.correlation_id,
                "error_type": context.error_type,
                "service_name": context.service_name,
                "severity": context.severity,
            }
        )

    @staticmethod
    def fallback_analysis(context: ErrorContext, reason: str = "") -> ErrorAnalysisResult:
        """Minimal analysis used when the LLM call fails."""
        return ErrorAnalysisResult(
            correlation_id=context.correlation_id,
            error_type=context.error_type,
            service_name=context.service_name,
            explanation=f"Automated analysis unavailable for {context.error_type}",
            confidence=0.0,
            severity=context.severity,
            parse_status=ParseStatus.FALLBACK,
            metadata={"fallback_reason": reason} if reason else {},
        )
