"""
Tests for ErrorAnalyzer.

These tests verify:
1. Known patterns short-circuit the LLM and count the occurrence
2. Unknown errors are analyzed by the LLM and become patterns when confident
3. LLM failures degrade to a fallback analysis
4. Graph analysis is attached when a graph analyzer is configured
"""

from __future__ import annotations

import httpx
import pytest

from remedy_engine.analysis.error_analyzer import ErrorAnalyzer
from remedy_engine.analysis.patterns import PatternRecognition
from remedy_engine.clients.llm import LLMClient
from remedy_engine.config.settings import LLMConfig
from remedy_engine.exceptions import AnalysisError
from remedy_engine.graph.analyzer import GraphAnalyzer
from remedy_engine.logging_config import get_correlation_id
from remedy_engine.models.analysis import ParseStatus
from remedy_engine.models.context import ErrorSeverity
from remedy_engine.models.patterns import ErrorPattern

CONFIDENT_ANSWER = """Explanation: Gateway overloaded
Root Causes:
- Traffic spike
Remediation Steps:
- restart:service=checkout
Prevention Strategies:
- Autoscale the gateway
Confidence: 0.9
"""


class FakeLLM:
    """LLM client returning a canned answer."""

    def __init__(self, answer: str = CONFIDENT_ANSWER, error: Exception | None = None) -> None:
        self.answer = answer
        self.error = error
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer


class SeededPatterns:
    """Pattern client serving a fixed pattern list."""

    def __init__(self, patterns: list[ErrorPattern]) -> None:
        self.patterns = patterns
        self.updated: list[ErrorPattern] = []
        self.published: list[ErrorPattern] = []

    async def get_patterns(self, service_name: str) -> list[ErrorPattern]:
        return list(self.patterns)

    async def update_pattern(self, pattern: ErrorPattern) -> None:
        self.updated.append(pattern)

    async def publish_pattern(self, pattern: ErrorPattern) -> None:
        self.published.append(pattern)


@pytest.fixture
def known_pattern() -> ErrorPattern:
    return ErrorPattern(
        pattern_id="known",
        service_name="checkout",
        error_type="TimeoutException",
        operation_name="Checkout",
        context={"region": "eu-west-1"},
        remediation_strategies=["restart:service=checkout", "Page the on-call engineer"],
        confidence=0.8,
        notes="Gateway saturation",
    )


class TestPatternPath:
    """Tests for analyses derived from known patterns."""

    @pytest.mark.asyncio
    async def test_known_pattern_skips_llm(self, make_context, known_pattern) -> None:
        llm = FakeLLM()
        client = SeededPatterns([known_pattern])
        analyzer = ErrorAnalyzer(llm, PatternRecognition(client))

        result = await analyzer.analyze(make_context(severity="high"))

        assert llm.prompts == []
        assert result.matched_pattern_id == "known"
        assert result.explanation == "Gateway saturation"
        assert result.confidence == pytest.approx(0.8)
        assert result.severity == ErrorSeverity.HIGH
        assert [s.action for s in result.suggested_actions] == ["restart:service=checkout"]
        assert known_pattern.occurrence_count == 2
        assert client.updated == [known_pattern]

    @pytest.mark.asyncio
    async def test_correlation_id_propagated(self, make_context, known_pattern) -> None:
        analyzer = ErrorAnalyzer(FakeLLM(), PatternRecognition(SeededPatterns([known_pattern])))

        await analyzer.analyze(make_context(correlation_id="corr-42"))

        assert get_correlation_id() == "corr-42"


class TestLLMPath:
    """Tests for LLM-backed analyses."""

    @pytest.mark.asyncio
    async def test_confident_analysis_becomes_pattern(self, make_context) -> None:
        llm = FakeLLM()
        client = SeededPatterns([])
        analyzer = ErrorAnalyzer(llm, PatternRecognition(client))

        result = await analyzer.analyze(make_context())

        assert len(llm.prompts) == 1
        assert "Exception Type: TimeoutException" in llm.prompts[0]
        assert result.parse_status == ParseStatus.PARSED
        assert result.correlation_id == "corr-1"
        assert result.service_name == "checkout"
        assert len(client.published) == 1
        assert result.matched_pattern_id == client.published[0].pattern_id
        assert client.published[0].remediation_strategies == ["restart:service=checkout"]

    @pytest.mark.asyncio
    async def test_unsure_analysis_creates_no_pattern(self, make_context) -> None:
        client = SeededPatterns([])
        analyzer = ErrorAnalyzer(
            FakeLLM("Explanation: unclear\nConfidence: 30%"), PatternRecognition(client)
        )

        result = await analyzer.analyze(make_context())

        assert result.parse_status == ParseStatus.PARTIAL
        assert result.matched_pattern_id is None
        assert client.published == []

    @pytest.mark.asyncio
    async def test_llm_failure_falls_back(self, make_context) -> None:
        client = SeededPatterns([])
        analyzer = ErrorAnalyzer(
            FakeLLM(error=AnalysisError("LLM request failed: 500")), PatternRecognition(client)
        )

        result = await analyzer.analyze(make_context())

        assert result.parse_status == ParseStatus.FALLBACK
        assert result.confidence == 0.0
        assert result.explanation == "Automated analysis unavailable for TimeoutException"
        assert result.metadata["fallback_reason"] == "LLM request failed: 500"
        assert client.published == []

    @pytest.mark.asyncio
    async def test_model_not_ready_falls_back(self, make_context) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/models"):
                return httpx.Response(200, json={"data": [{"id": "m", "status": "loading"}]})
            return httpx.Response(200, json={"choices": [{"message": {"content": "x"}}]})

        llm = LLMClient(
            LLMConfig(endpoint="http://llm.test/v1", model="m"),
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        analyzer = ErrorAnalyzer(llm, PatternRecognition(SeededPatterns([])))

        result = await analyzer.analyze(make_context())

        assert result.parse_status == ParseStatus.FALLBACK
        assert result.metadata["fallback_reason"] == "LLM model 'm' is not ready"

    @pytest.mark.asyncio
    async def test_none_context_rejected(self) -> None:
        analyzer = ErrorAnalyzer(FakeLLM(), PatternRecognition())

        with pytest.raises(ValueError):
            await analyzer.analyze(None)  # type: ignore[arg-type]


class TestGraphEnrichment:
    """Tests for attaching graph analysis."""

    @pytest.mark.asyncio
    async def test_graph_results_in_metadata(self, make_context, known_pattern) -> None:
        analyzer = ErrorAnalyzer(
            FakeLLM(), PatternRecognition(SeededPatterns([known_pattern])), GraphAnalyzer()
        )
        context = make_context(component_id="db", component_graph={"api": ["db"]})

        result = await analyzer.analyze(context)

        assert result.metadata["root_cause"] == "api"
        assert result.metadata["blast_radius"] == 0
        assert result.metadata["impact_severity"] == "minimal"
