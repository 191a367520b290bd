"""Error analysis result models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from remedy_engine.models.context import ErrorSeverity
from remedy_engine.models.remediation import RemediationStep
from remedy_engine.models.scores import clamp_unit


class ParseStatus(str, Enum):
    """How much of an analysis could be recovered.

    - PARSED: Every section was found
    - PARTIAL: Some sections were missing or malformed
    - UNPARSED: No section could be recovered
    - FALLBACK: The analysis call failed; a minimal result was substituted
    """

    PARSED = "parsed"
    PARTIAL = "partial"
    UNPARSED = "unparsed"
    FALLBACK = "fallback"


class ErrorAnalysisResult(BaseModel):
    """Structured analysis of one error occurrence.

    Attributes:
        correlation_id: Correlation id of the analyzed error
        error_type: Exception type name
        service_name: Service that raised the error
        explanation: What went wrong
        root_causes: Probable root causes
        remediation_steps: Free-text remediation steps
        prevention_strategies: Free-text prevention strategies
        suggested_actions: Structured steps a plan can be built from
        confidence: Confidence of the analysis (0.0 to 1.0)
        severity: Severity of the analyzed error
        matched_pattern_id: Pattern the analysis was derived from, if any
        parse_status: How much of the LLM response was recovered
        unparsed_sections: Sections that were missing or malformed
        timestamp: When the analysis was produced
        metadata: Free-form extra data
    """

    correlation_id: str = ""
    error_type: str = ""
    service_name: str = ""
    explanation: str = ""
    root_causes: list[str] = Field(default_factory=list)
    remediation_steps: list[str] = Field(default_factory=list)
    prevention_strategies: list[str] = Field(default_factory=list)
    suggested_actions: list[RemediationStep] = Field(default_factory=list)
    confidence: float = 0.0
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    matched_pattern_id: str | None = None
    parse_status: ParseStatus = ParseStatus.PARSED
    unparsed_sections: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: Any) -> float:
        return clamp_unit(v)

    @field_validator("severity", mode="before")
    @classmethod
    def coerce_severity(cls, v: Any) -> ErrorSeverity:
        return ErrorSeverity.coerce(v)
