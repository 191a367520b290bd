"""Error pattern model.

A pattern is a fingerprint of a previously seen error together with the
remediation strategies known to fix it. Patterns are scoped per service.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from remedy_engine.models.scores import clamp_unit


class ErrorPattern(BaseModel):
    """A known error fingerprint.

    Attributes:
        pattern_id: Unique identifier
        service_name: Owning service
        error_type: Exception type name that must match exactly
        operation_name: Operation name that must match exactly
        context: Key/value snapshot compared against additional context
        remediation_strategies: Names of strategies known to fix the error
        confidence: Confidence in the pattern (0.0 to 1.0)
        occurrence_count: Number of times the pattern has been seen
        first_occurrence: When the pattern was first seen
        last_occurrence: When the pattern was last seen
        is_active: Inactive patterns never match
        notes: Free-text notes (usually the originating explanation)
        metadata: Free-form extra data
    """

    pattern_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    service_name: str = ""
    error_type: str
    operation_name: str = ""
    context: dict[str, Any] = Field(default_factory=dict)
    remediation_strategies: list[str] = Field(default_factory=list)
    confidence: float = 0.0
    occurrence_count: int = Field(default=1, ge=0)
    first_occurrence: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_occurrence: datetime = Field(default_factory=lambda: datetime.now(UTC))
    is_active: bool = True
    notes: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: Any) -> float:
        return clamp_unit(v)
