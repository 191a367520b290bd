"""
Engine configuration.

Pydantic models for every tunable of the engine, loadable from a YAML file
(PyYAML) or from environment variables.

Example YAML:

    validator:
      validation_timeout_seconds: 30
      allowed_step_types:
        restart: [service]
    tracker:
      retention_period_seconds: 604800
      max_stored_executions: 500
    executor:
      policy: try_all
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from remedy_engine.exceptions import ConfigurationError
from remedy_engine.models.context import ErrorSeverity

logger = logging.getLogger(__name__)


class ExecutionPolicy(str, Enum):
    """How the executor iterates over applicable strategies."""

    STOP_ON_FIRST_SUCCESS = "stop_on_first_success"
    TRY_ALL = "try_all"


def _default_step_types() -> dict[str, list[str]]:
    return {
        "restart": ["service"],
        "clear": ["resource"],
        "update": ["component", "version"],
        "script": ["script", "timeout"],
    }


def _default_strategy_types() -> dict[str, list[str]]:
    return {
        "monitor": ["metric", "threshold"],
        "alert": ["channel", "severity"],
        "backup": ["target", "schedule"],
    }


def _default_metric_thresholds() -> dict[str, float]:
    return {
        "cpu.usage": 80.0,
        "memory.usage": 85.0,
        "disk.usage": 90.0,
        "network.latency": 100.0,
        "error.rate": 5.0,
    }


class ValidatorConfig(BaseModel):
    """Configuration for the remediation validator.

    Attributes:
        strict_validation: Reject unknown step/strategy types instead of warning
        validation_timeout_seconds: Upper bound for any single validation
        max_validation_retries: Retries for transient validation failures
        allowed_step_types: Step type -> required parameter names
        allowed_strategy_types: Strategy type -> required parameter names
    """

    strict_validation: bool = True
    validation_timeout_seconds: float = Field(default=120.0, gt=0)
    max_validation_retries: int = Field(default=3, ge=0, le=10)
    allowed_step_types: dict[str, list[str]] = Field(default_factory=_default_step_types)
    allowed_strategy_types: dict[str, list[str]] = Field(
        default_factory=_default_strategy_types
    )

    @field_validator("allowed_step_types", "allowed_strategy_types")
    @classmethod
    def normalize_types(cls, v: dict[str, list[str]]) -> dict[str, list[str]]:
        """Allow-list keys are matched case-insensitively."""
        return {key.strip().lower(): list(params) for key, params in v.items()}


class MetricsConfig(BaseModel):
    """Configuration for the metrics collector.

    Attributes:
        collection_interval_seconds: Period of background system sampling
        collection_timeout_seconds: Upper bound for one collection
        enable_detailed_metrics: Include per-process details in snapshots
        metric_thresholds: Upper limits used by post-execution validation
        history_window_seconds: Retention of per-remediation series
        trend_window: Number of most recent samples used for trends
    """

    collection_interval_seconds: float = Field(default=60.0, gt=0)
    collection_timeout_seconds: float = Field(default=300.0, gt=0)
    enable_detailed_metrics: bool = False
    metric_thresholds: dict[str, float] = Field(default_factory=_default_metric_thresholds)
    history_window_seconds: float = Field(default=3600.0, gt=0)
    trend_window: int = Field(default=10, ge=2, le=10)


class TrackerConfig(BaseModel):
    """Configuration for the remediation tracker.

    Attributes:
        key_prefix: Prefix for every key written to the store
        retention_period_seconds: TTL of execution records (default 30 days)
        max_stored_executions: Maximum members per service/error-type index
        cleanup_interval_seconds: Period of the expired-record sweep
    """

    key_prefix: str = "remediation:"
    retention_period_seconds: float = Field(default=30 * 24 * 3600.0, gt=0)
    max_stored_executions: int = Field(default=1000, ge=1)
    cleanup_interval_seconds: float = Field(default=3600.0, gt=0)


class PatternConfig(BaseModel):
    """Configuration for pattern recognition.

    Attributes:
        confidence_threshold: Minimum analysis confidence to publish a pattern
        context_match_keys: Restrict context comparison to these keys (empty = all)
        min_shared_context_keys: Keys that must be shared for a context match
    """

    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    context_match_keys: list[str] = Field(default_factory=list)
    min_shared_context_keys: int = Field(default=1, ge=0)


class ExecutorConfig(BaseModel):
    """Configuration for the remediation executor.

    Attributes:
        policy: Strategy iteration policy
        default_step_max_retries: max_retries given to derived plan steps
        auto_remediation_severity: Least severe error that is auto-remediated
    """

    policy: ExecutionPolicy = ExecutionPolicy.STOP_ON_FIRST_SUCCESS
    default_step_max_retries: int = Field(default=3, ge=0, le=10)
    auto_remediation_severity: ErrorSeverity = ErrorSeverity.INFO


class LLMConfig(BaseModel):
    """Configuration for the LLM analysis service client.

    Attributes:
        require_ready_model: Check that the model is listed as ready before
            every completion
    """

    endpoint: str = "http://127.0.0.1:1234/v1"
    model: str = "qwen2.5-7b-instruct-1m"
    timeout_seconds: float = Field(default=60.0, gt=0)
    system_prompt: str = "You are an expert runtime error analyzer for distributed services."
    require_ready_model: bool = True


class PatternServiceConfig(BaseModel):
    """Configuration for the pattern distribution service client.

    Attributes:
        base_url: Root URL of the service
        timeout_seconds: Per-request timeout
        max_retries: Retries on transport errors (never on HTTP error status)
        retry_backoff_seconds: Base delay, doubled on every retry
    """

    base_url: str = "http://localhost:8080"
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0, le=10)
    retry_backoff_seconds: float = Field(default=0.5, ge=0)


class EngineConfig(BaseModel):
    """Top-level configuration grouping every component section."""

    validator: ValidatorConfig = Field(default_factory=ValidatorConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    patterns: PatternConfig = Field(default_factory=PatternConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    pattern_service: PatternServiceConfig = Field(default_factory=PatternServiceConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        """Load configuration from a YAML file.

        A missing file yields the defaults.

        Args:
            path: Path to the YAML file

        Returns:
            Validated EngineConfig

        Raises:
            ConfigurationError: If the file cannot be read or parsed
        """
        config_path = Path(path)

        if not config_path.exists():
            logger.warning("Config file not found at %s, using defaults", config_path)
            return cls()

        try:
            with open(config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file: {e}")

        config = cls.from_dict(raw_config or {})
        logger.info("Loaded engine configuration from %s", config_path)
        return config

    @classmethod
    def from_dict(cls, raw_config: dict[str, Any]) -> EngineConfig:
        """Build configuration from a dictionary.

        Raises:
            ConfigurationError: If a value fails validation
        """
        if not isinstance(raw_config, dict):
            raise ConfigurationError("Invalid configuration: top level must be a mapping")
        try:
            return cls.model_validate(raw_config)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Load configuration overrides from environment variables.

        Reads:
        - REMEDY_CONFIG_FILE (YAML file loaded first, if set)
        - REMEDY_VALIDATION_TIMEOUT, REMEDY_STRICT_VALIDATION
        - REMEDY_RETENTION_SECONDS, REMEDY_MAX_STORED_EXECUTIONS
        - REMEDY_EXECUTION_POLICY
        - LLM_ENDPOINT, LLM_MODEL, LLM_REQUIRE_READY_MODEL
        - PATTERN_SERVICE_URL

        Returns:
            EngineConfig with environment overrides applied
        """
        config_file = os.environ.get("REMEDY_CONFIG_FILE")
        config = cls.from_yaml(config_file) if config_file else cls()
        data = config.model_dump()

        if "REMEDY_VALIDATION_TIMEOUT" in os.environ:
            data["validator"]["validation_timeout_seconds"] = float(
                os.environ["REMEDY_VALIDATION_TIMEOUT"]
            )
        if "REMEDY_STRICT_VALIDATION" in os.environ:
            data["validator"]["strict_validation"] = os.environ[
                "REMEDY_STRICT_VALIDATION"
            ].lower() in ("1", "true", "yes")
        if "REMEDY_RETENTION_SECONDS" in os.environ:
            data["tracker"]["retention_period_seconds"] = float(
                os.environ["REMEDY_RETENTION_SECONDS"]
            )
        if "REMEDY_MAX_STORED_EXECUTIONS" in os.environ:
            data["tracker"]["max_stored_executions"] = int(
                os.environ["REMEDY_MAX_STORED_EXECUTIONS"]
            )
        if "REMEDY_EXECUTION_POLICY" in os.environ:
            data["executor"]["policy"] = os.environ["REMEDY_EXECUTION_POLICY"].lower()
        if "LLM_ENDPOINT" in os.environ:
            data["llm"]["endpoint"] = os.environ["LLM_ENDPOINT"]
        if "LLM_MODEL" in os.environ:
            data["llm"]["model"] = os.environ["LLM_MODEL"]
        if "LLM_REQUIRE_READY_MODEL" in os.environ:
            data["llm"]["require_ready_model"] = os.environ[
                "LLM_REQUIRE_READY_MODEL"
            ].lower() in ("1", "true", "yes")
        if "PATTERN_SERVICE_URL" in os.environ:
            data["pattern_service"]["base_url"] = os.environ["PATTERN_SERVICE_URL"]

        return cls.from_dict(data)
