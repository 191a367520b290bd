"""
Tests for engine configuration.

These tests verify:
1. Defaults match the documented values
2. YAML loading, including missing and invalid files
3. Environment overrides
4. Validation errors surface as ConfigurationError
"""

from __future__ import annotations

from pathlib import Path

import pytest

from remedy_engine.config.settings import (
    EngineConfig,
    ExecutionPolicy,
    MetricsConfig,
    ValidatorConfig,
)
from remedy_engine.exceptions import ConfigurationError
from remedy_engine.models.context import ErrorSeverity

ENV_VARS = (
    "REMEDY_CONFIG_FILE",
    "REMEDY_VALIDATION_TIMEOUT",
    "REMEDY_STRICT_VALIDATION",
    "REMEDY_RETENTION_SECONDS",
    "REMEDY_MAX_STORED_EXECUTIONS",
    "REMEDY_EXECUTION_POLICY",
    "LLM_ENDPOINT",
    "LLM_MODEL",
    "LLM_REQUIRE_READY_MODEL",
    "PATTERN_SERVICE_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    """Tests for default values."""

    def test_engine_defaults(self) -> None:
        config = EngineConfig()

        assert config.validator.strict_validation is True
        assert config.validator.validation_timeout_seconds == 120.0
        assert config.validator.max_validation_retries == 3
        assert config.tracker.key_prefix == "remediation:"
        assert config.tracker.retention_period_seconds == 30 * 24 * 3600
        assert config.tracker.max_stored_executions == 1000
        assert config.tracker.cleanup_interval_seconds == 3600
        assert config.executor.policy == ExecutionPolicy.STOP_ON_FIRST_SUCCESS
        assert config.executor.auto_remediation_severity == ErrorSeverity.INFO
        assert config.patterns.confidence_threshold == 0.7

    def test_default_allow_lists(self) -> None:
        config = ValidatorConfig()

        assert config.allowed_step_types == {
            "restart": ["service"],
            "clear": ["resource"],
            "update": ["component", "version"],
            "script": ["script", "timeout"],
        }
        assert set(config.allowed_strategy_types) == {"monitor", "alert", "backup"}

    def test_default_thresholds(self) -> None:
        assert MetricsConfig().metric_thresholds == {
            "cpu.usage": 80.0,
            "memory.usage": 85.0,
            "disk.usage": 90.0,
            "network.latency": 100.0,
            "error.rate": 5.0,
        }

    @pytest.mark.parametrize("window", [1, 11])
    def test_trend_window_bounds(self, window: int) -> None:
        with pytest.raises(ValueError):
            MetricsConfig(trend_window=window)


class TestYamlLoading:
    """Tests for EngineConfig.from_yaml."""

    def test_load_sections(self, tmp_path: Path) -> None:
        path = tmp_path / "remedy.yaml"
        path.write_text(
            "validator:\n"
            "  strict_validation: false\n"
            "  allowed_step_types:\n"
            "    Drain: [node]\n"
            "tracker:\n"
            "  max_stored_executions: 50\n"
            "executor:\n"
            "  policy: try_all\n"
            "  auto_remediation_severity: high\n"
        )

        config = EngineConfig.from_yaml(path)

        assert config.validator.strict_validation is False
        assert config.validator.allowed_step_types == {"drain": ["node"]}
        assert config.tracker.max_stored_executions == 50
        assert config.executor.policy == ExecutionPolicy.TRY_ALL
        assert config.executor.auto_remediation_severity == ErrorSeverity.HIGH
        assert config.metrics.collection_timeout_seconds == 300.0

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert EngineConfig.from_yaml(tmp_path / "absent.yaml") == EngineConfig()

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert EngineConfig.from_yaml(path) == EngineConfig()

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("validator: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            EngineConfig.from_yaml(path)

    def test_invalid_value(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("tracker:\n  max_stored_executions: 0\n")

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            EngineConfig.from_yaml(path)

    def test_non_mapping(self) -> None:
        with pytest.raises(ConfigurationError):
            EngineConfig.from_dict(["not", "a", "mapping"])  # type: ignore[arg-type]


class TestEnvironment:
    """Tests for EngineConfig.from_env."""

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REMEDY_VALIDATION_TIMEOUT", "15")
        monkeypatch.setenv("REMEDY_STRICT_VALIDATION", "false")
        monkeypatch.setenv("REMEDY_RETENTION_SECONDS", "86400")
        monkeypatch.setenv("REMEDY_MAX_STORED_EXECUTIONS", "10")
        monkeypatch.setenv("REMEDY_EXECUTION_POLICY", "TRY_ALL")
        monkeypatch.setenv("LLM_ENDPOINT", "http://llm.internal/v1")
        monkeypatch.setenv("LLM_MODEL", "analysis-model")
        monkeypatch.setenv("LLM_REQUIRE_READY_MODEL", "no")
        monkeypatch.setenv("PATTERN_SERVICE_URL", "http://patterns.internal")

        config = EngineConfig.from_env()

        assert config.validator.validation_timeout_seconds == 15.0
        assert config.validator.strict_validation is False
        assert config.tracker.retention_period_seconds == 86400.0
        assert config.tracker.max_stored_executions == 10
        assert config.executor.policy == ExecutionPolicy.TRY_ALL
        assert config.llm.endpoint == "http://llm.internal/v1"
        assert config.llm.model == "analysis-model"
        assert config.llm.require_ready_model is False
        assert config.pattern_service.base_url == "http://patterns.internal"

    def test_config_file_then_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "remedy.yaml"
        path.write_text("tracker:\n  max_stored_executions: 50\n  key_prefix: 'rx:'\n")
        monkeypatch.setenv("REMEDY_CONFIG_FILE", str(path))
        monkeypatch.setenv("REMEDY_MAX_STORED_EXECUTIONS", "20")

        config = EngineConfig.from_env()

        assert config.tracker.key_prefix == "rx:"
        assert config.tracker.max_stored_executions == 20

    def test_invalid_policy(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REMEDY_EXECUTION_POLICY", "sometimes")

        with pytest.raises(ConfigurationError):
            EngineConfig.from_env()
