"""Configuration modules for the remediation engine.

This package contains configuration for:
- Engine components (validator, metrics, tracker, patterns, executor)
- External service clients (LLM, pattern distribution service)
- Redis (tracker persistence)
"""

from .redis import RedisConfig, get_async_redis_client
from .settings import (
    EngineConfig,
    ExecutionPolicy,
    ExecutorConfig,
    LLMConfig,
    MetricsConfig,
    PatternConfig,
    PatternServiceConfig,
    TrackerConfig,
    ValidatorConfig,
)

__all__ = [
    "EngineConfig",
    "ExecutionPolicy",
    "ExecutorConfig",
    "LLMConfig",
    "MetricsConfig",
    "PatternConfig",
    "PatternServiceConfig",
    "RedisConfig",
    "TrackerConfig",
    "ValidatorConfig",
    "get_async_redis_client",
]
