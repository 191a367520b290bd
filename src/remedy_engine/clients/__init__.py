"""Clients for the external LLM and pattern distribution services."""

from .llm import LLMClient
from .pattern_service import PatternServiceClient

__all__ = ["LLMClient", "PatternServiceClient"]
