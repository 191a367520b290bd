"""Error analysis: pattern recognition, LLM prompting and response parsing."""

from .error_analyzer import ErrorAnalyzer
from .llm_parser import parse_analysis_response
from .patterns import PatternRecognition
from .prompts import build_analysis_prompt

__all__ = [
    "ErrorAnalyzer",
    "PatternRecognition",
    "build_analysis_prompt",
    "parse_analysis_response",
]
