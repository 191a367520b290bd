"""Remedy Engine: dependency-graph error analysis and automated remediation.

Subpackages:
- graph: Dependency graph and graph analysis (impact, root cause, paths)
- analysis: Pattern recognition, LLM prompting and response parsing
- remediation: Validator, executor, metrics collector and tracker
- clients: LLM and pattern distribution service clients
- api: FastAPI control-plane router
- config: Engine and Redis configuration
"""

__version__ = "0.1.0"
