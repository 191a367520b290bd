"""
Pattern recognition.

Keeps a per-service cache of known error patterns and matches incoming
error contexts against it. The cache is owned by the PatternRecognition
instance and is filled lazily from the pattern distribution service the
first time a service is looked up. Entries are never invalidated
automatically; call ``refresh`` or ``invalidate`` explicitly.

Matching rules:
1. ``error_type`` and ``operation_name`` must be equal
2. The pattern's context fingerprint (optionally restricted to the
   configured match keys) is compared against the error's additional
   context: every shared key must agree on value, and at least
   ``min_shared_context_keys`` keys must be shared
3. An empty fingerprint matches any context
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime

from remedy_engine.clients.pattern_service import PatternServiceClient
from remedy_engine.config.settings import PatternConfig
from remedy_engine.exceptions import PatternRecognitionError, PatternServiceError
from remedy_engine.models.analysis import ErrorAnalysisResult
from remedy_engine.models.context import ErrorContext
from remedy_engine.models.patterns import ErrorPattern

logger = logging.getLogger(__name__)


class PatternRecognition:
    """Per-service pattern cache and matcher.

    Args:
        client: Pattern distribution service client; without one the cache
            starts empty and nothing is published
        config: Matching configuration
    """

    def __init__(
        self,
        client: PatternServiceClient | None = None,
        config: PatternConfig | None = None,
    ) -> None:
        self.client = client
        self.config = config or PatternConfig()
        self._cache: dict[str, list[ErrorPattern]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, service_name: str) -> asyncio.Lock:
        lock = self._locks.get(service_name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[service_name] = lock
        return lock

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    async def _load(self, service_name: str) -> list[ErrorPattern]:
        if self.client is None:
            return []
        try:
            return await self.client.get_patterns(service_name)
        except PatternServiceError as e:
            raise PatternRecognitionError(
                f"Failed to load patterns for service '{service_name}': {e}"
            ) from e

    async def get_patterns(self, service_name: str) -> list[ErrorPattern]:
        """Cached patterns of a service, fetched on first use.

        Raises:
            PatternRecognitionError: If the patterns cannot be retrieved
        """
        async with self._lock_for(service_name):
            if service_name not in self._cache:
                self._cache[service_name] = await self._load(service_name)
                logger.debug(
                    "Cached %d patterns for service %s",
                    len(self._cache[service_name]),
                    service_name,
                )
            return list(self._cache[service_name])

    async def refresh(self, service_name: str) -> list[ErrorPattern]:
        """Re-fetch the patterns of a service, replacing the cached ones."""
        async with self._lock_for(service_name):
            self._cache[service_name] = await self._load(service_name)
            logger.info("Refreshed patterns for service %s", service_name)
            return list(self._cache[service_name])

    def invalidate(self, service_name: str | None = None) -> None:
        """Drop cached patterns of one service, or of every service."""
        if service_name is None:
            self._cache.clear()
        else:
            self._cache.pop(service_name, None)

    # -------------------------------------------------------------------------
    # Matching
    # -------------------------------------------------------------------------

    def matches(self, pattern: ErrorPattern, context: ErrorContext) -> bool:
        """Check whether a pattern matches an error context."""
        if not pattern.is_active:
            return False
        if pattern.error_type != context.error_type:
            return False
        if pattern.operation_name != context.operation_name:
            return False
        return self._context_matches(pattern, context)

    def _context_matches(self, pattern: ErrorPattern, context: ErrorContext) -> bool:
        fingerprint = pattern.context
        if self.config.context_match_keys:
            fingerprint = {
                key: value
                for key, value in fingerprint.items()
                if key in self.config.context_match_keys
            }
        if not fingerprint:
            return True

        shared = [key for key in fingerprint if key in context.additional_context]
        if len(shared) < self.config.min_shared_context_keys:
            return False
        return all(
            str(fingerprint[key]) == str(context.additional_context[key]) for key in shared
        )

    async def find_matching_pattern(
        self, context: ErrorContext, service_name: str | None = None
    ) -> ErrorPattern | None:
        """Return the first cached pattern matching the context, if any.

        Args:
            context: Error occurrence to match
            service_name: Service whose patterns are searched (defaults to
                the context's service)

        Raises:
            ValueError: If context is None
            PatternRecognitionError: If the patterns cannot be retrieved
        """
        if context is None:
            raise ValueError("context must not be None")
        service = service_name or context.service_name

        for pattern in await self.get_patterns(service):
            if self.matches(pattern, context):
                logger.debug(
                    "Context %s matched pattern %s", context.correlation_id, pattern.pattern_id
                )
                return pattern
        return None

    async def detect_patterns(
        self, contexts: Iterable[ErrorContext], service_name: str
    ) -> list[ErrorPattern]:
        """Match every context; return the hits in input order."""
        patterns = await self.get_patterns(service_name)
        hits: list[ErrorPattern] = []
        for context in contexts:
            for pattern in patterns:
                if self.matches(pattern, context):
                    hits.append(pattern)
                    break
        return hits

    # -------------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------------

    async def record_occurrence(
        self, pattern: ErrorPattern, context: ErrorContext
    ) -> ErrorPattern:
        """Count a repeat occurrence of a pattern and publish the update.

        Raises:
            PatternRecognitionError: If the update cannot be published
        """
        service = pattern.service_name or context.service_name
        async with self._lock_for(service):
            pattern.occurrence_count += 1
            pattern.last_occurrence = datetime.now(UTC)

        if self.client is not None:
            try:
                await self.client.update_pattern(pattern)
            except PatternServiceError as e:
                raise PatternRecognitionError(
                    f"Failed to update pattern '{pattern.pattern_id}': {e}"
                ) from e
        return pattern

    def create_pattern(
        self, context: ErrorContext, analysis: ErrorAnalysisResult
    ) -> ErrorPattern:
        """Build a pattern from an analysis of an unmatched error."""
        now = datetime.now(UTC)
        return ErrorPattern(
            pattern_id=str(uuid.uuid4()),
            service_name=context.service_name,
            error_type=context.error_type,
            operation_name=context.operation_name,
            context=dict(context.additional_context),
            remediation_strategies=[
                step.action or step.description for step in analysis.suggested_actions
            ]
            or list(analysis.remediation_steps),
            confidence=analysis.confidence,
            occurrence_count=1,
            first_occurrence=now,
            last_occurrence=now,
            notes=analysis.explanation,
            metadata={"signature": context.to_signature()},
        )

    async def maybe_create_pattern(
        self, context: ErrorContext, analysis: ErrorAnalysisResult
    ) -> ErrorPattern | None:
        """Create and publish a pattern when the analysis is confident enough.

        A pattern is only created when the confidence exceeds the configured
        threshold. If an equivalent pattern is already cached, the two are
        merged: occurrence counts add up and the higher confidence wins.

        Returns:
            The created or merged pattern, or None below the threshold

        Raises:
            PatternRecognitionError: If the pattern cannot be published
        """
        if analysis.confidence <= self.config.confidence_threshold:
            logger.debug(
                "Analysis confidence %.2f below threshold %.2f, no pattern created",
                analysis.confidence,
                self.config.confidence_threshold,
            )
            return None

        candidate = self.create_pattern(context, analysis)
        service = candidate.service_name
        await self.get_patterns(service)

        async with self._lock_for(service):
            cached = self._cache.setdefault(service, [])
            existing = next((p for p in cached if self.matches(p, context)), None)
            if existing is not None:
                existing.occurrence_count += candidate.occurrence_count
                existing.confidence = max(existing.confidence, candidate.confidence)
                existing.last_occurrence = candidate.last_occurrence
                pattern, is_new = existing, False
            else:
                cached.append(candidate)
                pattern, is_new = candidate, True

        if self.client is not None:
            try:
                if is_new:
                    await self.client.publish_pattern(pattern)
                else:
                    await self.client.update_pattern(pattern)
            except PatternServiceError as e:
                raise PatternRecognitionError(
                    f"Failed to publish pattern '{pattern.pattern_id}': {e}"
                ) from e

        logger.info(
            "%s pattern %s for %s/%s (confidence %.2f)",
            "Created" if is_new else "Merged",
            pattern.pattern_id,
            service,
            pattern.error_type,
            pattern.confidence,
        )
        return pattern
