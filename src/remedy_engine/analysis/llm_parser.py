"""
LLM response parser.

Turns the free-text answer of the analysis model into a structured
ErrorAnalysisResult. The answer is expected to contain these headed
sections, in any order and any letter case:

    Explanation: ...
    Root Causes: ...
    Remediation Steps: ...
    Prevention Strategies: ...
    Confidence: ...

Missing or malformed sections never raise: they come back empty and are
listed in ``unparsed_sections``, and ``parse_status`` says how much of the
answer was recovered.
"""

from __future__ import annotations

import logging
import re

from remedy_engine.models.analysis import ErrorAnalysisResult, ParseStatus
from remedy_engine.models.remediation import RemediationStep
from remedy_engine.models.scores import clamp_unit

logger = logging.getLogger(__name__)

EXPLANATION = "explanation"
ROOT_CAUSES = "root causes"
REMEDIATION_STEPS = "remediation steps"
PREVENTION_STRATEGIES = "prevention strategies"
CONFIDENCE = "confidence"

SECTIONS = (EXPLANATION, ROOT_CAUSES, REMEDIATION_STEPS, PREVENTION_STRATEGIES, CONFIDENCE)

_HEADING_RE = re.compile(
    r"(?:^|\n)[ \t#*>_]*("
    + "|".join(s.replace(" ", r"\s+") for s in SECTIONS)
    + r")[ \t*_]*:",
    re.IGNORECASE,
)
_BULLET_RE = re.compile(r"^\s*(?:[-*•]+|\d+[.)])\s*")
_NUMBER_RE = re.compile(r"(-?\d+(?:\.\d+)?)\s*(%)?")
_ACTION_RE = re.compile(r"^`?([A-Za-z][\w-]*):(\s*[\w.-]+\s*=[^`]*)`?$")


def split_sections(text: str) -> dict[str, str]:
    """Split an answer on the known headings.

    Returns:
        Section name (lower case, single spaces) -> raw section body. When a
        heading repeats, the first occurrence wins.
    """
    matches = list(_HEADING_RE.finditer(text or ""))
    sections: dict[str, str] = {}
    for index, match in enumerate(matches):
        name = " ".join(match.group(1).lower().split())
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        if name not in sections:
            sections[name] = text[match.end():end].strip()
    return sections


def split_items(body: str) -> list[str]:
    """Split a section body into bullet items."""
    items = []
    for line in body.splitlines():
        item = _BULLET_RE.sub("", line).strip()
        if item:
            items.append(item)
    return items


def parse_confidence(body: str) -> float | None:
    """Parse a confidence value.

    Percentages (``85%``) and values above 1 are scaled by 1/100; the result
    is clamped to [0, 1]. Returns None when no number is present.
    """
    match = _NUMBER_RE.search(body or "")
    if match is None:
        return None
    value = float(match.group(1))
    if match.group(2) or value > 1.0:
        value /= 100.0
    return clamp_unit(value)


def extract_action(item: str) -> str | None:
    """Return the structured ``type:key=value;...`` spec embedded in a step.

    A step such as ``restart:service=checkout`` is structured; a plain
    sentence is not and yields None.
    """
    match = _ACTION_RE.match(item.strip())
    if match is None:
        return None
    return f"{match.group(1).lower()}:{match.group(2).strip()}"


def parse_analysis_response(text: str) -> ErrorAnalysisResult:
    """Parse the analysis model's answer.

    Args:
        text: Raw answer

    Returns:
        ErrorAnalysisResult with the parsed sections, ``parse_status`` and
        ``unparsed_sections`` filled in. Identity fields (correlation id,
        service, error type) are left for the caller.
    """
    sections = split_sections(text or "")
    unparsed: list[str] = []

    explanation = " ".join(sections.get(EXPLANATION, "").split())
    if not explanation:
        unparsed.append(EXPLANATION)

    lists: dict[str, list[str]] = {}
    for name in (ROOT_CAUSES, REMEDIATION_STEPS, PREVENTION_STRATEGIES):
        lists[name] = split_items(sections.get(name, ""))
        if not lists[name]:
            unparsed.append(name)

    confidence = parse_confidence(sections.get(CONFIDENCE, ""))
    if confidence is None:
        unparsed.append(CONFIDENCE)
        confidence = 0.0

    if not unparsed:
        status = ParseStatus.PARSED
    elif len(unparsed) == len(SECTIONS):
        status = ParseStatus.UNPARSED
    else:
        status = ParseStatus.PARTIAL

    if unparsed:
        logger.debug("Analysis response missing sections: %s", ", ".join(unparsed))

    suggested = []
    for step in lists[REMEDIATION_STEPS]:
        action = extract_action(step)
        if action is not None:
            suggested.append(RemediationStep(description=step, action=action))

    return ErrorAnalysisResult(
        explanation=explanation,
        root_causes=lists[ROOT_CAUSES],
        remediation_steps=lists[REMEDIATION_STEPS],
        prevention_strategies=lists[PREVENTION_STRATEGIES],
        suggested_actions=suggested,
        confidence=confidence,
        parse_status=status,
        unparsed_sections=unparsed,
    )
