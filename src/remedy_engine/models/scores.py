"""Helpers for unit-interval scores (confidence, probability, weight)."""

import logging
import math
from typing import Any

logger = logging.getLogger(__name__)


def clamp_unit(value: Any, default: float = 0.0) -> float:
    """Clamp an arbitrary value into [0.0, 1.0].

    Non-numeric and NaN inputs fall back to ``default``. Strings are parsed,
    so ``"0.8"`` becomes 0.8.

    Args:
        value: Upstream value, possibly malformed
        default: Value used when ``value`` is not a number

    Returns:
        A float in [0.0, 1.0]
    """
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.debug("Non-numeric score %r replaced by %s", value, default)
        return default
    if math.isnan(number):
        return default
    return max(0.0, min(1.0, number))
