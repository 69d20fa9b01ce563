"""Recursion bound planning for settlement rounds."""

import math

from ..logging.config import get_logger
from ..models.settlement import RecursionPlan

logger = get_logger(__name__)


def plan_rounds(total_obligations: int, per_call_capacity: int, hard_ceiling: int) -> RecursionPlan:
    """
    Compute how many settlement rounds to attempt.

    expected = ceil(total / capacity), bounded = min(expected, hard_ceiling).
    A non-positive capacity reported by the ledger is treated as 1.

    Args:
        total_obligations: Exhaustive obligation count from the scanner
        per_call_capacity: Ledger-reported ``maxRemits``
        hard_ceiling: Maximum rounds per chain per run

    Returns:
        RecursionPlan with ``bounded_rounds <= hard_ceiling``
    """
    if hard_ceiling <= 0:
        raise ValueError(f"hard_ceiling must be positive, got {hard_ceiling}")

    capacity = per_call_capacity
    if capacity <= 0:
        logger.warning("Ledger reported non-positive per-call capacity, using 1",
                       per_call_capacity=per_call_capacity)
        capacity = 1

    expected = math.ceil(max(total_obligations, 0) / capacity)
    bounded = min(expected, hard_ceiling)

    if bounded < expected:
        logger.warning("Expected rounds capped by hard ceiling",
                       expected_rounds=expected, hard_ceiling=hard_ceiling)

    return RecursionPlan(
        total_obligations=total_obligations,
        per_call_capacity=capacity,
        expected_rounds=expected,
        bounded_rounds=bounded,
        hard_ceiling=hard_ceiling,
    )
