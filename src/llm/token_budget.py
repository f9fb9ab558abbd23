# src/llm/token_budget.py — v2
"""Token budget allocation across the ordered stage list.

Each stage receives floor(total * weight). Pure and deterministic; the run
tracks cumulative usage separately (a stage may overrun its share).
"""

from __future__ import annotations

import logging
import math
from typing import Iterable

from deepthink.core.models import StageSpec

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 1e-6


def allocate_budget(
    total: int, stages: Iterable[StageSpec | tuple[str, float]]
) -> list[int]:
    """Split a total token budget across stages by fractional weight.

    Args:
        total: Total token budget for the run.
        stages: Ordered StageSpec entries or (stage_id, weight) pairs.

    Returns:
        Per-stage integer caps, in stage order.

    Raises:
        ValueError: If total is not positive, the list is empty, a weight is
            not positive or the weights do not sum to 1.0.
    """
    if total <= 0:
        raise ValueError(f"Token budget must be positive, got {total}")

    weights = [_weight_of(s) for s in stages]
    if not weights:
        raise ValueError("At least one stage is required")
    if any(w <= 0 for w in weights):
        raise ValueError("Stage weights must be positive")
    weight_sum = math.fsum(weights)
    if abs(weight_sum - 1.0) > WEIGHT_TOLERANCE:
        raise ValueError(f"Stage weights must sum to 1.0, got {weight_sum:.6f}")

    caps = [_floor_share(total, w) for w in weights]

    # Rounding can starve a tiny weight: raise it to 1 and take the
    # difference back from the largest caps so the sum stays <= total.
    if total >= len(caps) and min(caps) < 1:
        caps = [max(1, c) for c in caps]
        while sum(caps) > total:
            donor = max(range(len(caps)), key=lambda j: caps[j])
            caps[donor] -= 1

    logger.debug("Allocated budget %d across %d stages: %s", total, len(caps), caps)
    return caps


def allocate_stage_budgets(total: int, stages: Iterable[StageSpec]) -> dict[str, int]:
    """Same as allocate_budget() but keyed by stage id."""
    stage_list = list(stages)
    return dict(zip((s.id for s in stage_list), allocate_budget(total, stage_list)))


def _weight_of(stage: StageSpec | tuple[str, float]) -> float:
    if isinstance(stage, StageSpec):
        return stage.weight
    return float(stage[1])


def _floor_share(total: int, weight: float) -> int:
    # Guard float noise: 8000 * 0.15 must give 1200, not 1199.
    return math.floor(total * weight + 1e-9)
